"""Contiguous slot selection.

One state machine serves every surface that picks slots out of a day grid:
the public booking flow and the admin block modal (``book``/``block`` modes,
a single gapless run of available slots) and the admin unblock modal
(``unblock`` mode, whole existing blocks toggled as units).

All positions are indices into the day's full slot grid, so "adjacent" means
``index +/- 1`` in that grid regardless of the slot duration.
"""
import logging
from enum import Enum
from typing import List, Sequence

from courtbook.clock import end_time_for
from courtbook.models import Court, Occupancy, SelectionSummary, Slot
from courtbook.occupancy import block_groups

logger = logging.getLogger(__name__)


class SelectionMode(str, Enum):
    BOOK = "book"
    BLOCK = "block"
    UNBLOCK = "unblock"


class SlotSelection:
    def __init__(self, slots: Sequence[Slot] = (), mode: SelectionMode = SelectionMode.BOOK):
        self.slots: List[Slot] = list(slots)
        self.mode = SelectionMode(mode)
        self._indices: List[int] = []
        self._anchor: int | None = None

    def __len__(self) -> int:
        return len(self._indices)

    @property
    def indices(self) -> List[int]:
        return list(self._indices)

    @property
    def selected_slots(self) -> List[Slot]:
        return [self.slots[i] for i in self._indices]

    @property
    def dragging(self) -> bool:
        return self._anchor is not None

    def reset(self, slots: Sequence[Slot] | None = None, mode: SelectionMode | None = None):
        """Clears the selection, optionally swapping in a new grid and/or mode."""
        if slots is not None:
            self.slots = list(slots)
        if mode is not None:
            self.mode = SelectionMode(mode)
        self._indices = []
        self._anchor = None

    # --- Queries ---

    def _in_grid(self, index: int) -> bool:
        return 0 <= index < len(self.slots)

    def _span_available(self, start: int, end: int) -> bool:
        return all(self.slots[i].available for i in range(start, end + 1))

    def is_contiguous(self) -> bool:
        return all(b == a + 1 for a, b in zip(self._indices, self._indices[1:]))

    def block_ids(self) -> List[str]:
        """Distinct block ids covered by the selection, in grid order."""
        ids: List[str] = []
        for slot in self.selected_slots:
            if slot.block_id and slot.block_id not in ids:
                ids.append(slot.block_id)
        return ids

    def summary(self, court: Court) -> SelectionSummary | None:
        """Start/end time, duration and price of the current selection."""
        if not self._indices:
            return None
        first = self.slots[self._indices[0]]
        last = self.slots[self._indices[-1]]
        count = len(self._indices)
        return SelectionSummary(
            start_time=first.time,
            end_time=end_time_for(last.time, court.slot_duration_minutes),
            duration_minutes=count * court.slot_duration_minutes,
            total_price=count * court.price_per_slot,
            slot_count=count,
        )

    # --- Interaction ---

    def click(self, index: int) -> bool:
        """Applies a click on the slot at ``index``. Returns True if the selection changed."""
        if not self._in_grid(index):
            return False
        if self.mode == SelectionMode.UNBLOCK:
            return self._toggle_block(index)

        if index in self._indices:
            # Only the ends of the run can be removed
            if index in (self._indices[0], self._indices[-1]):
                self._indices.remove(index)
                return True
            return False

        if not self.slots[index].available:
            return False

        if not self._indices:
            self._indices = [index]
            return True

        first, last = self._indices[0], self._indices[-1]
        if index == first - 1:
            candidate = [index] + self._indices
        elif index == last + 1:
            candidate = self._indices + [index]
        else:
            return False

        if not self._span_available(candidate[0], candidate[-1]):
            return False
        self._indices = candidate
        return True

    def begin_drag(self, index: int) -> bool:
        """Presses on a slot: anchors a drag there and selects just that slot."""
        if not self._in_grid(index):
            return False
        if self.mode == SelectionMode.UNBLOCK:
            return self.click(index)
        if not self.slots[index].available:
            return False

        self._anchor = index
        changed = self._indices != [index]
        self._indices = [index]
        return changed

    def drag_over(self, index: int) -> bool:
        """Moves the pointer over a slot while dragging.

        The whole span between anchor and pointer is committed only if every slot
        in it is available; otherwise the previous selection stays.
        """
        if self._anchor is None or self.mode == SelectionMode.UNBLOCK or not self._in_grid(index):
            return False

        start, end = sorted((self._anchor, index))
        if not self._span_available(start, end):
            return False

        candidate = list(range(start, end + 1))
        changed = candidate != self._indices
        self._indices = candidate
        return changed

    def end_drag(self):
        self._anchor = None

    def _toggle_block(self, index: int) -> bool:
        slot = self.slots[index]
        if slot.occupancy != Occupancy.BLOCKED or not slot.block_id:
            return False

        group = block_groups(self.slots)[slot.block_id]
        if all(i in self._indices for i in group):
            self._indices = [i for i in self._indices if i not in group]
        else:
            self._indices = sorted(set(self._indices) | set(group))
        return True

    # --- Occupancy refresh ---

    def revalidate(self, slots: Sequence[Slot]) -> bool:
        """Swaps in a freshly resolved grid and drops what is no longer selectable.

        A book/block run is cleared entirely if any of its slots stopped being
        available. An unblock selection keeps the blocks that still exist,
        re-expanded to the slots they cover now. Returns True if the selection changed.
        """
        previous = list(self._indices)
        previous_block_ids = self.block_ids()
        self.slots = list(slots)

        if self.mode == SelectionMode.UNBLOCK:
            groups = block_groups(self.slots)
            self._indices = sorted(i for bid in previous_block_ids if bid in groups for i in groups[bid])
        elif not all(self._in_grid(i) and self.slots[i].available for i in self._indices):
            logger.info("Selected slots are no longer available. Clearing selection.")
            self._indices = []
            self._anchor = None

        return self._indices != previous
