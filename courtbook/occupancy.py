import logging
from typing import Dict, List, Sequence

from courtbook.clock import parse_time
from courtbook.models import BookingStatus, Occupancy, OccupancySnapshot, Slot

logger = logging.getLogger(__name__)


def contains(start_time: str, end_time: str, slot_time: str) -> bool:
    """Half-open containment: ``start <= slot < end``."""
    return parse_time(start_time) <= parse_time(slot_time) < parse_time(end_time)


def overlaps(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    return parse_time(a_start) < parse_time(b_end) and parse_time(a_end) > parse_time(b_start)


def resolve_occupancy(slots: Sequence[Slot], snapshot: OccupancySnapshot) -> List[Slot]:
    """Annotates a slot grid with booked/blocked/available state.

    Returns new slot objects; the input grid is left untouched, so resolving the
    same grid against the same snapshot always gives the same answer. Booked
    takes precedence over blocked when both cover a slot.
    """
    confirmed = [b for b in snapshot.bookings if b.status == BookingStatus.CONFIRMED]

    resolved = []
    for slot in slots:
        is_booked = any(contains(b.start_time, b.end_time, slot.time) for b in confirmed)
        block = next(
            (blk for blk in snapshot.blocks if contains(blk.start_time, blk.end_time, slot.time)),
            None,
        )

        if is_booked:
            if block:
                logger.debug(f"Slot {slot.display_time} is both booked and blocked ({block.id}); showing booked")
            update = {"occupancy": Occupancy.BOOKED, "block_id": None, "block_reason": None}
        elif block:
            update = {"occupancy": Occupancy.BLOCKED, "block_id": block.id, "block_reason": block.reason}
        else:
            update = {"occupancy": Occupancy.AVAILABLE, "block_id": None, "block_reason": None}

        resolved.append(slot.model_copy(update=update))

    return resolved


def block_groups(slots: Sequence[Slot]) -> Dict[str, List[int]]:
    """Maps each block id to the indices of the slots it covers."""
    groups: Dict[str, List[int]] = {}
    for slot in slots:
        if slot.occupancy == Occupancy.BLOCKED and slot.block_id:
            groups.setdefault(slot.block_id, []).append(slot.index)
    return groups


def count_by_occupancy(slots: Sequence[Slot]) -> Dict[Occupancy, int]:
    counts = {state: 0 for state in Occupancy}
    for slot in slots:
        counts[slot.occupancy] += 1
    return counts
