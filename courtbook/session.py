"""Interactive booking context for one court.

A ``BookingSession`` owns the slot grid for the active (court, date), the
occupancy snapshot it was resolved against, the current selection, and the
change-feed subscription for that date. Every surface (customer booking,
admin block/unblock, the CLI) drives the engine through it.
"""
import logging
import threading
from datetime import date
from typing import List, Tuple

from courtbook.clock import normalize_time
from courtbook.errors import ConflictError, StoreError, ValidationError
from courtbook.models import (
    BlockRequest,
    BookingRequest,
    BookingResult,
    Court,
    OccupancyChange,
    OccupancySnapshot,
    SelectionSummary,
    Slot,
    UnavailabilityBlock,
)
from courtbook.occupancy import resolve_occupancy
from courtbook.selection import SelectionMode, SlotSelection
from courtbook.store import BookingStore, Subscription
from courtbook.timeslots import court_slots
from courtbook.validation import choose_sport, validate_booking_date, validate_customer, validate_reason

logger = logging.getLogger(__name__)

SessionKey = Tuple[str, date | None]


class BookingSession:
    def __init__(
        self,
        store: BookingStore,
        court: Court,
        mode: SelectionMode = SelectionMode.BOOK,
        sport_id: str | None = None,
    ):
        self.store = store
        self.court = court
        self.booking_date: date | None = None
        self.sport_id = sport_id or (court.sport_ids[0] if len(court.sport_ids) == 1 else None)
        self.slots: List[Slot] = []
        self.snapshot: OccupancySnapshot | None = None
        self.selection = SlotSelection(mode=mode)
        self.loading = False
        self._grid: List[Slot] = []
        self._subscription: Subscription | None = None
        self._lock = threading.RLock()

    def __enter__(self) -> "BookingSession":
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def key(self) -> SessionKey:
        return (self.court.id, self.booking_date)

    @property
    def mode(self) -> SelectionMode:
        return self.selection.mode

    # --- Context changes ---

    def select_date(self, booking_date: date):
        """Activates a date: new grid, new subscription, fresh occupancy."""
        self._release_subscription()
        with self._lock:
            self.booking_date = booking_date
            self._grid = court_slots(self.court)
            self.slots = list(self._grid)
            self.snapshot = None
            self.selection.reset(self.slots)
            self._subscription = self.store.subscribe(self.court.id, self._on_change, booking_date=booking_date)
            logger.info(f"Showing {len(self._grid)} slots for court {self.court.id} on {booking_date}")
        self.refresh()

    def set_mode(self, mode: SelectionMode):
        with self._lock:
            self.selection.reset(mode=mode)

    def set_sport(self, sport_id: str | None):
        with self._lock:
            self.sport_id = choose_sport(self.court, sport_id)
            self.selection.reset()

    def close(self):
        self._release_subscription()

    def _release_subscription(self):
        # Unsubscribing may wait for a poll thread that needs the session lock
        with self._lock:
            subscription, self._subscription = self._subscription, None
        if subscription:
            subscription.unsubscribe()

    # --- Occupancy ---

    def refresh(self) -> bool:
        """Fetches occupancy for the active date and applies it if still current."""
        with self._lock:
            if self.booking_date is None:
                raise ValidationError("Please select a date")
            key = self.key
            self.loading = True

        try:
            snapshot = self.store.fetch_occupancy(key[0], key[1])
        except StoreError:
            with self._lock:
                if key == self.key:
                    self.loading = False
            raise
        return self.apply_snapshot(key, snapshot)

    def apply_snapshot(self, key: SessionKey, snapshot: OccupancySnapshot) -> bool:
        """Re-resolves the grid from a snapshot fetched for ``key``.

        Responses for a (court, date) that is no longer active are dropped.
        """
        with self._lock:
            if key != self.key:
                logger.debug(f"Discarding stale occupancy for {key}; active is {self.key}")
                return False

            self.loading = False
            self.snapshot = snapshot
            self.slots = resolve_occupancy(self._grid, snapshot)
            if self.selection.revalidate(self.slots):
                logger.debug("Selection changed after occupancy refresh")
            return True

    def _on_change(self, change: OccupancyChange):
        if change.court_id != self.court.id:
            return
        if change.booking_date is not None and change.booking_date != self.booking_date:
            return
        self._refresh_quietly()

    def _refresh_quietly(self):
        try:
            self.refresh()
        except StoreError as e:
            logger.error(f"Failed to refresh occupancy: {e}")

    # --- Selection ---

    def index_of(self, time: str) -> int:
        try:
            target = normalize_time(time)
        except ValueError:
            raise ValidationError(f"Invalid time format: {time}")
        for slot in self.slots:
            if slot.time == target:
                return slot.index
        raise ValidationError(f"No slot starts at {time}")

    def click(self, index: int) -> bool:
        with self._lock:
            return self.selection.click(index)

    def click_time(self, time: str) -> bool:
        return self.click(self.index_of(time))

    def begin_drag(self, index: int) -> bool:
        with self._lock:
            return self.selection.begin_drag(index)

    def drag_over(self, index: int) -> bool:
        with self._lock:
            return self.selection.drag_over(index)

    def end_drag(self):
        with self._lock:
            self.selection.end_drag()

    def summary(self) -> SelectionSummary | None:
        with self._lock:
            return self.selection.summary(self.court)

    # --- Commit ---

    def _require_selection(self, mode: SelectionMode) -> SelectionSummary:
        if self.booking_date is None:
            raise ValidationError("Please select a date")
        if self.loading or self.snapshot is None:
            raise ValidationError("Slots are still loading")
        if self.selection.mode != mode:
            raise ValidationError(f"Selection is in {self.selection.mode.value} mode, not {mode.value}")
        summary = self.selection.summary(self.court)
        if summary is None:
            raise ValidationError("Please select at least one time slot")
        return summary

    def _after_commit(self):
        with self._lock:
            self.selection.reset()
        self._refresh_quietly()

    def submit_booking(
        self,
        customer_name: str,
        customer_phone: str,
        customer_email: str | None = None,
        institution_id: str | None = None,
        today: date | None = None,
    ) -> BookingResult:
        """Books the selected slots. Raises ``ConflictError`` if they were taken meanwhile."""
        with self._lock:
            summary = self._require_selection(SelectionMode.BOOK)
            if not self.court.is_enabled:
                raise ValidationError("This court is not accepting bookings")
            validate_booking_date(self.booking_date, today=today)
            sport_id = choose_sport(self.court, self.sport_id)
            name, phone, email = validate_customer(customer_name, customer_phone, customer_email)

            request = BookingRequest(
                court_id=self.court.id,
                booking_date=self.booking_date,
                start_time=summary.start_time,
                end_time=summary.end_time,
                sport_id=sport_id,
                customer_name=name,
                customer_phone=phone,
                customer_email=email,
                total_price=summary.total_price,
                institution_id=institution_id,
            )

        try:
            result = self.store.commit_booking(request)
        except ConflictError as e:
            logger.warning(f"Booking conflict for {request.booking_date} {request.start_time}: {e}")
            self._refresh_quietly()
            raise

        self._after_commit()
        return result

    def submit_block(self, reason: str) -> UnavailabilityBlock:
        """Blocks the selected slots as a single unavailability record."""
        with self._lock:
            summary = self._require_selection(SelectionMode.BLOCK)
            request = BlockRequest(
                court_id=self.court.id,
                unavailable_date=self.booking_date,
                start_time=summary.start_time,
                end_time=summary.end_time,
                reason=validate_reason(reason),
            )

        try:
            block = self.store.commit_block(request)
        except ConflictError:
            self._refresh_quietly()
            raise

        self._after_commit()
        return block

    def submit_unblock(self) -> List[str]:
        """Removes every block touched by the selection. Returns the removed ids."""
        with self._lock:
            self._require_selection(SelectionMode.UNBLOCK)
            block_ids = self.selection.block_ids()

        self.store.commit_unblock(block_ids)
        self._after_commit()
        return block_ids
