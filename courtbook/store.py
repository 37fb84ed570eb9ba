"""Booking store boundary.

The engine only needs a read snapshot of bookings/blocks for one court and date,
a way to persist bookings and blocks, and an optional change feed. Two backends
implement it:

- ``LocalStore`` keeps everything in memory (optionally mirrored to the JSON
  state file) and notifies subscribers synchronously after each commit.
- ``SupabaseStore`` talks to the hosted backend over its REST interface and
  delegates the booking conflict check to the ``create_booking_atomic`` RPC.
"""
import logging
import secrets
import string
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List

import requests

from courtbook import config, persist
from courtbook.errors import ConflictError, CourtNotFoundError, StoreError
from courtbook.models import (
    BlockRequest,
    BookedInterval,
    Booking,
    BookingEvent,
    BookingRequest,
    BookingResult,
    BookingStatus,
    Court,
    OccupancyChange,
    OccupancySnapshot,
    UnavailabilityBlock,
)
from courtbook.occupancy import overlaps

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[OccupancyChange], None]
BookingEventCallback = Callable[[BookingEvent, Dict], None]

BLOCKED_BY_VENUE = "This time slot is blocked by the venue"
SLOT_TAKEN = "Selected time slot is no longer available"

REFERENCE_PREFIX = "BK"
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 6


class Subscription:
    """Handle for a change feed; call ``unsubscribe`` to release it."""

    def __init__(self, on_close: Callable[[], None] | None = None):
        self._on_close = on_close
        self.active = True

    def unsubscribe(self):
        if not self.active:
            return
        self.active = False
        if self._on_close:
            self._on_close()


class BookingStore:
    def get_court(self, court_id: str) -> Court:
        raise NotImplementedError

    def fetch_occupancy(self, court_id: str, booking_date: date) -> OccupancySnapshot:
        raise NotImplementedError

    def subscribe(self, court_id: str, on_change: ChangeCallback, booking_date: date | None = None) -> Subscription:
        raise NotImplementedError

    def commit_booking(self, request: BookingRequest) -> BookingResult:
        raise NotImplementedError

    def commit_block(self, request: BlockRequest) -> UnavailabilityBlock:
        raise NotImplementedError

    def commit_unblock(self, block_ids: Iterable[str]):
        raise NotImplementedError

    def cancel_booking(self, booking_id: str, reason: str | None = None) -> Booking:
        raise NotImplementedError

    def find_bookings(self, reference_id: str | None = None, phone: str | None = None) -> List[Booking]:
        raise NotImplementedError


# --- In-memory store ---


def generate_reference_id() -> str:
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))
    return f"{REFERENCE_PREFIX}{suffix}"


class LocalStore(BookingStore):
    """In-process store; the lock makes check-and-insert atomic across threads."""

    def __init__(
        self,
        courts: Iterable[Court] = (),
        persistent: bool = False,
        on_booking_event: BookingEventCallback | None = None,
    ):
        self.courts: Dict[str, Court] = {c.id: c for c in courts}
        self.bookings: Dict[str, Booking] = {}
        self.blocks: Dict[str, UnavailabilityBlock] = {}
        self.persistent = persistent
        self.on_booking_event = on_booking_event
        self._listeners: Dict[str, List[ChangeCallback]] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_state_file(cls, on_booking_event: BookingEventCallback | None = None) -> "LocalStore":
        state = persist.load_state()
        store = cls(
            courts=[Court(**c) for c in state.get("courts", [])],
            persistent=True,
            on_booking_event=on_booking_event,
        )
        for raw in state.get("bookings", []):
            booking = Booking(**raw)
            store.bookings[booking.id] = booking
        for raw in state.get("blocks", []):
            block = UnavailabilityBlock(**raw)
            store.blocks[block.id] = block
        return store

    def to_state(self) -> Dict:
        return {
            "courts": [c.model_dump(mode="json") for c in self.courts.values()],
            "bookings": [b.model_dump(mode="json") for b in self.bookings.values()],
            "blocks": [b.model_dump(mode="json") for b in self.blocks.values()],
        }

    def add_court(self, court: Court):
        with self._lock:
            self.courts[court.id] = court
            self._save()

    def _save(self):
        if self.persistent:
            persist.save_state(self.to_state())

    def _notify(self, court_id: str, booking_date: date):
        change = OccupancyChange(court_id=court_id, booking_date=booking_date)
        for callback in list(self._listeners.get(court_id, [])):
            callback(change)

    def booking_details(self, record: Dict) -> Dict:
        """Display names for a booking record, as used in customer messages."""
        court = self.courts.get(record.get("court_id"))
        return {
            "court_name": court.name if court else None,
            "sport_name": record.get("sport_id"),
        }

    def _emit(self, event: BookingEvent):
        if self.on_booking_event:
            self.on_booking_event(event, self.booking_details(event.record))

    def get_court(self, court_id: str) -> Court:
        court = self.courts.get(court_id)
        if not court:
            raise CourtNotFoundError(f"Court {court_id} not found")
        return court

    def fetch_occupancy(self, court_id: str, booking_date: date) -> OccupancySnapshot:
        with self._lock:
            bookings = [
                BookedInterval(start_time=b.start_time, end_time=b.end_time, status=b.status)
                for b in self.bookings.values()
                if b.court_id == court_id and b.booking_date == booking_date and b.status == BookingStatus.CONFIRMED
            ]
            blocks = [
                blk.model_copy()
                for blk in self.blocks.values()
                if blk.court_id == court_id and blk.unavailable_date == booking_date
            ]
        return OccupancySnapshot(bookings=bookings, blocks=blocks)

    def subscribe(self, court_id: str, on_change: ChangeCallback, booking_date: date | None = None) -> Subscription:
        with self._lock:
            self._listeners.setdefault(court_id, []).append(on_change)

        def _remove():
            with self._lock:
                listeners = self._listeners.get(court_id, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        logger.debug(f"Subscribed to changes for court {court_id}")
        return Subscription(on_close=_remove)

    def _overlapping_bookings(self, court_id: str, booking_date: date, start_time: str, end_time: str) -> List[Booking]:
        return [
            b
            for b in self.bookings.values()
            if b.court_id == court_id
            and b.booking_date == booking_date
            and b.status == BookingStatus.CONFIRMED
            and overlaps(b.start_time, b.end_time, start_time, end_time)
        ]

    def _overlapping_blocks(self, court_id: str, booking_date: date, start_time: str, end_time: str) -> List[UnavailabilityBlock]:
        return [
            blk
            for blk in self.blocks.values()
            if blk.court_id == court_id
            and blk.unavailable_date == booking_date
            and overlaps(blk.start_time, blk.end_time, start_time, end_time)
        ]

    def _new_reference_id(self) -> str:
        taken = {b.reference_id for b in self.bookings.values()}
        reference_id = generate_reference_id()
        while reference_id in taken:
            reference_id = generate_reference_id()
        return reference_id

    def commit_booking(self, request: BookingRequest) -> BookingResult:
        with self._lock:
            court = self.courts.get(request.court_id)
            if not court or not court.is_enabled:
                raise CourtNotFoundError("Invalid or unavailable court")

            args = (request.court_id, request.booking_date, request.start_time, request.end_time)
            if self._overlapping_blocks(*args):
                logger.warning(f"Booking rejected, blocked range: {request.booking_date} {request.start_time}")
                raise ConflictError(BLOCKED_BY_VENUE)
            if self._overlapping_bookings(*args):
                logger.warning(f"Booking rejected, double booking: {request.booking_date} {request.start_time}")
                raise ConflictError()

            booking = Booking(
                id=str(uuid.uuid4()),
                reference_id=self._new_reference_id(),
                status=BookingStatus.CONFIRMED,
                created_at=datetime.now(timezone.utc),
                **request.model_dump(),
            )
            self.bookings[booking.id] = booking
            self._save()

        logger.info(f"Booking {booking.reference_id} confirmed for {booking.booking_date} {booking.start_time}-{booking.end_time}")
        self._notify(booking.court_id, booking.booking_date)
        self._emit(BookingEvent(type="INSERT", record=booking.model_dump(mode="json")))
        return BookingResult(reference_id=booking.reference_id, booking_id=booking.id)

    def commit_block(self, request: BlockRequest) -> UnavailabilityBlock:
        with self._lock:
            if request.court_id not in self.courts:
                raise CourtNotFoundError(f"Court {request.court_id} not found")
            if self._overlapping_bookings(request.court_id, request.unavailable_date, request.start_time, request.end_time):
                raise ConflictError("Cannot block slots that overlap a confirmed booking")

            block = UnavailabilityBlock(id=str(uuid.uuid4()), **request.model_dump())
            self.blocks[block.id] = block
            self._save()

        logger.info(f"Blocked {block.unavailable_date} {block.start_time}-{block.end_time}: {block.reason}")
        self._notify(block.court_id, block.unavailable_date)
        return block

    def commit_unblock(self, block_ids: Iterable[str]):
        with self._lock:
            removed = [self.blocks.pop(bid) for bid in set(block_ids) if bid in self.blocks]
            self._save()

        logger.info(f"Removed {len(removed)} block(s)")
        for key in {(blk.court_id, blk.unavailable_date) for blk in removed}:
            self._notify(*key)

    def cancel_booking(self, booking_id: str, reason: str | None = None) -> Booking:
        with self._lock:
            old = self.bookings.get(booking_id)
            if not old:
                raise StoreError(f"Booking {booking_id} not found")
            update = {"status": BookingStatus.CANCELLED}
            if reason:
                update["cancellation_reason"] = reason
            booking = old.model_copy(update=update)
            self.bookings[booking_id] = booking
            self._save()

        logger.info(f"Booking {booking.reference_id} cancelled")
        self._notify(booking.court_id, booking.booking_date)
        self._emit(
            BookingEvent(
                type="UPDATE",
                record=booking.model_dump(mode="json"),
                old_record=old.model_dump(mode="json"),
            )
        )
        return booking

    def find_bookings(self, reference_id: str | None = None, phone: str | None = None) -> List[Booking]:
        with self._lock:
            results = list(self.bookings.values())
        if reference_id:
            results = [b for b in results if b.reference_id == reference_id.strip().upper()]
        if phone:
            results = [b for b in results if b.customer_phone == phone.strip()]
        return sorted(results, key=lambda b: (b.booking_date, b.start_time), reverse=True)


# --- Hosted backend ---


class PollingSubscription(Subscription):
    """Re-fetches a (court, date) snapshot periodically and reports differences."""

    def __init__(self, store: BookingStore, court_id: str, booking_date: date, on_change: ChangeCallback, interval: float):
        super().__init__()
        self.store = store
        self.court_id = court_id
        self.booking_date = booking_date
        self.on_change = on_change
        self.interval = interval
        self._last: OccupancySnapshot | None = None
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._poll, daemon=True, name=f"courtbook-poll-{court_id}")

    def start(self) -> "PollingSubscription":
        self._thread.start()
        return self

    def check(self):
        """Fetches once and fires ``on_change`` if the snapshot differs from the last one."""
        try:
            snapshot = self.store.fetch_occupancy(self.court_id, self.booking_date)
        except StoreError as e:
            logger.warning(f"Polling occupancy failed: {e}")
            return
        if self._last is not None and snapshot != self._last and self.active:
            logger.debug(f"Occupancy changed for court {self.court_id} on {self.booking_date}")
            self.on_change(OccupancyChange(court_id=self.court_id, booking_date=self.booking_date))
        self._last = snapshot

    def _poll(self):
        self.check()
        while not self._stop.wait(self.interval):
            self.check()

    def unsubscribe(self):
        super().unsubscribe()
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=config.HTTP_TIMEOUT)


class SupabaseStore(BookingStore):
    COURT_COLUMNS = "id,name,opening_time,closing_time,slot_duration_minutes,price_per_slot,is_enabled,court_sports(sport_id)"

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        session: requests.Session | None = None,
        timeout: int | None = None,
        poll_interval: float | None = None,
    ):
        self.url = url or config.SUPABASE_URL
        self.key = key or config.SUPABASE_KEY
        if not self.url or not self.key:
            raise StoreError("SUPABASE_URL and SUPABASE_KEY must be configured")
        self.session = session or requests.Session()
        self.timeout = timeout or config.HTTP_TIMEOUT
        self.poll_interval = poll_interval or config.POLL_INTERVAL_SECONDS

    def _headers(self, prefer: str | None = None) -> Dict[str, str]:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, path: str, params: Dict | None = None, json: Dict | None = None, prefer: str | None = None):
        url = f"{self.url.rstrip('/')}/rest/v1/{path}"
        logger.debug(f"{method} {url} params={params}")
        try:
            response = self.session.request(
                method, url, params=params, json=json, headers=self._headers(prefer), timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Request to {path} failed: {e}")
            raise StoreError(f"Could not reach booking store: {e}") from e

        if response.status_code >= 400:
            self._raise_for_error(response)
        if not response.content:
            return None
        return response.json()

    def _raise_for_error(self, response):
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or response.text or ""
        code = body.get("code")

        if response.status_code == 409 or code == "23505" or "DOUBLE_BOOKING" in message:
            raise ConflictError()

        logger.error(f"Store returned {response.status_code}: {message}")
        raise StoreError(f"Store request failed ({response.status_code}): {message}")

    def get_court(self, court_id: str) -> Court:
        rows = self._request("GET", "courts", params={"id": f"eq.{court_id}", "select": self.COURT_COLUMNS})
        if not rows:
            raise CourtNotFoundError(f"Court {court_id} not found")
        row = rows[0]
        sport_ids = [str(cs["sport_id"]) for cs in row.get("court_sports") or []]
        return Court(
            id=str(row["id"]),
            name=row.get("name") or "",
            opening_time=row["opening_time"],
            closing_time=row["closing_time"],
            slot_duration_minutes=row["slot_duration_minutes"],
            price_per_slot=row.get("price_per_slot") or 0,
            is_enabled=row.get("is_enabled", True),
            sport_ids=sport_ids,
        )

    def fetch_occupancy(self, court_id: str, booking_date: date) -> OccupancySnapshot:
        bookings = self._request(
            "GET",
            "bookings",
            params={
                "select": "start_time,end_time,status",
                "court_id": f"eq.{court_id}",
                "booking_date": f"eq.{booking_date.isoformat()}",
                "status": f"eq.{BookingStatus.CONFIRMED.value}",
            },
        ) or []
        blocks = self._request(
            "GET",
            "court_unavailability",
            params={
                "select": "id,start_time,end_time,reason",
                "court_id": f"eq.{court_id}",
                "unavailable_date": f"eq.{booking_date.isoformat()}",
            },
        ) or []
        return OccupancySnapshot(
            bookings=[BookedInterval(**b) for b in bookings],
            blocks=[
                UnavailabilityBlock(
                    id=str(b["id"]),
                    start_time=b["start_time"],
                    end_time=b["end_time"],
                    reason=b.get("reason") or "",
                    court_id=court_id,
                    unavailable_date=booking_date,
                )
                for b in blocks
            ],
        )

    def subscribe(self, court_id: str, on_change: ChangeCallback, booking_date: date | None = None) -> Subscription:
        if booking_date is None:
            raise ValueError("Polling subscriptions need a booking date")
        return PollingSubscription(self, court_id, booking_date, on_change, self.poll_interval).start()

    def _is_blocked(self, request: BookingRequest) -> bool:
        start, end = request.start_time, request.end_time
        rows = self._request(
            "GET",
            "court_unavailability",
            params={
                "select": "id",
                "court_id": f"eq.{request.court_id}",
                "unavailable_date": f"eq.{request.booking_date.isoformat()}",
                "or": (
                    f"(and(start_time.lte.{start},end_time.gt.{start}),"
                    f"and(start_time.lt.{end},end_time.gte.{end}),"
                    f"and(start_time.gte.{start},end_time.lte.{end}))"
                ),
                "limit": 1,
            },
        )
        return bool(rows)

    def commit_booking(self, request: BookingRequest) -> BookingResult:
        if self._is_blocked(request):
            raise ConflictError(BLOCKED_BY_VENUE)

        data = self._request(
            "POST",
            "rpc/create_booking_atomic",
            json={
                "p_court_id": request.court_id,
                "p_institution_id": request.institution_id,
                "p_booking_date": request.booking_date.isoformat(),
                "p_start_time": request.start_time,
                "p_end_time": request.end_time,
                "p_sport_id": request.sport_id,
                "p_total_price": request.total_price,
                "p_customer_name": request.customer_name,
                "p_customer_phone": request.customer_phone,
                "p_customer_email": request.customer_email,
            },
        )
        result = data[0] if isinstance(data, list) and data else data
        if not result:
            raise StoreError("Booking store returned an empty response")
        if not result.get("success"):
            raise ConflictError(result.get("error_message") or SLOT_TAKEN)

        booking_id = result.get("booking_id")
        logger.info(f"Booking {result['reference_id']} confirmed")
        return BookingResult(
            reference_id=result["reference_id"],
            booking_id=str(booking_id) if booking_id is not None else None,
        )

    def commit_block(self, request: BlockRequest) -> UnavailabilityBlock:
        rows = self._request(
            "POST",
            "court_unavailability",
            json=request.model_dump(mode="json"),
            prefer="return=representation",
        )
        if not rows:
            raise StoreError("Block was not created")
        row = rows[0]
        return UnavailabilityBlock(
            id=str(row["id"]),
            start_time=row["start_time"],
            end_time=row["end_time"],
            reason=row.get("reason") or "",
            court_id=str(row.get("court_id") or request.court_id),
            unavailable_date=row.get("unavailable_date") or request.unavailable_date,
        )

    def commit_unblock(self, block_ids: Iterable[str]):
        ids = list(dict.fromkeys(block_ids))
        if not ids:
            return
        self._request("DELETE", "court_unavailability", params={"id": f"in.({','.join(ids)})"})
        logger.info(f"Removed {len(ids)} block(s)")

    def cancel_booking(self, booking_id: str, reason: str | None = None) -> Booking:
        update = {"status": BookingStatus.CANCELLED.value}
        if reason:
            update["cancellation_reason"] = reason
        rows = self._request(
            "PATCH",
            "bookings",
            params={"id": f"eq.{booking_id}"},
            json=update,
            prefer="return=representation",
        )
        if not rows:
            raise StoreError(f"Booking {booking_id} not found")
        return Booking(**rows[0])

    def find_bookings(self, reference_id: str | None = None, phone: str | None = None) -> List[Booking]:
        params = {"select": "*", "order": "booking_date.desc,start_time.desc"}
        if reference_id:
            params["reference_id"] = f"eq.{reference_id.strip().upper()}"
        if phone:
            params["customer_phone"] = f"eq.{phone.strip()}"
        rows = self._request("GET", "bookings", params=params) or []
        return [Booking(**row) for row in rows]
