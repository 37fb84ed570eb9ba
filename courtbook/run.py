import logging
from datetime import date, datetime
from typing import List, Sequence

from courtbook import config, sms_notifier
from courtbook.errors import ValidationError
from courtbook.models import Booking, Occupancy, Slot
from courtbook.occupancy import count_by_occupancy
from courtbook.selection import SelectionMode
from courtbook.session import BookingSession
from courtbook.store import BookingStore, LocalStore, SupabaseStore

logger = logging.getLogger(__name__)

OCCUPANCY_LABELS = {
    Occupancy.AVAILABLE: "[AVAILABLE]",
    Occupancy.BOOKED: "[BOOKED]   ",
    Occupancy.BLOCKED: "[BLOCKED]  ",
}


def parse_date(value: str | None) -> date:
    """Parses a YYYY-MM-DD argument, defaulting to today."""
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Date must be in YYYY-MM-DD format.")


def get_store() -> BookingStore:
    """Uses the hosted backend when configured, the local state file otherwise."""
    if config.SUPABASE_URL and config.SUPABASE_KEY:
        logger.info(f"Using hosted booking store at {config.SUPABASE_URL}")
        return SupabaseStore()
    logger.info(f"Using local booking store at {config.STATE_FILE}")
    # The hosted backend sends SMS from a database webhook; locally the store emits the events itself
    return LocalStore.from_state_file(on_booking_event=sms_notifier.handle_booking_event)


def open_session(
    store: BookingStore,
    court_id: str,
    booking_date: date,
    mode: SelectionMode = SelectionMode.BOOK,
    sport_id: str | None = None,
) -> BookingSession:
    court = store.get_court(court_id)
    session = BookingSession(store, court, mode=mode, sport_id=sport_id)
    session.select_date(booking_date)
    return session


def select_times(session: BookingSession, times: Sequence[str]):
    """Clicks each slot start time in order, failing on the first one that is refused."""
    for time in times:
        if not session.click_time(time):
            raise ValidationError(f"Slot {time} cannot be added to the selection")


def format_slot_line(slot: Slot) -> str:
    line = f"{OCCUPANCY_LABELS[slot.occupancy]} {slot.display_time}"
    if slot.occupancy == Occupancy.BLOCKED and slot.block_reason:
        line += f" ({slot.block_reason})"
    return line


def print_availability_report(session: BookingSession):
    """Prints the slot grid for the session's active date."""
    court = session.court
    print(f"\n--- Availability for {court.name or court.id} on {session.booking_date} ---")

    for slot in session.slots:
        print(format_slot_line(slot))

    counts = count_by_occupancy(session.slots)
    print(
        f"Summary: {counts[Occupancy.AVAILABLE]} available, {counts[Occupancy.BOOKED]} booked, "
        f"{counts[Occupancy.BLOCKED]} blocked of {len(session.slots)} slots "
        f"({court.slot_duration_minutes} min, {config.CURRENCY} {court.price_per_slot:.2f} per slot)."
    )


def print_bookings(bookings: List[Booking]):
    if not bookings:
        print("No bookings found.")
        return
    for b in bookings:
        print(
            f"{b.reference_id} | {b.booking_date} {b.start_time[:5]}-{b.end_time[:5]} | "
            f"{b.status.value} | {config.CURRENCY} {b.total_price:.2f} | {b.customer_name} | id {b.id}"
        )


def show_availability(court_id: str, booking_date: date):
    store = get_store()
    with open_session(store, court_id, booking_date) as session:
        print_availability_report(session)


def book(
    court_id: str,
    booking_date: date,
    times: Sequence[str],
    name: str,
    phone: str,
    email: str | None = None,
    sport_id: str | None = None,
) -> str:
    store = get_store()
    with open_session(store, court_id, booking_date, sport_id=sport_id) as session:
        select_times(session, times)
        summary = session.summary()
        result = session.submit_booking(name, phone, email)

    print(
        f"Booking confirmed: {result.reference_id} | {booking_date} "
        f"{summary.start_time[:5]}-{summary.end_time[:5]} | "
        f"{summary.duration_minutes} min | {config.CURRENCY} {summary.total_price:.2f}"
    )
    return result.reference_id


def block(court_id: str, booking_date: date, times: Sequence[str], reason: str):
    store = get_store()
    with open_session(store, court_id, booking_date, mode=SelectionMode.BLOCK) as session:
        select_times(session, times)
        created = session.submit_block(reason)
    print(f"Blocked {booking_date} {created.start_time[:5]}-{created.end_time[:5]}: {created.reason}")


def unblock(court_id: str, booking_date: date, times: Sequence[str]):
    store = get_store()
    with open_session(store, court_id, booking_date, mode=SelectionMode.UNBLOCK) as session:
        for time in times:
            index = session.index_of(time)
            # Slots of an already selected block are covered by an earlier click
            if index not in session.selection.indices and not session.click(index):
                raise ValidationError(f"Slot {time} is not blocked")
        removed = session.submit_unblock()
    print(f"Removed {len(removed)} block(s) on {booking_date}.")


def cancel(booking_id: str | None = None, reason: str | None = None, reference_id: str | None = None):
    """Cancels a booking given its id or its reference code."""
    store = get_store()
    if not booking_id:
        if not reference_id:
            raise ValidationError("Provide a booking id or a booking reference.")
        matches = store.find_bookings(reference_id=reference_id)
        if not matches:
            raise ValidationError(f"No booking found for reference {reference_id}")
        booking_id = matches[0].id
    booking = store.cancel_booking(booking_id, reason)
    print(f"Booking {booking.reference_id} cancelled.")


def track(reference_id: str | None = None, phone: str | None = None):
    if not reference_id and not phone:
        raise ValidationError("Provide a booking reference or a phone number.")
    store = get_store()
    print_bookings(store.find_bookings(reference_id=reference_id, phone=phone))
