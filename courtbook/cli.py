import argparse
import logging
import sys

from courtbook import run
from courtbook.errors import ConflictError, CourtBookError, ValidationError

# --- Logging Setup ---

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_VALIDATION = 2
EXIT_CONFLICT = 3


def setup_logging(verbose: bool):
    """Configures logging to stderr with local time."""
    import time

    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s]: %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    # Use local time instead of UTC for logging
    formatter.converter = time.localtime
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def parse_arguments(argv=None):
    """Parses command line arguments."""
    parser = argparse.ArgumentParser(description="Browse and reserve court time slots.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    def court_command(name, help_text):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("--court-id", required=True, help="Court identifier.")
        sub.add_argument("--date", type=str, help="Date in YYYY-MM-DD format. Defaults to today.")
        return sub

    court_command("availability", "Show the slot grid for a court and date.")

    book = court_command("book", "Book one or more contiguous slots.")
    book.add_argument("--slots", nargs="+", required=True, help="Slot start times (HH:MM), in order.")
    book.add_argument("--name", required=True, help="Customer name.")
    book.add_argument("--phone", required=True, help="Customer phone number.")
    book.add_argument("--email", help="Customer email (optional).")
    book.add_argument("--sport", help="Sport id. Chosen automatically if the court offers one sport.")

    block = court_command("block", "Block contiguous slots (admin).")
    block.add_argument("--slots", nargs="+", required=True, help="Slot start times (HH:MM), in order.")
    block.add_argument("--reason", required=True, help="Why the slots are unavailable.")

    unblock = court_command("unblock", "Remove the blocks covering the given slots (admin).")
    unblock.add_argument("--slots", nargs="+", required=True, help="Any slot start time inside each block.")

    cancel = commands.add_parser("cancel", help="Cancel a booking (admin).")
    target = cancel.add_mutually_exclusive_group(required=True)
    target.add_argument("--booking-id", help="Booking identifier, as printed by track.")
    target.add_argument("--reference", help="Booking reference code.")
    cancel.add_argument("--reason", help="Cancellation reason sent to the customer.")

    track = commands.add_parser("track", help="Look up bookings by reference or phone.")
    track.add_argument("--reference", help="Booking reference code.")
    track.add_argument("--phone", help="Customer phone number.")

    return parser.parse_args(argv)


def dispatch(args):
    if args.command == "cancel":
        return run.cancel(args.booking_id, args.reason, reference_id=args.reference)
    if args.command == "track":
        return run.track(reference_id=args.reference, phone=args.phone)

    booking_date = run.parse_date(args.date)
    if args.command == "availability":
        return run.show_availability(args.court_id, booking_date)
    if args.command == "book":
        return run.book(args.court_id, booking_date, args.slots, args.name, args.phone, args.email, args.sport)
    if args.command == "block":
        return run.block(args.court_id, booking_date, args.slots, args.reason)
    if args.command == "unblock":
        return run.unblock(args.court_id, booking_date, args.slots)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None):
    args = parse_arguments(argv)
    setup_logging(args.verbose)
    try:
        dispatch(args)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_VALIDATION)
    except ConflictError as e:
        print(f"Conflict: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFLICT)
    except CourtBookError as e:
        logger.error(f"Command failed: {e}")
        print(f"Error: {e}. Nothing was saved.", file=sys.stderr)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
