import logging
from typing import List

from courtbook.clock import format_display, format_time, parse_time
from courtbook.models import Court, Slot

logger = logging.getLogger(__name__)


def generate_slots(opening_time: str, closing_time: str, slot_duration_minutes: int) -> List[Slot]:
    """Generates the day's slot grid between opening and closing time.

    Slots are ``slot_duration_minutes`` wide and start at opening time. A slot is
    only emitted while its start is before closing time; a trailing period
    shorter than one slot at the end of the day is never emitted.
    """
    if slot_duration_minutes <= 0:
        raise ValueError("slot_duration_minutes must be positive")

    current = parse_time(opening_time)
    end = parse_time(closing_time)

    slots: List[Slot] = []
    while current < end:
        if current + slot_duration_minutes > end:
            logger.debug(
                f"Dropping partial slot at {format_display(current)}: "
                f"{end - current} min left before closing, slot is {slot_duration_minutes} min"
            )
            break
        slots.append(
            Slot(
                index=len(slots),
                time=format_time(current),
                display_time=format_display(current),
            )
        )
        current += slot_duration_minutes

    logger.debug(f"Generated {len(slots)} slots from {opening_time} to {closing_time}")
    return slots


def court_slots(court: Court) -> List[Slot]:
    """Generates the slot grid for a court's operating hours."""
    return generate_slots(court.opening_time, court.closing_time, court.slot_duration_minutes)
