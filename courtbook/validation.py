import logging
import re
from datetime import date
from typing import Tuple

from courtbook import config
from courtbook.errors import ValidationError
from courtbook.models import Court

logger = logging.getLogger(__name__)


def sanitize_input(value: str | None) -> str | None:
    """Trims whitespace and strips angle brackets."""
    if not value:
        return value
    return value.strip().replace("<", "").replace(">", "")


def normalize_phone(phone: str | None) -> str | None:
    """Removes spaces and dashes and rewrites the country prefix to a leading 0."""
    if not phone:
        return phone
    cleaned = re.sub(r"[\s\-]", "", phone)
    if cleaned.startswith(config.PHONE_COUNTRY_PREFIX):
        cleaned = "0" + cleaned[len(config.PHONE_COUNTRY_PREFIX):]
    return cleaned


def validate_customer(name: str | None, phone: str | None, email: str | None = None) -> Tuple[str, str, str | None]:
    """Validates and normalizes customer contact details.

    Returns the cleaned ``(name, phone, email)``; email stays optional.
    """
    name = sanitize_input(name)
    phone = normalize_phone(sanitize_input(phone))
    email = sanitize_input(email) or None

    if not name or not phone:
        raise ValidationError("Customer name and phone are required")

    if not config.NAME_MIN_LENGTH <= len(name) <= config.NAME_MAX_LENGTH:
        raise ValidationError(
            f"Name must be between {config.NAME_MIN_LENGTH} and {config.NAME_MAX_LENGTH} characters"
        )

    if not re.match(config.PHONE_PATTERN, phone):
        raise ValidationError("Invalid phone number format. Use 0XX XXX XXXX")

    if email and not re.match(config.EMAIL_PATTERN, email):
        raise ValidationError("Invalid email format")

    return name, phone, email


def validate_booking_date(booking_date: date, today: date | None = None):
    today = today or date.today()
    if booking_date < today:
        raise ValidationError("Cannot book dates in the past")


def choose_sport(court: Court, sport_id: str | None) -> str | None:
    """Resolves the sport for a booking, auto-picking it when the court has only one."""
    if sport_id is None:
        if len(court.sport_ids) == 1:
            return court.sport_ids[0]
        if court.sport_ids:
            raise ValidationError("Please select a sport")
        return None

    if court.sport_ids and sport_id not in court.sport_ids:
        raise ValidationError(f"Sport {sport_id} is not offered on this court")
    return sport_id


def validate_reason(reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Please provide a reason for blocking these slots")
    return reason
