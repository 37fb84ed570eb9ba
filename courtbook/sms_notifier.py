import logging
from datetime import date
from typing import Dict

import requests

from courtbook import config
from courtbook.models import BookingEvent, BookingStatus

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "Request by institution"


def send_sms(phone: str, message: str) -> bool:
    """Sends a text message through the configured SMS gateway device."""
    api_key = config.SMS_API_KEY
    device_id = config.SMS_DEVICE_ID

    if not api_key or not device_id:
        logger.warning("SMS gateway configuration missing. Skipping notification.")
        return False

    url = f"{config.SMS_GATEWAY_BASE_URL}/gateway/devices/{device_id}/send-sms"
    payload = {
        "recipients": [phone],
        "message": message,
    }

    try:
        response = requests.post(url, json=payload, headers={"x-api-key": api_key}, timeout=config.HTTP_TIMEOUT)
        response.raise_for_status()
        logger.info(f"SMS sent to {phone}.")
        return True
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send SMS: {e}")
        return False


def _short_time(value: str | None) -> str:
    return (value or "")[:5]


def format_confirmation(record: Dict, details: Dict | None = None) -> str:
    """Builds the booking confirmation text.

    ``details`` may carry ``institution_name``, ``court_name`` and ``sport_name``;
    without them a shorter message is sent.
    """
    total = f"{config.CURRENCY} {record.get('total_price')}"
    if not details:
        return (
            "Booking Confirmed!\n\n"
            f"Ref: {record.get('reference_id')}\n"
            f"Date: {record.get('booking_date')}\n"
            f"Time: {_short_time(record.get('start_time'))}\n"
            f"Total: {total}"
        )

    booking_date = date.fromisoformat(str(record["booking_date"]))
    when = f"{booking_date:%b} {booking_date.day}, {booking_date.year}"
    time_range = f"{_short_time(record.get('start_time'))}-{_short_time(record.get('end_time'))}"
    return (
        "Booking Confirmed!\n\n"
        f"Ref: {record.get('reference_id')}\n"
        f"{details.get('institution_name') or 'Court'} - {details.get('court_name') or ''}\n"
        f"{details.get('sport_name') or 'Sport'}\n"
        f"Date: {when}\n"
        f"Time: {time_range}\n"
        f"Total: {total}\n\n"
        "Thank you for booking with us!"
    )


def format_cancellation(record: Dict) -> str:
    reason = record.get("cancellation_reason") or DEFAULT_CANCELLATION_REASON
    return (
        "Booking Cancelled\n\n"
        f"Ref: {record.get('reference_id')}\n"
        f"Reason: {reason}\n\n"
        "For queries, please contact the institution. "
        "Any payments will be processed according to cancellation policy."
    )


def build_message(event: BookingEvent, details: Dict | None = None) -> str | None:
    """Returns the SMS text for a bookings-table change, or None if nothing should be sent."""
    record = event.record
    status = record.get("status")

    if event.type == "INSERT" and status == BookingStatus.CONFIRMED.value:
        return format_confirmation(record, details)

    old_status = (event.old_record or {}).get("status")
    if event.type == "UPDATE" and status == BookingStatus.CANCELLED.value and old_status != BookingStatus.CANCELLED.value:
        return format_cancellation(record)

    return None


def handle_booking_event(event: BookingEvent, details: Dict | None = None) -> bool:
    """Forwards a booking confirmation or cancellation to the customer's phone."""
    message = build_message(event, details)
    if not message:
        logger.debug(f"No SMS required for {event.type} event")
        return False

    phone = event.record.get("customer_phone")
    if not phone:
        logger.warning("Booking event has no customer phone. Skipping notification.")
        return False

    return send_sms(phone, message)
