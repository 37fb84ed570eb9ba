from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from courtbook.clock import normalize_time, parse_time

TimeOfDay = Annotated[str, AfterValidator(normalize_time)]


class Occupancy(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Court(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str = ""
    opening_time: TimeOfDay
    closing_time: TimeOfDay
    slot_duration_minutes: int = Field(gt=0)
    price_per_slot: float = Field(default=0, ge=0)
    is_enabled: bool = True
    sport_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_operating_hours(self):
        if parse_time(self.opening_time) >= parse_time(self.closing_time):
            raise ValueError("opening_time must be before closing_time")
        return self


class Slot(BaseModel):
    index: int
    time: str  # HH:MM:00
    display_time: str  # HH:MM
    occupancy: Occupancy = Occupancy.AVAILABLE
    block_id: str | None = None
    block_reason: str | None = None

    @property
    def available(self) -> bool:
        return self.occupancy == Occupancy.AVAILABLE

    @property
    def minute(self) -> int:
        return parse_time(self.time)


class BookedInterval(BaseModel):
    start_time: TimeOfDay
    end_time: TimeOfDay
    status: BookingStatus = BookingStatus.CONFIRMED


class UnavailabilityBlock(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    start_time: TimeOfDay
    end_time: TimeOfDay
    reason: str = ""
    court_id: str | None = None
    unavailable_date: date | None = None


class OccupancySnapshot(BaseModel):
    bookings: List[BookedInterval] = Field(default_factory=list)
    blocks: List[UnavailabilityBlock] = Field(default_factory=list)


class BookingRequest(BaseModel):
    court_id: str
    booking_date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    sport_id: str | None = None
    customer_name: str
    customer_phone: str
    customer_email: str | None = None
    total_price: float = Field(ge=0)
    institution_id: str | None = None


class Booking(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    reference_id: str
    court_id: str
    booking_date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    sport_id: str | None = None
    customer_name: str
    customer_phone: str
    customer_email: str | None = None
    status: BookingStatus = BookingStatus.CONFIRMED
    total_price: float = 0
    cancellation_reason: str | None = None
    institution_id: str | None = None
    created_at: datetime | None = None


class BlockRequest(BaseModel):
    court_id: str
    unavailable_date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    reason: str


class BookingResult(BaseModel):
    reference_id: str
    booking_id: str | None = None


class SelectionSummary(BaseModel):
    start_time: str
    end_time: str
    duration_minutes: int
    total_price: float
    slot_count: int


class OccupancyChange(BaseModel):
    """Notification that bookings or blocks changed for a court."""

    court_id: str
    booking_date: date | None = None  # None means "any date, re-fetch"


class BookingEvent(BaseModel):
    """Database change payload for a row of the bookings table."""

    type: str  # INSERT / UPDATE / DELETE
    record: Dict[str, Any] = Field(default_factory=dict)
    old_record: Dict[str, Any] | None = None
