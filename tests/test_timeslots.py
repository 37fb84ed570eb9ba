import pytest

from courtbook.clock import end_time_for, format_time, normalize_time, parse_time
from courtbook.models import Court
from courtbook.timeslots import court_slots, generate_slots


def test_generate_slots_full_day():
    slots = generate_slots("06:00", "22:00", 60)

    assert len(slots) == 16
    assert slots[0].time == "06:00:00"
    assert slots[0].display_time == "06:00"
    assert slots[-1].time == "21:00:00"
    assert all(s.available for s in slots)
    assert [s.index for s in slots] == list(range(16))


@pytest.mark.parametrize(
    "opening, closing, duration",
    [
        ("06:00", "22:00", 60),
        ("06:00", "22:05", 60),
        ("08:30", "12:00", 45),
        ("00:00", "24:00", 90),
        ("10:15", "10:45", 30),
        ("07:00", "07:20", 30),
    ],
)
def test_generate_slots_grid_properties(opening, closing, duration):
    start, end = parse_time(opening), parse_time(closing)
    slots = generate_slots(opening, closing, duration)

    assert len(slots) == (end - start) // duration
    minutes = [s.minute for s in slots]
    if slots:
        assert minutes[0] == start
    assert all(b - a == duration for a, b in zip(minutes, minutes[1:]))
    assert all(m < end and m + duration <= end for m in minutes)


def test_trailing_partial_slot_is_dropped():
    slots = generate_slots("06:00", "22:05", 60)
    assert slots[-1].display_time == "21:00"
    assert "22:00:00" not in [s.time for s in slots]


def test_generate_slots_is_deterministic():
    assert generate_slots("09:00", "12:00", 30) == generate_slots("09:00", "12:00", 30)


def test_generate_slots_rejects_non_positive_duration():
    with pytest.raises(ValueError):
        generate_slots("09:00", "12:00", 0)


def test_court_slots_uses_court_hours():
    court = Court(id="c1", opening_time="09:00", closing_time="11:00:00", slot_duration_minutes=30)
    assert [s.display_time for s in court_slots(court)] == ["09:00", "09:30", "10:00", "10:30"]


def test_court_rejects_inverted_hours():
    with pytest.raises(ValueError):
        Court(id="c1", opening_time="22:00", closing_time="06:00", slot_duration_minutes=60)


def test_time_helpers():
    assert parse_time("06:30") == 390
    assert parse_time("06:30:00") == 390
    assert format_time(390) == "06:30:00"
    assert normalize_time("7:05") == "07:05:00"
    assert end_time_for("23:00:00", 60) == "24:00:00"

    with pytest.raises(ValueError):
        parse_time("25:00")
    with pytest.raises(ValueError):
        parse_time("noon")
