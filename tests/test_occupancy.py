from courtbook.models import BookedInterval, BookingStatus, Occupancy, OccupancySnapshot, UnavailabilityBlock
from courtbook.occupancy import block_groups, count_by_occupancy, resolve_occupancy
from courtbook.timeslots import generate_slots


def by_time(slots):
    return {s.display_time: s for s in slots}


def test_booking_marks_every_covered_slot():
    grid = generate_slots("09:00", "13:00", 30)
    snapshot = OccupancySnapshot(bookings=[BookedInterval(start_time="10:00", end_time="11:30")])

    slots = by_time(resolve_occupancy(grid, snapshot))

    assert slots["10:00"].occupancy == Occupancy.BOOKED
    assert slots["10:30"].occupancy == Occupancy.BOOKED
    assert slots["11:00"].occupancy == Occupancy.BOOKED
    assert slots["11:30"].available
    assert slots["09:30"].available


def test_booking_ending_at_slot_start_does_not_cover_it():
    grid = generate_slots("08:00", "11:00", 60)
    snapshot = OccupancySnapshot(bookings=[BookedInterval(start_time="08:00", end_time="09:00")])

    slots = by_time(resolve_occupancy(grid, snapshot))

    assert slots["08:00"].occupancy == Occupancy.BOOKED
    assert slots["09:00"].available


def test_blocked_slots_carry_block_identity():
    grid = generate_slots("08:00", "12:00", 60)
    snapshot = OccupancySnapshot(
        blocks=[UnavailabilityBlock(id="blk-1", start_time="09:00", end_time="11:00", reason="Maintenance")]
    )

    slots = by_time(resolve_occupancy(grid, snapshot))

    assert slots["09:00"].occupancy == Occupancy.BLOCKED
    assert slots["10:00"].block_id == "blk-1"
    assert slots["10:00"].block_reason == "Maintenance"
    assert slots["11:00"].available
    assert block_groups(list(slots.values())) == {"blk-1": [1, 2]}


def test_booked_wins_over_blocked():
    grid = generate_slots("08:00", "10:00", 60)
    snapshot = OccupancySnapshot(
        bookings=[BookedInterval(start_time="08:00", end_time="09:00")],
        blocks=[UnavailabilityBlock(id="blk-1", start_time="08:00", end_time="10:00", reason="Event")],
    )

    slots = resolve_occupancy(grid, snapshot)

    assert slots[0].occupancy == Occupancy.BOOKED
    assert slots[0].block_id is None
    assert slots[1].occupancy == Occupancy.BLOCKED


def test_cancelled_bookings_are_ignored():
    grid = generate_slots("08:00", "10:00", 60)
    snapshot = OccupancySnapshot(
        bookings=[BookedInterval(start_time="08:00", end_time="09:00", status=BookingStatus.CANCELLED)]
    )
    assert all(s.available for s in resolve_occupancy(grid, snapshot))


def test_resolver_is_idempotent_and_pure():
    grid = generate_slots("08:00", "14:00", 60)
    snapshot = OccupancySnapshot(
        bookings=[BookedInterval(start_time="09:00", end_time="10:00")],
        blocks=[UnavailabilityBlock(id="b", start_time="12:00", end_time="13:00", reason="x")],
    )

    first = resolve_occupancy(grid, snapshot)
    second = resolve_occupancy(grid, snapshot)

    assert first == second
    assert resolve_occupancy(first, snapshot) == first
    assert all(s.available for s in grid)


def test_freed_slot_becomes_available_again():
    grid = generate_slots("08:00", "10:00", 60)
    booked = resolve_occupancy(grid, OccupancySnapshot(bookings=[BookedInterval(start_time="08:00", end_time="09:00")]))

    assert resolve_occupancy(booked, OccupancySnapshot())[0].available


def test_count_by_occupancy():
    grid = generate_slots("08:00", "12:00", 60)
    snapshot = OccupancySnapshot(
        bookings=[BookedInterval(start_time="08:00", end_time="09:00")],
        blocks=[UnavailabilityBlock(id="b", start_time="10:00", end_time="12:00")],
    )
    counts = count_by_occupancy(resolve_occupancy(grid, snapshot))
    assert counts == {Occupancy.AVAILABLE: 1, Occupancy.BOOKED: 1, Occupancy.BLOCKED: 2}
