import pytest

from courtbook.models import Court, Occupancy
from courtbook.selection import SelectionMode, SlotSelection
from courtbook.timeslots import generate_slots


def make_slots(booked=(), blocks=None, count=8):
    """08:00 onwards, one-hour slots; ``blocks`` maps block id -> indices."""
    slots = generate_slots("08:00", f"{8 + count:02d}:00", 60)
    for i in booked:
        slots[i] = slots[i].model_copy(update={"occupancy": Occupancy.BOOKED})
    for block_id, indices in (blocks or {}).items():
        for i in indices:
            slots[i] = slots[i].model_copy(
                update={"occupancy": Occupancy.BLOCKED, "block_id": block_id, "block_reason": "Maintenance"}
            )
    return slots


def test_first_click_starts_selection():
    selection = SlotSelection(make_slots())
    assert selection.click(3)
    assert selection.indices == [3]


def test_click_extends_at_both_ends():
    selection = SlotSelection(make_slots())
    selection.click(3)
    assert selection.click(4)
    assert selection.click(2)
    assert selection.indices == [2, 3, 4]


def test_non_adjacent_click_is_ignored():
    selection = SlotSelection(make_slots())
    selection.click(2)
    assert not selection.click(5)
    assert selection.indices == [2]


def test_interior_click_is_noop():
    selection = SlotSelection(make_slots())
    for i in (2, 3, 4):
        selection.click(i)

    assert not selection.click(3)
    assert selection.indices == [2, 3, 4]


def test_click_on_end_shrinks():
    selection = SlotSelection(make_slots())
    for i in (2, 3, 4):
        selection.click(i)

    assert selection.click(4)
    assert selection.indices == [2, 3]
    assert selection.click(2)
    assert selection.indices == [3]
    assert selection.click(3)
    assert selection.indices == []


def test_unavailable_slots_cannot_be_selected():
    selection = SlotSelection(make_slots(booked=[3], blocks={"b1": [5]}))
    assert not selection.click(3)
    assert not selection.click(5)

    selection.click(4)
    assert not selection.click(3)
    assert not selection.click(5)
    assert selection.indices == [4]


def test_contiguity_holds_across_click_sequence():
    slots = make_slots(booked=[5])
    selection = SlotSelection(slots)

    for index in [1, 2, 4, 3, 4, 0, 6, 5, 2, 1, 7, 0, 3, 3, 2]:
        selection.click(index)
        assert selection.is_contiguous()
        assert all(s.available for s in selection.selected_slots)


def test_drag_selects_span():
    selection = SlotSelection(make_slots())
    selection.begin_drag(1)
    selection.drag_over(2)
    selection.drag_over(4)
    selection.end_drag()

    assert selection.indices == [1, 2, 3, 4]
    assert not selection.dragging


def test_drag_backwards_from_anchor():
    selection = SlotSelection(make_slots())
    selection.begin_drag(5)
    selection.drag_over(2)
    assert selection.indices == [2, 3, 4, 5]


def test_drag_stops_before_unavailable_slot():
    selection = SlotSelection(make_slots(booked=[3]))
    selection.begin_drag(0)
    selection.drag_over(1)
    selection.drag_over(2)
    assert not selection.drag_over(3)
    assert not selection.drag_over(5)
    selection.end_drag()

    assert selection.indices == [0, 1, 2]


def test_drag_jumping_over_unavailable_slot_keeps_anchor_only():
    selection = SlotSelection(make_slots(booked=[2]))
    selection.begin_drag(0)
    selection.drag_over(4)
    assert selection.indices == [0]


def test_drag_over_without_drag_is_ignored():
    selection = SlotSelection(make_slots())
    selection.click(1)
    assert not selection.drag_over(3)
    assert selection.indices == [1]


def test_begin_drag_replaces_selection():
    selection = SlotSelection(make_slots())
    selection.click(1)
    selection.click(2)
    selection.begin_drag(5)
    assert selection.indices == [5]


def test_begin_drag_on_unavailable_slot_is_ignored():
    selection = SlotSelection(make_slots(booked=[2]))
    assert not selection.begin_drag(2)
    assert not selection.dragging


def test_unblock_toggles_whole_group():
    slots = make_slots(blocks={"b1": [1, 2, 3], "b2": [6]})
    selection = SlotSelection(slots, mode=SelectionMode.UNBLOCK)

    assert selection.click(2)
    assert selection.indices == [1, 2, 3]

    assert selection.click(6)
    assert selection.indices == [1, 2, 3, 6]
    assert selection.block_ids() == ["b1", "b2"]

    assert selection.click(1)
    assert selection.indices == [6]


def test_unblock_ignores_free_and_booked_slots():
    slots = make_slots(booked=[0], blocks={"b1": [2]})
    selection = SlotSelection(slots, mode=SelectionMode.UNBLOCK)

    assert not selection.click(0)
    assert not selection.click(4)
    assert selection.begin_drag(2)
    assert not selection.drag_over(4)
    assert selection.indices == [2]


def test_reset_on_mode_change():
    slots = make_slots(blocks={"b1": [4]})
    selection = SlotSelection(slots)
    selection.click(1)

    selection.reset(mode=SelectionMode.UNBLOCK)
    assert selection.indices == []
    assert selection.mode == SelectionMode.UNBLOCK


def test_revalidate_clears_when_slot_gets_booked():
    selection = SlotSelection(make_slots())
    selection.click(2)
    selection.click(3)

    assert selection.revalidate(make_slots(booked=[3]))
    assert selection.indices == []


def test_revalidate_keeps_still_available_selection():
    selection = SlotSelection(make_slots())
    selection.click(2)
    selection.click(3)

    assert not selection.revalidate(make_slots(booked=[6]))
    assert selection.indices == [2, 3]


def test_revalidate_unblock_keeps_existing_groups():
    selection = SlotSelection(make_slots(blocks={"b1": [1, 2], "b2": [5]}), mode=SelectionMode.UNBLOCK)
    selection.click(1)
    selection.click(5)

    selection.revalidate(make_slots(blocks={"b1": [1, 2]}))
    assert selection.indices == [1, 2]
    assert selection.block_ids() == ["b1"]


def test_summary_for_two_hour_selection():
    court = Court(
        id="c1", opening_time="06:00", closing_time="22:00", slot_duration_minutes=60, price_per_slot=1000
    )
    slots = generate_slots(court.opening_time, court.closing_time, court.slot_duration_minutes)
    selection = SlotSelection(slots)
    selection.click(8)  # 14:00
    selection.click(9)  # 15:00

    summary = selection.summary(court)
    assert summary.start_time == "14:00:00"
    assert summary.end_time == "16:00:00"
    assert summary.duration_minutes == 120
    assert summary.total_price == pytest.approx(2000)
    assert summary.slot_count == 2


def test_summary_empty_selection():
    court = Court(id="c1", opening_time="06:00", closing_time="08:00", slot_duration_minutes=60)
    assert SlotSelection(generate_slots("06:00", "08:00", 60)).summary(court) is None
