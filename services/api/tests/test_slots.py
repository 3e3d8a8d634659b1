from datetime import date, datetime, timedelta, timezone

import pytest

from carelog.errors import ConflictingSelection, EmptySelection
from carelog.slots import (
    CLOCK_SLOTS,
    DIAPER_SLOTS,
    FACILITY_TZ,
    CareType,
    SlotState,
    build_grid,
    check_diaper_exclusivity,
    facility_today,
    find_record,
    slot_boundary_minutes,
    slots_for,
    status_of,
    suggested_position,
    toggle_diaper_flag,
    validate_diaper_selection,
    week_dates,
    week_start,
)

TODAY = date(2026, 10, 18)


def at(h, m, day=TODAY):
    return datetime(day.year, day.month, day.day, h, m, tzinfo=FACILITY_TZ)


def test_slot_sequences_are_fixed():
    expected_clock = ["07:00", "09:00", "11:00", "13:00", "15:00", "17:00",
                      "19:00", "21:00", "23:00", "01:00", "03:00", "05:00"]
    expected_diaper = ["7AM-10AM", "11AM-2PM", "3PM-6PM", "7PM-10PM", "11PM-2AM", "3AM-6AM"]
    for ct in ("patrol", "restraint", "position"):
        assert list(slots_for(ct)) == expected_clock
    assert list(slots_for(CareType.DIAPER)) == expected_diaper
    assert slots_for("patrol") == slots_for("patrol")


def test_unknown_care_type_fails_fast():
    with pytest.raises(ValueError):
        slots_for("intake_output")


@pytest.mark.parametrize("slot,minutes", [
    ("07:00", 9 * 60),
    ("23:00", 25 * 60),
    ("01:00", 3 * 60),
    ("7AM-10AM", 10 * 60),
    ("11AM-2PM", 14 * 60),
    ("7PM-10PM", 22 * 60),
    ("11PM-2AM", 2 * 60),
    ("3AM-6AM", 6 * 60),
    ("10AM-12PM", 12 * 60),
    ("10PM-12AM", 0),
    ("bogus", None),
    ("25:00", None),
])
def test_slot_boundary(slot, minutes):
    assert slot_boundary_minutes(slot) == minutes


def test_clock_slot_grace_window():
    assert status_of("patrol", TODAY, "09:00", at(10, 59), []).state is SlotState.PENDING
    assert status_of("patrol", TODAY, "09:00", at(11, 0), []).state is SlotState.PENDING
    assert status_of("patrol", TODAY, "09:00", at(11, 1), []).state is SlotState.OVERDUE


def test_labeled_slot_has_no_grace():
    assert status_of("diaper", TODAY, "7AM-10AM", at(9, 59), []).state is SlotState.PENDING
    assert status_of("diaper", TODAY, "7AM-10AM", at(10, 1), []).state is SlotState.OVERDUE


def test_future_dates_never_overdue():
    for h in (0, 12, 23):
        for slot in CLOCK_SLOTS:
            assert status_of("patrol", TODAY + timedelta(days=1), slot, at(h, 59), []).state is SlotState.PENDING


def test_past_dates_without_record_are_overdue():
    for h in (0, 12, 23):
        for slot in DIAPER_SLOTS:
            assert status_of("diaper", TODAY - timedelta(days=1), slot, at(h, 0), []).state is SlotState.OVERDUE


def test_overdue_is_monotonic_within_a_day():
    for ct in CareType:
        for slot in slots_for(ct):
            seen_overdue = False
            for minute in range(0, 24 * 60, 7):
                state = status_of(ct, TODAY, slot, at(minute // 60, minute % 60), []).state
                if seen_overdue:
                    assert state is SlotState.OVERDUE
                seen_overdue = seen_overdue or state is SlotState.OVERDUE


def test_facility_clock_ignores_host_zone():
    # 16:30 UTC on the 17th is already 00:30 on the 18th in the facility
    now = datetime(2026, 10, 17, 16, 30, tzinfo=timezone.utc)
    assert facility_today(now) == TODAY
    assert facility_today(now.replace(tzinfo=None)) == TODAY
    assert status_of("patrol", date(2026, 10, 17), "23:00", now, []).state is SlotState.OVERDUE


def test_status_is_idempotent():
    records = [{"patrol_date": "2026-10-18", "scheduled_time": "07:00", "recorder": "Alice"}]
    first = status_of("patrol", TODAY, "07:00", at(8, 0), records)
    assert all(status_of("patrol", TODAY, "07:00", at(8, 0), records) == first for _ in range(5))
    assert first.state is SlotState.COMPLETED


def test_record_matching_uses_care_type_fields():
    diaper = {"change_date": TODAY, "time_slot": "7AM-10AM"}
    restraint = {"observation_date": TODAY.isoformat(), "scheduled_time": "07:00"}
    assert find_record("diaper", [diaper], TODAY, "7AM-10AM") is diaper
    assert find_record("position", [diaper], TODAY, "7AM-10AM") is None
    assert find_record("restraint", [restraint], TODAY, "07:00") is restraint
    assert find_record("patrol", [restraint], TODAY, "07:00") is None


def test_out_of_sequence_slot_never_completes():
    records = [{"patrol_date": TODAY, "scheduled_time": "08:00"}]
    assert status_of("patrol", TODAY, "08:00", at(9, 0), records).state is SlotState.PENDING
    assert status_of("patrol", TODAY, "08:00", at(23, 0), records).state is SlotState.OVERDUE
    assert status_of("patrol", TODAY - timedelta(days=1), "08:00", at(9, 0), records).state is SlotState.OVERDUE


def test_malformed_slot_never_completes():
    records = [{"patrol_date": TODAY, "scheduled_time": "8 o'clock"}]
    assert status_of("patrol", TODAY, "8 o'clock", at(23, 0), records).state is SlotState.PENDING
    assert status_of("patrol", TODAY - timedelta(days=1), "8 o'clock", at(9, 0), records).state is SlotState.OVERDUE
    assert status_of("patrol", TODAY + timedelta(days=1), "8 o'clock", at(9, 0), records).state is SlotState.PENDING


def test_end_to_end_patrol_slot():
    now = at(6, 0)
    records = []
    assert status_of("patrol", TODAY, "07:00", now, records).state is SlotState.PENDING

    record = {"patient_id": 1, "patrol_date": TODAY, "scheduled_time": "07:00",
              "patrol_time": "07:02", "recorder": "Alice"}
    records.append(record)
    status = status_of("patrol", TODAY, "07:00", now, records)
    assert status.state is SlotState.COMPLETED
    assert status.record is record


def test_suggested_position_rotation():
    assert [suggested_position(i) for i in range(7)] == ["左", "平", "右", "左", "平", "右", "左"]


def test_diaper_selection_requires_something():
    with pytest.raises(EmptySelection):
        validate_diaper_selection(False, False, False)
    for flags in [(True, False, False), (False, True, False), (False, False, True),
                  (True, True, False), (True, False, True), (False, True, True), (True, True, True)]:
        validate_diaper_selection(*flags)


def test_diaper_exclusivity_check():
    check_diaper_exclusivity(True, True, False)
    check_diaper_exclusivity(False, False, True)
    with pytest.raises(ConflictingSelection):
        check_diaper_exclusivity(True, False, True)


def test_toggle_diaper_flag_clears_conflicts():
    flags = toggle_diaper_flag({}, "has_urine")
    flags = toggle_diaper_flag(flags, "has_stool")
    assert flags == {"has_urine": True, "has_stool": True, "has_none": False}

    flags = toggle_diaper_flag(flags, "has_none")
    assert flags == {"has_urine": False, "has_stool": False, "has_none": True}

    flags = toggle_diaper_flag(flags, "has_stool")
    assert flags == {"has_urine": False, "has_stool": True, "has_none": False}

    flags = toggle_diaper_flag(flags, "has_stool")
    assert flags == {"has_urine": False, "has_stool": False, "has_none": False}


def test_week_starts_on_monday():
    start = week_start(TODAY)
    assert start == date(2026, 10, 12)
    assert week_dates(start)[-1] == TODAY
    assert week_start(start) == start


def test_build_grid_rows_and_cells():
    dates = week_dates(week_start(TODAY))
    records = [{"change_date": date(2026, 10, 14), "scheduled_time": "09:00", "position": "平"}]
    rows = build_grid("position", dates, at(10, 0), records)

    assert [r.slot for r in rows] == list(CLOCK_SLOTS)
    assert [r.suggested_position for r in rows[:4]] == ["左", "平", "右", "左"]
    nine = rows[1]
    states = {d: s.state for d, s in nine.cells}
    assert states[date(2026, 10, 14)] is SlotState.COMPLETED
    assert states[date(2026, 10, 13)] is SlotState.OVERDUE
    assert states[TODAY] is SlotState.PENDING

    diaper_rows = build_grid("diaper", [TODAY], at(10, 0), [])
    assert diaper_rows[0].suggested_position is None
    assert len(diaper_rows) == 6


def test_after_midnight_slots_use_their_own_date():
    assert status_of("diaper", TODAY, "11PM-2AM", at(2, 0), []).state is SlotState.PENDING
    assert status_of("diaper", TODAY, "11PM-2AM", at(2, 1), []).state is SlotState.OVERDUE
    assert status_of("patrol", TODAY, "23:00", at(23, 59), []).state is SlotState.PENDING
    assert status_of("patrol", TODAY, "01:00", at(3, 1), []).state is SlotState.OVERDUE
