"""Care slot model.

Fixed daily time slots per care type, slot status (completed / pending /
overdue) relative to the facility clock, and the position rotation rule.
Nothing here touches the database; callers pass in the records they loaded.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

from carelog.errors import ConflictingSelection, EmptySelection

FACILITY_TZ = timezone(timedelta(hours=8), "HKT")

CLOCK_SLOTS: tuple[str, ...] = (
    "07:00", "09:00", "11:00", "13:00", "15:00", "17:00",
    "19:00", "21:00", "23:00", "01:00", "03:00", "05:00",
)
DIAPER_SLOTS: tuple[str, ...] = (
    "7AM-10AM", "11AM-2PM", "3PM-6PM", "7PM-10PM", "11PM-2AM", "3AM-6AM",
)

CLOCK_GRACE_MINUTES = 120
POSITION_ROTATION: tuple[str, ...] = ("左", "平", "右")

_CLOCK_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_RANGE_RE = re.compile(r"^(\d{1,2})(AM|PM)-(\d{1,2})(AM|PM)$")


class CareType(str, Enum):
    PATROL = "patrol"
    DIAPER = "diaper"
    POSITION = "position"
    RESTRAINT = "restraint"


class SlotState(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    OVERDUE = "overdue"


# (date field, slot field) per care type
RECORD_KEYS: dict[CareType, tuple[str, str]] = {
    CareType.PATROL: ("patrol_date", "scheduled_time"),
    CareType.DIAPER: ("change_date", "time_slot"),
    CareType.POSITION: ("change_date", "scheduled_time"),
    CareType.RESTRAINT: ("observation_date", "scheduled_time"),
}


@dataclass(frozen=True)
class SlotStatus:
    state: SlotState
    record: Any = None

    @classmethod
    def completed(cls, record: Any) -> "SlotStatus":
        return cls(SlotState.COMPLETED, record)

    @property
    def is_overdue(self) -> bool:
        return self.state is SlotState.OVERDUE


PENDING = SlotStatus(SlotState.PENDING)
OVERDUE = SlotStatus(SlotState.OVERDUE)


def care_type_of(value: CareType | str) -> CareType:
    try:
        return CareType(value)
    except ValueError:
        raise ValueError(f"unknown care type: {value!r}") from None


def slots_for(care_type: CareType | str) -> tuple[str, ...]:
    if care_type_of(care_type) is CareType.DIAPER:
        return DIAPER_SLOTS
    return CLOCK_SLOTS


def slot_index(care_type: CareType | str, slot: str) -> Optional[int]:
    try:
        return slots_for(care_type).index(slot)
    except ValueError:
        return None


def suggested_position(index: int) -> str:
    return POSITION_ROTATION[index % len(POSITION_ROTATION)]


# --- facility clock ---------------------------------------------------------

def facility_now(now: Optional[datetime] = None) -> datetime:
    """Return ``now`` (default: the current instant) in facility local time.

    Naive datetimes are taken to be UTC so the host's own zone never leaks in.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(FACILITY_TZ)


def facility_today(now: Optional[datetime] = None) -> date:
    return facility_now(now).date()


def _to_24h(hour: int, meridiem: str) -> int:
    if meridiem == "AM":
        return 0 if hour == 12 else hour
    return hour if hour == 12 else hour + 12


def slot_boundary_minutes(slot: str) -> Optional[int]:
    """Minutes since local midnight after which an unrecorded slot is overdue.

    ``HH:MM`` slots get a fixed grace window; labelled ranges end at the
    range's own end time. Unparseable labels return None.
    """
    if not isinstance(slot, str):
        return None
    m = _CLOCK_RE.match(slot)
    if m:
        return int(m.group(1)) * 60 + int(m.group(2)) + CLOCK_GRACE_MINUTES
    m = _RANGE_RE.match(slot)
    if m:
        end_hour = int(m.group(3))
        if not 1 <= end_hour <= 12:
            return None
        return _to_24h(end_hour, m.group(4)) * 60
    return None


# --- status -----------------------------------------------------------------

def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def find_record(care_type: CareType | str, records: Iterable[Any], day: date, slot: str) -> Any:
    date_field, slot_field = RECORD_KEYS[care_type_of(care_type)]
    if slot not in slots_for(care_type):
        return None
    for record in records:
        if _field(record, slot_field) == slot and _as_date(_field(record, date_field)) == day:
            return record
    return None


def status_of(
    care_type: CareType | str,
    day: date,
    slot: str,
    now: Optional[datetime],
    records: Iterable[Any],
) -> SlotStatus:
    record = find_record(care_type, records, day, slot)
    if record is not None:
        return SlotStatus.completed(record)

    local = facility_now(now)
    today = local.date()
    if day < today:
        return OVERDUE
    if day > today:
        return PENDING

    boundary = slot_boundary_minutes(slot)
    if boundary is None:
        return PENDING
    if local.hour * 60 + local.minute > boundary:
        return OVERDUE
    return PENDING


# --- grids ------------------------------------------------------------------

def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_dates(start: date) -> list[date]:
    return [start + timedelta(days=i) for i in range(7)]


@dataclass
class GridRow:
    slot: str
    index: int
    cells: list[tuple[date, SlotStatus]] = field(default_factory=list)
    suggested_position: Optional[str] = None


def build_grid(
    care_type: CareType | str,
    dates: Sequence[date],
    now: Optional[datetime],
    records: Iterable[Any],
) -> list[GridRow]:
    ct = care_type_of(care_type)
    records = list(records)
    rows: list[GridRow] = []
    for i, slot in enumerate(slots_for(ct)):
        row = GridRow(slot=slot, index=i)
        if ct is CareType.POSITION:
            row.suggested_position = suggested_position(i)
        for d in dates:
            row.cells.append((d, status_of(ct, d, slot, now, records)))
        rows.append(row)
    return rows


# --- diaper selection -------------------------------------------------------

DIAPER_FLAGS = ("has_urine", "has_stool", "has_none")


def validate_diaper_selection(has_urine: bool, has_stool: bool, has_none: bool) -> None:
    if not (has_urine or has_stool or has_none):
        raise EmptySelection("select urine, stool or none")


def check_diaper_exclusivity(has_urine: bool, has_stool: bool, has_none: bool) -> None:
    if has_none and (has_urine or has_stool):
        raise ConflictingSelection("'none' cannot be combined with urine or stool")


def toggle_diaper_flag(flags: Mapping[str, bool], flag: str) -> dict[str, bool]:
    if flag not in DIAPER_FLAGS:
        raise ValueError(f"unknown diaper flag: {flag!r}")
    out = {k: bool(flags.get(k, False)) for k in DIAPER_FLAGS}
    turning_on = not out[flag]
    out[flag] = turning_on
    if turning_on:
        if flag == "has_none":
            out["has_urine"] = out["has_stool"] = False
        else:
            out["has_none"] = False
    return out
