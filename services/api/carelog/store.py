"""Care record persistence.

One table per care type, keyed logically by (resident, date, scheduled slot).
Upserts rely on the table's unique constraint over that key, so a second
write for the same slot replaces the first and keeps its id.
"""
from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carelog.errors import BackendFailure, MissingRecorder, UnknownSlot
from carelog.schemas import (
    DiaperRecord,
    PatrolRecord,
    PositionRecord,
    RestraintRecord,
)
from carelog.slots import (
    CareType,
    care_type_of,
    check_diaper_exclusivity,
    slot_index,
    suggested_position,
    validate_diaper_selection,
)

log = structlog.get_logger("carelog.store")


@dataclass(frozen=True)
class RecordTable:
    name: str
    date_col: str
    slot_col: str
    fields: tuple[str, ...]
    model: type[BaseModel]


TABLES: Dict[CareType, RecordTable] = {
    CareType.PATROL: RecordTable(
        "patrol_rounds", "patrol_date", "scheduled_time",
        ("patrol_time", "recorder", "notes"), PatrolRecord,
    ),
    CareType.DIAPER: RecordTable(
        "diaper_change_records", "change_date", "time_slot",
        ("has_urine", "has_stool", "has_none", "urine_amount",
         "stool_color", "stool_texture", "stool_amount", "recorder"), DiaperRecord,
    ),
    CareType.POSITION: RecordTable(
        "position_change_records", "change_date", "scheduled_time",
        ("position", "recorder"), PositionRecord,
    ),
    CareType.RESTRAINT: RecordTable(
        "restraint_observation_records", "observation_date", "scheduled_time",
        ("observation_time", "observation_status", "recorder", "notes"), RestraintRecord,
    ),
}


@contextmanager
def backend_call(op: str, **ctx: Any) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        log.error("backend_failure", op=op, error=str(e)[:200], **ctx)
        raise BackendFailure(f"{op} failed") from e


def _to_model(table: RecordTable, row: Any) -> BaseModel:
    return table.model.model_validate(dict(row))


def shape_row(
    care_type: CareType | str,
    resident_id: int,
    day: date,
    slot: str,
    payload: BaseModel,
    default_recorder: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the column values for one slot's record from an upsert payload."""
    ct = care_type_of(care_type)
    if getattr(payload, "care_type", ct.value) != ct.value:
        raise ValueError(f"payload is for {payload.care_type}, not {ct.value}")
    idx = slot_index(ct, slot)
    if idx is None:
        raise UnknownSlot(f"{slot!r} is not a {ct.value} slot")

    values = payload.model_dump(exclude={"care_type"})
    recorder = (values.get("recorder") or default_recorder or "").strip()
    if not recorder:
        raise MissingRecorder("recorder is required")
    values["recorder"] = recorder

    if ct is CareType.DIAPER:
        validate_diaper_selection(values["has_urine"], values["has_stool"], values["has_none"])
        check_diaper_exclusivity(values["has_urine"], values["has_stool"], values["has_none"])
    elif ct is CareType.POSITION and not values.get("position"):
        values["position"] = suggested_position(idx)

    table = TABLES[ct]
    row = {f: values.get(f) for f in table.fields}
    row.update({"patient_id": resident_id, table.date_col: day, table.slot_col: slot})
    return row


def fetch_records(db: Session, resident_id: int, care_type: CareType | str, start: date, end: date) -> List[BaseModel]:
    table = TABLES[care_type_of(care_type)]
    with backend_call("fetch_records", resident_id=resident_id, care_type=table.name):
        rows = db.execute(text(f"""
            SELECT * FROM {table.name}
            WHERE patient_id=:rid AND {table.date_col} >= :start AND {table.date_col} <= :end
            ORDER BY {table.date_col}, {table.slot_col}
        """), {"rid": resident_id, "start": start.isoformat(), "end": end.isoformat()}).mappings().all()
    return [_to_model(table, r) for r in rows]


def get_record(db: Session, care_type: CareType | str, record_id: str) -> Optional[BaseModel]:
    table = TABLES[care_type_of(care_type)]
    with backend_call("get_record", record_id=record_id):
        row = db.execute(text(f"SELECT * FROM {table.name} WHERE id=:id"), {"id": record_id}).mappings().first()
    return _to_model(table, row) if row else None


def upsert_record(db: Session, care_type: CareType | str, row: Dict[str, Any]) -> BaseModel:
    table = TABLES[care_type_of(care_type)]
    key = ("patient_id", table.date_col, table.slot_col)
    cols = key + table.fields
    params = {c: row[c] for c in cols}
    params[table.date_col] = params[table.date_col].isoformat()
    params["id"] = str(uuid.uuid4())
    updates = ", ".join(f"{f}=EXCLUDED.{f}" for f in table.fields)
    with backend_call("upsert_record", care_type=table.name, resident_id=row["patient_id"]):
        saved = db.execute(text(f"""
            INSERT INTO {table.name} (id, {", ".join(cols)})
            VALUES (:id, {", ".join(":" + c for c in cols)})
            ON CONFLICT ({", ".join(key)}) DO UPDATE SET {updates}
            RETURNING *
        """), params).mappings().first()
    record = _to_model(table, saved)
    log.info("care_record_saved", care_type=table.name, record_id=record.id,
             resident_id=record.patient_id, slot=row[table.slot_col])
    return record


def delete_record(db: Session, care_type: CareType | str, record_id: str) -> bool:
    table = TABLES[care_type_of(care_type)]
    with backend_call("delete_record", record_id=record_id):
        count = db.execute(text(f"DELETE FROM {table.name} WHERE id=:id"), {"id": record_id}).rowcount or 0
    log.info("care_record_deleted", care_type=table.name, record_id=record_id, deleted=count)
    return count > 0


def audit(db: Session, actor_user_id: str|None, action: str, resource: str, resource_id: str, detail: Dict[str,Any]|None=None) -> None:
    with backend_call("audit", action=action):
        db.execute(text("""
            INSERT INTO audit_log(time, actor_user_id, action, resource, resource_id, detail)
            VALUES (:t,:uid,:a,:r,:rid,:d)
        """), {
            "t": datetime.now(timezone.utc).isoformat(),
            "uid": actor_user_id,
            "a": action,
            "r": resource,
            "rid": resource_id,
            "d": json.dumps(detail, ensure_ascii=False, default=str) if detail else None,
        })
