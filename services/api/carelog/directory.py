"""Resident directory: listing, search, and bed/QR resolution."""
from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.orm import Session

from carelog.errors import BedVacant, LookupMiss
from carelog.qr import parse_bed_qr
from carelog.schemas import Bed, Resident
from carelog.slots import facility_today
from carelog.store import backend_call

log = structlog.get_logger("carelog.directory")

ACTIVE_STATUS = "在住"

_RESIDENT_COLS = (
    "id, bed_code, display_name, sex, birth_date, residency_status, "
    "care_level, infection_control, photo_url, bed_id"
)


def _resident(row, today: Optional[date] = None) -> Resident:
    r = Resident.model_validate(dict(row))
    return r.model_copy(update={"age": r.age_on(today or facility_today())})


def active_residents(db: Session) -> List[Resident]:
    with backend_call("active_residents"):
        rows = db.execute(text(f"""
            SELECT {_RESIDENT_COLS} FROM residents
            WHERE residency_status=:s
            ORDER BY bed_code
        """), {"s": ACTIVE_STATUS}).mappings().all()
    today = facility_today()
    return [_resident(r, today) for r in rows]


def get_resident(db: Session, resident_id: int) -> Resident:
    with backend_call("get_resident", resident_id=resident_id):
        row = db.execute(text(f"SELECT {_RESIDENT_COLS} FROM residents WHERE id=:id"),
                         {"id": resident_id}).mappings().first()
    if not row:
        raise LookupMiss(f"resident {resident_id} not found")
    return _resident(row)


def search(residents: Iterable[Resident], query: str) -> List[Resident]:
    q = (query or "").strip()
    if not q:
        return list(residents)
    ql = q.lower()
    return [r for r in residents if q in r.display_name or ql in r.bed_code.lower()]


def bed_by_number(db: Session, bed_number: str) -> Optional[Bed]:
    with backend_call("bed_by_number"):
        row = db.execute(text("SELECT id, bed_number, qr_code_id FROM beds WHERE lower(bed_number)=lower(:n)"),
                         {"n": bed_number}).mappings().first()
    return Bed.model_validate(dict(row)) if row else None


def bed_by_qr(db: Session, qr_code_id: str) -> Optional[Bed]:
    with backend_call("bed_by_qr"):
        row = db.execute(text("SELECT id, bed_number, qr_code_id FROM beds WHERE qr_code_id=:q"),
                         {"q": qr_code_id}).mappings().first()
    return Bed.model_validate(dict(row)) if row else None


def resident_for_bed(db: Session, bed: Bed) -> Resident:
    with backend_call("resident_for_bed", bed_id=bed.id):
        row = db.execute(text(f"""
            SELECT {_RESIDENT_COLS} FROM residents
            WHERE bed_id=:b AND residency_status=:s
        """), {"b": bed.id, "s": ACTIVE_STATUS}).mappings().first()
    if not row:
        log.info("bed_vacant", bed_number=bed.bed_number)
        raise BedVacant(bed.bed_number)
    return _resident(row)


def lookup(db: Session, query: str) -> Resident:
    """Resolve typed input to a resident: bed number first, then name or bed code."""
    q = (query or "").strip()
    if not q:
        raise LookupMiss("enter a bed number or name")

    bed = bed_by_number(db, q)
    if bed is not None:
        return resident_for_bed(db, bed)

    ql = q.lower()
    for r in active_residents(db):
        if q in r.display_name or r.bed_code.lower() == ql:
            return r
    log.info("lookup_miss", query=q)
    raise LookupMiss(f"no bed or resident matches {q!r}")


def resolve_scan(db: Session, raw: str) -> Resident:
    qr_code_id = parse_bed_qr(raw)
    bed = bed_by_qr(db, qr_code_id)
    if bed is None:
        log.info("lookup_miss", qr_code_id=qr_code_id)
        raise LookupMiss(f"no bed for QR code {qr_code_id}")
    return resident_for_bed(db, bed)
