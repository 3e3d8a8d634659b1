from datetime import date

import pytest

from carelog import directory
from carelog.db import db_session
from carelog.errors import BedVacant, InvalidScan, LookupMiss
from carelog.qr import build_bed_qr, parse_bed_qr
from carelog.schemas import Resident


def test_active_residents_sorted_by_bed(engine):
    with db_session() as db:
        residents = directory.active_residents(db)
    assert [r.bed_code for r in residents] == ["C01", "C02", "C03", "C04"]
    assert residents[1].infection_control == ["MRSA"]
    assert residents[0].age is not None


def test_search_by_name_or_bed(engine):
    with db_session() as db:
        residents = directory.active_residents(db)
    assert len(directory.search(residents, "")) == 4
    assert [r.display_name for r in directory.search(residents, "美玲")] == ["李美玲"]
    assert [r.bed_code for r in directory.search(residents, "c0")] == ["C01", "C02", "C03", "C04"]
    assert [r.bed_code for r in directory.search(residents, " c03 ")] == ["C03"]
    assert directory.search(residents, "zzz") == []


def test_lookup_by_bed_number_is_case_insensitive(engine):
    with db_session() as db:
        assert directory.lookup(db, "c02").display_name == "李美玲"
        assert directory.lookup(db, "  C04 ").display_name == "張秀英"


def test_lookup_falls_back_to_name(engine):
    with db_session() as db:
        assert directory.lookup(db, "志強").bed_code == "C03"


def test_lookup_vacant_bed(engine):
    with db_session() as db:
        with pytest.raises(BedVacant) as exc:
            directory.lookup(db, "C05")
    assert exc.value.bed_number == "C05"


def test_lookup_miss(engine):
    with db_session() as db:
        with pytest.raises(LookupMiss):
            directory.lookup(db, "Z99")
        with pytest.raises(LookupMiss):
            directory.lookup(db, "   ")


def test_get_resident(engine):
    with db_session() as db:
        assert directory.get_resident(db, 1).bed_code == "C01"
        with pytest.raises(LookupMiss):
            directory.get_resident(db, 404)


def test_resolve_scan(engine):
    with db_session() as db:
        assert directory.resolve_scan(db, build_bed_qr("BED-C01")).display_name == "陳大明"
        with pytest.raises(BedVacant):
            directory.resolve_scan(db, '{"type": "bed", "qr_code_id": "BED-C05"}')
        with pytest.raises(LookupMiss):
            directory.resolve_scan(db, '{"type": "bed", "qr_code_id": "BED-X"}')


@pytest.mark.parametrize("raw", [
    "BED-C01",
    "",
    "[]",
    '{"type": "room", "qr_code_id": "BED-C01"}',
    '{"type": "bed"}',
    '{"type": "bed", "qr_code_id": "  "}',
    '{"type": "bed", "qr_code_id": 7}',
])
def test_invalid_scans(raw):
    with pytest.raises(InvalidScan):
        parse_bed_qr(raw)


def test_qr_payload_roundtrip():
    assert parse_bed_qr(build_bed_qr("BED-C01")) == "BED-C01"


def test_resident_age():
    r = Resident(id=1, bed_code="C01", display_name="x", residency_status="在住", birth_date=date(1940, 10, 19))
    assert r.age_on(date(2026, 10, 18)) == 85
    assert r.age_on(date(2026, 10, 19)) == 86
    assert Resident(id=2, bed_code="C02", display_name="y", residency_status="在住").age_on(date(2026, 1, 1)) is None
