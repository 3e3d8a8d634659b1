from __future__ import annotations
import json
import os
from datetime import date, datetime, timezone
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from carelog.config import settings
from carelog.qr import build_bed_qr
from carelog.security import hash_password
from carelog.tables import metadata

# bed number, name, sex, birth date, care level, infection-control tags
DEMO_RESIDENTS = [
    ("C01", "陳大明", "男", date(1938, 4, 2), "高度護理", []),
    ("C02", "李美玲", "女", date(1942, 11, 19), "中度護理", ["MRSA"]),
    ("C03", "黃志強", "男", date(1935, 7, 8), "高度護理", []),
    ("C04", "張秀英", "女", date(1940, 1, 27), "低度護理", []),
    ("C05", "", None, None, None, []),  # vacant bed
]

def seed(eng: Engine) -> dict:
    metadata.create_all(eng)
    now = datetime.now(timezone.utc).isoformat()
    labels = {}
    with eng.begin() as c:
        c.execute(text("""
            INSERT INTO users(id, email, display_name, password_hash, created_at)
            VALUES ('U-001', :e, :dn, :ph, :t)
            ON CONFLICT(email) DO UPDATE SET password_hash=EXCLUDED.password_hash, display_name=EXCLUDED.display_name
        """), {"e": settings.demo_admin_email, "dn": settings.demo_admin_display_name,
               "ph": hash_password(settings.demo_admin_password), "t": now})
        for i, (bed, name, sex, born, level, tags) in enumerate(DEMO_RESIDENTS, start=1):
            qr_id = f"BED-{bed}"
            c.execute(text("""
                INSERT INTO beds(id, bed_number, qr_code_id) VALUES (:id, :n, :q)
                ON CONFLICT(id) DO UPDATE SET bed_number=EXCLUDED.bed_number, qr_code_id=EXCLUDED.qr_code_id
            """), {"id": i, "n": bed, "q": qr_id})
            labels[bed] = build_bed_qr(qr_id)
            if not name:
                continue
            c.execute(text("""
                INSERT INTO residents(id, bed_code, display_name, sex, birth_date, residency_status,
                                      care_level, infection_control, bed_id)
                VALUES (:id, :b, :n, :s, :bd, '在住', :cl, :ic, :bid)
                ON CONFLICT(id) DO UPDATE SET display_name=EXCLUDED.display_name, bed_code=EXCLUDED.bed_code
            """), {"id": i, "b": bed, "n": name, "s": sex, "bd": born.isoformat(), "cl": level,
                   "ic": json.dumps(tags, ensure_ascii=False), "bid": i})
    return labels

def main():
    db_url = os.environ.get("DATABASE_URL_MIGRATOR") or settings.database_url_app
    if not db_url:
        raise SystemExit("No database URL configured (set DATABASE_URL_APP)")

    labels = seed(create_engine(db_url, future=True))

    print("Tables created. Demo ward seeded.")
    for bed, payload in labels.items():
        print(f"QR label {bed}: {payload}")

if __name__ == "__main__":
    main()
