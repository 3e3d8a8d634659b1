import os

os.environ["DATABASE_URL_APP"] = "sqlite+pysqlite:///:memory:"
os.environ["CARELOG_JWT_SECRET"] = "test-secret"
os.environ["OIDC_ENABLED"] = "false"

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from carelog import db
from carelog.app import app, get_now
from carelog.config import settings
from carelog.scripts.bootstrap import seed
from carelog.slots import FACILITY_TZ

# Sunday 2026-10-18, 10:00 in the facility
FIXED_NOW = datetime(2026, 10, 18, 10, 0, tzinfo=FACILITY_TZ)


def hkt(y, mo, d, h, mi):
    return datetime(y, mo, d, h, mi, tzinfo=FACILITY_TZ)


@pytest.fixture
def engine():
    db.reset_engine()
    eng = db.engine()
    seed(eng)
    yield eng
    db.reset_engine()


@pytest.fixture
def clock():
    state = {"now": FIXED_NOW.astimezone(timezone.utc)}
    app.dependency_overrides[get_now] = lambda: state["now"]
    yield state
    app.dependency_overrides.pop(get_now, None)


@pytest.fixture
def client(engine, clock):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client):
    r = client.post("/v1/auth/token", data={"username": settings.demo_admin_email,
                                            "password": settings.demo_admin_password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}
