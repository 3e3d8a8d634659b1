from __future__ import annotations
import time, uuid
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

import structlog
from carelog.observability import init_logging, init_otel

from fastapi import FastAPI, Request, Response, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm, HTTPBearer, HTTPAuthorizationCredentials
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from carelog.config import settings
from carelog.db import db_session
from carelog.errors import CareLogError, InvalidPayload, LookupMiss
from carelog import directory, session as staff_session, store
from carelog.session import StaffSession
from carelog.slots import CareType, build_grid, facility_today, week_dates, week_start
init_logging("carelog-api")
log = structlog.get_logger("carelog-api")

from carelog.schemas import (
    AnyRecord, CarePayloadIn, GridCell, GridOut, GridRowOut, Problem, Resident, ScanIn, SessionOut, TokenResponse,
)

REQ_COUNT = Counter("carelog_http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_LAT = Histogram("carelog_http_request_seconds", "Request latency", ["path"])
CARE_WRITES = Counter("carelog_care_record_writes_total", "Care record writes", ["care_type", "op"])
bearer = HTTPBearer(auto_error=False)

def problem(status_code: int, title: str, code: str, detail: str | None = None) -> JSONResponse:
    p = Problem(title=title, status=status_code, code=code, detail=detail)
    return JSONResponse(status_code=status_code, content=p.model_dump())

def get_now() -> datetime:
    return datetime.now(timezone.utc)

def require_session(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> StaffSession:
    if not creds:
        raise HTTPException(status_code=401, detail="unauthorized")
    with db_session() as db:
        current = staff_session.resolve(db, creds.credentials)
    if current is None:
        raise HTTPException(status_code=401, detail="invalid_or_expired_session")
    structlog.contextvars.bind_contextvars(user_id=current.user_id)
    return current

app = FastAPI(title="Carelog API", version="1.0.0", redirect_slashes=False)

if init_otel("carelog-api", settings.otel_enabled):
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    FastAPIInstrumentor.instrument_app(app)

@app.middleware("http")
async def request_mw(request: Request, call_next: Callable):
    rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=rid)
    start = time.time()
    try:
        response: Response = await call_next(request)
    finally:
        dur = time.time() - start
        REQ_LAT.labels(path=request.url.path).observe(dur)
    response.headers["X-Request-Id"] = rid
    REQ_COUNT.labels(method=request.method, path=request.url.path, status=str(response.status_code)).inc()
    return response

@app.exception_handler(HTTPException)
async def http_exc(request: Request, exc: HTTPException):
    code = "http_error"
    if exc.status_code == 401: code = "unauthorized"
    if exc.status_code == 403: code = "forbidden"
    if exc.status_code == 404: code = "not_found"
    return problem(exc.status_code, "Request failed", code, str(exc.detail))

@app.exception_handler(CareLogError)
async def carelog_exc(request: Request, exc: CareLogError):
    return problem(exc.status_code, exc.title, exc.code, exc.detail or None)

@app.exception_handler(RequestValidationError)
async def request_validation_exc(request: Request, exc: RequestValidationError):
    detail = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
    return problem(422, "Invalid payload", "invalid_payload", detail)

@app.exception_handler(SQLAlchemyError)
async def db_exc(request: Request, exc: SQLAlchemyError):
    log.error("backend_failure", path=request.url.path, error=str(exc)[:200])
    return problem(503, "Backend unavailable", "backend_failure", "please try again")

@app.get("/v1/health")
def health():
    return {"status":"ok","service":"carelog_api","time": datetime.now(timezone.utc).isoformat()}

@app.get("/v1/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

# --- auth -------------------------------------------------------------------

@app.post("/v1/auth/token", response_model=TokenResponse)
def token(form: OAuth2PasswordRequestForm = Depends()):
    with db_session() as db:
        issued = staff_session.sign_in(db, form.username, form.password)
    if issued is None:
        raise HTTPException(status_code=401, detail="invalid_credentials")
    return TokenResponse(access_token=issued[0])

class LoginIn(BaseModel):
    email: str
    password: str

@app.post("/v1/auth/login", response_model=TokenResponse)
def login_json(payload: LoginIn):
    # JSON twin of /auth/token for clients that do not post forms.
    class _Form:
        def __init__(self, username: str, password: str):
            self.username = username
            self.password = password
    return token(_Form(username=payload.email, password=payload.password))

@app.get("/v1/auth/session", response_model=SessionOut)
def current_session(current: StaffSession = Depends(require_session)):
    return SessionOut(user_id=current.user_id, email=current.email,
                      display_name=current.display_name, expires_at=current.expires_at)

@app.post("/v1/auth/logout")
def logout(current: StaffSession = Depends(require_session)):
    with db_session() as db:
        staff_session.sign_out(db, current)
    return {"status": "signed_out"}

# --- residents --------------------------------------------------------------

@app.get("/v1/residents", response_model=list[Resident])
def list_residents(q: str = "", current: StaffSession = Depends(require_session)):
    with db_session() as db:
        return directory.search(directory.active_residents(db), q)

@app.get("/v1/residents/lookup", response_model=Resident)
def lookup_resident(q: str = "", current: StaffSession = Depends(require_session)):
    with db_session() as db:
        return directory.lookup(db, q)

@app.post("/v1/scan", response_model=Resident)
def scan_bed(payload: ScanIn, current: StaffSession = Depends(require_session)):
    with db_session() as db:
        return directory.resolve_scan(db, payload.data)

@app.get("/v1/residents/{resident_id}", response_model=Resident)
def get_resident(resident_id: int, current: StaffSession = Depends(require_session)):
    with db_session() as db:
        return directory.get_resident(db, resident_id)

# --- care records -----------------------------------------------------------

@app.get("/v1/residents/{resident_id}/care/{care_type}/records", response_model=List[AnyRecord])
def list_care_records(resident_id: int, care_type: CareType, start: date, end: Optional[date] = None,
                      current: StaffSession = Depends(require_session)):
    with db_session() as db:
        directory.get_resident(db, resident_id)
        return store.fetch_records(db, resident_id, care_type, start, end or start)

@app.get("/v1/residents/{resident_id}/care/{care_type}/grid", response_model=GridOut)
def care_grid(resident_id: int, care_type: CareType, week_of: Optional[date] = None, day: Optional[date] = None,
              current: StaffSession = Depends(require_session), now: datetime = Depends(get_now)):
    if day is not None:
        dates = [day]
    else:
        dates = week_dates(week_start(week_of or facility_today(now)))
    with db_session() as db:
        directory.get_resident(db, resident_id)
        records = store.fetch_records(db, resident_id, care_type, dates[0], dates[-1])
    rows = [
        GridRowOut(
            slot=row.slot,
            index=row.index,
            suggested_position=row.suggested_position,
            cells=[GridCell(day=d, status=s.state.value, record=s.record) for d, s in row.cells],
        )
        for row in build_grid(care_type, dates, now, records)
    ]
    return GridOut(resident_id=resident_id, care_type=care_type.value, dates=dates, rows=rows)

@app.put("/v1/residents/{resident_id}/care/{care_type}/{record_date}/{slot}", response_model=AnyRecord)
def put_care_record(resident_id: int, care_type: CareType, record_date: date, slot: str,
                    body: CarePayloadIn, current: StaffSession = Depends(require_session)):
    payload = body.root
    if payload.care_type != care_type.value:
        raise InvalidPayload(f"body is a {payload.care_type} record, path is {care_type.value}")
    row = store.shape_row(care_type, resident_id, record_date, slot, payload, default_recorder=current.display_name)
    with db_session() as db:
        directory.get_resident(db, resident_id)
        record = store.upsert_record(db, care_type, row)
        store.audit(db, current.user_id, f"{care_type.value}.upsert", care_type.value, record.id,
                    {"resident_id": resident_id, "date": record_date, "slot": slot})
    CARE_WRITES.labels(care_type=care_type.value, op="upsert").inc()
    return record

@app.delete("/v1/care/{care_type}/records/{record_id}")
def delete_care_record(care_type: CareType, record_id: str, current: StaffSession = Depends(require_session)):
    with db_session() as db:
        record = store.get_record(db, care_type, record_id)
        if record is None:
            raise LookupMiss(f"{care_type.value} record {record_id} not found")
        store.delete_record(db, care_type, record_id)
        store.audit(db, current.user_id, f"{care_type.value}.delete", care_type.value, record_id,
                    record.model_dump(mode="json"))
    CARE_WRITES.labels(care_type=care_type.value, op="delete").inc()
    return {"status": "deleted", "record_id": record_id}
