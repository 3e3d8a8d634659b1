from __future__ import annotations
from contextlib import contextmanager
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from carelog.config import settings

_engine = None
_SessionLocal = None

def _create(url: str) -> Engine:
    if url.startswith("sqlite"):
        # in-memory databases must share one connection across threads
        return create_engine(url, future=True, poolclass=StaticPool,
                             connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, future=True)

def engine() -> Engine:
    global _engine, _SessionLocal
    if _engine is None:
        _engine = _create(settings.database_url_app)
        _SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False, future=True)
    return _engine

def reset_engine() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None

def session_local():
    if _SessionLocal is None:
        engine()
    return _SessionLocal

@contextmanager
def db_session() -> Generator[Session, None, None]:
    db = session_local()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
