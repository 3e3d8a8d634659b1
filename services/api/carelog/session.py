"""Signed-in staff session.

A session is resolved from the bearer token on each request and handed to
the handlers that need it. Signing out records the token id as revoked so
the same token cannot resolve again before it expires.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import requests
import structlog
from jose import JWTError
from sqlalchemy import text
from sqlalchemy.orm import Session

from carelog.config import settings
from carelog.security import create_access_token, decode_token, verify_password
from carelog.store import audit, backend_call

log = structlog.get_logger("carelog.session")


@dataclass(frozen=True)
class StaffSession:
    user_id: str
    email: str
    display_name: str
    token_id: Optional[str]
    expires_at: datetime
    external: bool = False

    @classmethod
    def from_claims(cls, claims: Dict[str, Any], external: bool = False) -> "StaffSession":
        return cls(
            user_id=str(claims["sub"]),
            email=claims.get("email") or "",
            display_name=claims.get("display_name") or claims.get("email") or str(claims["sub"]),
            token_id=claims.get("jti"),
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
            external=external,
        )


def sign_in(db: Session, email: str, password: str) -> Optional[Tuple[str, StaffSession]]:
    with backend_call("sign_in"):
        row = db.execute(text("SELECT id, email, display_name, password_hash FROM users WHERE lower(email)=lower(:e)"),
                         {"e": email.strip()}).mappings().first()
    if not row or not verify_password(row["password_hash"], password):
        log.info("sign_in_rejected", email=email)
        return None
    token = create_access_token(subject=row["id"], email=row["email"], display_name=row["display_name"])
    session = StaffSession.from_claims(decode_token(token))
    audit(db, row["id"], "auth.login", "user", row["id"], {"email": row["email"]})
    log.info("sign_in", user_id=row["id"])
    return token, session


def _is_revoked(db: Session, token_id: Optional[str]) -> bool:
    if not token_id:
        return False
    with backend_call("is_revoked"):
        return db.execute(text("SELECT 1 FROM revoked_tokens WHERE jti=:j"), {"j": token_id}).first() is not None


def resolve(db: Session, token: str) -> Optional[StaffSession]:
    """Return the session for ``token``, or None if it is invalid, expired or revoked."""
    session = None
    try:
        session = StaffSession.from_claims(decode_token(token))
    except JWTError:
        pass
    if session is None and settings.oidc_enabled:
        from carelog.oidc import claims_to_principal, decode_oidc
        try:
            claims = decode_oidc(token, issuer=settings.oidc_issuer, audience=settings.oidc_audience,
                                 jwks_url=settings.oidc_jwks_url)
            session = StaffSession.from_claims(claims_to_principal(claims), external=True)
        except (JWTError, ValueError, KeyError, requests.RequestException) as e:
            log.info("oidc_token_rejected", error=str(e))
            return None
    if session is None or _is_revoked(db, session.token_id):
        return None
    return session


def sign_out(db: Session, session: StaffSession) -> None:
    if session.token_id:
        with backend_call("sign_out"):
            db.execute(text("""
                INSERT INTO revoked_tokens(jti, user_id, expires_at) VALUES (:j, :u, :e)
                ON CONFLICT (jti) DO NOTHING
            """), {"j": session.token_id, "u": session.user_id, "e": session.expires_at.isoformat()})
    audit(db, session.user_id, "auth.logout", "user", session.user_id)
    log.info("sign_out", user_id=session.user_id)
