from __future__ import annotations
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from jose import jwt
from carelog.config import settings

ph = PasswordHasher(time_cost=3, memory_cost=65536, parallelism=2, hash_len=32, salt_len=16)

def hash_password(pw: str) -> str:
    return ph.hash(pw)

def verify_password(hash_: str, pw: str) -> bool:
    try:
        return ph.verify(hash_, pw)
    except (VerificationError, InvalidHashError):
        return False

def create_access_token(subject: str, email: str, display_name: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=int(settings.carelog_access_token_minutes))
    payload: Dict[str, Any] = {
        "iss": settings.carelog_jwt_issuer,
        "aud": settings.carelog_jwt_audience,
        "sub": subject,
        "jti": uuid.uuid4().hex,
        "email": email,
        "display_name": display_name,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.carelog_jwt_secret, algorithm="HS256")

def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(
        token,
        settings.carelog_jwt_secret,
        algorithms=["HS256"],
        audience=settings.carelog_jwt_audience,
        issuer=settings.carelog_jwt_issuer,
    )
