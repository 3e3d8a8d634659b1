"""Accept access tokens minted by the managed auth backend.

The hosted auth service signs user tokens with keys published at a JWKS
endpoint; display names live under ``user_metadata``.
"""
from __future__ import annotations

from typing import Any, Dict

import requests
from cachetools import TTLCache
from jose import jwt

_jwks_cache = TTLCache(maxsize=16, ttl=600)

def _get_jwks(jwks_url: str) -> Dict[str, Any]:
    if jwks_url in _jwks_cache:
        return _jwks_cache[jwks_url]
    r = requests.get(jwks_url, timeout=5)
    r.raise_for_status()
    data = r.json()
    _jwks_cache[jwks_url] = data
    return data

def _signing_key(jwks: Dict[str, Any], kid: str | None) -> Dict[str, Any]:
    keys = jwks.get("keys", [])
    if not keys:
        raise ValueError("jwks_empty")
    for k in keys:
        if k.get("kid") == kid:
            return k
    if kid is None and len(keys) == 1:
        return keys[0]
    raise ValueError("jwks_kid_not_found")

def decode_oidc(token: str, issuer: str, audience: str, jwks_url: str) -> Dict[str, Any]:
    header = jwt.get_unverified_header(token)
    key = _signing_key(_get_jwks(jwks_url), header.get("kid"))
    return jwt.decode(token, key, algorithms=[header.get("alg", "RS256")], issuer=issuer, audience=audience)

def claims_to_principal(claims: Dict[str, Any]) -> Dict[str, Any]:
    meta = claims.get("user_metadata") or {}
    email = claims.get("email") or ""
    return {
        "sub": claims.get("sub"),
        "jti": claims.get("session_id") or claims.get("jti"),
        "email": email,
        "display_name": meta.get("display_name") or email or claims.get("sub"),
        "exp": claims.get("exp"),
        "oidc": True,
    }
