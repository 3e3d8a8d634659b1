"""HTTP client for presentation targets (web preview, mobile).

Every screen talks to the API through this one client, so slot status and
lookup rules are computed server-side once instead of per target.
"""
from __future__ import annotations

import os
from datetime import date
from typing import Any, Dict, List, Optional

import requests

API_BASE_URL = os.getenv("CARELOG_API_BASE_URL", "http://carelog-api:8080").rstrip("/")


class ApiError(RuntimeError):
    def __init__(self, status_code: int, detail: str, code: str = "http_error"):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.code = code


class ApiClient:
    def __init__(self, base_url: str = API_BASE_URL, token: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.http = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        h = {"Accept": "application/json"}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        return h

    def _req(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None,
             json_body: Optional[Dict[str, Any]] = None, data: Optional[Dict[str, Any]] = None,
             timeout: float = 8.0) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.http.request(method, url, headers=self._headers(), params=params, json=json_body,
                                  data=data, timeout=timeout)
        except requests.RequestException as e:
            raise ApiError(0, f"API unreachable: {e}", "backend_failure") from e

        if not r.ok:
            code, detail = "http_error", r.text
            try:
                body = r.json()
                code = body.get("code") or code
                detail = body.get("detail") or body.get("title") or detail
            except (ValueError, AttributeError):
                pass
            if not isinstance(detail, str):
                detail = str(detail)
            raise ApiError(r.status_code, (detail or "Request failed").strip(), code)

        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    # auth
    def sign_in(self, email: str, password: str) -> str:
        resp = self._req("POST", "/v1/auth/token", data={"username": email, "password": password})
        token = (resp or {}).get("access_token")
        if not token:
            raise ApiError(0, "Token missing in response")
        self.token = token
        return token

    def current_session(self) -> Dict[str, Any]:
        return self._req("GET", "/v1/auth/session")

    def sign_out(self) -> None:
        try:
            self._req("POST", "/v1/auth/logout")
        finally:
            self.token = None

    # residents
    def residents(self, query: str = "") -> List[Dict[str, Any]]:
        return self._req("GET", "/v1/residents", params={"q": query} if query else None)

    def lookup(self, query: str) -> Dict[str, Any]:
        return self._req("GET", "/v1/residents/lookup", params={"q": query})

    def scan(self, raw: str) -> Dict[str, Any]:
        return self._req("POST", "/v1/scan", json_body={"data": raw})

    # care records
    def grid(self, resident_id: int, care_type: str, week_of: Optional[date] = None,
             day: Optional[date] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if week_of:
            params["week_of"] = week_of.isoformat()
        if day:
            params["day"] = day.isoformat()
        return self._req("GET", f"/v1/residents/{resident_id}/care/{care_type}/grid", params=params)

    def save_record(self, resident_id: int, care_type: str, record_date: date, slot: str,
                    payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._req("PUT", f"/v1/residents/{resident_id}/care/{care_type}/{record_date.isoformat()}/{slot}",
                         json_body={"care_type": care_type, **payload})

    def delete_record(self, care_type: str, record_id: str) -> None:
        self._req("DELETE", f"/v1/care/{care_type}/records/{record_id}")
