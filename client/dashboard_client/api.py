"""requests-based wrapper around the dashboard HTTP API.

Structured failures (``{"success": false, "error": ...}``) raise ``ApiError``
with the server's message; failures with no response at all raise
``ConnectionFailure``.
"""
import logging
import os
from typing import Any, Dict, List
from urllib.parse import quote

import requests

from .storage import TokenStore

LOG = logging.getLogger("dashboard_client.api")

API_BASE = os.getenv("API_BASE", "http://localhost:8000")
REQUEST_TIMEOUT = 5  # seconds


class ApiError(Exception):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


class ConnectionFailure(ApiError):
    def __init__(self, message: str = "Failed to connect to the server"):
        super().__init__(message, None)


class ApiClient:
    def __init__(self, base_url: str = API_BASE, token_store: TokenStore | None = None,
                 session=None, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.tokens = token_store or TokenStore()
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, body: Dict[str, Any] | None = None, auth: bool = False):
        headers = {"Content-Type": "application/json"}
        if auth:
            token = self.tokens.get()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        url = self.base_url + path
        try:
            r = self.session.request(method, url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            LOG.warning("%s %s failed: %s", method, path, e)
            raise ConnectionFailure()
        try:
            payload = r.json()
        except ValueError:
            raise ApiError(f"Unexpected response from server ({r.status_code})", r.status_code)
        if not isinstance(payload, dict):
            raise ApiError(f"Unexpected response from server ({r.status_code})", r.status_code)
        if not payload.get("success"):
            raise ApiError(payload.get("error") or "Request failed", r.status_code)
        return payload.get("data")

    # --- auth ---

    def signup(self, name: str, email: str, password: str, role: str | None = None) -> Dict[str, Any]:
        body = {"name": name, "email": email, "password": password}
        if role:
            body["role"] = role
        data = self._request("POST", "/api/auth/signup", body)
        self.tokens.set(data["token"])
        return data

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/login", {"email": email, "password": password})
        self.tokens.set(data["token"])
        return data

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/api/auth/me", auth=True)

    def logout(self):
        # tokens are stateless; forgetting it locally is all logout does
        self.tokens.clear()

    # --- telemetry ---

    def latest(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/data/latest")

    def by_device(self, device_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/api/data/device/{quote(device_id, safe='')}")

    def create_reading(self, device_id: str, temperature: float, humidity: float) -> Dict[str, Any]:
        body = {"deviceId": device_id, "temperature": temperature, "humidity": humidity}
        return self._request("POST", "/api/data", body, auth=True)

    def delete_reading(self, reading_id: str):
        return self._request("DELETE", f"/api/data/{quote(reading_id, safe='')}", auth=True)
