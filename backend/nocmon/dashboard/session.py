# backend/nocmon/dashboard/session.py
"""
Authenticated HTTP session for a dashboard.

The bearer token lives on this object only; every protected call goes
through it, and a 401 from the server drops the token and tells the owner
to show the login screen again.
"""
import logging
from typing import Callable, List, Optional, Tuple

import httpx

from ..schemas import AccessLogEntry

logger = logging.getLogger(__name__)


class LoginFailed(Exception):
    pass


class SessionExpired(Exception):
    """The server rejected our token (401); the token has been discarded."""


class NotAuthenticated(Exception):
    pass


def _attachment_filename(disposition: str, default: str) -> str:
    for part in disposition.split(";"):
        key, _, value = part.strip().partition("=")
        if key.lower() == "filename" and value:
            return value.strip('"')
    return default


class AuthSession:
    def __init__(self, base_url: str, token: Optional[str] = None,
                 on_logout: Optional[Callable[[], None]] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.on_logout = on_logout
        self._client = client if client is not None else httpx.AsyncClient(base_url=self.base_url, timeout=30.0)

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    def _headers(self) -> dict:
        if not self.token:
            raise NotAuthenticated("No authentication token. Please log in again.")
        return {"Authorization": f"Bearer {self.token}", "Accept": "application/json"}

    async def login(self, username: str, password: str) -> str:
        response = await self._client.post("/api/login", json={"username": username, "password": password})
        if response.status_code == 401:
            raise LoginFailed("Invalid username or password")
        response.raise_for_status()
        self.token = response.json()["token"]
        logger.info(f"Logged in as {username}")
        return self.token

    def logout(self):
        self.token = None
        if self.on_logout is not None:
            self.on_logout()

    async def _get(self, path: str, **kwargs) -> httpx.Response:
        response = await self._client.get(path, headers=self._headers(), **kwargs)
        if response.status_code == 401:
            logger.warning("Session expired, discarding token")
            self.logout()
            raise SessionExpired("Session expired. Please log in again.")
        response.raise_for_status()
        return response

    async def access_logs(self) -> List[AccessLogEntry]:
        response = await self._get("/api/access-logs")
        return [AccessLogEntry.model_validate(item) for item in response.json()]

    async def export(self, kind: str, time_range: str = "24h") -> Tuple[str, bytes]:
        """Download a CSV export. Returns (filename, body)."""
        response = await self._get(f"/api/export/{kind}", params={"timeRange": time_range})
        filename = _attachment_filename(
            response.headers.get("content-disposition", ""),
            f"{kind}_data_{time_range}.csv",
        )
        return filename, response.content

    async def aclose(self):
        await self._client.aclose()
