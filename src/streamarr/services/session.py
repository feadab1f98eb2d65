import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from streamarr.errors import UpstreamConnectionError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    cookie: str | None
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionManager:
    """Owns the single authenticated qBittorrent session.

    ``ensure_authenticated`` is single-flight: callers that find the session
    missing or expired while a login is already running await that same login
    instead of starting their own. The manager never retries a failed login;
    the next call simply tries again.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        client: httpx.AsyncClient,
        lifetime: float = 50 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.lifetime = lifetime
        self._client = client
        self._clock = clock
        self._session: Session | None = None
        self._login_task: asyncio.Task | None = None

    @property
    def authenticated(self) -> bool:
        return self._session is not None and not self._session.expired(self._clock())

    async def ensure_authenticated(self) -> Session:
        session = self._session
        if session is not None and not session.expired(self._clock()):
            return session
        if self._login_task is None:
            self._login_task = asyncio.create_task(self._login())
            self._login_task.add_done_callback(self._login_finished)
        # shield: one cancelled waiter must not abort the login for the others
        return await asyncio.shield(self._login_task)

    def invalidate(self, rejected: Session | None = None) -> None:
        """Drop the current session, or only ``rejected`` when it is still the current one."""
        if rejected is not None and self._session is not rejected:
            return
        if self._session is not None:
            log.debug("Dropping qBittorrent session")
        self._session = None

    def _login_finished(self, task: asyncio.Task) -> None:
        self._login_task = None
        if not task.cancelled():
            # waiters re-raise it; mark as retrieved for tasks nobody awaited
            task.exception()

    async def _login(self) -> Session:
        url = f"{self.base_url}/api/v2/auth/login"
        self._session = None
        try:
            r = await self._client.post(
                url,
                data={"username": self.username, "password": self.password},
                headers={"Referer": self.base_url},
            )
        except httpx.HTTPError as e:
            log.warning("qBittorrent login request failed: %s", e)
            raise UpstreamConnectionError(f"Cannot reach qBittorrent at {self.base_url}") from e
        if not r.is_success:
            log.warning("qBittorrent login returned HTTP %s", r.status_code)
            raise UpstreamConnectionError(f"qBittorrent login failed with HTTP {r.status_code}")
        if r.text.strip() != "Ok.":
            log.warning("qBittorrent rejected the configured credentials")
            raise UpstreamConnectionError("qBittorrent rejected the configured credentials")

        cookie = r.cookies.get("SID")
        if cookie is None:
            # localhost/subnet auth bypass answers "Ok." without a session cookie
            log.debug("qBittorrent login succeeded without a SID cookie")
        session = Session(cookie=cookie, expires_at=self._clock() + self.lifetime)
        self._session = session
        log.info("qBittorrent authenticated successfully")
        return session
