import logging
from datetime import datetime
from typing import Any

import httpx

from streamarr.errors import (
    InvalidRequestError,
    NotFoundError,
    UpstreamAuthError,
    UpstreamConnectionError,
    UpstreamError,
)

log = logging.getLogger(__name__)


def parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def pick_image(images: list[dict] | None, cover_type: str) -> str | None:
    for image in images or []:
        if image.get("coverType") == cover_type:
            return image.get("remoteUrl") or image.get("url")
    return None


class ArrClient:
    """Shared plumbing for the Sonarr/Radarr v3 APIs (API key header auth)."""

    service_name = "arr"
    default_root_folder = "/"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        root_folder: str | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.root_folder = root_folder or self.default_root_folder
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict | None = None,
        json: Any = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        headers = {"X-Api-Key": self.api_key}
        try:
            r = await self._client.request(method, url, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            log.warning("%s request %s %s failed: %s", self.service_name, method, endpoint, e)
            raise UpstreamConnectionError(f"Cannot reach {self.service_name} at {self.base_url}") from e
        if r.status_code == 401:
            raise UpstreamAuthError(f"{self.service_name} rejected the configured API key")
        if r.status_code == 404:
            raise NotFoundError(f"{self.service_name}: {endpoint} not found")
        if r.status_code == 400:
            raise InvalidRequestError(f"{self.service_name}: {r.text[:200]}")
        if not r.is_success:
            log.error("%s API error: %s - %s", self.service_name, r.status_code, r.text[:200])
            raise UpstreamError(f"{self.service_name} returned HTTP {r.status_code}")
        return r.json() if r.content else None

    async def get_status(self) -> dict:
        return await self._request("GET", "/api/v3/system/status")

    async def check_connection(self) -> bool:
        try:
            await self.get_status()
            return True
        except Exception as e:
            log.debug("%s connection check failed: %s", self.service_name, e)
            return False

    async def list_quality_profiles(self) -> list[dict]:
        return await self._request("GET", "/api/v3/qualityprofile")

    async def list_root_folders(self) -> list[dict]:
        return await self._request("GET", "/api/v3/rootfolder")

    async def get_disk_space(self) -> list[dict]:
        return await self._request("GET", "/api/v3/diskspace")

    async def get_queue(self) -> list[dict]:
        """Get current download queue; tolerate either {records:[...]} or raw list."""
        data = await self._request("GET", "/api/v3/queue")
        return data.get("records", data) if isinstance(data, dict) else data

    async def _command(self, name: str, **payload) -> dict:
        return await self._request("POST", "/api/v3/command", json={"name": name, **payload})

    async def close(self):
        await self._client.aclose()
