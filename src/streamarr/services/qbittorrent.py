import logging

import httpx

from streamarr.errors import (
    GatewayError,
    GoneError,
    InvalidRequestError,
    NotReadyError,
    UpstreamAuthError,
    UpstreamConnectionError,
    UpstreamError,
)
from streamarr.models import (
    AddTorrentOptions,
    FilePriority,
    FileRecord,
    TorrentRecord,
    TransferStats,
    normalize_hash,
)
from streamarr.services.session import SessionManager

log = logging.getLogger(__name__)


class TorrentGateway:
    """Typed proxy over the qBittorrent Web API v2.

    Every call runs under the session owned by ``SessionManager``. An
    authorization failure invalidates the session and the call is retried once
    with a fresh login; a second failure raises ``UpstreamAuthError``. Upstream
    status codes never leave this class: they are translated into
    ``streamarr.errors`` exceptions here.
    """

    def __init__(self, base_url: str, sessions: SessionManager, client: httpx.AsyncClient):
        self.base_url = base_url.rstrip("/")
        self._sessions = sessions
        self._client = client
        self._control_verbs: tuple[str, str] | None = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict | None = None,
        data: dict | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{endpoint}"
        for attempt in (1, 2):
            session = await self._sessions.ensure_authenticated()
            headers = {"Referer": self.base_url}
            if session.cookie:
                headers["Cookie"] = f"SID={session.cookie}"
            try:
                r = await self._client.request(method, url, params=params, data=data, headers=headers)
            except httpx.HTTPError as e:
                log.warning("qBittorrent request %s %s failed: %s", method, endpoint, e)
                raise UpstreamConnectionError(f"Cannot reach qBittorrent at {self.base_url}") from e
            if r.status_code not in (401, 403):
                break
            self._sessions.invalidate(session)
            if attempt == 2:
                log.error("qBittorrent rejected a freshly issued session on %s", endpoint)
                raise UpstreamAuthError("qBittorrent rejected the session after re-authentication")
            log.info("qBittorrent session rejected on %s, re-authenticating", endpoint)
        self._raise_for_status(r, endpoint)
        return r

    @staticmethod
    def _raise_for_status(r: httpx.Response, endpoint: str) -> None:
        if r.is_success:
            return
        detail = r.text.strip()
        if r.status_code == 404:
            raise GoneError(detail or "Torrent not found")
        if r.status_code == 409:
            # filePrio: metadata not downloaded yet, or unknown file id
            raise NotReadyError(detail or "Torrent metadata is not available yet")
        if r.status_code in (400, 415):
            raise InvalidRequestError(detail or "qBittorrent rejected the request")
        log.error("qBittorrent returned HTTP %s for %s: %s", r.status_code, endpoint, detail[:200])
        raise UpstreamError(f"qBittorrent returned HTTP {r.status_code}")

    async def get_version(self) -> str:
        r = await self._request("GET", "/api/v2/app/version")
        return r.text.strip()

    async def check_connection(self) -> bool:
        try:
            await self.get_version()
            return True
        except GatewayError:
            return False

    async def _verbs(self) -> tuple[str, str]:
        """Web API 2.11 (qBittorrent 5) renamed pause/resume to stop/start."""
        if self._control_verbs is None:
            r = await self._request("GET", "/api/v2/app/webapiVersion")
            try:
                version = tuple(int(p) for p in r.text.strip().split(".")[:2])
            except ValueError:
                version = (2, 0)
            self._control_verbs = ("stop", "start") if version >= (2, 11) else ("pause", "resume")
        return self._control_verbs

    async def list_torrents(
        self, filter: str | None = None, category: str | None = None
    ) -> list[TorrentRecord]:
        params = {}
        if filter:
            params["filter"] = filter
        if category is not None:
            params["category"] = category
        r = await self._request("GET", "/api/v2/torrents/info", params=params)
        return [TorrentRecord.from_qbittorrent(t) for t in r.json()]

    async def get_torrent(self, info_hash: str) -> TorrentRecord:
        info_hash = normalize_hash(info_hash)
        r = await self._request("GET", "/api/v2/torrents/info", params={"hashes": info_hash})
        items = r.json()
        if not items:
            raise GoneError(f"Torrent {info_hash} not found")
        return TorrentRecord.from_qbittorrent(items[0])

    async def get_properties(self, info_hash: str) -> dict:
        info_hash = normalize_hash(info_hash)
        r = await self._request("GET", "/api/v2/torrents/properties", params={"hash": info_hash})
        return r.json()

    async def list_files(self, info_hash: str) -> list[FileRecord]:
        info_hash = normalize_hash(info_hash)
        r = await self._request("GET", "/api/v2/torrents/files", params={"hash": info_hash})
        return [FileRecord.from_qbittorrent(info_hash, f, i) for i, f in enumerate(r.json())]

    async def get_file(self, info_hash: str, index: int) -> FileRecord:
        files = await self.list_files(info_hash)
        for f in files:
            if f.index == index:
                return f
        if not files:
            # magnets list no files until metadata arrives (metaDL)
            raise NotReadyError(f"Torrent {info_hash} is still fetching metadata")
        raise GoneError(f"File {index} not found in torrent {info_hash}")

    async def add_torrent(self, uri: str, options: AddTorrentOptions | None = None) -> None:
        """
        Add a torrent by magnet link or .torrent URL.

        Sequential downloads always get first/last piece priority too, so
        container headers and trailing indexes arrive early enough to start
        playback before the file is complete.
        """
        if not uri or not uri.strip():
            raise InvalidRequestError("A magnet link or torrent URL is required")
        options = options or AddTorrentOptions()
        data = {"urls": uri.strip()}
        if options.savepath:
            data["savepath"] = options.savepath
        if options.category:
            data["category"] = options.category
        if options.paused:
            # "stopped" is the Web API 2.11 name for the same flag
            data["paused"] = "true"
            data["stopped"] = "true"
        if options.sequential:
            data["sequentialDownload"] = "true"
            data["firstLastPiecePrio"] = "true"
        elif options.first_last_piece_priority:
            data["firstLastPiecePrio"] = "true"
        r = await self._request("POST", "/api/v2/torrents/add", data=data)
        if r.text.strip() == "Fails.":
            raise UpstreamError("qBittorrent refused to add the torrent")
        log.info("Added torrent (sequential=%s): %s", options.sequential, uri[:80])

    async def pause(self, info_hash: str) -> None:
        info_hash = normalize_hash(info_hash)
        verb, _ = await self._verbs()
        await self._request("POST", f"/api/v2/torrents/{verb}", data={"hashes": info_hash})

    async def resume(self, info_hash: str) -> None:
        info_hash = normalize_hash(info_hash)
        _, verb = await self._verbs()
        await self._request("POST", f"/api/v2/torrents/{verb}", data={"hashes": info_hash})

    async def set_file_priority(
        self, info_hash: str, file_indexes: list[int], priority: int
    ) -> None:
        info_hash = normalize_hash(info_hash)
        try:
            priority = FilePriority(priority)
        except ValueError:
            raise InvalidRequestError(f"Invalid priority {priority}; expected one of 0, 1, 6, 7") from None
        if not file_indexes or any(i < 0 for i in file_indexes):
            raise InvalidRequestError("fileIds must be a non-empty list of file indexes")
        await self._request(
            "POST",
            "/api/v2/torrents/filePrio",
            data={
                "hash": info_hash,
                "id": "|".join(str(i) for i in file_indexes),
                "priority": str(int(priority)),
            },
        )
        log.debug("Set priority %s on files %s of %s", priority.name, file_indexes, info_hash)

    async def delete(self, info_hash: str, delete_files: bool = False) -> None:
        info_hash = normalize_hash(info_hash)
        await self._request(
            "POST",
            "/api/v2/torrents/delete",
            data={"hashes": info_hash, "deleteFiles": "true" if delete_files else "false"},
        )
        log.info("Deleted torrent %s (files removed: %s)", info_hash, delete_files)

    async def get_transfer_stats(self) -> TransferStats:
        r = await self._request("GET", "/api/v2/transfer/info")
        return TransferStats.from_qbittorrent(r.json())
