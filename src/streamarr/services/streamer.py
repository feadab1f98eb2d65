import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Iterable

import aiofiles
import aiofiles.os

from streamarr.errors import (
    InvalidRequestError,
    NotFoundError,
    NotReadyError,
    RangeNotSatisfiableError,
)
from streamarr.models import CamelModel, FileRecord, TorrentRecord, mime_type_for, normalize_hash
from streamarr.services.availability import AvailabilityTracker
from streamarr.services.qbittorrent import TorrentGateway

log = logging.getLogger(__name__)

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int
    # "bytes=N-" or no header: the client accepts however much we can send
    open_ended: bool = False


def parse_range(header: str | None, size: int) -> ByteRange | None:
    """
    Resolve a ``Range`` header against the final file size.

    Returns None when the header is absent or malformed (treated as no Range
    at all) and raises ``RangeNotSatisfiableError`` when the range starts at
    or past ``size``. Only the first range of a multi-range header is used.
    """
    if not header:
        return None
    m = _RANGE_RE.match(header.split(",", 1)[0])
    if not m:
        return None
    start_s, end_s = m.groups()
    if not start_s and not end_s:
        return None

    if not start_s:
        suffix = int(end_s)
        if suffix == 0 or size == 0:
            raise RangeNotSatisfiableError(size)
        return ByteRange(max(size - suffix, 0), size - 1)

    start = int(start_s)
    end = int(end_s) if end_s else None
    if end is not None and end < start:
        return None
    if start >= size:
        raise RangeNotSatisfiableError(size)
    if end is None:
        return ByteRange(start, size - 1, open_ended=True)
    return ByteRange(start, min(end, size - 1))


def remap_path(path: str, mappings: Iterable[tuple[str, str]]) -> str:
    normalized = path.replace("\\", "/").rstrip("/") or "/"
    for remote, local in mappings:
        if normalized == remote or normalized.startswith(remote + "/"):
            return local + normalized[len(remote):]
    return normalized


@dataclass(frozen=True)
class StreamPlan:
    path: Path
    start: int
    end: int
    size: int
    status_code: int
    media_type: str

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def headers(self) -> dict[str, str]:
        headers = {
            "Accept-Ranges": "bytes",
            "Content-Length": str(self.length),
            "Cache-Control": "no-cache",
        }
        if self.status_code == 206:
            headers["Content-Range"] = f"bytes {self.start}-{self.end}/{self.size}"
        return headers


class StreamInfo(CamelModel):
    name: str
    size: int
    mime_type: str
    progress: float
    is_playable: bool
    is_ready: bool
    available_bytes: int
    sequential: bool


class RangeStreamer:
    """
    Serves byte ranges of files that qBittorrent may still be downloading.

    ``plan`` makes every status decision (404, 416, 503, 200/206) before any
    byte is sent; ``iter_bytes`` then reads the planned range through its own
    file handle. Nothing here waits for download progress: a range that is not
    available yet is answered with ``NotReadyError`` right away and the file's
    priority is raised in the background.
    """

    def __init__(
        self,
        gateway: TorrentGateway,
        tracker: AvailabilityTracker,
        path_map: Iterable[tuple[str, str]] = (),
        chunk_size: int = 256 * 1024,
        retry_after: int = 5,
    ):
        self.gateway = gateway
        self.tracker = tracker
        self.path_map = list(path_map)
        self.chunk_size = chunk_size
        self.retry_after = retry_after

    async def _resolve(self, info_hash: str, file_index: int) -> tuple[TorrentRecord, FileRecord]:
        if file_index < 0:
            raise InvalidRequestError("Invalid file index")
        torrent = await self.gateway.get_torrent(info_hash)
        try:
            file = await self.gateway.get_file(info_hash, file_index)
        except NotReadyError as e:
            raise NotReadyError(e.message, retry_after=self.retry_after) from e
        return torrent, file

    def local_path(self, torrent: TorrentRecord, file: FileRecord) -> Path:
        base = os.path.normpath(remap_path(torrent.save_path, self.path_map))
        path = os.path.normpath(os.path.join(base, file.name))
        if os.path.commonpath([base, path]) != base or path == base:
            raise NotFoundError("File path escapes the torrent save path")
        return Path(path)

    async def plan(self, info_hash: str, file_index: int, range_header: str | None) -> StreamPlan:
        info_hash = normalize_hash(info_hash)
        torrent, file = await self._resolve(info_hash, file_index)
        if not file.is_playable:
            raise NotFoundError("File is not a playable video")
        if file.size <= 0:
            # no final size yet, so no Range can be judged against it
            self.tracker.schedule_expedite(info_hash, file_index)
            raise NotReadyError("File size is not known yet", retry_after=self.retry_after)

        requested = parse_range(range_header, file.size)
        window = self.tracker.window(file, torrent)

        start = requested.start if requested else 0
        if requested is None or requested.open_ended:
            end = window.readable_end(start)
        else:
            end = requested.end if window.covers(requested.start, requested.end) else None

        if end is None:
            self.tracker.schedule_expedite(info_hash, file_index)
            log.debug(
                "Range %s of %s/%s not ready (%d of %d bytes available)",
                range_header or "<none>",
                info_hash,
                file_index,
                window.available_bytes,
                window.size,
            )
            raise NotReadyError(retry_after=self.retry_after)

        path = self.local_path(torrent, file)
        if not await aiofiles.os.path.isfile(path):
            raise NotReadyError("File has not been created on disk yet", retry_after=self.retry_after)

        status_code = 200 if requested is None and window.complete else 206
        return StreamPlan(
            path=path,
            start=start,
            end=end,
            size=file.size,
            status_code=status_code,
            media_type=mime_type_for(file.name),
        )

    async def iter_bytes(self, plan: StreamPlan) -> AsyncIterator[bytes]:
        remaining = plan.length
        try:
            async with aiofiles.open(plan.path, "rb") as f:
                await f.seek(plan.start)
                while remaining > 0:
                    chunk = await f.read(min(self.chunk_size, remaining))
                    if not chunk:
                        log.warning("%s ended %d bytes before the planned range", plan.path, remaining)
                        return
                    remaining -= len(chunk)
                    yield chunk
        except (asyncio.CancelledError, GeneratorExit):
            # browsers drop range requests all the time while seeking
            log.debug(
                "Client stopped reading %s after %d of %d bytes",
                plan.path.name,
                plan.length - remaining,
                plan.length,
            )
            raise
        except OSError as e:
            log.warning("Reading %s failed after %d bytes: %s", plan.path, plan.length - remaining, e)
            raise

    async def describe(self, info_hash: str, file_index: int) -> StreamInfo:
        info_hash = normalize_hash(info_hash)
        torrent, file = await self._resolve(info_hash, file_index)
        window = self.tracker.window(file, torrent)
        return StreamInfo(
            name=file.name,
            size=file.size,
            mime_type=mime_type_for(file.name),
            progress=file.progress,
            is_playable=file.is_playable,
            is_ready=file.is_playable and window.readable_end(0) is not None,
            available_bytes=window.size if window.complete else window.available_bytes,
            sequential=torrent.sequential,
        )
