"""
Which bytes of a downloading file can be served right now.

qBittorrent exposes a per-file progress fraction, not a piece bitmap, so the
readable region is approximated as the first ``floor(progress * size)`` bytes.
That prefix is only contiguous when the torrent downloads sequentially; for
rarest-first torrents just the very start of the file (covered by first/last
piece priority) is trusted. Replacing this with piece-state introspection only
requires a different ``AvailabilityWindow`` source.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from streamarr.errors import GatewayError
from streamarr.models import FilePriority, FileRecord, TorrentRecord
from streamarr.services.qbittorrent import TorrentGateway

log = logging.getLogger(__name__)

MIN_READY_FRACTION = 0.05
EXPEDITE_WINDOW_SECONDS = 5.0


@dataclass(frozen=True)
class AvailabilityWindow:
    size: int
    available_bytes: int
    sequential: bool
    skipped: bool
    complete: bool
    min_ready_bytes: int

    @classmethod
    def build(
        cls,
        file: FileRecord,
        torrent: TorrentRecord,
        min_ready_fraction: float = MIN_READY_FRACTION,
    ) -> "AvailabilityWindow":
        size = max(file.size, 0)
        return cls(
            size=size,
            available_bytes=min(math.floor(file.progress * size), size),
            sequential=torrent.sequential,
            skipped=file.skipped,
            complete=size > 0 and file.progress >= 1.0,
            min_ready_bytes=math.ceil(size * min_ready_fraction),
        )

    @property
    def streamable(self) -> bool:
        if self.skipped or self.size <= 0:
            return False
        return self.complete or self.available_bytes >= self.min_ready_bytes

    def readable_end(self, start: int) -> int | None:
        """Last offset readable contiguously from ``start``, or None."""
        if not self.streamable or start < 0 or start >= self.size:
            return None
        if self.complete:
            return self.size - 1
        if start >= self.available_bytes:
            return None
        if not self.sequential and start != 0:
            return None
        return self.available_bytes - 1

    def covers(self, start: int, end: int) -> bool:
        if start > end:
            return False
        last = self.readable_end(start)
        return last is not None and end <= last


class AvailabilityTracker:
    def __init__(
        self,
        gateway: TorrentGateway,
        min_ready_fraction: float = MIN_READY_FRACTION,
        expedite_window: float = EXPEDITE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.min_ready_fraction = min_ready_fraction
        self.expedite_window = expedite_window
        self._clock = clock
        self._expedited: dict[tuple[str, int], float] = {}
        self._background: set[asyncio.Task] = set()

    def window(self, file: FileRecord, torrent: TorrentRecord) -> AvailabilityWindow:
        return AvailabilityWindow.build(file, torrent, self.min_ready_fraction)

    async def get_window(self, info_hash: str, file_index: int) -> AvailabilityWindow:
        # GoneError when the torrent was removed upstream, before asking for its files
        torrent = await self.gateway.get_torrent(info_hash)
        file = await self.gateway.get_file(info_hash, file_index)
        return self.window(file, torrent)

    async def is_range_ready(self, info_hash: str, file_index: int, start: int, end: int) -> bool:
        window = await self.get_window(info_hash, file_index)
        return window.covers(start, end)

    async def expedite(self, info_hash: str, file_index: int) -> bool:
        """
        Raise the file to maximal priority.

        Returns False when an expedite for the same file was issued within
        the coalescing window, True when a priority change was sent.
        """
        key = (info_hash.lower(), file_index)
        now = self._clock()
        last = self._expedited.get(key)
        if last is not None and now - last < self.expedite_window:
            return False
        self._expedited[key] = now
        self._prune(now)

        try:
            torrent = await self.gateway.get_torrent(info_hash)
            await self.gateway.set_file_priority(info_hash, [file_index], FilePriority.MAXIMAL)
        except GatewayError:
            # let the next request try again instead of waiting out the window
            self._expedited.pop(key, None)
            raise
        if not torrent.sequential:
            log.warning(
                "Torrent %s is not downloading sequentially; contiguous availability of file %s "
                "cannot be guaranteed",
                torrent.hash,
                file_index,
            )
        log.info("Expedited file %s of %s", file_index, torrent.hash)
        return True

    def schedule_expedite(self, info_hash: str, file_index: int) -> None:
        """Fire-and-forget ``expedite``; failures are logged, never raised."""
        task = asyncio.create_task(self.expedite(info_hash, file_index))
        self._background.add(task)
        task.add_done_callback(self._expedite_finished)

    def _expedite_finished(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("Background expedite failed: %s", exc)

    def _prune(self, now: float) -> None:
        stale = [k for k, t in self._expedited.items() if now - t >= self.expedite_window]
        for k in stale:
            del self._expedited[k]

    async def drain(self) -> None:
        """Wait for pending background expedites (used on shutdown)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
