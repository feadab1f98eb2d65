"""
Tests for the availability window and expedite coalescing.
"""

import httpx
import pytest

from conftest import HASH, MB, qbt_file, qbt_torrent
from streamarr.errors import GoneError
from streamarr.models import FilePriority, FileRecord, TorrentRecord
from streamarr.services.availability import AvailabilityTracker, AvailabilityWindow
from streamarr.services.qbittorrent import TorrentGateway
from streamarr.services.session import SessionManager

BASE = "http://qbittorrent:8080"


def window(progress, size=MB, priority=1, sequential=True, fraction=0.05):
    file = FileRecord(torrent_hash=HASH, index=0, name="movie.mkv", size=size, progress=progress, priority=priority)
    torrent = TorrentRecord(hash=HASH, name="movie", sequential=sequential)
    return AvailabilityWindow.build(file, torrent, fraction)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestAvailabilityWindow:
    def test_sequential_prefix_is_ready(self):
        w = window(0.4)
        assert w.available_bytes == 400_000
        assert w.covers(0, 199_999)
        assert w.covers(100_000, 399_999)
        assert not w.covers(399_999, 400_000)
        assert not w.covers(500_000, 599_999)

    def test_skipped_file_is_never_ready(self):
        for progress in (0.0, 0.5, 0.99, 1.0):
            w = window(progress, priority=FilePriority.SKIP)
            assert not w.streamable
            assert w.readable_end(0) is None
            assert not w.covers(0, 0)

    def test_below_minimum_fraction_is_not_ready(self):
        w = window(0.04)
        assert not w.streamable
        assert w.readable_end(0) is None
        assert window(0.05).readable_end(0) == 49_999

    def test_empty_file_is_not_ready(self):
        w = window(1.0, size=0)
        assert not w.streamable
        assert w.readable_end(0) is None

    def test_complete_file_is_fully_ready(self):
        w = window(1.0, sequential=False)
        assert w.complete
        assert w.readable_end(750_000) == MB - 1
        assert w.covers(MB - 100, MB - 1)

    def test_non_sequential_trusts_only_the_start(self):
        w = window(0.4, sequential=False)
        assert w.readable_end(0) == 399_999
        assert w.readable_end(1) is None
        assert not w.covers(100, 200)

    def test_readiness_is_monotonic_in_progress(self):
        ranges = [(0, 0), (0, 49_999), (100_000, 199_999), (300_000, 450_000), (900_000, MB - 1)]
        for start, end in ranges:
            seen_ready = False
            for step in range(0, 101):
                ready = window(step / 100).covers(start, end)
                if seen_ready:
                    assert ready, f"range {start}-{end} regressed at {step}%"
                seen_ready = seen_ready or ready

    def test_ready_exactly_below_floor(self):
        w = window(0.123456789)
        available = int(0.123456789 * MB)
        assert w.available_bytes == available
        assert w.covers(0, available - 1)
        assert not w.covers(0, available)


def tracker_for(client, clock):
    gateway = TorrentGateway(BASE, SessionManager(BASE, "admin", "secret", client), client)
    return AvailabilityTracker(gateway, expedite_window=5.0, clock=clock)


class TestExpedite:
    @pytest.mark.asyncio
    async def test_expedite_sets_maximal_priority(self, qbt, transport):
        qbt.add(qbt_torrent(), [qbt_file(0, "Some.Movie.2023/movie.mkv")])
        async with httpx.AsyncClient(transport=transport) as client:
            tracker = tracker_for(client, FakeClock())
            assert await tracker.expedite(HASH, 0) is True

        calls = qbt.calls_to("/api/v2/torrents/filePrio")
        assert calls == [{"hash": HASH, "id": "0", "priority": "7"}]
        assert qbt.files[HASH][0]["priority"] == 7

    @pytest.mark.asyncio
    async def test_repeated_expedites_are_coalesced_within_window(self, qbt, transport):
        qbt.add(qbt_torrent(), [qbt_file(0, "movie.mkv"), qbt_file(1, "extra.mkv")])
        clock = FakeClock()
        async with httpx.AsyncClient(transport=transport) as client:
            tracker = tracker_for(client, clock)
            assert await tracker.expedite(HASH, 0) is True
            clock.now += 1
            assert await tracker.expedite(HASH, 0) is False
            assert await tracker.expedite(HASH.upper(), 0) is False
            # a different file of the same torrent is its own key
            assert await tracker.expedite(HASH, 1) is True
            clock.now += 5
            assert await tracker.expedite(HASH, 0) is True

        assert len(qbt.calls_to("/api/v2/torrents/filePrio")) == 3

    @pytest.mark.asyncio
    async def test_failed_expedite_does_not_block_retry(self, qbt, transport):
        clock = FakeClock()
        async with httpx.AsyncClient(transport=transport) as client:
            tracker = tracker_for(client, clock)
            with pytest.raises(GoneError):
                await tracker.expedite(HASH, 0)

            qbt.add(qbt_torrent(), [qbt_file(0, "movie.mkv")])
            assert await tracker.expedite(HASH, 0) is True

    @pytest.mark.asyncio
    async def test_scheduled_expedite_swallows_failures(self, qbt, transport):
        async with httpx.AsyncClient(transport=transport) as client:
            tracker = tracker_for(client, FakeClock())
            tracker.schedule_expedite(HASH, 0)
            await tracker.drain()

        assert qbt.calls_to("/api/v2/torrents/filePrio") == []
