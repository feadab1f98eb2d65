"""
Tests for environment-driven settings.
"""

import logging

from streamarr.config import load_settings, parse_path_map
from streamarr.logger import setup_logging


class TestParsePathMap:
    def test_pairs_are_sorted_longest_first(self):
        pairs = parse_path_map("/downloads=/mnt/dl, /downloads/tv/=/mnt/tv/")
        assert pairs == [("/downloads/tv", "/mnt/tv"), ("/downloads", "/mnt/dl")]

    def test_malformed_entries_are_skipped(self):
        assert parse_path_map("nothing,=/x,/y=,") == []
        assert parse_path_map(None) == []


class TestLoadSettings:
    def test_environment_values(self, monkeypatch):
        monkeypatch.setenv("QBITTORRENT_URL", "http://qbt:8080/")
        monkeypatch.setenv("SONARR_URL", "http://sonarr:8989/")
        monkeypatch.setenv("SONARR_API_KEY", "abc")
        monkeypatch.setenv("STREAM_MIN_READY_FRACTION", "0.1")
        monkeypatch.setenv("DOWNLOAD_PATH_MAP", "/downloads=/data")
        monkeypatch.setenv("PORT", "8000")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.delenv("RADARR_URL", raising=False)
        monkeypatch.delenv("RADARR_API_KEY", raising=False)

        settings = load_settings()

        assert settings.qbittorrent_url == "http://qbt:8080"
        assert settings.sonarr_url == "http://sonarr:8989"
        assert settings.sonarr_enabled
        assert not settings.radarr_enabled
        assert settings.stream_min_ready_fraction == 0.1
        assert settings.download_path_map == [("/downloads", "/data")]
        assert settings.port == 8000
        assert settings.log_level == "DEBUG"


class TestSetupLogging:
    def test_level_is_applied(self):
        root = logging.getLogger()
        saved_level, saved_handlers = root.level, root.handlers[:]
        try:
            setup_logging("debug")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert logging.getLogger("httpx").level == logging.WARNING

            setup_logging("nonsense")
            assert root.level == logging.INFO
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
