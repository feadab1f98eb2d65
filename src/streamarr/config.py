from pydantic import BaseModel
import os


class Settings(BaseModel):
    qbittorrent_url: str = "http://localhost:8080"
    qbittorrent_username: str = "admin"
    qbittorrent_password: str = "adminadmin"
    # qBittorrent drops the SID cookie after an hour of inactivity; refresh before that
    qbittorrent_session_minutes: float = 50.0
    upstream_timeout_seconds: float = 10.0
    sonarr_url: str | None = None
    sonarr_api_key: str | None = None
    sonarr_root_folder: str = "/tv"
    radarr_url: str | None = None
    radarr_api_key: str | None = None
    radarr_root_folder: str = "/movies"
    jackett_url: str | None = None
    jackett_api_key: str | None = None
    stream_min_ready_fraction: float = 0.05
    stream_expedite_window_seconds: float = 5.0
    stream_retry_after_seconds: int = 5
    stream_chunk_size: int = 256 * 1024
    # (remote prefix, local prefix) pairs, longest remote prefix first
    download_path_map: list[tuple[str, str]] = []
    port: int = 3000
    log_level: str = "INFO"

    @property
    def sonarr_enabled(self) -> bool:
        return bool(self.sonarr_url and self.sonarr_api_key)

    @property
    def radarr_enabled(self) -> bool:
        return bool(self.radarr_url and self.radarr_api_key)

    @property
    def jackett_enabled(self) -> bool:
        return bool(self.jackett_url and self.jackett_api_key)


def _url(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name, default)
    return value.rstrip("/") if value else None


def parse_path_map(value: str | None) -> list[tuple[str, str]]:
    """Parse ``/remote=/local,/other=/mnt/other`` into prefix pairs."""
    pairs = []
    for item in (value or "").split(","):
        remote, sep, local = item.partition("=")
        remote, local = remote.strip().rstrip("/"), local.strip().rstrip("/")
        if not sep or not remote or not local:
            continue
        pairs.append((remote, local))
    pairs.sort(key=lambda p: len(p[0]), reverse=True)
    return pairs


def load_settings() -> Settings:
    # Simple env loader; defer to dotenv if present
    from dotenv import load_dotenv
    load_dotenv()
    return Settings(
        qbittorrent_url=_url("QBITTORRENT_URL", "http://localhost:8080"),
        qbittorrent_username=os.getenv("QBITTORRENT_USERNAME", "admin"),
        qbittorrent_password=os.getenv("QBITTORRENT_PASSWORD", "adminadmin"),
        qbittorrent_session_minutes=float(os.getenv("QBITTORRENT_SESSION_MINUTES", "50")),
        upstream_timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "10")),
        sonarr_url=_url("SONARR_URL"),
        sonarr_api_key=os.getenv("SONARR_API_KEY"),
        sonarr_root_folder=os.getenv("SONARR_ROOT_FOLDER", "/tv"),
        radarr_url=_url("RADARR_URL"),
        radarr_api_key=os.getenv("RADARR_API_KEY"),
        radarr_root_folder=os.getenv("RADARR_ROOT_FOLDER", "/movies"),
        jackett_url=_url("JACKETT_URL"),
        jackett_api_key=os.getenv("JACKETT_API_KEY"),
        stream_min_ready_fraction=float(os.getenv("STREAM_MIN_READY_FRACTION", "0.05")),
        stream_expedite_window_seconds=float(os.getenv("STREAM_EXPEDITE_WINDOW_SECONDS", "5")),
        stream_retry_after_seconds=int(os.getenv("STREAM_RETRY_AFTER_SECONDS", "5")),
        stream_chunk_size=int(os.getenv("STREAM_CHUNK_SIZE", str(256 * 1024))),
        download_path_map=parse_path_map(os.getenv("DOWNLOAD_PATH_MAP")),
        port=int(os.getenv("PORT", "3000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
