import os
import re
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from streamarr.errors import InvalidRequestError

PLAYABLE_EXTENSIONS = frozenset(
    {
        ".mp4",
        ".mkv",
        ".avi",
        ".mov",
        ".wmv",
        ".flv",
        ".webm",
        ".m4v",
        ".mpg",
        ".mpeg",
        ".3gp",
        ".ts",
        ".m2ts",
    }
)

MIME_TYPES = {
    ".mp4": "video/mp4",
    ".mkv": "video/x-matroska",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".webm": "video/webm",
    ".m4v": "video/x-m4v",
    ".mpg": "video/mpeg",
    ".mpeg": "video/mpeg",
    ".3gp": "video/3gpp",
    ".ts": "video/mp2t",
    ".m2ts": "video/mp2t",
}

_HASH_RE = re.compile(r"^[0-9a-fA-F]{40}$")


def _extension(name: str) -> str:
    return os.path.splitext(name)[1].lower()


def is_playable(name: str) -> bool:
    """True when the file name carries a browser-playable container extension."""
    return _extension(name) in PLAYABLE_EXTENSIONS


def mime_type_for(name: str) -> str:
    return MIME_TYPES.get(_extension(name), "application/octet-stream")


def normalize_hash(value: str) -> str:
    if not value or not _HASH_RE.match(value):
        raise InvalidRequestError(f"Invalid torrent hash: {value!r}")
    return value.lower()


def _from_epoch(value: Any) -> datetime | None:
    if not value or value <= 0:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FilePriority(IntEnum):
    SKIP = 0
    NORMAL = 1
    HIGH = 6
    MAXIMAL = 7


class TorrentState(str, Enum):
    ERROR = "error"
    MISSING_FILES = "missingFiles"
    UPLOADING = "uploading"
    PAUSED_UP = "pausedUP"
    STOPPED_UP = "stoppedUP"
    QUEUED_UP = "queuedUP"
    STALLED_UP = "stalledUP"
    CHECKING_UP = "checkingUP"
    FORCED_UP = "forcedUP"
    ALLOCATING = "allocating"
    DOWNLOADING = "downloading"
    META_DL = "metaDL"
    PAUSED_DL = "pausedDL"
    STOPPED_DL = "stoppedDL"
    QUEUED_DL = "queuedDL"
    STALLED_DL = "stalledDL"
    CHECKING_DL = "checkingDL"
    FORCED_DL = "forcedDL"
    CHECKING_RESUME_DATA = "checkingResumeData"
    MOVING = "moving"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class TorrentRecord(CamelModel):
    hash: str
    name: str
    total_size: int = 0
    downloaded_bytes: int = 0
    progress: float = 0.0
    state: TorrentState = TorrentState.UNKNOWN
    save_path: str = ""
    content_path: str | None = None
    category: str | None = None
    tags: list[str] = []
    dl_speed: int = 0
    up_speed: int = 0
    eta: int | None = None
    num_seeds: int = 0
    num_leeches: int = 0
    ratio: float = 0.0
    added_on: datetime | None = None
    completed_on: datetime | None = None
    sequential: bool = False
    first_last_piece_priority: bool = False

    @classmethod
    def from_qbittorrent(cls, data: dict) -> "TorrentRecord":
        tags = data.get("tags") or ""
        return cls(
            hash=(data.get("hash") or "").lower(),
            name=data.get("name") or "",
            total_size=data.get("total_size") or data.get("size") or 0,
            downloaded_bytes=data.get("completed") or 0,
            progress=min(max(float(data.get("progress") or 0.0), 0.0), 1.0),
            state=TorrentState(data.get("state") or "unknown"),
            save_path=data.get("save_path") or "",
            content_path=data.get("content_path"),
            category=data.get("category") or None,
            tags=[t.strip() for t in tags.split(",") if t.strip()],
            dl_speed=data.get("dlspeed") or 0,
            up_speed=data.get("upspeed") or 0,
            eta=data.get("eta"),
            num_seeds=data.get("num_seeds") or 0,
            num_leeches=data.get("num_leechs") or 0,
            ratio=data.get("ratio") or 0.0,
            added_on=_from_epoch(data.get("added_on")),
            completed_on=_from_epoch(data.get("completion_on")),
            sequential=bool(data.get("seq_dl")),
            first_last_piece_priority=bool(data.get("f_l_piece_prio")),
        )


class FileRecord(CamelModel):
    torrent_hash: str
    index: int
    name: str
    size: int = 0
    progress: float = 0.0
    priority: int = FilePriority.NORMAL
    is_playable: bool = False

    @classmethod
    def from_qbittorrent(cls, torrent_hash: str, data: dict, position: int = 0) -> "FileRecord":
        # qBittorrent < 4.2 omits "index"; the list position is the index there.
        name = data.get("name") or ""
        return cls(
            torrent_hash=torrent_hash.lower(),
            index=data.get("index", position),
            name=name,
            size=data.get("size") or 0,
            progress=min(max(float(data.get("progress") or 0.0), 0.0), 1.0),
            priority=data.get("priority", FilePriority.NORMAL),
            is_playable=is_playable(name),
        )

    @property
    def skipped(self) -> bool:
        return self.priority == FilePriority.SKIP


class TransferStats(CamelModel):
    dl_speed: int = 0
    dl_data: int = 0
    up_speed: int = 0
    up_data: int = 0
    dl_rate_limit: int = 0
    up_rate_limit: int = 0
    dht_nodes: int = 0
    connection_status: str = "unknown"

    @classmethod
    def from_qbittorrent(cls, data: dict) -> "TransferStats":
        return cls(
            dl_speed=data.get("dl_info_speed") or 0,
            dl_data=data.get("dl_info_data") or 0,
            up_speed=data.get("up_info_speed") or 0,
            up_data=data.get("up_info_data") or 0,
            dl_rate_limit=data.get("dl_rate_limit") or 0,
            up_rate_limit=data.get("up_rate_limit") or 0,
            dht_nodes=data.get("dht_nodes") or 0,
            connection_status=data.get("connection_status") or "unknown",
        )


class AddTorrentOptions(CamelModel):
    savepath: str | None = None
    category: str | None = None
    paused: bool = False
    sequential: bool = False
    first_last_piece_priority: bool = False
