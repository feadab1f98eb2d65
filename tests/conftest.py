"""
Shared fixtures: an in-memory qBittorrent Web API behind httpx.MockTransport.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from streamarr.config import Settings

HASH = "a" * 40
MB = 1_000_000


def qbt_torrent(info_hash=HASH, progress=0.4, seq_dl=True, save_path="/downloads", **extra):
    data = {
        "hash": info_hash,
        "name": "Some.Movie.2023",
        "size": MB,
        "total_size": MB,
        "completed": int(progress * MB),
        "progress": progress,
        "state": "downloading",
        "save_path": save_path,
        "category": "movies",
        "tags": "",
        "dlspeed": 1024,
        "upspeed": 0,
        "eta": 60,
        "num_seeds": 10,
        "num_leechs": 2,
        "ratio": 0.0,
        "added_on": 1700000000,
        "completion_on": -1,
        "seq_dl": seq_dl,
        "f_l_piece_prio": seq_dl,
    }
    data.update(extra)
    return data


def qbt_file(index, name, size=MB, progress=0.4, priority=1):
    return {"index": index, "name": name, "size": size, "progress": progress, "priority": priority}


class FakeQbittorrent:
    """Minimal qBittorrent Web API v2 keeping its state in dicts."""

    def __init__(self, webapi_version="2.9.3"):
        self.torrents: dict[str, dict] = {}
        self.files: dict[str, list[dict]] = {}
        self.webapi_version = webapi_version
        self.logins = 0
        self.calls: list[tuple[str, str, dict]] = []
        self.valid_sids: set[str] = set()
        self.reject_all = False
        self.login_body = "Ok."

    def add(self, torrent: dict, files: list[dict]):
        self.torrents[torrent["hash"]] = torrent
        self.files[torrent["hash"]] = files

    def remove(self, info_hash: str):
        self.torrents.pop(info_hash, None)
        self.files.pop(info_hash, None)

    def expire_sessions(self):
        self.valid_sids.clear()

    def calls_to(self, path: str) -> list[dict]:
        return [form for _, p, form in self.calls if p == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()} if request.content else {}

        if path == "/api/v2/auth/login":
            self.logins += 1
            if self.login_body != "Ok.":
                return httpx.Response(200, text=self.login_body)
            sid = f"sid{self.logins}"
            self.valid_sids.add(sid)
            return httpx.Response(200, text="Ok.", headers={"set-cookie": f"SID={sid}; HttpOnly; path=/"})

        cookie = request.headers.get("cookie", "")
        sid = cookie.split("SID=", 1)[1].split(";", 1)[0] if "SID=" in cookie else None
        if self.reject_all or sid not in self.valid_sids:
            return httpx.Response(403, text="Forbidden")

        self.calls.append((request.method, path, form))
        params = request.url.params

        if path == "/api/v2/app/version":
            return httpx.Response(200, text="v4.6.2")
        if path == "/api/v2/app/webapiVersion":
            return httpx.Response(200, text=self.webapi_version)
        if path == "/api/v2/torrents/info":
            wanted = params.get("hashes")
            items = [t for h, t in self.torrents.items() if wanted is None or h == wanted]
            if params.get("category") is not None:
                items = [t for t in items if t.get("category") == params["category"]]
            return httpx.Response(200, json=items)
        if path == "/api/v2/torrents/files":
            files = self.files.get(params.get("hash"))
            if files is None:
                return httpx.Response(404, text="Not Found")
            return httpx.Response(200, json=files)
        if path == "/api/v2/torrents/properties":
            if params.get("hash") not in self.torrents:
                return httpx.Response(404, text="Not Found")
            return httpx.Response(200, json={"save_path": self.torrents[params["hash"]]["save_path"]})
        if path == "/api/v2/torrents/filePrio":
            files = self.files.get(form.get("hash"))
            if files is None:
                return httpx.Response(404, text="Not Found")
            ids = {int(i) for i in form["id"].split("|")}
            for f in files:
                if f["index"] in ids:
                    f["priority"] = int(form["priority"])
            return httpx.Response(200)
        if path == "/api/v2/torrents/add":
            return httpx.Response(200, text="Ok.")
        if path == "/api/v2/transfer/info":
            return httpx.Response(
                200,
                json={
                    "dl_info_speed": 2048,
                    "dl_info_data": 10 * MB,
                    "up_info_speed": 0,
                    "up_info_data": 0,
                    "dl_rate_limit": 0,
                    "up_rate_limit": 0,
                    "dht_nodes": 312,
                    "connection_status": "connected",
                },
            )
        if path in (
            "/api/v2/torrents/delete",
            "/api/v2/torrents/pause",
            "/api/v2/torrents/resume",
            "/api/v2/torrents/stop",
            "/api/v2/torrents/start",
        ):
            return httpx.Response(200)
        return httpx.Response(404, text="Not Found")


@pytest.fixture
def qbt():
    return FakeQbittorrent()


@pytest.fixture
def transport(qbt):
    return httpx.MockTransport(qbt.handler)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        qbittorrent_url="http://qbittorrent:8080",
        download_path_map=[("/downloads", str(tmp_path))],
        stream_chunk_size=64 * 1024,
    )
