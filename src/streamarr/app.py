import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from streamarr.api import downloads, library, streaming
from streamarr.config import Settings, load_settings
from streamarr.errors import (
    GatewayError,
    NotReadyError,
    RangeNotSatisfiableError,
    ServiceNotConfiguredError,
    UpstreamConnectionError,
)
from streamarr.services.availability import AvailabilityTracker
from streamarr.services.jackett import JackettClient
from streamarr.services.qbittorrent import TorrentGateway
from streamarr.services.radarr import RadarrClient
from streamarr.services.session import SessionManager
from streamarr.services.sonarr import SonarrClient
from streamarr.services.streamer import RangeStreamer

log = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    qbittorrent_http: httpx.AsyncClient
    sessions: SessionManager
    gateway: TorrentGateway
    tracker: AvailabilityTracker
    streamer: RangeStreamer
    sonarr: SonarrClient | None = None
    radarr: RadarrClient | None = None
    jackett: JackettClient | None = None

    def require_sonarr(self) -> SonarrClient:
        if self.sonarr is None:
            raise ServiceNotConfiguredError("Sonarr is not configured")
        return self.sonarr

    def require_radarr(self) -> RadarrClient:
        if self.radarr is None:
            raise ServiceNotConfiguredError("Radarr is not configured")
        return self.radarr

    def require_jackett(self) -> JackettClient:
        if self.jackett is None:
            raise ServiceNotConfiguredError("Jackett is not configured")
        return self.jackett

    async def close(self):
        await self.tracker.drain()
        for client in (self.sonarr, self.radarr, self.jackett):
            if client is not None:
                await client.close()
        await self.qbittorrent_http.aclose()


def build_services(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> Services:
    """Wire the clients from settings; ``transport`` lets tests fake every upstream."""
    timeout = settings.upstream_timeout_seconds
    http = httpx.AsyncClient(timeout=timeout, transport=transport)
    sessions = SessionManager(
        settings.qbittorrent_url,
        settings.qbittorrent_username,
        settings.qbittorrent_password,
        http,
        lifetime=settings.qbittorrent_session_minutes * 60,
    )
    gateway = TorrentGateway(settings.qbittorrent_url, sessions, http)
    tracker = AvailabilityTracker(
        gateway,
        min_ready_fraction=settings.stream_min_ready_fraction,
        expedite_window=settings.stream_expedite_window_seconds,
    )
    streamer = RangeStreamer(
        gateway,
        tracker,
        path_map=settings.download_path_map,
        chunk_size=settings.stream_chunk_size,
        retry_after=settings.stream_retry_after_seconds,
    )
    return Services(
        settings=settings,
        qbittorrent_http=http,
        sessions=sessions,
        gateway=gateway,
        tracker=tracker,
        streamer=streamer,
        sonarr=(
            SonarrClient(
                settings.sonarr_url,
                settings.sonarr_api_key,
                timeout,
                transport,
                root_folder=settings.sonarr_root_folder,
            )
            if settings.sonarr_enabled
            else None
        ),
        radarr=(
            RadarrClient(
                settings.radarr_url,
                settings.radarr_api_key,
                timeout,
                transport,
                root_folder=settings.radarr_root_folder,
            )
            if settings.radarr_enabled
            else None
        ),
        jackett=(
            JackettClient(settings.jackett_url, settings.jackett_api_key, transport=transport)
            if settings.jackett_enabled
            else None
        ),
    )


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if isinstance(exc, (NotReadyError, RangeNotSatisfiableError)):
        # routine while a download is in progress or the player is seeking
        log.debug("[%s] %s - %s", request.method, request.url.path, exc.message)
    elif isinstance(exc, (UpstreamConnectionError, ServiceNotConfiguredError)):
        log.warning("[%s] %s - %s", request.method, request.url.path, exc.message)
    elif exc.status_code >= 500:
        log.error("[%s] %s - %s", request.method, request.url.path, exc.message)
    else:
        log.info("[%s] %s - %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {"code": exc.code, "message": exc.message, "statusCode": exc.status_code},
        },
        headers=exc.headers(),
    )


def create_app(
    settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None
) -> FastAPI:
    settings = settings or load_settings()
    services = build_services(settings, transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("qBittorrent at %s", settings.qbittorrent_url)
        yield
        await services.close()

    app = FastAPI(title="streamarr", lifespan=lifespan)
    app.state.services = services
    app.add_exception_handler(GatewayError, gateway_error_handler)

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    @app.get("/status")
    async def status():
        checks = {"qbittorrent": services.gateway}
        checks.update(
            (name, client)
            for name, client in (
                ("sonarr", services.sonarr),
                ("radarr", services.radarr),
                ("jackett", services.jackett),
            )
            if client is not None
        )
        results = await asyncio.gather(*(c.check_connection() for c in checks.values()))
        data = {name: {"configured": True, "connected": ok} for name, ok in zip(checks, results)}
        for name in ("sonarr", "radarr", "jackett"):
            data.setdefault(name, {"configured": False, "connected": False})
        return {"success": True, "data": data}

    app.include_router(streaming.router, prefix="/stream", tags=["streaming"])
    app.include_router(downloads.router, prefix="/downloads", tags=["downloads"])
    app.include_router(library.router, tags=["library"])
    return app
