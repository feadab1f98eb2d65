import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from streamarr.api.deps import get_services

router = APIRouter()
log = logging.getLogger(__name__)


@router.get("/{info_hash}/{file_index}")
async def stream_file(info_hash: str, file_index: int, request: Request, services=Depends(get_services)):
    """
    Range-aware stream of a (possibly still downloading) torrent file.

    Answers 200/206 with bytes, 404 for unknown or non-video files, 416 past
    the end of the file and 503 with Retry-After while the range is missing.
    """
    streamer = services.streamer
    plan = await streamer.plan(info_hash, file_index, request.headers.get("range"))
    log.debug(
        "Streaming %s bytes %d-%d/%d (%d)",
        plan.path.name,
        plan.start,
        plan.end,
        plan.size,
        plan.status_code,
    )
    return StreamingResponse(
        streamer.iter_bytes(plan),
        status_code=plan.status_code,
        media_type=plan.media_type,
        headers=plan.headers(),
    )


@router.get("/{info_hash}/{file_index}/info")
async def stream_info(info_hash: str, file_index: int, services=Depends(get_services)):
    info = await services.streamer.describe(info_hash, file_index)
    return {"success": True, "data": info}


@router.post("/{info_hash}/{file_index}/prepare")
async def prepare_stream(info_hash: str, file_index: int, services=Depends(get_services)):
    expedited = await services.tracker.expedite(info_hash, file_index)
    return {"success": True, "data": {"expedited": expedited}}
