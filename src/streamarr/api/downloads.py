import logging

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from streamarr.api.deps import get_services
from streamarr.errors import InvalidRequestError
from streamarr.models import AddTorrentOptions, CamelModel, TorrentState

router = APIRouter()
log = logging.getLogger(__name__)

_ACTIVE = {TorrentState.DOWNLOADING, TorrentState.FORCED_DL, TorrentState.META_DL, TorrentState.STALLED_DL}


class AddDownloadRequest(CamelModel):
    magnet: str | None = None
    url: str | None = None
    save_path: str | None = None
    category: str | None = None
    paused: bool = False
    sequential: bool = False


class PriorityRequest(CamelModel):
    file_ids: list[int] = Field(default_factory=list)
    priority: int


@router.get("")
async def list_downloads(
    filter: str | None = Query(None),
    category: str | None = Query(None),
    services=Depends(get_services),
):
    torrents = await services.gateway.list_torrents(filter=filter, category=category)
    return {"success": True, "data": torrents}


@router.get("/stats")
async def download_stats(services=Depends(get_services)):
    gateway = services.gateway
    stats = await gateway.get_transfer_stats()
    torrents = await gateway.list_torrents()
    return {
        "success": True,
        "data": {
            "transfer": stats,
            "torrents": len(torrents),
            "downloading": sum(1 for t in torrents if t.state in _ACTIVE),
            "completed": sum(1 for t in torrents if t.progress >= 1.0),
        },
    }


@router.get("/{info_hash}")
async def get_download(info_hash: str, services=Depends(get_services)):
    return {"success": True, "data": await services.gateway.get_torrent(info_hash)}


@router.get("/{info_hash}/files")
async def get_download_files(info_hash: str, services=Depends(get_services)):
    gateway = services.gateway
    torrent = await gateway.get_torrent(info_hash)
    files = await gateway.list_files(info_hash)
    return {
        "success": True,
        "data": {"torrent": {"hash": torrent.hash, "name": torrent.name}, "files": files},
    }


@router.post("", status_code=201)
async def add_download(body: AddDownloadRequest, services=Depends(get_services)):
    uri = body.magnet or body.url
    if not uri:
        raise InvalidRequestError("Either magnet or url is required")
    options = AddTorrentOptions(
        savepath=body.save_path,
        category=body.category,
        paused=body.paused,
        sequential=body.sequential,
    )
    await services.gateway.add_torrent(uri, options)
    return {"success": True, "data": {"added": True, "sequential": body.sequential}}


@router.post("/{info_hash}/pause")
async def pause_download(info_hash: str, services=Depends(get_services)):
    await services.gateway.pause(info_hash)
    return {"success": True, "data": {"paused": True}}


@router.post("/{info_hash}/resume")
async def resume_download(info_hash: str, services=Depends(get_services)):
    await services.gateway.resume(info_hash)
    return {"success": True, "data": {"resumed": True}}


@router.delete("/{info_hash}")
async def delete_download(
    info_hash: str,
    delete_files: bool = Query(False, alias="deleteFiles"),
    services=Depends(get_services),
):
    await services.gateway.delete(info_hash, delete_files=delete_files)
    return {"success": True, "data": {"deleted": True, "filesDeleted": delete_files}}


@router.post("/{info_hash}/priority")
async def set_priority(info_hash: str, body: PriorityRequest, services=Depends(get_services)):
    await services.gateway.set_file_priority(info_hash, body.file_ids, body.priority)
    return {"success": True, "data": {"fileIds": body.file_ids, "priority": body.priority}}
