from fastapi import APIRouter, Depends, Query

from streamarr.api.deps import get_services
from streamarr.errors import InvalidRequestError
from streamarr.services.jackett import MOVIE_CATEGORIES, TV_CATEGORIES

router = APIRouter()

_CATEGORIES = {"movie": MOVIE_CATEGORIES, "tv": TV_CATEGORIES, "all": None}


@router.get("/search")
async def search(
    q: str | None = Query(None),
    type: str = Query("all"),
    limit: int = Query(50, ge=1, le=500),
    services=Depends(get_services),
):
    if not q or not q.strip():
        raise InvalidRequestError("Query parameter 'q' is required")
    if type not in _CATEGORIES:
        raise InvalidRequestError("type must be one of movie, tv, all")
    jackett = services.require_jackett()
    response = await jackett.search(q.strip(), _CATEGORIES[type], limit=limit)
    return {"success": True, "data": response}


@router.get("/movies")
async def list_movies(services=Depends(get_services)):
    radarr = services.require_radarr()
    return {"success": True, "data": await radarr.list_movies()}


@router.get("/series")
async def list_series(services=Depends(get_services)):
    sonarr = services.require_sonarr()
    return {"success": True, "data": await sonarr.list_series()}
