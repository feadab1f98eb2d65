import logging
import xml.etree.ElementTree as ET
from datetime import datetime

import httpx

from streamarr.errors import UpstreamAuthError, UpstreamConnectionError, UpstreamError
from streamarr.models import CamelModel
from streamarr.services.arr import parse_date

log = logging.getLogger(__name__)

MOVIE_CATEGORIES = [2000, 2040, 2045]  # Movies, Movies/HD, Movies/UHD
TV_CATEGORIES = [5000, 5040, 5045]  # TV, TV/HD, TV/UHD


class SearchResult(CamelModel):
    id: str
    title: str
    tracker: str | None = None
    tracker_id: str | None = None
    category: str | None = None
    size: int = 0
    seeders: int = 0
    leechers: int = 0
    magnet_uri: str | None = None
    download_link: str | None = None
    details_link: str | None = None
    publish_date: datetime | None = None
    imdb_id: int | None = None
    tmdb_id: int | None = None
    poster: str | None = None
    info_hash: str | None = None

    @classmethod
    def from_jackett(cls, result: dict) -> "SearchResult":
        seeders = result.get("Seeders") or 0
        peers = result.get("Peers") or 0
        return cls(
            id=result.get("Guid") or result.get("Link") or result.get("Title") or "",
            title=result.get("Title") or "",
            tracker=result.get("Tracker"),
            tracker_id=result.get("TrackerId"),
            category=result.get("CategoryDesc"),
            size=result.get("Size") or 0,
            seeders=seeders,
            leechers=max(peers - seeders, 0),
            magnet_uri=result.get("MagnetUri"),
            download_link=result.get("Link"),
            details_link=result.get("Details"),
            publish_date=parse_date(result.get("PublishDate")),
            imdb_id=result.get("Imdb"),
            tmdb_id=result.get("TMDb"),
            poster=result.get("Poster"),
            info_hash=(result.get("InfoHash") or "").lower() or None,
        )

    @property
    def link(self) -> str | None:
        """Magnet when the indexer offers one, the .torrent link otherwise."""
        return self.magnet_uri or self.download_link


class SearchResponse(CamelModel):
    results: list[SearchResult]
    indexers_searched: int
    total_results: int


class JackettClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _get(self, endpoint: str, params: list[tuple[str, str]]) -> httpx.Response:
        url = f"{self.base_url}{endpoint}"
        try:
            r = await self._client.get(url, params=[("apikey", self.api_key), *params])
        except httpx.HTTPError as e:
            log.warning("Jackett request %s failed: %s", endpoint, e)
            raise UpstreamConnectionError(f"Cannot reach Jackett at {self.base_url}") from e
        if r.status_code in (401, 403):
            raise UpstreamAuthError("Jackett rejected the configured API key")
        if not r.is_success:
            log.error("Jackett API error: %s - %s", r.status_code, r.text[:200])
            raise UpstreamError(f"Jackett returned HTTP {r.status_code}")
        return r

    async def check_connection(self) -> bool:
        try:
            await self.list_indexers()
            return True
        except Exception as e:
            log.debug("Jackett connection check failed: %s", e)
            return False

    async def list_indexers(self) -> list[dict]:
        """Configured indexers, read from the torznab capabilities feed."""
        r = await self._get(
            "/api/v2.0/indexers/all/results/torznab/api",
            [("t", "indexers"), ("configured", "true")],
        )
        try:
            root = ET.fromstring(r.text)
        except ET.ParseError:
            return []
        return [
            {
                "id": el.attrib.get("id"),
                "name": el.findtext("title") or el.attrib.get("id"),
                "configured": el.attrib.get("configured", "true") == "true",
            }
            for el in root.iter("indexer")
        ]

    async def search(
        self,
        query: str,
        categories: list[int] | None = None,
        indexers: list[str] | None = None,
        limit: int | None = None,
    ) -> SearchResponse:
        params = [("Query", query)]
        params += [("Category[]", str(c)) for c in categories or []]

        endpoint = "/api/v2.0/indexers/all/results"
        if indexers and len(indexers) == 1:
            endpoint = f"/api/v2.0/indexers/{indexers[0]}/results"

        log.info("Jackett search: %s", query)
        data = (await self._get(endpoint, params)).json()
        raw = data.get("Results") or []
        results = [SearchResult.from_jackett(it) for it in raw]

        if indexers and len(indexers) > 1:
            results = [r for r in results if r.tracker_id in indexers]
        results.sort(key=lambda r: r.seeders, reverse=True)
        if limit and limit > 0:
            results = results[:limit]

        return SearchResponse(
            results=results,
            indexers_searched=sum(1 for i in data.get("Indexers") or [] if i.get("Status", i.get("status")) == 2),
            total_results=len(raw),
        )

    async def search_movies(self, query: str, limit: int | None = None) -> list[SearchResult]:
        return (await self.search(query, MOVIE_CATEGORIES, limit=limit)).results

    async def search_tv(self, query: str, limit: int | None = None) -> list[SearchResult]:
        return (await self.search(query, TV_CATEGORIES, limit=limit)).results

    async def close(self):
        await self._client.aclose()
