from datetime import datetime

from streamarr.errors import NotFoundError
from streamarr.models import CamelModel
from streamarr.services.arr import ArrClient, parse_date, pick_image


class SeriesInfo(CamelModel):
    id: int | None = None
    title: str
    year: int | None = None
    overview: str | None = None
    status: str | None = None
    network: str | None = None
    poster: str | None = None
    banner: str | None = None
    season_count: int = 0
    episode_count: int = 0
    episode_file_count: int = 0
    size_on_disk: int = 0
    percent_complete: float = 0.0
    monitored: bool = False
    tvdb_id: int | None = None
    imdb_id: str | None = None
    path: str | None = None
    added: datetime | None = None
    genres: list[str] = []

    @classmethod
    def from_sonarr(cls, series: dict) -> "SeriesInfo":
        stats = series.get("statistics") or {}
        return cls(
            id=series.get("id"),
            title=series.get("title") or "",
            year=series.get("year") or None,
            overview=series.get("overview"),
            status=series.get("status"),
            network=series.get("network"),
            poster=pick_image(series.get("images"), "poster") or series.get("remotePoster"),
            banner=pick_image(series.get("images"), "banner"),
            season_count=stats.get("seasonCount") or len(series.get("seasons") or []),
            episode_count=stats.get("episodeCount") or 0,
            episode_file_count=stats.get("episodeFileCount") or 0,
            size_on_disk=stats.get("sizeOnDisk") or 0,
            percent_complete=stats.get("percentOfEpisodes") or 0.0,
            monitored=bool(series.get("monitored")),
            tvdb_id=series.get("tvdbId") or None,
            imdb_id=series.get("imdbId") or None,
            path=series.get("path"),
            added=parse_date(series.get("added")),
            genres=series.get("genres") or [],
        )


class SonarrClient(ArrClient):
    service_name = "Sonarr"
    default_root_folder = "/tv"

    async def list_series(self) -> list[SeriesInfo]:
        items = await self._request("GET", "/api/v3/series")
        return [SeriesInfo.from_sonarr(it) for it in items]

    async def get_series(self, series_id: int) -> SeriesInfo | None:
        try:
            data = await self._request("GET", f"/api/v3/series/{series_id}")
        except NotFoundError:
            return None
        return SeriesInfo.from_sonarr(data)

    async def lookup_series(self, term: str) -> list[SeriesInfo]:
        items = await self._request("GET", "/api/v3/series/lookup", params={"term": term})
        return [SeriesInfo.from_sonarr(it) for it in items[:50]]

    async def lookup_by_tvdb(self, tvdb_id: int) -> list[dict]:
        return await self._request("GET", "/api/v3/series/lookup", params={"term": f"tvdb:{tvdb_id}"})

    async def add_series(
        self,
        tvdb_id: int,
        quality_profile_id: int = 1,
        root_folder_path: str | None = None,
        monitored: bool = True,
        search: bool = True,
    ) -> SeriesInfo:
        # Sonarr requires the full series body; take it from lookup first
        found = await self.lookup_by_tvdb(tvdb_id)
        if not found:
            raise NotFoundError(f"Series tvdb:{tvdb_id} not found in Sonarr lookup")
        series = found[0]
        payload = {
            "tvdbId": series.get("tvdbId"),
            "title": series.get("title"),
            "qualityProfileId": quality_profile_id,
            "titleSlug": series.get("titleSlug"),
            "images": series.get("images", []),
            "seasons": series.get("seasons", []),
            "rootFolderPath": root_folder_path or self.root_folder,
            "seasonFolder": True,
            "monitored": monitored,
            "addOptions": {"searchForMissingEpisodes": search},
            "languageProfileId": series.get("languageProfileId", 1),
            "seriesType": series.get("seriesType", "standard"),
        }
        data = await self._request("POST", "/api/v3/series", json=payload)
        return SeriesInfo.from_sonarr(data)

    async def delete_series(self, series_id: int, delete_files: bool = False) -> None:
        await self._request(
            "DELETE",
            f"/api/v3/series/{series_id}",
            params={"deleteFiles": str(delete_files).lower()},
        )

    async def trigger_series_search(self, series_id: int) -> dict:
        return await self._command("SeriesSearch", seriesId=series_id)

    async def refresh_series(self, series_id: int) -> dict:
        return await self._command("RefreshSeries", seriesId=series_id)
