from datetime import datetime

from streamarr.errors import NotFoundError
from streamarr.models import CamelModel
from streamarr.services.arr import ArrClient, parse_date, pick_image


class MovieInfo(CamelModel):
    id: int | None = None
    title: str
    year: int | None = None
    overview: str | None = None
    status: str | None = None
    studio: str | None = None
    poster: str | None = None
    fanart: str | None = None
    has_file: bool = False
    is_available: bool = False
    size_on_disk: int = 0
    monitored: bool = False
    tmdb_id: int | None = None
    imdb_id: str | None = None
    path: str | None = None
    file_path: str | None = None
    added: datetime | None = None
    genres: list[str] = []
    runtime: int | None = None
    certification: str | None = None

    @classmethod
    def from_radarr(cls, movie: dict) -> "MovieInfo":
        movie_file = movie.get("movieFile") or {}
        return cls(
            id=movie.get("id"),
            title=movie.get("title") or "",
            year=movie.get("year") or None,
            overview=movie.get("overview"),
            status=movie.get("status"),
            studio=movie.get("studio"),
            poster=pick_image(movie.get("images"), "poster") or movie.get("remotePoster"),
            fanart=pick_image(movie.get("images"), "fanart"),
            has_file=bool(movie.get("hasFile")),
            is_available=bool(movie.get("isAvailable")),
            size_on_disk=movie.get("sizeOnDisk") or 0,
            monitored=bool(movie.get("monitored")),
            tmdb_id=movie.get("tmdbId") or None,
            imdb_id=movie.get("imdbId") or None,
            path=movie.get("path"),
            file_path=movie_file.get("path"),
            added=parse_date(movie.get("added")),
            genres=movie.get("genres") or [],
            runtime=movie.get("runtime"),
            certification=movie.get("certification") or None,
        )


class RadarrClient(ArrClient):
    service_name = "Radarr"
    default_root_folder = "/movies"

    async def list_movies(self) -> list[MovieInfo]:
        items = await self._request("GET", "/api/v3/movie")
        return [MovieInfo.from_radarr(it) for it in items]

    async def get_movie(self, movie_id: int) -> MovieInfo | None:
        try:
            data = await self._request("GET", f"/api/v3/movie/{movie_id}")
        except NotFoundError:
            return None
        return MovieInfo.from_radarr(data)

    async def lookup_movies(self, term: str) -> list[MovieInfo]:
        items = await self._request("GET", "/api/v3/movie/lookup", params={"term": term})
        return [MovieInfo.from_radarr(it) for it in items[:50]]

    async def lookup_by_tmdb(self, tmdb_id: int) -> dict | None:
        try:
            return await self._request("GET", "/api/v3/movie/lookup/tmdb", params={"tmdbId": tmdb_id})
        except NotFoundError:
            return None

    async def add_movie(
        self,
        tmdb_id: int,
        quality_profile_id: int = 1,
        root_folder_path: str | None = None,
        monitored: bool = True,
        search: bool = True,
    ) -> MovieInfo:
        movie = await self.lookup_by_tmdb(tmdb_id)
        if not movie:
            raise NotFoundError(f"Movie tmdb:{tmdb_id} not found in Radarr lookup")
        payload = {
            "tmdbId": tmdb_id,
            "title": movie.get("title"),
            "year": movie.get("year"),
            "titleSlug": movie.get("titleSlug"),
            "images": movie.get("images", []),
            "qualityProfileId": quality_profile_id,
            "rootFolderPath": root_folder_path or self.root_folder,
            "monitored": monitored,
            "minimumAvailability": "released",
            "addOptions": {"searchForMovie": search},
        }
        data = await self._request("POST", "/api/v3/movie", json=payload)
        return MovieInfo.from_radarr(data)

    async def delete_movie(self, movie_id: int, delete_files: bool = False) -> None:
        await self._request(
            "DELETE",
            f"/api/v3/movie/{movie_id}",
            params={"deleteFiles": str(delete_files).lower()},
        )

    async def trigger_movie_search(self, movie_id: int) -> dict:
        return await self._command("MoviesSearch", movieIds=[movie_id])

    async def refresh_movie(self, movie_id: int) -> dict:
        return await self._command("RefreshMovie", movieIds=[movie_id])
