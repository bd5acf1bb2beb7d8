# movie_tracker/tmdb_client.py
"""TMDB catalog client: search, popular, trending and detail lookups."""

import logging
from typing import Any, Dict, List, Optional

import requests

from . import config, schemas
from .exceptions import InvalidInput

TRENDING_WINDOWS = ("day", "week")


class TMDBClient:
    """Read-only client for The Movie Database (TMDB) API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        image_base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = config.TMDB_API_KEY if api_key is None else api_key
        self.base_url = (base_url or config.TMDB_BASE_URL).rstrip("/")
        self.image_base_url = (image_base_url or config.TMDB_IMAGE_BASE_URL).rstrip("/")
        self.timeout = timeout or config.TMDB_TIMEOUT
        self.session = session or requests.Session()
        if not self.api_key:
            logging.warning("TMDB_API_KEY not set; catalog lookups will return no data.")

    def _get(self, endpoint: str, params: Optional[Dict] = None) -> Optional[Dict]:
        """GET an endpoint; None when no key is configured or the request fails."""
        if not self.api_key:
            return None

        params = dict(params or {})
        params["api_key"] = self.api_key
        params.setdefault("language", "en-US")

        try:
            response = self.session.get(f"{self.base_url}{endpoint}", params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logging.error(f"TMDB API error on {endpoint}: {e}")
            return None

    def _to_movie(self, data: Dict[str, Any]) -> schemas.CatalogMovie:
        return schemas.CatalogMovie(
            movie_id=data["id"],
            title=data.get("title"),
            poster_path=data.get("poster_path"),
            poster_url=self.get_poster_url(data.get("poster_path")),
            release_date=data.get("release_date") or None,
            overview=data.get("overview"),
        )

    def _movie_list(self, data: Optional[Dict]) -> List[schemas.CatalogMovie]:
        if not data:
            return []
        return [self._to_movie(movie) for movie in data.get("results", []) if "id" in movie]

    def get_popular_movies(self, page: int = 1) -> List[schemas.CatalogMovie]:
        return self._movie_list(self._get("/movie/popular", params={"page": page}))

    def search_movies(self, query: str, page: int = 1) -> List[schemas.CatalogMovie]:
        """Search for movies by title."""
        if not query or not query.strip():
            return []
        data = self._get("/search/movie", params={"query": query, "page": page, "include_adult": "false"})
        return self._movie_list(data)

    def get_trending_movies(self, time_window: str = "week") -> List[schemas.CatalogMovie]:
        if time_window not in TRENDING_WINDOWS:
            raise InvalidInput(f"time_window must be one of {TRENDING_WINDOWS}, got {time_window!r}")
        return self._movie_list(self._get(f"/trending/movie/{time_window}"))

    def get_movie(self, movie_id: int) -> Optional[schemas.CatalogMovie]:
        data = self._get(f"/movie/{movie_id}")
        if not data or "id" not in data:
            return None
        return self._to_movie(data)

    def get_poster_url(self, poster_path: Optional[str], size: str = "w500") -> Optional[str]:
        if not poster_path:
            return None
        return f"{self.image_base_url}/{size}{poster_path}"
