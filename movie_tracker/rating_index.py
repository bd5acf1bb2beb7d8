# movie_tracker/rating_index.py
import abc
import asyncio
from typing import Callable, Dict, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from . import crud, schemas


class RatingIndex(abc.ABC):
    """Read contract of the global rating index consumed by the recommendation engine."""

    @abc.abstractmethod
    async def get_ratings_by_user(self, user_id: str) -> List[schemas.RatingRecord]:
        """All ratings by one user."""

    @abc.abstractmethod
    async def get_raters_of_movie(self, movie_id: int, min_rating: int) -> List[schemas.RatingRecord]:
        """All ratings of one movie at or above min_rating, across users."""


class SqlRatingIndex(RatingIndex):
    """
    Index reads against the SQL store.

    Each query runs in a worker thread with its own session, so concurrent
    reads never share a Session. The semaphore belongs to the running event
    loop; build one instance per request.
    """

    def __init__(self, session_factory: Callable[[], Session], max_concurrency: int = 8):
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self.session_factory = session_factory
        self._semaphore = asyncio.Semaphore(max_concurrency)

    def _read(self, reader, *args) -> List[schemas.RatingRecord]:
        db = self.session_factory()
        try:
            return [schemas.RatingRecord.model_validate(row) for row in reader(db, *args)]
        finally:
            db.close()

    async def get_ratings_by_user(self, user_id: str) -> List[schemas.RatingRecord]:
        async with self._semaphore:
            return await run_in_threadpool(self._read, crud.get_ratings_by_user, user_id)

    async def get_raters_of_movie(self, movie_id: int, min_rating: int) -> List[schemas.RatingRecord]:
        async with self._semaphore:
            return await run_in_threadpool(self._read, crud.get_raters_of_movie, movie_id, min_rating)


class InMemoryRatingIndex(RatingIndex):
    """Dict-backed index with last-write-wins upserts; keeps first-insertion order."""

    def __init__(self, records: Optional[List[schemas.RatingRecord]] = None):
        self._records: Dict[Tuple[str, int], schemas.RatingRecord] = {}
        for record in records or []:
            self.upsert(record)

    def upsert(self, record: schemas.RatingRecord) -> None:
        crud.validate_rating(record.rating)
        self._records[(record.user_id, record.movie_id)] = record

    async def get_ratings_by_user(self, user_id: str) -> List[schemas.RatingRecord]:
        return [r for r in self._records.values() if r.user_id == user_id]

    async def get_raters_of_movie(self, movie_id: int, min_rating: int) -> List[schemas.RatingRecord]:
        return [r for r in self._records.values() if r.movie_id == movie_id and r.rating >= min_rating]
