# movie_tracker/crud.py
import contextlib
import logging
import time
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .exceptions import InvalidInput, StoreUnavailable

MIN_RATING = 1
MAX_RATING = 5
DISPLAY_FIELDS = ("title", "poster_path", "release_date", "overview")

T = TypeVar("T")


@contextlib.contextmanager
def store_errors(db: Session, action: str):
    """Rolls back and re-raises any database fault as StoreUnavailable."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Store failure while {action}: {e}")
        raise StoreUnavailable(f"Store unavailable while {action}") from e


def commit_with_replay(db: Session, write: Callable[[], T]) -> T:
    """
    Runs write() and commits.

    If a concurrent first write to the same key commits between our existence
    check and our insert, the unique constraint fires; the transaction is
    rolled back and write() replayed once, now taking its update path, so the
    later writer wins.
    """
    try:
        result = write()
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logging.info(f"Concurrent insert detected, replaying write: {e.orig}")
        result = write()
        db.commit()
    return result


def validate_user_id(user_id) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidInput("user_id must be a non-empty string")
    return user_id

def validate_movie_id(movie_id) -> int:
    if isinstance(movie_id, bool) or not isinstance(movie_id, int):
        raise InvalidInput(f"movie_id must be an integer, got {movie_id!r}")
    return movie_id

def validate_rating(rating) -> int:
    # 0 means "not rated yet" and is never stored
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidInput(f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}, got {rating!r}")
    return rating


# --- User CRUD ---
def get_user(db: Session, user_id: str) -> Optional[models.User]:
    with store_errors(db, f"fetching user {user_id}"):
        return db.query(models.User).filter(models.User.user_id == user_id).first()

def _get_or_create_user(db: Session, user_id: str) -> models.User:
    db_user = db.query(models.User).filter(models.User.user_id == user_id).first()
    if db_user is None:
        db_user = models.User(user_id=user_id)
        db.add(db_user)
        db.flush()
        logging.info(f"Created missing user record: {user_id}")
    return db_user

def ensure_user(db: Session, user_id: str) -> models.User:
    """Returns the user row, creating it on first access."""
    validate_user_id(user_id)
    with store_errors(db, f"ensuring user {user_id}"):
        db_user = commit_with_replay(db, lambda: _get_or_create_user(db, user_id))
        db.refresh(db_user)
        return db_user

def set_username(db: Session, user_id: str, username: Optional[str]) -> models.User:
    validate_user_id(user_id)
    if username is not None:
        username = username.strip() or None
    if username is not None and len(username) > 100:
        raise InvalidInput("username must be at most 100 characters")

    def write():
        db_user = _get_or_create_user(db, user_id)
        db_user.username = username
        return db_user

    with store_errors(db, f"updating username of {user_id}"):
        db_user = commit_with_replay(db, write)
        db.refresh(db_user)
    logging.info(f"Updated username of user {user_id}")
    return db_user


# --- Watched movies / Rating CRUD ---
def get_watched_movies(db: Session, user_id: str) -> List[models.WatchedMovie]:
    validate_user_id(user_id)
    with store_errors(db, f"listing watched movies of {user_id}"):
        return db.query(models.WatchedMovie)\
                 .filter(models.WatchedMovie.user_id == user_id)\
                 .order_by(desc(models.WatchedMovie.timestamp), desc(models.WatchedMovie.id))\
                 .all()

def get_watched_movie(db: Session, user_id: str, movie_id: int) -> Optional[models.WatchedMovie]:
    validate_user_id(user_id)
    with store_errors(db, f"fetching watched movie {movie_id} of {user_id}"):
        return db.query(models.WatchedMovie)\
                 .filter(models.WatchedMovie.user_id == user_id, models.WatchedMovie.movie_id == movie_id)\
                 .first()

def upsert_rating(
    db: Session,
    user_id: str,
    movie_id: int,
    rating: int,
    review: Optional[str] = None,
    movie: Optional[schemas.MovieInfo] = None,
    timestamp: Optional[int] = None,
) -> models.WatchedMovie:
    """
    Inserts or replaces the user's rating of a movie.

    The per-user watched record and the global index row are written in one
    transaction, and the movie is dropped from the user's watchlist. An
    existing record keeps its timestamp unless one is passed, keeps its review
    when review is None, and keeps its display fields when movie is None.
    Overlapping writes to the same (user, movie) resolve last-write-wins.
    """
    validate_user_id(user_id)
    validate_movie_id(movie_id)
    validate_rating(rating)

    now = int(time.time())

    def write():
        _get_or_create_user(db, user_id)

        watched = db.query(models.WatchedMovie)\
                    .filter(models.WatchedMovie.user_id == user_id, models.WatchedMovie.movie_id == movie_id)\
                    .first()
        if watched is None:
            watched = models.WatchedMovie(
                user_id=user_id,
                movie_id=movie_id,
                rating=rating,
                review=review,
                timestamp=timestamp if timestamp is not None else now,
            )
            db.add(watched)
        else:
            watched.rating = rating
            if review is not None:
                watched.review = review
            if timestamp is not None:
                watched.timestamp = timestamp

        if movie is not None:
            for field in DISPLAY_FIELDS:
                value = getattr(movie, field)
                if value is not None:
                    setattr(watched, field, value)

        index_row = db.query(models.Rating)\
                      .filter(models.Rating.user_id == user_id, models.Rating.movie_id == movie_id)\
                      .first()
        if index_row is None:
            index_row = models.Rating(user_id=user_id, movie_id=movie_id)
            db.add(index_row)
        index_row.rating = watched.rating
        index_row.review = watched.review
        index_row.timestamp = watched.timestamp
        index_row.title = watched.title
        index_row.poster_path = watched.poster_path

        # Watched supersedes watchlisted
        removed = db.query(models.WatchlistEntry)\
                    .filter(models.WatchlistEntry.user_id == user_id, models.WatchlistEntry.movie_id == movie_id)\
                    .delete(synchronize_session=False)
        return watched, removed

    with store_errors(db, f"upserting rating of movie {movie_id} by {user_id}"):
        watched, removed = commit_with_replay(db, write)
        db.refresh(watched)

    logging.info(f"Stored rating {rating} for movie {movie_id} by user {user_id}"
                 f"{' (removed from watchlist)' if removed else ''}")
    return watched


# --- Global rating index reads ---
def get_ratings_by_user(db: Session, user_id: str, min_rating: int = MIN_RATING) -> List[models.Rating]:
    with store_errors(db, f"reading ratings of {user_id}"):
        return db.query(models.Rating)\
                 .filter(models.Rating.user_id == user_id, models.Rating.rating >= min_rating)\
                 .order_by(models.Rating.timestamp, models.Rating.rating_id)\
                 .all()

def get_raters_of_movie(db: Session, movie_id: int, min_rating: int = MIN_RATING) -> List[models.Rating]:
    with store_errors(db, f"reading raters of movie {movie_id}"):
        return db.query(models.Rating)\
                 .filter(models.Rating.movie_id == movie_id, models.Rating.rating >= min_rating)\
                 .order_by(models.Rating.timestamp, models.Rating.rating_id)\
                 .all()


# --- Watchlist CRUD ---
def get_watchlist(db: Session, user_id: str) -> List[models.WatchlistEntry]:
    validate_user_id(user_id)
    with store_errors(db, f"listing watchlist of {user_id}"):
        return db.query(models.WatchlistEntry)\
                 .filter(models.WatchlistEntry.user_id == user_id)\
                 .order_by(desc(models.WatchlistEntry.added_at), desc(models.WatchlistEntry.id))\
                 .all()

def add_to_watchlist(db: Session, user_id: str, movie: schemas.MovieInfo) -> bool:
    """Adds the movie unless it is already listed or already watched. Returns whether a row was added."""
    validate_user_id(user_id)
    validate_movie_id(movie.movie_id)

    def write():
        _get_or_create_user(db, user_id)
        listed = db.query(models.WatchlistEntry.id)\
                   .filter(models.WatchlistEntry.user_id == user_id, models.WatchlistEntry.movie_id == movie.movie_id)\
                   .first()
        watched = db.query(models.WatchedMovie.id)\
                    .filter(models.WatchedMovie.user_id == user_id, models.WatchedMovie.movie_id == movie.movie_id)\
                    .first()
        if listed or watched:
            return False # the user row, if just created, is still committed

        db.add(models.WatchlistEntry(
            user_id=user_id,
            movie_id=movie.movie_id,
            title=movie.title,
            poster_path=movie.poster_path,
            release_date=movie.release_date,
            overview=movie.overview,
            added_at=int(time.time()),
        ))
        return True

    with store_errors(db, f"adding movie {movie.movie_id} to watchlist of {user_id}"):
        added = commit_with_replay(db, write)
    if added:
        logging.info(f"Added movie {movie.movie_id} to watchlist of user {user_id}")
    return added

def remove_from_watchlist(db: Session, user_id: str, movie_id: int) -> bool:
    validate_user_id(user_id)
    with store_errors(db, f"removing movie {movie_id} from watchlist of {user_id}"):
        deleted = db.query(models.WatchlistEntry)\
                    .filter(models.WatchlistEntry.user_id == user_id, models.WatchlistEntry.movie_id == movie_id)\
                    .delete(synchronize_session=False)
        db.commit()
    return deleted > 0
