# movie_tracker/models.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, BigInteger, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base

class User(Base):
    __tablename__ = "users"
    user_id = Column(String(128), primary_key=True, index=True)
    username = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    watched_movies = relationship("WatchedMovie", back_populates="user")
    watchlist = relationship("WatchlistEntry", back_populates="user")


class WatchedMovie(Base):
    """A user's rating joined with the catalog display fields captured at write time."""
    __tablename__ = "watched_movies"
    __table_args__ = (UniqueConstraint("user_id", "movie_id", name="uq_watched_user_movie"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(128), ForeignKey("users.user_id"), index=True, nullable=False)
    movie_id = Column(Integer, index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=True)
    timestamp = Column(BigInteger, nullable=False) # Unix time the movie was watched/rated
    title = Column(String(255), nullable=True)
    poster_path = Column(String(255), nullable=True)
    release_date = Column(String(30), nullable=True)
    overview = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="watched_movies")


class Rating(Base):
    """Global rating index: one row per (user, movie), queried by either key."""
    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("user_id", "movie_id", name="uq_rating_user_movie"),)

    rating_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(128), index=True, nullable=False)
    movie_id = Column(Integer, index=True, nullable=False)
    rating = Column(Integer, index=True, nullable=False)
    review = Column(Text, nullable=True)
    timestamp = Column(BigInteger, nullable=False)
    title = Column(String(255), nullable=True)
    poster_path = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class WatchlistEntry(Base):
    __tablename__ = "watchlist_entries"
    __table_args__ = (UniqueConstraint("user_id", "movie_id", name="uq_watchlist_user_movie"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(128), ForeignKey("users.user_id"), index=True, nullable=False)
    movie_id = Column(Integer, index=True, nullable=False)
    title = Column(String(255), nullable=True)
    poster_path = Column(String(255), nullable=True)
    release_date = Column(String(30), nullable=True)
    overview = Column(Text, nullable=True)
    added_at = Column(BigInteger, nullable=False)

    user = relationship("User", back_populates="watchlist")
