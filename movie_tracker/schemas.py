# movie_tracker/schemas.py
from pydantic import BaseModel
from typing import List, Optional

# --- Movie (catalog display) Schemas ---
class MovieInfo(BaseModel):
    movie_id: int
    title: Optional[str] = None
    poster_path: Optional[str] = None
    release_date: Optional[str] = None
    overview: Optional[str] = None

    class Config:
        from_attributes = True

class CatalogMovie(MovieInfo):
    poster_url: Optional[str] = None # Full image URL built from poster_path

# --- User Schemas ---
class User(BaseModel):
    user_id: str
    username: Optional[str] = None

    class Config:
        from_attributes = True

class UserUpdate(BaseModel):
    username: Optional[str] = None

# --- Rating Schemas ---
class RatingUpdate(BaseModel):
    rating: int
    review: Optional[str] = None
    timestamp: Optional[int] = None # Only set when the watch date itself changes

class WatchedMovieCreate(MovieInfo):
    rating: int
    review: Optional[str] = None
    timestamp: Optional[int] = None

class WatchedMovie(MovieInfo):
    user_id: str
    rating: int
    review: Optional[str] = None
    timestamp: int

class RatingRecord(BaseModel):
    """One entry of the global rating index, as read by the recommendation engine."""
    user_id: str
    movie_id: int
    rating: int
    review: Optional[str] = None
    timestamp: int
    title: Optional[str] = None
    poster_path: Optional[str] = None

    class Config:
        from_attributes = True

# --- Watchlist Schemas ---
class WatchlistEntry(MovieInfo):
    user_id: str
    added_at: int

# --- Recommendation Schemas ---
class Recommendation(BaseModel):
    movie_id: int
    score: float
    title: Optional[str] = None
    poster_path: Optional[str] = None
    poster_url: Optional[str] = None

class RecommendationResponse(BaseModel):
    user_id: str
    recommendations: List[Recommendation]
    method_used: Optional[str] = None # 'collaborative' or 'trending_fallback'

class MovieList(BaseModel):
    results: List[CatalogMovie]

class WatchlistChange(BaseModel):
    movie_id: int
    added: bool
