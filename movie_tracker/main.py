# movie_tracker/main.py
from fastapi import FastAPI, Depends, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List
import time
import logging
import contextlib
import functools

from . import config, crud, models, schemas
from .database import SessionLocal, engine, get_db
from .exceptions import InvalidInput, NotFound, StoreUnavailable
from .rating_index import SqlRatingIndex
from .recommendation_logic import RecommendationEngine
from .tmdb_client import TMDBClient

# API Rate Limiting setup
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

logging.basicConfig(level=logging.INFO)

# --- Application Lifespan Management ---
@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("Application startup...")
    models.Base.metadata.create_all(bind=engine)
    logging.info("Application startup complete.")
    yield
    logging.info("Application shutdown...")
    engine.dispose()
    logging.info("Application shutdown complete.")

# --- FastAPI App Initialization ---
limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)
app = FastAPI(title="Movie Tracker (collaborative recommendations)", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# --- Error mapping ---
@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=400, content={"detail": str(exc)})

@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logging.error(f"Store unavailable for {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Rating store is currently unavailable."})


# --- Dependencies ---
def get_session_factory():
    return SessionLocal

def get_rating_index(session_factory=Depends(get_session_factory)) -> SqlRatingIndex:
    return SqlRatingIndex(session_factory, max_concurrency=config.INDEX_MAX_CONCURRENCY)

@functools.lru_cache(maxsize=1)
def get_catalog() -> TMDBClient:
    return TMDBClient()


# --- API Endpoints ---

@app.get("/")
def read_root():
    return {"message": "Welcome to the Movie Tracker API"}

@app.get("/recommendations/{user_id}", response_model=schemas.RecommendationResponse)
@limiter.limit("10/minute")
async def get_recommendations_for_user(
    request: Request,
    user_id: str,
    n: int = 10,
    index: SqlRatingIndex = Depends(get_rating_index),
    catalog: TMDBClient = Depends(get_catalog),
):
    """
    Collaborative recommendations for a user, falling back to trending
    movies from the catalog when the user has no liked movies or no neighbors.
    """
    logging.info(f"Received recommendation request for user_id={user_id}, n={n}")
    start_time = time.time()

    if n <= 0 or n > config.MAX_RECOMMENDATIONS:
        raise HTTPException(status_code=400, detail=f"Number of recommendations (n) must be between 1 and {config.MAX_RECOMMENDATIONS}.")

    recommender = RecommendationEngine(index, max_neighbors=config.RECOMMENDER_MAX_NEIGHBORS)
    recommendations = await recommender.recommend(user_id, n)
    method_used = "collaborative"

    if recommendations:
        # Fill display fields the index never captured
        for rec in recommendations:
            if not rec.title:
                details = await run_in_threadpool(catalog.get_movie, rec.movie_id)
                if details:
                    rec.title = details.title
                    rec.poster_path = rec.poster_path or details.poster_path
    else:
        watched_ids = {r.movie_id for r in await index.get_ratings_by_user(user_id)}
        trending = await run_in_threadpool(catalog.get_trending_movies)
        recommendations = [
            schemas.Recommendation(movie_id=m.movie_id, score=0.0, title=m.title, poster_path=m.poster_path)
            for m in trending if m.movie_id not in watched_ids
        ][:n]
        method_used = "trending_fallback"

    for rec in recommendations:
        rec.poster_url = catalog.get_poster_url(rec.poster_path)

    end_time = time.time()
    logging.info(f"Generated {len(recommendations)} recommendations for user {user_id} in {end_time - start_time:.4f} seconds using method: {method_used}")

    return schemas.RecommendationResponse(user_id=user_id, recommendations=recommendations, method_used=method_used)


# --- Users ---
@app.get("/users/{user_id}", response_model=schemas.User)
@limiter.limit("30/minute")
def read_user(request: Request, user_id: str, db: Session = Depends(get_db)):
    return crud.ensure_user(db, user_id)

@app.put("/users/{user_id}", response_model=schemas.User)
@limiter.limit("30/minute")
def update_user(request: Request, user_id: str, user: schemas.UserUpdate, db: Session = Depends(get_db)):
    return crud.set_username(db, user_id, user.username)


# --- Watched movies & ratings ---
@app.get("/users/{user_id}/watched", response_model=List[schemas.WatchedMovie])
@limiter.limit("30/minute")
def read_watched_movies(request: Request, user_id: str, db: Session = Depends(get_db)):
    return crud.get_watched_movies(db, user_id)

@app.post("/users/{user_id}/watched", response_model=schemas.WatchedMovie, status_code=201)
@limiter.limit("60/minute")
def mark_movie_watched(
    request: Request,
    user_id: str,
    watched: schemas.WatchedMovieCreate,
    db: Session = Depends(get_db),
    catalog: TMDBClient = Depends(get_catalog),
):
    """
    Marks a movie as watched with a rating (and optional review).
    Display fields are taken from the catalog when the client sends none.
    """
    logging.info(f"Received rating submission: User {user_id}, Movie {watched.movie_id}, Rating {watched.rating}")
    movie = schemas.MovieInfo(
        movie_id=watched.movie_id,
        title=watched.title,
        poster_path=watched.poster_path,
        release_date=watched.release_date,
        overview=watched.overview,
    )
    if movie.title is None:
        movie = catalog.get_movie(watched.movie_id) or movie

    return crud.upsert_rating(
        db,
        user_id=user_id,
        movie_id=watched.movie_id,
        rating=watched.rating,
        review=watched.review,
        movie=movie,
        timestamp=watched.timestamp,
    )

@app.put("/users/{user_id}/watched/{movie_id}", response_model=schemas.WatchedMovie)
@limiter.limit("60/minute")
def update_movie_rating(
    request: Request,
    user_id: str,
    movie_id: int,
    update: schemas.RatingUpdate,
    db: Session = Depends(get_db),
):
    if crud.get_watched_movie(db, user_id, movie_id) is None:
        raise NotFound(f"Movie {movie_id} is not in the watched list of user {user_id}")
    return crud.upsert_rating(
        db,
        user_id=user_id,
        movie_id=movie_id,
        rating=update.rating,
        review=update.review,
        timestamp=update.timestamp,
    )


# --- Watchlist ---
@app.get("/users/{user_id}/watchlist", response_model=List[schemas.WatchlistEntry])
@limiter.limit("30/minute")
def read_watchlist(request: Request, user_id: str, db: Session = Depends(get_db)):
    return crud.get_watchlist(db, user_id)

@app.post("/users/{user_id}/watchlist", response_model=schemas.WatchlistChange, status_code=201)
@limiter.limit("60/minute")
def add_movie_to_watchlist(
    request: Request,
    response: Response,
    user_id: str,
    movie: schemas.MovieInfo,
    db: Session = Depends(get_db),
):
    added = crud.add_to_watchlist(db, user_id, movie)
    if not added:
        response.status_code = 200
    return schemas.WatchlistChange(movie_id=movie.movie_id, added=added)

@app.delete("/users/{user_id}/watchlist/{movie_id}", status_code=204)
@limiter.limit("60/minute")
def remove_movie_from_watchlist(request: Request, user_id: str, movie_id: int, db: Session = Depends(get_db)):
    if not crud.remove_from_watchlist(db, user_id, movie_id):
        raise NotFound(f"Movie {movie_id} is not on the watchlist of user {user_id}")
    return Response(status_code=204)


# --- Catalog passthrough ---
@app.get("/movies/popular", response_model=schemas.MovieList)
@limiter.limit("30/minute")
def read_popular_movies(request: Request, page: int = 1, catalog: TMDBClient = Depends(get_catalog)):
    return schemas.MovieList(results=catalog.get_popular_movies(page))

@app.get("/movies/trending", response_model=schemas.MovieList)
@limiter.limit("30/minute")
def read_trending_movies(request: Request, time_window: str = "week", catalog: TMDBClient = Depends(get_catalog)):
    return schemas.MovieList(results=catalog.get_trending_movies(time_window))

@app.get("/movies/search", response_model=schemas.MovieList)
@limiter.limit("30/minute")
def search_movies(request: Request, query: str, page: int = 1, catalog: TMDBClient = Depends(get_catalog)):
    return schemas.MovieList(results=catalog.search_movies(query, page))

@app.get("/movies/{movie_id}", response_model=schemas.CatalogMovie)
@limiter.limit("30/minute")
def read_movie(request: Request, movie_id: int, catalog: TMDBClient = Depends(get_catalog)):
    movie = catalog.get_movie(movie_id)
    if movie is None:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie
