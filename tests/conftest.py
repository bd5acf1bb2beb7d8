import os

# Must be set before movie_tracker.database is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from movie_tracker import models
from movie_tracker.database import Base, make_engine, get_db
from movie_tracker.main import app, get_catalog, get_session_factory
from movie_tracker.tmdb_client import TMDBClient


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'movie_tracker.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()

@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def catalog():
    mock_catalog = MagicMock(spec=TMDBClient)
    mock_catalog.get_movie.return_value = None
    mock_catalog.get_trending_movies.return_value = []
    mock_catalog.get_popular_movies.return_value = []
    mock_catalog.search_movies.return_value = []
    mock_catalog.get_poster_url.side_effect = \
        lambda poster_path, size="w500": f"https://image.test/t/p/{size}{poster_path}" if poster_path else None
    return mock_catalog

@pytest.fixture
def client(session_factory, catalog):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_catalog] = lambda: catalog
    yield TestClient(app)
    app.dependency_overrides.clear()
