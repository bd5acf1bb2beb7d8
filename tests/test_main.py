import pytest
from unittest.mock import MagicMock

from movie_tracker import crud, schemas
from movie_tracker.exceptions import StoreUnavailable
from movie_tracker.main import app, get_rating_index
from movie_tracker.rating_index import RatingIndex


def watch(client, user_id, movie_id, rating, **fields):
    payload = {"movie_id": movie_id, "rating": rating, "title": f"Movie {movie_id}", **fields}
    return client.post(f"/users/{user_id}/watched", json=payload)

@pytest.fixture
def scenario(client):
    for user_id, movie_id, rating in [
        ("U", 1, 5), ("U", 2, 3), ("U", 3, 4),
        ("V", 1, 5), ("V", 3, 4), ("V", 4, 5), ("V", 5, 4),
        ("W", 1, 4), ("W", 4, 4),
    ]:
        assert watch(client, user_id, movie_id, rating).status_code == 201
    return client


def test_read_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()

def test_read_user_creates_record(client):
    response = client.get("/users/alice")
    assert response.status_code == 200
    assert response.json()["user_id"] == "alice"

def test_mark_watched_and_list(client):
    response = watch(client, "alice", 27205, 5, review="Loved it", poster_path="/inception.jpg")
    assert response.status_code == 201
    body = response.json()
    assert (body["movie_id"], body["rating"], body["review"], body["title"]) == (27205, 5, "Loved it", "Movie 27205")

    listed = client.get("/users/alice/watched").json()
    assert [m["movie_id"] for m in listed] == [27205]

def test_mark_watched_fetches_missing_display_fields(client, catalog):
    catalog.get_movie.return_value = schemas.CatalogMovie(movie_id=27205, title="Inception", poster_path="/p.jpg")
    response = client.post("/users/alice/watched", json={"movie_id": 27205, "rating": 4})
    assert response.status_code == 201
    assert response.json()["title"] == "Inception"
    catalog.get_movie.assert_called_once_with(27205)

@pytest.mark.parametrize("rating", [0, 6])
def test_mark_watched_rejects_out_of_range_rating(client, rating):
    response = watch(client, "alice", 27205, rating)
    assert response.status_code == 400
    assert client.get("/users/alice/watched").json() == []

def test_update_rating(client):
    watch(client, "alice", 27205, 5, review="Loved it")
    response = client.put("/users/alice/watched/27205", json={"rating": 3})
    assert response.status_code == 200
    assert (response.json()["rating"], response.json()["review"]) == (3, "Loved it")

def test_update_rating_of_unwatched_movie_is_404(client):
    response = client.put("/users/alice/watched/27205", json={"rating": 3})
    assert response.status_code == 404

def test_watchlist_flow(client):
    movie = {"movie_id": 603, "title": "The Matrix"}
    first = client.post("/users/alice/watchlist", json=movie)
    assert first.status_code == 201
    assert first.json() == {"movie_id": 603, "added": True}

    again = client.post("/users/alice/watchlist", json=movie)
    assert again.status_code == 200
    assert again.json()["added"] is False

    assert [e["movie_id"] for e in client.get("/users/alice/watchlist").json()] == [603]

    assert client.delete("/users/alice/watchlist/603").status_code == 204
    assert client.delete("/users/alice/watchlist/603").status_code == 404

def test_watching_clears_watchlist_entry(client):
    client.post("/users/alice/watchlist", json={"movie_id": 603, "title": "The Matrix"})
    watch(client, "alice", 603, 4)
    assert client.get("/users/alice/watchlist").json() == []


def test_recommendations_collaborative(scenario):
    response = scenario.get("/recommendations/U", params={"n": 10})
    assert response.status_code == 200
    body = response.json()
    assert body["method_used"] == "collaborative"
    assert [(r["movie_id"], r["score"]) for r in body["recommendations"]] == [(4, 9), (5, 4)]
    assert body["recommendations"][0]["title"] == "Movie 4"

def test_recommendations_fill_missing_titles(client, session_factory, catalog):
    db = session_factory()
    try:
        crud.upsert_rating(db, "U", 1, 5)
        crud.upsert_rating(db, "V", 1, 5)
        crud.upsert_rating(db, "V", 7, 4)
    finally:
        db.close()
    catalog.get_movie.return_value = schemas.CatalogMovie(movie_id=7, title="Fetched", poster_path="/fetched.jpg")

    [rec] = client.get("/recommendations/U").json()["recommendations"]
    assert (rec["movie_id"], rec["title"], rec["poster_path"]) == (7, "Fetched", "/fetched.jpg")

def test_cold_start_falls_back_to_trending(client, catalog):
    watch(client, "alice", 1, 2)
    catalog.get_trending_movies.return_value = [
        schemas.CatalogMovie(movie_id=1, title="Already seen"),
        schemas.CatalogMovie(movie_id=2, title="Trending 2"),
        schemas.CatalogMovie(movie_id=3, title="Trending 3"),
    ]
    body = client.get("/recommendations/alice", params={"n": 1}).json()
    assert body["method_used"] == "trending_fallback"
    assert [r["movie_id"] for r in body["recommendations"]] == [2]

@pytest.mark.parametrize("n", [0, -3, 51])
def test_recommendations_reject_bad_n(client, n):
    assert client.get("/recommendations/U", params={"n": n}).status_code == 400

def test_store_outage_is_503_not_empty(client):
    failing = MagicMock(spec=RatingIndex)
    failing.get_ratings_by_user.side_effect = StoreUnavailable("down")
    app.dependency_overrides[get_rating_index] = lambda: failing

    response = client.get("/recommendations/U")
    assert response.status_code == 503


def test_movie_detail_404_when_catalog_has_nothing(client):
    assert client.get("/movies/42").status_code == 404

def test_movie_detail(client, catalog):
    catalog.get_movie.return_value = schemas.CatalogMovie(movie_id=42, title="Answer")
    response = client.get("/movies/42")
    assert response.status_code == 200
    assert response.json()["title"] == "Answer"

def test_search_and_popular_passthrough(client, catalog):
    catalog.search_movies.return_value = [schemas.CatalogMovie(movie_id=603, title="The Matrix")]
    catalog.get_popular_movies.return_value = [schemas.CatalogMovie(movie_id=550, title="Fight Club")]

    assert client.get("/movies/search", params={"query": "matrix"}).json()["results"][0]["movie_id"] == 603
    catalog.search_movies.assert_called_once_with("matrix", 1)
    assert client.get("/movies/popular").json()["results"][0]["title"] == "Fight Club"

def test_trending_rejects_unknown_window(client, catalog):
    from movie_tracker.exceptions import InvalidInput
    catalog.get_trending_movies.side_effect = InvalidInput("bad window")
    assert client.get("/movies/trending", params={"time_window": "year"}).status_code == 400


def test_recommendations_carry_poster_urls(client, session_factory):
    db = session_factory()
    try:
        crud.upsert_rating(db, "U", 1, 5)
        crud.upsert_rating(db, "V", 1, 5)
        crud.upsert_rating(db, "V", 8, 5, movie=schemas.MovieInfo(movie_id=8, title="Poster", poster_path="/p8.jpg"))
        crud.upsert_rating(db, "V", 9, 4, movie=schemas.MovieInfo(movie_id=9, title="No poster"))
    finally:
        db.close()

    recs = client.get("/recommendations/U").json()["recommendations"]
    assert [(r["movie_id"], r["poster_url"]) for r in recs] == [
        (8, "https://image.test/t/p/w500/p8.jpg"),
        (9, None),
    ]

def test_movie_detail_includes_poster_url(client, catalog):
    catalog.get_movie.return_value = schemas.CatalogMovie(
        movie_id=42, title="Answer", poster_path="/a.jpg", poster_url="https://image.test/t/p/w500/a.jpg")
    assert client.get("/movies/42").json()["poster_url"] == "https://image.test/t/p/w500/a.jpg"

def test_update_username(client):
    response = client.put("/users/alice", json={"username": "  Alice  "})
    assert response.status_code == 200
    assert response.json() == {"user_id": "alice", "username": "Alice"}
    assert client.get("/users/alice").json()["username"] == "Alice"

def test_blank_user_id_is_400_on_rating_update(client):
    response = client.put("/users/%20/watched/27205", json={"rating": 3})
    assert response.status_code == 400
