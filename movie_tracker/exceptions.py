# movie_tracker/exceptions.py

class MovieTrackerError(Exception):
    """Base class for errors surfaced to callers of the stores and the engine."""


class InvalidInput(MovieTrackerError, ValueError):
    """Rejected arguments (empty user id, non-positive limit, rating outside 1-5)."""


class StoreUnavailable(MovieTrackerError):
    """A read or write against the rating/watchlist store failed."""


class NotFound(MovieTrackerError):
    pass
