# movie_tracker/config.py
import os
import logging
from typing import Optional
from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO)

# --- Load .env from the project root ---
# config.py lives in the package folder one level below the project root
package_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(package_dir)
dotenv_path = os.path.join(project_root, '.env')

# Variables already present in the environment take precedence over .env
if not load_dotenv(dotenv_path=dotenv_path):
    logging.info(f"No .env file loaded from {dotenv_path}, using process environment only.")


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


DATABASE_URL = os.getenv("DATABASE_URL")

TMDB_API_KEY = os.getenv("TMDB_API_KEY", "")
TMDB_BASE_URL = os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3")
TMDB_IMAGE_BASE_URL = os.getenv("TMDB_IMAGE_BASE_URL", "https://image.tmdb.org/t/p")
TMDB_TIMEOUT = _get_int("TMDB_TIMEOUT", 10)

RATE_LIMIT_ENABLED = _get_bool("RATE_LIMIT_ENABLED", True)
MAX_RECOMMENDATIONS = _get_int("MAX_RECOMMENDATIONS", 50)

# Unset means the neighbor set is unbounded
RECOMMENDER_MAX_NEIGHBORS = _get_int("RECOMMENDER_MAX_NEIGHBORS", None)
INDEX_MAX_CONCURRENCY = _get_int("INDEX_MAX_CONCURRENCY", 8)
