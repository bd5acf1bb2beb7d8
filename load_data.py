# load_data.py
import argparse
import logging

import pandas as pd
from sqlalchemy.orm import Session

from movie_tracker.database import SessionLocal, engine, Base
from movie_tracker import crud
from movie_tracker.exceptions import InvalidInput

logging.basicConfig(level=logging.INFO)

DATA_DIR = 'data'
DATA_FILE = f'{DATA_DIR}/u.data'
RATING_COLUMNS = ['user_id', 'movie_id', 'rating', 'timestamp']


def read_ratings(path: str) -> pd.DataFrame:
    """Reads a tab-separated user/movie/rating/timestamp file (MovieLens u.data layout)."""
    ratings_df = pd.read_csv(path, sep='\t', names=RATING_COLUMNS)
    ratings_df = ratings_df.dropna(subset=['user_id', 'movie_id', 'rating'])
    ratings_df['rating'] = ratings_df['rating'].round().astype(int)
    valid = ratings_df['rating'].between(crud.MIN_RATING, crud.MAX_RATING)
    skipped = int((~valid).sum())
    if skipped:
        logging.warning(f"Skipping {skipped} rows with a rating outside {crud.MIN_RATING}-{crud.MAX_RATING}.")
    return ratings_df[valid]


def load_ratings(db: Session, ratings_df: pd.DataFrame) -> int:
    """Feeds every row through the rating upsert so the watched list and index stay in step."""
    logging.info(f"Loading {len(ratings_df)} ratings...")
    loaded = 0
    for row in ratings_df.itertuples(index=False):
        timestamp = None if pd.isna(row.timestamp) else int(row.timestamp)
        try:
            crud.upsert_rating(
                db,
                user_id=str(row.user_id),
                movie_id=int(row.movie_id),
                rating=int(row.rating),
                timestamp=timestamp,
            )
        except InvalidInput as e:
            logging.warning(f"Skipping row {row}: {e}")
            continue
        loaded += 1
    logging.info(f"Loaded {loaded} ratings.")
    return loaded


def main():
    parser = argparse.ArgumentParser(description="Import ratings into the movie tracker store.")
    parser.add_argument('path', nargs='?', default=DATA_FILE, help="tab-separated ratings file")
    args = parser.parse_args()

    logging.info("Initializing database...")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        load_ratings(db, read_ratings(args.path))
        logging.info("Data loading complete.")
    finally:
        db.close()
        logging.info("Database session closed.")

if __name__ == "__main__":
    main()
