# movie_tracker/database.py
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config

logging.basicConfig(level=logging.INFO)

DATABASE_URL = config.DATABASE_URL

if not DATABASE_URL:
    logging.error("DATABASE_URL environment variable not set or empty.")
    raise ValueError("DATABASE_URL environment variable not set. Please check your .env file or environment.")


def make_engine(url: str):
    """Creates an engine; SQLite connections are shared with the index worker threads."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
