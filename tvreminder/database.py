from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import OperationalError
import os
import logging
import time


logger = logging.getLogger(__name__)


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///tvreminder.db")


def make_engine(url: str):
    """Engine for the given URL; SQLite gets a shared connection and FK enforcement"""
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            options["poolclass"] = StaticPool
        new_engine = create_engine(url, **options)

        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return new_engine
    return create_engine(url, pool_pre_ping=True, pool_recycle=3600)


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Shared declarative base for every table
Base = declarative_base()


def init_db(bind=None, attempts: int = 5):
    """Creates all tables, retrying while the database is not reachable yet"""
    # Import ALL models so create_all() sees them
    import tvreminder.models  # noqa: F401

    bind = bind or engine

    for attempt in range(attempts):
        try:
            Base.metadata.create_all(bind=bind)
            logger.info("✓ All database tables initialized")
            return
        except OperationalError as e:
            if attempt < attempts - 1:
                logger.info(f"Database not ready (attempt {attempt + 1}/{attempts}), retrying...")
                time.sleep(1)
            else:
                logger.error(f"Database initialization failed after {attempts} attempts: {e}")
                raise


@contextmanager
def session_scope(session_factory=None):
    """One transaction: commit on success, roll back everything on error"""
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

