# adlaunch/db/session.py
"""
Engine and session management.

Steps, sources and the tracking store open short-lived sessions through
``get_db_session``; nothing holds a session across remote platform calls.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from adlaunch.core.config import DATABASE_URL

log = logging.getLogger("adlaunch.database")


# ────────────────────────────────────────────
# SQLAlchemy Engine
# ────────────────────────────────────────────
def make_engine(url: str, echo: bool = False) -> Engine:
    """
    PostgreSQL gets a pre-pinged connection pool; SQLite (local runs and
    tests) is shared across threads, and in-memory SQLite keeps one
    connection so every session sees the same database.
    """
    if url.startswith("sqlite"):
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else None,
            echo=echo,
        )
    return create_engine(
        url,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
        echo=echo,  # True for SQL debugging
    )


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ────────────────────────────────────────────
# Context Manager
# ────────────────────────────────────────────
@contextmanager
def get_db_session(session_factory=None):
    """
    Commit on success, roll back on any error.

    Usage:
        with get_db_session() as db:
            record = db.query(CampaignTrackingRecord).first()
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ────────────────────────────────────────────
# Database Utilities
# ────────────────────────────────────────────
def test_db_connection(session_factory=None) -> bool:
    try:
        with get_db_session(session_factory) as db:
            db.execute(text("SELECT 1"))
        log.info("✅ Database connection successful")
        return True
    except Exception as e:
        log.error(f"❌ Database connection failed: {e}")
        return False


def init_db(bind=None):
    """Create the tracking and ad account tables if they do not exist"""
    from adlaunch.db.base import Base
    try:
        Base.metadata.create_all(bind=bind or engine)
        log.info("✅ Database tables initialized")
    except Exception as e:
        log.error(f"❌ Failed to initialize database: {e}")
        raise
