"""PULSE — Database Engine & Session Factory.

Backs the `calls`, `traffic_source_attributions` and `sales_metrics_snapshots`
tables. PostgreSQL in production, SQLite locally and in tests.
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine

from pulse.config import settings
from pulse.core.logging import get_logger

# Register tables on SQLModel.metadata
from pulse.models import call_models, analysis_models  # noqa: F401

logger = get_logger("database")

db_url = settings.effective_database_url


def _mask_url(url: str) -> str:
    """Hide the password of a connection URL."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return url


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=300,
    )


engine = build_engine(db_url)
logger.info(f"Database engine created for {_mask_url(db_url)}")


def check_connection(bind: Optional[Engine] = None) -> Tuple[bool, Optional[str]]:
    """Run SELECT 1; returns (connected, error message)."""
    bind = bind or engine
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database connection check failed: {e}")
        return False, str(e)
    return True, None


def init_db(bind: Optional[Engine] = None) -> None:
    """Create any missing tables."""
    SQLModel.metadata.create_all(bind or engine)
    logger.info(f"Tables ready: {', '.join(sorted(SQLModel.metadata.tables))}")


def get_session():
    """Dependency — yields a DB session."""
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request; rolled back if the block raises."""
    with Session(engine) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
