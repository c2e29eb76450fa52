# pyright: reportMissingTypeStubs=false
"""
Database engine and session handling for the laboratory case store.

The statistics engine itself never touches the database; only the SQL record
store does, through sessions created here.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from lab_stats.core.config import DATABASE_URL
from lab_stats.core.constants import DB_POOL_RECYCLE_SECONDS

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """Create an engine for the case store; stale pooled connections are recycled."""
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=DB_POOL_RECYCLE_SECONDS,
        echo=False,
    )


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base of the laboratory models."""
    pass


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Session scope for scripts and background jobs.

    The session is committed when the block finishes and rolled back when it
    raises; the error is re-raised either way.

    Example:
        ```python
        with get_db_context() as db:
            snapshot = compute_statistics(SqlRecordStore(db), laboratory_id)
        ```
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"Case store transaction rolled back: {e}")
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables(bind: Optional[Engine] = None) -> None:
    """Create the laboratory tables that do not exist yet."""
    target = bind or engine
    try:
        Base.metadata.create_all(bind=target)
        logger.info(f"Laboratory tables ready on {target.url.render_as_string(hide_password=True)}")
    except SQLAlchemyError as e:
        logger.exception(f"Could not create laboratory tables: {e}")
        raise


def drop_tables(bind: Optional[Engine] = None) -> None:
    """Drop every laboratory table. All case data is lost."""
    target = bind or engine
    try:
        Base.metadata.drop_all(bind=target)
        logger.info("Laboratory tables dropped")
    except SQLAlchemyError as e:
        logger.exception(f"Could not drop laboratory tables: {e}")
        raise
