"""
Test configuration and shared fixtures for the laboratory statistics test suite.

Uses an in-memory SQLite database; each test gets a fresh schema.
"""

import os

# Must be set before lab_stats.core.database creates its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lab_stats.core.database import Base

# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
from lab_stats.models.laboratory import Laboratory
from lab_stats.models.patient import Patient
from lab_stats.models.profile import Profile
from lab_stats.models.medical_case import MedicalCase


@pytest.fixture
def db_engine():
    """
    Create an in-memory database engine with all tables.

    StaticPool keeps the single in-memory connection alive for the whole test.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a database session for a test."""
    session_factory = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sample_laboratory(db_session: Session) -> Laboratory:
    """Laboratory with the standard role set."""
    laboratory = Laboratory(
        id="lab-1",
        slug="conspat",
        name="Conspat",
        available_roles=["owner", "employee", "residente", "citotecno", "patologo"],
        settings={}
    )
    db_session.add(laboratory)
    db_session.commit()
    return laboratory
