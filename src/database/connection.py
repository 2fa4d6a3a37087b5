"""
Database connection management for the email triage rules store
"""
import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

# Get database URL from environment variable
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///email_triage.db')

_engines = {}


def get_engine(url: Optional[str] = None) -> Engine:
    """Return a cached engine for ``url`` (defaults to DATABASE_URL)"""
    url = url or DATABASE_URL
    if url not in _engines:
        _engines[url] = create_engine(url)
    return _engines[url]


def init_db(engine: Optional[Engine] = None) -> None:
    """Initialize the database, creating all tables"""
    Base.metadata.create_all(bind=engine or get_engine())


def get_db_session(engine: Optional[Engine] = None) -> Session:
    """Get a new database session"""
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine or get_engine())
    return factory()
