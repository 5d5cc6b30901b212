"""Database engine, session factory and schema bootstrap"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from loan_origination.config import settings
from loan_origination.infrastructure.database.models import Base

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=10,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_schema(bind: Engine = engine) -> None:
    """Create any missing tables (no-op when they already exist)"""
    Base.metadata.create_all(bind=bind)


def get_db() -> Session:
    """Request-scoped session; each service call commits its own unit of work"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
