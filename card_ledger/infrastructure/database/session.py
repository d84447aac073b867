"""Database session management with connection pooling"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from card_ledger.config import settings


def _engine_options(database_url: str) -> dict:
    options = {"echo": settings.database_echo}
    if database_url.startswith("sqlite"):
        # Local runs and tests: one file, shared across TestClient threads
        options["connect_args"] = {"check_same_thread": False}
        return options
    # Invoice upserts and version checks hold short transactions; recycle hourly
    options.update(
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=3600,
    )
    return options


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
