from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from packing.core.config import get_settings

settings = get_settings()

# --- Engine ---
connect_args = {"check_same_thread": False} if settings.APP_DATABASE_URL.startswith("sqlite") else {}

app_engine = create_engine(
    settings.APP_DATABASE_URL,
    pool_pre_ping=True,
    future=True,
    connect_args=connect_args,
)

# --- Session factory ---
AppSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=app_engine,
    future=True,
)

# --- Base class (for models) ---
AppBase = declarative_base()


def init_db() -> None:
    """Create missing tables on the app database."""
    from packing.db import models  # noqa: F401  # register mappers

    AppBase.metadata.create_all(app_engine)


def get_app_session() -> Generator[Session, None, None]:
    """FastAPI dependency: yield a DB session and make sure it closes."""
    db = AppSessionLocal()
    try:
        yield db
    finally:
        db.close()
