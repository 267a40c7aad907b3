import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .utils import resolve_sqlite_url

# Get DB url
load_dotenv()
# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_SQLITE_URL = resolve_sqlite_url(
    os.getenv("DB_URL", "sqlite:///./lottery.db"), ROOT_DIR
)


def make_engine(
    database_url: Optional[str] = None, echo: bool = False, busy_timeout: int = 30
) -> Engine:
    """Create an engine for ``database_url`` (default: ``DB_URL``).

    On SQLite, writers wait up to ``busy_timeout`` seconds for the database
    lock instead of failing at once, and foreign keys are enforced so the
    ``ON DELETE`` actions of the schema apply.
    """
    url = database_url or DEFAULT_SQLITE_URL
    is_sqlite = url.startswith("sqlite")
    engine = create_engine(
        url,
        echo=echo,
        future=True,
        connect_args={"timeout": busy_timeout} if is_sqlite else {},
    )
    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # records stay readable after their transaction
        future=True,
    )
