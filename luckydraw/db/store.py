"""Durable store handed to every engine component."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..errors import SchemaError
from .engine import get_sessionmaker, make_engine

logger = logging.getLogger(__name__)


def verify_schema(engine: Engine) -> None:
    """Check that every mapped table and column exists in the database.

    The check never creates or alters anything; migrations are applied
    beforehand with Alembic (``scripts/init_db.py``).

    Raises
    ------
    SchemaError
        If a table or a column expected by the models is missing.
    """
    from ..models import Base

    insp = inspect(engine)
    existing = set(insp.get_table_names())
    problems: list[str] = []
    for table in Base.metadata.sorted_tables:
        if table.name not in existing:
            problems.append(f"missing table {table.name}")
            continue
        columns = {col["name"] for col in insp.get_columns(table.name)}
        for column in table.columns:
            if column.name not in columns:
                problems.append(f"missing column {table.name}.{column.name}")
    if problems:
        raise SchemaError(
            "Database schema is not at the expected revision: " + "; ".join(problems)
        )


class LotteryStore:
    """Owns the SQLAlchemy engine and hands out sessions and transactions.

    The store has an explicit lifecycle: :meth:`open` at process start,
    :meth:`close` at shutdown. It can also be used as a context manager.

    Parameters
    ----------
    database_url : Optional[str], default: None
        SQLAlchemy URL. Falls back to ``DB_URL`` / the default SQLite file.
    echo : bool, default: False
        Echo SQL statements.
    busy_timeout : int, default: 30
        Seconds a SQLite connection waits for a competing writer.
    engine : Optional[Engine], default: None
        Pre-built engine. When supplied, ``database_url`` and ``echo`` are
        ignored and :meth:`close` does not dispose it.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        echo: bool = False,
        busy_timeout: int = 30,
        engine: Optional[Engine] = None,
    ) -> None:
        self._database_url = database_url
        self._echo = echo
        self._busy_timeout = busy_timeout
        self._engine: Optional[Engine] = engine
        self._owns_engine = engine is None
        self._sessionmaker: Optional[sessionmaker] = None

    @classmethod
    def from_settings(cls, settings) -> "LotteryStore":
        return cls(
            settings.db_url, echo=settings.db_echo, busy_timeout=settings.db_busy_timeout
        )

    @property
    def is_open(self) -> bool:
        return self._sessionmaker is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("LotteryStore is not open")
        return self._engine

    def open(self, *, verify: bool = True) -> "LotteryStore":
        """Connect to the database, optionally validating the schema first."""
        if self.is_open:
            return self
        if self._engine is None:
            self._engine = make_engine(
                self._database_url, echo=self._echo, busy_timeout=self._busy_timeout
            )
        if verify:
            verify_schema(self._engine)
        self._sessionmaker = get_sessionmaker(self._engine)
        logger.debug(
            f"Lottery store opened on {self._engine.url.render_as_string(hide_password=True)}"
        )
        return self

    def close(self) -> None:
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None
        self._sessionmaker = None
        logger.debug("Lottery store closed")

    def __enter__(self) -> "LotteryStore":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _factory(self) -> sessionmaker:
        if self._sessionmaker is None:
            raise RuntimeError("LotteryStore is not open")
        return self._sessionmaker

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session for read-only work."""
        with self._factory()() as session:
            yield session

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session inside a transaction committed on success."""
        with self._factory().begin() as session:
            yield session


__all__ = ["LotteryStore", "verify_schema"]
