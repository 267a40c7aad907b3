from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from luckydraw.db.engine import make_engine
from luckydraw.db.store import verify_schema


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision.

    Run once before any process opens a ``LotteryStore``; the store only
    verifies the schema and never migrates it.
    """
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def print_tables() -> None:
    """Verify the migrated schema and print all table names."""
    engine = make_engine()
    try:
        verify_schema(engine)
        insp = inspect(engine)
        print("Current tables:", ", ".join(sorted(insp.get_table_names())))
    finally:
        engine.dispose()


def main() -> None:
    """Apply migrations (default to head) and report the resulting schema."""
    logging.basicConfig(level=logging.INFO)
    upgrade_db()
    print_tables()


if __name__ == "__main__":
    main()
