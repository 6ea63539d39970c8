"""
SQL migrations for the knowledge base schema.

Scripts in db/scripts run in filename order. Each applied filename is
recorded in `schema_migrations`, so a restart only runs new scripts.
"""
import os
from typing import List, Set

from sqlalchemy import text

from . import engine
from ..logging_config import logger

SCRIPTS_DIR = os.path.join(os.path.dirname(__file__), "scripts")

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename   TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


def list_migration_files(migrations_dir: str = SCRIPTS_DIR) -> List[str]:
    """Sorted *.sql filenames in `migrations_dir`; [] when it does not exist."""
    if not os.path.isdir(migrations_dir):
        return []
    return sorted(f for f in os.listdir(migrations_dir) if f.endswith(".sql"))


def _applied(conn) -> Set[str]:
    conn.execute(text(_CREATE_LEDGER))
    return {row[0] for row in conn.execute(text("SELECT filename FROM schema_migrations"))}


def run_sql_migrations(migrations_dir: str = None) -> int:
    """
    Apply pending migration scripts, one transaction per script.

    Returns:
        Number of scripts applied by this call
    """
    migrations_dir = migrations_dir or SCRIPTS_DIR
    files = list_migration_files(migrations_dir)
    if not files:
        logger.warning("No migration files found", path=migrations_dir)
        return 0

    with engine.begin() as conn:
        pending = [f for f in files if f not in _applied(conn)]

    for filename in pending:
        with open(os.path.join(migrations_dir, filename), "r", encoding="utf-8") as f:
            sql = f.read()
        with engine.begin() as conn:
            conn.execute(text(sql))
            conn.execute(text("INSERT INTO schema_migrations (filename) VALUES (:f)"), {"f": filename})
        logger.info("Migration applied", file=filename)

    logger.info("Migrations up to date", applied=len(pending), total=len(files))
    return len(pending)
