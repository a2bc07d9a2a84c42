"""
Generic migration runner script
Usage: python run_migration.py <migration_file.sql> [<migration_file.sql> ...]
"""
import logging
import sys
from pathlib import Path

from sqlalchemy import text

from clinic_booking.database import engine

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def split_statements(sql: str) -> list[str]:
    """Split a SQL file into statements, dropping ``--`` comment lines"""
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


def run_migration(migration_file_path: str):
    """Run a SQL migration file in one transaction"""
    migration_file = Path(migration_file_path)

    if not migration_file.exists():
        logger.error(f"Migration file not found: {migration_file}")
        sys.exit(1)

    logger.info(f"Reading migration file: {migration_file}")
    statements = split_statements(migration_file.read_text(encoding="utf-8"))
    logger.info(f"Found {len(statements)} SQL statements to execute")

    with engine.begin() as conn:
        for i, stmt in enumerate(statements, 1):
            logger.info(f"Executing statement {i}/{len(statements)}...")
            conn.execute(text(stmt))

    logger.info(f"✅ Migration {migration_file.name} completed successfully!")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        logger.error("Usage: python run_migration.py <migration_file.sql> [...]")
        sys.exit(1)

    try:
        for path in sys.argv[1:]:
            run_migration(path)
    except Exception as e:
        logger.error(f"❌ Migration failed: {e}")
        sys.exit(1)
