"""
Database migration utilities for Creative Library.
"""

import logging
from sqlalchemy import text, inspect
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)


FTS_TABLE = 'assets_fts'

# External-content FTS5 index over the searchable text columns. The triggers keep
# it in step with the assets table so application code never writes to it.
FTS_STATEMENTS = [
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE}
    USING fts5(advertiser, niche, content='assets', content_rowid='id')
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS assets_ai AFTER INSERT ON assets BEGIN
      INSERT INTO {FTS_TABLE} (rowid, advertiser, niche)
      VALUES (new.id, new.advertiser, new.niche);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS assets_ad AFTER DELETE ON assets BEGIN
      INSERT INTO {FTS_TABLE} ({FTS_TABLE}, rowid, advertiser, niche)
      VALUES ('delete', old.id, old.advertiser, old.niche);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS assets_au AFTER UPDATE OF advertiser, niche ON assets BEGIN
      INSERT INTO {FTS_TABLE} ({FTS_TABLE}, rowid, advertiser, niche)
      VALUES ('delete', old.id, old.advertiser, old.niche);
      INSERT INTO {FTS_TABLE} (rowid, advertiser, niche)
      VALUES (new.id, new.advertiser, new.niche);
    END
    """,
    f"INSERT INTO {FTS_TABLE} ({FTS_TABLE}) VALUES ('rebuild')",
]


def check_schema_version(engine) -> int:
    """
    Check and update database schema version.

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        Current schema version
    """
    with engine.connect() as conn:
        inspector = inspect(engine)
        if 'schema_version' not in inspector.get_table_names():
            conn.execute(text("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            # Insert initial version
            conn.execute(text("INSERT INTO schema_version (version) VALUES (1)"))
            conn.commit()
            return 1

        result = conn.execute(text("SELECT MAX(version) FROM schema_version"))
        return result.scalar() or 0


def apply_migrations(engine) -> int:
    """
    Apply all pending migrations based on schema version.

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        Schema version after migrating
    """
    current_version = check_schema_version(engine)

    migrations = {
        2: migrate_v1_to_v2,  # Full-text index over advertiser/niche
    }

    for version, migration_func in sorted(migrations.items()):
        if version > current_version:
            if not migration_func(engine):
                logger.warning(f"Migration to schema v{version} skipped, will retry on next start")
                break

            with engine.connect() as conn:
                conn.execute(text(
                    "INSERT INTO schema_version (version) VALUES (:version)"
                ), {"version": version})
                conn.commit()
            current_version = version
            logger.info(f"Database schema migrated to v{version}")

    return current_version


def migrate_v1_to_v2(engine) -> bool:
    """
    Migration from v1 to v2: install the assets_fts full-text index and its triggers.

    Returns False when the SQLite build has no FTS5 module.
    """
    with engine.connect() as conn:
        try:
            for statement in FTS_STATEMENTS:
                conn.execute(text(statement))
            conn.commit()
        except OperationalError as e:
            conn.rollback()
            if "no such module" in str(e).lower():
                logger.warning(f"SQLite FTS5 not available, text search will use LIKE matching: {e}")
                return False
            raise
    return True


def has_fulltext_index(engine) -> bool:
    """Check whether the assets_fts index exists."""
    with engine.connect() as conn:
        result = conn.execute(
            text("SELECT name FROM sqlite_master WHERE type = 'table' AND name = :name"),
            {"name": FTS_TABLE},
        )
        return result.first() is not None
