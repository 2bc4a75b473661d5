"""
SQLite engine, session and maintenance handling for Creative Library.

All writes go through :meth:`DatabaseManager.get_session`, which hands out one
session at a time. Group mutations touch several rows and depend on never
interleaving with another writer.
"""

import functools
import logging
import random
import shutil
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from sqlalchemy import case, create_engine, event, func, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, close_all_sessions, sessionmaker
from sqlalchemy.pool import StaticPool

from .migrations import apply_migrations, has_fulltext_index
from .models import Asset, Base, CustomField, create_additional_indexes


logger = logging.getLogger(__name__)


# SQLite reports contention through these messages; anything else is a real error
RETRYABLE_ERRORS = (
    'database is locked',
    'database table is locked',
    'cannot commit transaction - sql statements in progress',
)

BACKUP_DIRECTORY = "backups"
BACKUP_PATTERN = "creative_library_*.db"

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA temp_store=MEMORY",
    "PRAGMA foreign_keys=ON",
)


def is_retryable_error(error: Exception) -> bool:
    """True when ``error`` is lock contention rather than a real failure."""
    message = str(error).lower()
    return any(pattern in message for pattern in RETRYABLE_ERRORS)


def _pause_before_retry(label: str, attempt: int, error: Exception,
                        base_delay: float, max_delay: float) -> None:
    # Exponential backoff with up to 10% jitter
    delay = min(base_delay * (2 ** attempt), max_delay)
    logger.warning(f"DB_RETRY: {label} attempt {attempt + 1} hit '{error}', retrying")
    time.sleep(delay + random.uniform(0, delay * 0.1))


def database_retry(max_retries: int = 5, base_delay: float = 0.1, max_delay: float = 2.0):
    """
    Retry the decorated call when SQLite reports the database as locked.

    Only contention errors are retried. Any other ``OperationalError`` and
    every other exception type propagate on the first occurrence.
    """
    def decorator(func):
        label = f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    result = func(*args, **kwargs)
                except OperationalError as e:
                    if not is_retryable_error(e) or attempt == max_retries - 1:
                        logger.error(f"DB_RETRY: {label} failed with {type(e).__name__}: {e}")
                        raise
                    _pause_before_retry(label, attempt, e, base_delay, max_delay)
                else:
                    if attempt:
                        logger.info(f"DB_RETRY: {label} succeeded after {attempt + 1} attempts")
                    return result

        return wrapper
    return decorator


@dataclass
class BackupSchedule:
    interval_hours: float = 24
    max_backups: int = 7


class DatabaseManager:
    """Owns the SQLite engine and hands out serialised sessions.

    ``max_concurrent_sessions`` defaults to 1 so that every unit of work runs
    alone; multi-row group mutations rely on this.
    """

    def __init__(self, database_path: str, max_concurrent_sessions: int = 1,
                 session_wait_timeout: float = 5.0):
        self.database_path = Path(database_path)
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self.fulltext_enabled = False
        self.schema_version = 0
        self.backup_schedule: Optional[BackupSchedule] = None

        self.max_concurrent_sessions = max_concurrent_sessions
        self._session_slots = threading.Semaphore(max_concurrent_sessions)
        self._session_wait_timeout = session_wait_timeout

    @property
    def backup_directory(self) -> Path:
        return self.database_path.parent / BACKUP_DIRECTORY

    def initialize_database(self) -> None:
        """Open the engine, create or migrate the schema and build indexes."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        # One shared connection; the session slot keeps threads from overlapping on it
        self.engine = create_engine(
            f"sqlite:///{self.database_path}",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )
        event.listen(self.engine, "connect", self._apply_pragmas)

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        Base.metadata.create_all(bind=self.engine)
        if not self.test_connection():
            raise RuntimeError(f"Database connection test failed for {self.database_path}")

        self.schema_version = apply_migrations(self.engine)
        self.fulltext_enabled = has_fulltext_index(self.engine)
        create_additional_indexes(self.engine)

        logger.info(
            f"Database initialized at {self.database_path} "
            f"(schema v{self.schema_version}, full-text search: {self.fulltext_enabled})"
        )

    @staticmethod
    def _apply_pragmas(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
        cursor.close()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a session as one unit of work.

        Commits when the block exits cleanly, rolls back on any exception and
        always releases the session slot. Blocks must not be nested on the same
        thread.
        """
        if not self.SessionLocal:
            raise RuntimeError("Database not initialized. Call initialize_database() first.")

        if not self._session_slots.acquire(timeout=self._session_wait_timeout):
            raise RuntimeError(
                f"Failed to acquire database session within {self._session_wait_timeout}s timeout. "
                f"Maximum {self.max_concurrent_sessions} concurrent sessions exceeded."
            )

        session = self.SessionLocal()
        try:
            yield session
            self._commit_with_retry(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
            self._session_slots.release()

    def _commit_with_retry(self, session: Session, max_retries: int = 5, base_delay: float = 0.1) -> None:
        for attempt in range(max_retries):
            try:
                session.commit()
                return
            except OperationalError as e:
                if not is_retryable_error(e) or attempt == max_retries - 1:
                    raise
                _pause_before_retry("commit", attempt, e, base_delay, 2.0)

    # Backups

    def setup_auto_backup(self, interval_hours: float = 24, max_backups: int = 7) -> None:
        """Keep rolling copies under ``backups/`` and take one now if the last is stale."""
        self.backup_schedule = BackupSchedule(interval_hours, max_backups)
        self._check_and_backup()

    def _check_and_backup(self) -> None:
        schedule = self.backup_schedule
        if schedule is None or not self.database_path.exists():
            return

        existing = self._list_backups()
        if existing:
            age = datetime.now() - datetime.fromtimestamp(existing[0].stat().st_mtime)
            if age < timedelta(hours=schedule.interval_hours):
                return

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        try:
            self.create_backup(str(self.backup_directory / f"creative_library_{timestamp}.db"))
        except OSError as e:
            logger.error(f"Failed to create database backup: {e}")
            return

        for stale in self._list_backups()[schedule.max_backups:]:
            try:
                stale.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove old backup {stale}: {e}")

    def _list_backups(self) -> List[Path]:
        """Automatic backups, newest first."""
        if not self.backup_directory.exists():
            return []
        return sorted(self.backup_directory.glob(BACKUP_PATTERN),
                      key=lambda p: p.stat().st_mtime, reverse=True)

    def create_backup(self, backup_path: Optional[str] = None) -> Path:
        """Copy the database file; defaults to a timestamped name beside it."""
        if not self.database_path.exists():
            raise FileNotFoundError("Database file does not exist")

        if backup_path:
            backup_file = Path(backup_path)
        else:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup_file = self.database_path.parent / f"creative_library_backup_{timestamp}.db"
        backup_file.parent.mkdir(parents=True, exist_ok=True)

        # Fold the WAL into the main file so the copy is complete
        if self.engine:
            with self.engine.connect() as conn:
                conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))

        shutil.copy2(self.database_path, backup_file)
        logger.info(f"Database backup written to {backup_file}")
        return backup_file

    def restore_backup(self, backup_path: str) -> None:
        """
        Replace the live database with ``backup_path`` and reopen it.

        The file being replaced is kept as ``<name>.db.pre_restore``.
        """
        backup_file = Path(backup_path)
        if not backup_file.exists():
            raise FileNotFoundError(f"Backup file not found: {backup_path}")

        self.close()

        if self.database_path.exists():
            shutil.copy2(self.database_path, self.database_path.with_suffix('.db.pre_restore'))
        for suffix in ('-wal', '-shm'):
            Path(f"{self.database_path}{suffix}").unlink(missing_ok=True)

        shutil.copy2(backup_file, self.database_path)
        self.initialize_database()
        logger.info(f"Database restored from {backup_file}")

    def vacuum_database(self) -> None:
        if not self.engine:
            raise RuntimeError("Database not initialized")

        close_all_sessions()
        with self.engine.connect() as conn:
            conn.execute(text("VACUUM"))
            conn.execute(text("PRAGMA optimize"))
        logger.info(f"Vacuumed {self.database_path}")

    def get_database_info(self) -> Dict[str, Any]:
        """Status, file details and row counts for diagnostics."""
        if not self.engine:
            return {"status": "not_initialized"}

        info: Dict[str, Any] = {
            "status": "initialized",
            "path": str(self.database_path),
            "exists": self.database_path.exists(),
            "schema_version": self.schema_version,
            "fulltext_enabled": self.fulltext_enabled,
        }
        if not info["exists"]:
            return info

        stat = self.database_path.stat()
        info["size_bytes"] = stat.st_size
        info["size_mb"] = round(stat.st_size / (1024 * 1024), 2)
        info["modified"] = datetime.fromtimestamp(stat.st_mtime).isoformat()

        with self.get_session() as session:
            total, versions = session.query(
                func.count(Asset.id),
                func.coalesce(func.sum(case((Asset.master_id.isnot(None), 1), else_=0)), 0),
            ).one()
            info["table_counts"] = {
                "assets": total,
                "masters": total - versions,
                "versions": versions,
                "custom_fields": session.query(func.count(CustomField.id)).scalar(),
            }
        return info

    def close(self) -> None:
        if self.SessionLocal:
            close_all_sessions()
            self.SessionLocal = None

        if self.engine:
            self.engine.dispose()
            self.engine = None

        logger.debug(f"Database connections closed for {self.database_path}")

    def test_connection(self) -> bool:
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
            return True
        except (OperationalError, RuntimeError) as e:
            logger.error(f"Database connection test failed: {e}")
            return False


def init_database(database_path: str, session_wait_timeout: float = 5.0) -> DatabaseManager:
    """Create and initialize a DatabaseManager with serialized access."""
    db_manager = DatabaseManager(database_path, session_wait_timeout=session_wait_timeout)
    db_manager.initialize_database()
    return db_manager
