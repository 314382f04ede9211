import logging
import os
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class DatabaseNotInitializedError(Exception):
    """Raised when a query runs before Database.setup()"""
    pass


def register_schema_sql(func: Callable[[], str]) -> Callable[[], str]:
    """Collect the DDL returned by `func`; it runs on every Database.setup()

    Example:
        @register_schema_sql
        def _create_users_table() -> str:
            return "CREATE TABLE IF NOT EXISTS users (...)"
    """
    Database.schema_statements.append(func())
    return func


class Database:
    """SQLite file with schema registration and a stored schema version.

    A file written by another schema version is discarded (or renamed aside
    when `preserve_old_db` is set) before the schema is created.
    """

    schema_statements: list[str] = []

    def __init__(self, db_path: str, preserve_old_db: bool = False) -> None:
        self.db_path = db_path
        self.preserve_old_db = preserve_old_db
        self._ready = False

    def setup(self) -> None:
        if self._ready:
            return

        parent = os.path.dirname(self.db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        if os.path.exists(self.db_path):
            stored = self._stored_schema_version()
            if stored != SCHEMA_VERSION:
                logger.warning("Database schema is outdated (stored: %s, current: %d)", stored, SCHEMA_VERSION)
                self._retire_db_file()

        with self._transaction() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS db_version (version INTEGER NOT NULL)")
            conn.execute("DELETE FROM db_version")
            conn.execute("INSERT INTO db_version (version) VALUES (?)", (SCHEMA_VERSION,))
            for statement in self.schema_statements:
                conn.execute(statement)

        self._ready = True
        logger.info("Database ready path=%s schema_version=%d", self.db_path, SCHEMA_VERSION)

    def _stored_schema_version(self) -> int | None:
        with closing(self.connect()) as conn:
            has_table = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type='table' AND name='db_version'"
            ).fetchone()
            if has_table is None:
                return None
            row = conn.execute("SELECT version FROM db_version LIMIT 1").fetchone()
            return row["version"] if row else None

    def _retire_db_file(self) -> None:
        if not self.preserve_old_db:
            os.remove(self.db_path)
            logger.warning("Outdated database deleted: %s", self.db_path)
            return

        root, ext = os.path.splitext(self.db_path)
        backup_path = f"{root}-{datetime.now():%Y%m%d%H%M%S}{ext}"
        if os.path.exists(backup_path):
            os.remove(self.db_path)
            logger.warning("Outdated database deleted, backup %s already exists", backup_path)
        else:
            os.rename(self.db_path, backup_path)
            logger.warning("Outdated database moved to %s", backup_path)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on error, always close"""
        with closing(self.connect()) as conn:
            with conn:
                yield conn

    def execute_query(self, query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        """Run a SELECT and return every row"""
        if not self._ready:
            raise DatabaseNotInitializedError("Call Database.setup() before querying")
        with closing(self.connect()) as conn:
            return conn.execute(query, params).fetchall()

    def execute_update(self, query: str, params: tuple[Any, ...] = ()) -> int:
        """Run an INSERT/UPDATE/DELETE and return the affected row count"""
        if not self._ready:
            raise DatabaseNotInitializedError("Call Database.setup() before writing")
        with self._transaction() as conn:
            return conn.execute(query, params).rowcount
