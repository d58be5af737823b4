"""
Database connection and schema management
Owns the single DuckDB connection behind the rule store, the reservation
store, the slot counters and the audit log.

Tables:
- capacity_rules: admission rules, soft-deleted through ``active``
- reservations: confirmed and canceled bookings (system of record)
- capacity_slots: compare-and-increment counters for atomic admission
- logs: operation audit trail
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

import duckdb

from .exceptions import ConcurrencyError, DatabaseError, BaseApplicationError
from ..config.settings import settings

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS capacity_rules_id_seq;
CREATE TABLE IF NOT EXISTS capacity_rules (
  id INTEGER DEFAULT nextval('capacity_rules_id_seq') PRIMARY KEY,
  store_id TEXT NOT NULL,
  kind TEXT CHECK(kind IN ('limit','stop','ceiling')) NOT NULL,
  scope_type TEXT CHECK(scope_type IN ('store','seat_type','menu_item','staff')) NOT NULL,
  scope_ids TEXT,              -- JSON array
  weekdays TEXT,               -- JSON array, 0=Sunday
  effective_date DATE,
  time_start TIME NOT NULL,
  time_end TIME NOT NULL,
  limit_type TEXT CHECK(limit_type IN ('per_hour','per_day','per_window')) NOT NULL,
  limit_value INTEGER NOT NULL,
  priority INTEGER DEFAULT 0,
  active BOOLEAN DEFAULT TRUE,
  description TEXT,
  created_by TEXT,
  created_at TIMESTAMP DEFAULT current_timestamp,
  updated_at TIMESTAMP DEFAULT current_timestamp
);

CREATE INDEX IF NOT EXISTS idx_rules_store ON capacity_rules(store_id);

CREATE TABLE IF NOT EXISTS reservations (
  id TEXT PRIMARY KEY,
  store_id TEXT NOT NULL,
  user_id TEXT,
  customer_name TEXT NOT NULL,
  date DATE NOT NULL,
  time TIME NOT NULL,
  people INTEGER NOT NULL,
  seat_type TEXT,
  menu TEXT,
  staff TEXT,
  note TEXT,
  status TEXT CHECK(status IN ('confirmed','canceled')) NOT NULL,
  created_at TIMESTAMP DEFAULT current_timestamp,
  updated_at TIMESTAMP DEFAULT current_timestamp
);

CREATE TABLE IF NOT EXISTS capacity_slots (
  rule_id INTEGER NOT NULL,
  bucket_key TEXT NOT NULL,
  used INTEGER NOT NULL,
  updated_at TIMESTAMP NOT NULL,
  PRIMARY KEY (rule_id, bucket_key)
);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  store_id TEXT,
  actor_id TEXT,               -- operator or LINE user id
  action TEXT,
  detail_json TEXT,
  created_at TIMESTAMP DEFAULT current_timestamp
);

CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


class DatabaseManager:
    """Wraps the DuckDB connection, schema setup and transactions"""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path or self._get_db_path_from_settings()

    def _get_db_path_from_settings(self) -> str:
        """Resolve the database path from ``settings.database_url``"""
        db_url = settings.database_url
        if db_url.startswith("duckdb://"):
            db_url = db_url.replace("duckdb://", "", 1)
        if db_url in ("/:memory:", MEMORY_DB):
            return MEMORY_DB
        return db_url

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Open the connection and create the schema on first use"""
        with self._lock:
            if self._connection is None:
                if self.db_path != MEMORY_DB:
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                try:
                    self._connection = duckdb.connect(self.db_path)
                except duckdb.Error as e:
                    raise DatabaseError(f"Failed to open database: {e}")
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Independent cursor over the same database, safe to use from a worker thread"""
        return self.connection.cursor()

    def _init_schema(self):
        try:
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """Ensure the schema exists"""
        with self._lock:
            con = self.get_connection()
            try:
                con.execute(SCHEMA_SQL)
            except duckdb.Error as e:
                raise DatabaseError(f"Failed to initialize schema: {e}")

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Transaction context manager

        Writers in this process are serialized by a re-entrant lock; DuckDB
        conflicts surface as ConcurrencyError.
        """
        with self._lock:
            conn = self.connection
            try:
                conn.execute("BEGIN")
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                try:
                    conn.execute("ROLLBACK")
                except duckdb.Error as rollback_error:
                    logger.warning("Rollback failed: %s", rollback_error)

                if isinstance(e, BaseApplicationError):
                    raise
                if "conflict" in str(e).lower() or "serialization" in str(e).lower():
                    raise ConcurrencyError()
                raise DatabaseError(f"Database operation failed: {e}")

    def execute_query(self, query: str, params: list = None) -> list:
        """Run a query on a fresh cursor and return all rows"""
        cur = self.cursor()
        try:
            if params:
                return cur.execute(query, params).fetchall()
            return cur.execute(query).fetchall()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")
        finally:
            cur.close()

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """Run a query on a fresh cursor and return the first row"""
        cur = self.cursor()
        try:
            if params:
                return cur.execute(query, params).fetchone()
            return cur.execute(query).fetchone()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")
        finally:
            cur.close()

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


# Global database manager
db_manager = DatabaseManager()


def get_db() -> DatabaseManager:
    """FastAPI dependency returning the shared database manager"""
    return db_manager
