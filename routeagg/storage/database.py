"""
storage/database.py

SQLite connection and schema initialisation for the embedded store.

Design decisions:
  - WAL journal mode so readers can inspect the store while a run writes.
  - busy_timeout=5000ms: instead of raising SQLITE_BUSY immediately, SQLite
    will spin-wait up to 5 seconds, allowing WAL readers to finish.
  - uuid is the PRIMARY KEY: the upsert in repository.py depends on it.
    A table that exists without the expected columns or key is rejected
    with SchemaError rather than patched (no migrations).
"""

from __future__ import annotations

import logging
import os
import sqlite3

from ..config import valid_identifier
from ..errors import ConfigError, SchemaError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = (
    "uuid",
    "elem_type",
    "prefix",
    "as_path",
    "asn",
    "next_hop",
    "peer_ip",
    "min_timestamp",
    "max_timestamp",
    "count",
    "start_ip",
    "end_ip",
)


class Database:
    """
    Thin wrapper around a sqlite3 connection.

    Usage:
        db = Database("data/routes.db")
        db.init_schema()
        # ... pass db to RouteRepository ...
        db.close()
    """

    def __init__(self, db_path: str = "data/routes.db", table: str = "log_table") -> None:
        if not valid_identifier(table):
            raise ConfigError(f"invalid table name {table!r}")
        self.db_path = db_path
        self.table = table
        if db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        try:
            self.conn = sqlite3.connect(db_path)
        except sqlite3.Error as exc:
            raise SchemaError(f"cannot open embedded store {db_path!r}: {exc}") from exc
        self.conn.row_factory = sqlite3.Row  # rows behave like dicts
        self._configure()
        logger.info("Database opened — path=%r table=%s", db_path, table)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _configure(self) -> None:
        """Apply performance and safety PRAGMAs."""
        cur = self.conn.cursor()
        cur.execute("PRAGMA journal_mode=WAL")
        cur.execute("PRAGMA busy_timeout=5000")
        cur.execute("PRAGMA synchronous=NORMAL")  # safe with WAL
        self.conn.commit()

    # ------------------------------------------------------------------
    # Schema initialisation
    # ------------------------------------------------------------------

    def init_schema(self) -> None:
        """
        Create the aggregate table and indexes if they don't already exist,
        then verify the layout.

        Raises:
            SchemaError: creation failed or an existing table is incompatible.
        """
        t = self.table
        try:
            self.conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS {t} (
                    uuid          TEXT PRIMARY KEY,
                    elem_type     TEXT NOT NULL,
                    prefix        TEXT NOT NULL,
                    as_path       TEXT NOT NULL,
                    asn           TEXT NOT NULL,
                    next_hop      TEXT NOT NULL,
                    peer_ip       TEXT NOT NULL,
                    min_timestamp REAL NOT NULL,
                    max_timestamp REAL NOT NULL,
                    count         INTEGER NOT NULL CHECK (typeof(count) = 'integer'),
                    start_ip      TEXT,
                    end_ip        TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_{t}_prefix
                    ON {t}(prefix);
                CREATE INDEX IF NOT EXISTS idx_{t}_peer_ip
                    ON {t}(peer_ip);
            """)
            self.conn.commit()
        except sqlite3.Error as exc:
            raise SchemaError(f"cannot create table {t!r}: {exc}") from exc

        self.verify_schema()
        logger.info("Schema initialised (table=%s)", t)

    def verify_schema(self) -> None:
        """Check that every required column exists and uuid is the primary key."""
        info = self.conn.execute(f"PRAGMA table_info({self.table})").fetchall()
        columns = {r["name"]: r for r in info}
        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise SchemaError(
                f"table {self.table!r} is missing columns: {', '.join(missing)}"
            )
        if not columns["uuid"]["pk"]:
            raise SchemaError(f"table {self.table!r}: uuid is not the primary key")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Flush and close the SQLite connection."""
        try:
            self.conn.commit()
            self.conn.close()
            logger.info("Database closed — path=%r", self.db_path)
        except sqlite3.Error as exc:
            logger.warning("Error closing database: %s", exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute a single parameterized statement."""
        return self.conn.execute(sql, params)

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()
