"""
storage/postgres.py

PostgresStore — psycopg2 connection, schema setup and upsert for the
relational store.

Write path: one INSERT ... ON CONFLICT (uuid) DO UPDATE per page of rows via
execute_values, all inside a single transaction (all or nothing):

    count          ← stored.count + EXCLUDED.count
    min_timestamp  ← LEAST(stored, EXCLUDED)
    max_timestamp  ← GREATEST(stored, EXCLUDED)

If the bulk statement fails the transaction is rolled back and the rows are
replayed one at a time (never committed) to find the offending identity
for the error report.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Sequence

import psycopg2
from psycopg2 import sql
from psycopg2.extras import execute_values, register_uuid

from ..aggregation.models import AggregateRow
from ..config import valid_identifier
from ..errors import ConfigError, SchemaError, SinkWriteError
from .database import REQUIRED_COLUMNS

logger = logging.getLogger(__name__)

# uuid.UUID <-> UUID column adaptation for every connection
register_uuid()

_CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS {t} (
        uuid          UUID PRIMARY KEY,
        elem_type     TEXT NOT NULL,
        prefix        TEXT NOT NULL,
        as_path       TEXT NOT NULL,
        asn           TEXT NOT NULL,
        next_hop      TEXT NOT NULL,
        peer_ip       TEXT NOT NULL,
        min_timestamp DOUBLE PRECISION NOT NULL,
        max_timestamp DOUBLE PRECISION NOT NULL,
        count         BIGINT NOT NULL,
        start_ip      TEXT,
        end_ip        TEXT
    )
"""

_UPSERT = """
    INSERT INTO {t} ({cols}) VALUES {values}
    ON CONFLICT (uuid) DO UPDATE SET
        count         = {t}.count + EXCLUDED.count,
        min_timestamp = LEAST({t}.min_timestamp, EXCLUDED.min_timestamp),
        max_timestamp = GREATEST({t}.max_timestamp, EXCLUDED.max_timestamp)
"""

_TABLE_COLUMNS = """
    SELECT column_name FROM information_schema.columns
    WHERE table_schema = current_schema() AND table_name = %s
"""

_TABLE_KEYS = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    WHERE tc.table_schema = current_schema()
      AND tc.table_name = %s
      AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
"""


class PostgresStore:
    """
    Manages the relational store connection.

    Usage:
        with PostgresStore(host="db", user="u", password="p", dbname="bgp") as store:
            store.init_schema()
            store.upsert_rows(rows)
    """

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        dbname: str,
        port: int = 5432,
        schema: str = "",
        table: str = "log_table",
        include_ip_range: bool = True,
        page_size: int = 1000,
    ) -> None:
        if not valid_identifier(table):
            raise ConfigError(f"invalid table name {table!r}")
        if schema and not valid_identifier(schema):
            raise ConfigError(f"invalid schema name {schema!r}")
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.dbname = dbname
        self.schema = schema
        self.table = table
        self.include_ip_range = include_ip_range
        self.page_size = page_size
        self.conn = None

        t = sql.Identifier(table)
        cols = sql.SQL(", ").join(sql.Identifier(c) for c in REQUIRED_COLUMNS)
        row_marks = sql.SQL("({})").format(
            sql.SQL(", ").join(sql.Placeholder() for _ in REQUIRED_COLUMNS)
        )
        self._bulk_sql = sql.SQL(_UPSERT).format(t=t, cols=cols, values=sql.SQL("%s"))
        self._row_sql = sql.SQL(_UPSERT).format(t=t, cols=cols, values=row_marks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the connection and select the configured schema."""
        try:
            self.conn = psycopg2.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                dbname=self.dbname,
            )
            if self.schema:
                with self.conn.cursor() as cur:
                    cur.execute(
                        sql.SQL("SET search_path TO {}").format(sql.Identifier(self.schema))
                    )
                self.conn.commit()
        except psycopg2.Error as exc:
            raise SchemaError(
                f"cannot connect to relational store {self.host}/{self.dbname}: {exc}"
            ) from exc
        logger.info(
            "Connected to relational store — host=%s db=%s schema=%s",
            self.host, self.dbname, self.schema or "(default)",
        )

    def disconnect(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logger.debug("Disconnected from relational store")

    def __enter__(self) -> "PostgresStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.disconnect()
        return False

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def init_schema(self) -> None:
        """
        Create the aggregate table if needed and verify its layout.

        Raises:
            SchemaError: creation failed, columns are missing, or uuid is
                         not a primary/unique key (ON CONFLICT needs one).
        """
        conn = self._require_conn()
        try:
            with conn.cursor() as cur:
                cur.execute(sql.SQL(_CREATE_TABLE).format(t=sql.Identifier(self.table)))
                cur.execute(_TABLE_COLUMNS, (self.table,))
                columns = {r[0] for r in cur.fetchall()}
                cur.execute(_TABLE_KEYS, (self.table,))
                keys = {r[0] for r in cur.fetchall()}
            conn.commit()
        except psycopg2.Error as exc:
            conn.rollback()
            raise SchemaError(f"cannot create table {self.table!r}: {exc}") from exc

        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise SchemaError(
                f"table {self.table!r} is missing columns: {', '.join(missing)}"
            )
        if "uuid" not in keys:
            raise SchemaError(f"table {self.table!r}: uuid is not a primary key")
        logger.info("Schema verified (table=%s)", self.table)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_rows(self, rows: Sequence[AggregateRow]) -> int:
        """Upsert every row in one transaction. Returns the row count."""
        conn = self._require_conn()
        if not rows:
            return 0
        params = [self._params(r) for r in rows]
        try:
            with conn.cursor() as cur:
                execute_values(cur, self._bulk_sql, params, page_size=self.page_size)
            conn.commit()
        except psycopg2.Error as exc:
            conn.rollback()
            logger.warning("Bulk upsert failed: %s — locating offending row", exc)
            failing = self._locate_failure(rows, params)
            raise SinkWriteError(
                f"relational upsert rolled back ({len(rows)} rows): {exc}",
                failing,
            ) from exc
        return len(rows)

    def _locate_failure(
        self, rows: Sequence[AggregateRow], params: list[tuple]
    ) -> uuid.UUID | None:
        """Replay rows one by one without committing; return the first that fails."""
        conn = self._require_conn()
        try:
            for row, p in zip(rows, params):
                try:
                    with conn.cursor() as cur:
                        cur.execute(self._row_sql, p)
                except psycopg2.Error:
                    return row.uuid
            return None
        finally:
            conn.rollback()

    def _params(self, row: AggregateRow) -> tuple[Any, ...]:
        if self.include_ip_range:
            start_ip, end_ip = row.start_ip, row.end_ip
        else:
            start_ip = end_ip = None
        return (
            row.uuid,
            row.elem_type,
            row.prefix,
            row.as_path,
            row.asn,
            row.next_hop,
            row.peer_ip,
            row.min_timestamp,
            row.max_timestamp,
            row.count,
            start_ip,
            end_ip,
        )

    def _require_conn(self):
        if self.conn is None:
            raise RuntimeError("Not connected to relational store. Call connect() first.")
        return self.conn
