"""
storage/repository.py

RouteRepository — reads and upserts aggregate rows in the embedded store.

Upsert contract (same as the relational store):
    count          ← stored.count + batch.count      (additive, not replace)
    min_timestamp  ← MIN(stored, batch)
    max_timestamp  ← MAX(stored, batch)
    other columns  ← never updated; the first writer wins
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Sequence

from ..aggregation.models import AggregateRow
from ..errors import SinkWriteError
from .database import REQUIRED_COLUMNS, Database

logger = logging.getLogger(__name__)


class RouteRepository:
    def __init__(self, db: Database, include_ip_range: bool = True) -> None:
        self._db = db
        self._include_ip_range = include_ip_range
        t = db.table
        cols = ", ".join(REQUIRED_COLUMNS)
        marks = ", ".join("?" for _ in REQUIRED_COLUMNS)
        self._upsert_sql = f"""
            INSERT INTO {t} ({cols}) VALUES ({marks})
            ON CONFLICT(uuid) DO UPDATE SET
                count         = {t}.count + excluded.count,
                min_timestamp = MIN({t}.min_timestamp, excluded.min_timestamp),
                max_timestamp = MAX({t}.max_timestamp, excluded.max_timestamp)
        """

    # ==================================================================
    # Write methods
    # ==================================================================

    def upsert_rows(self, rows: Sequence[AggregateRow]) -> int:
        """
        Upsert every row in a single transaction.

        All or nothing: on the first failing row the transaction is rolled
        back and SinkWriteError names that row.
        """
        current: AggregateRow | None = None
        try:
            for current in rows:
                self._db.execute(self._upsert_sql, self._params(current))
            self._db.commit()
        except (sqlite3.Error, OverflowError) as exc:
            self._db.rollback()
            raise SinkWriteError(
                f"embedded upsert rolled back ({len(rows)} rows): {exc}",
                current.uuid if current is not None else None,
            ) from exc
        return len(rows)

    def _params(self, row: AggregateRow) -> tuple:
        if self._include_ip_range:
            start_ip, end_ip = row.start_ip, row.end_ip
        else:
            start_ip = end_ip = None
        return (
            str(row.uuid),
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

    # ==================================================================
    # Read methods
    # ==================================================================

    def get_row(self, identity: uuid.UUID | str) -> dict | None:
        row = self._db.execute(
            f"SELECT * FROM {self._db.table} WHERE uuid = ?", (str(identity),)
        ).fetchone()
        return dict(row) if row else None

    def get_rows(self, limit: int = 100, offset: int = 0) -> list[dict]:
        rows = self._db.execute(
            f"SELECT * FROM {self._db.table} ORDER BY min_timestamp LIMIT ? OFFSET ?",
            (limit, offset),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_row_count(self) -> int:
        row = self._db.execute(f"SELECT COUNT(*) FROM {self._db.table}").fetchone()
        return row[0] if row else 0
