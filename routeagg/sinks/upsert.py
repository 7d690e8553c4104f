"""
sinks/upsert.py

Stateful sinks that merge a run into rows persisted by earlier runs:

  EmbeddedUpsertSink   — SQLite file (storage.Database + RouteRepository)
  RelationalUpsertSink — PostgreSQL (storage.PostgresStore)

Both are atomic: a batch is written in one transaction, and a failure
rolls the whole batch back and raises SinkWriteError.

Re-running the same input doubles counts and leaves min/max untouched.
That is the intended additive contract, not a bug.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Sequence

from ..aggregation.models import AggregateRow
from ..errors import SinkWriteError
from ..metrics import METRICS
from ..storage import Database, PostgresStore, RouteRepository
from .base import BaseSink, SinkReport

logger = logging.getLogger(__name__)


class _UpsertSink(BaseSink):

    atomic = True

    @abstractmethod
    def _write(self, rows: Sequence[AggregateRow]) -> int:
        ...

    def persist_batch(self, rows: Sequence[AggregateRow]) -> SinkReport:
        try:
            written = self._write(rows)
        except SinkWriteError as exc:
            METRICS.rows_failed.inc(len(rows))
            logger.error("%s: %s", self.name, exc)
            raise
        METRICS.rows_written.inc(written)
        report = SinkReport(written=written)
        logger.info("%s: %r", self.name, report)
        return report


class EmbeddedUpsertSink(_UpsertSink):
    """
    Args:
        db_path:          SQLite file path (":memory:" for tests).
        table:            Table name.
        include_ip_range: Populate start_ip / end_ip (NULL otherwise).
    """

    name = "embedded-upsert"

    def __init__(
        self,
        db_path: str,
        table: str = "log_table",
        include_ip_range: bool = True,
    ) -> None:
        self.db_path = db_path
        self.table = table
        self.include_ip_range = include_ip_range
        self.db: Database | None = None
        self.repo: RouteRepository | None = None

    def open(self) -> None:
        self.db = Database(self.db_path, table=self.table)
        self.db.init_schema()
        self.repo = RouteRepository(self.db, include_ip_range=self.include_ip_range)

    def close(self) -> None:
        if self.db is not None:
            self.db.close()
            self.db = None
            self.repo = None

    def _write(self, rows: Sequence[AggregateRow]) -> int:
        if self.repo is None:
            raise RuntimeError(f"{self.name} is not open. Call open() first.")
        return self.repo.upsert_rows(rows)


class RelationalUpsertSink(_UpsertSink):

    name = "relational-upsert"

    def __init__(self, store: PostgresStore) -> None:
        self.store = store

    def open(self) -> None:
        self.store.connect()
        self.store.init_schema()

    def close(self) -> None:
        self.store.disconnect()

    def _write(self, rows: Sequence[AggregateRow]) -> int:
        return self.store.upsert_rows(rows)
