"""
sinks/base.py

Abstract base class that every sink must implement, plus the shared
column layout of an exported aggregate row.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..aggregation.models import AggregateRow
from ..errors import SinkWriteError
from ..metrics import METRICS

logger = logging.getLogger(__name__)

TABLE_COLUMNS: tuple[str, ...] = (
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
)
IP_RANGE_COLUMNS: tuple[str, ...] = ("start_ip", "end_ip")


def export_columns(include_ip_range: bool = False) -> tuple[str, ...]:
    if include_ip_range:
        return TABLE_COLUMNS + IP_RANGE_COLUMNS
    return TABLE_COLUMNS


def row_values(row: AggregateRow, columns: Sequence[str]) -> tuple[Any, ...]:
    """Pull the given columns off a row (derived fields included)."""
    return tuple(getattr(row, name) for name in columns)


@dataclass(slots=True)
class SinkReport:
    """Outcome of one persist_batch() call."""

    written: int = 0
    failed: list[uuid.UUID] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def __repr__(self) -> str:
        return f"SinkReport(written={self.written} failed={len(self.failed)})"


class BaseSink(ABC):
    """
    Contract that every sink must satisfy.

    Class-level attributes:
        name   — the configuration name selecting this sink
        atomic — True when persist_batch() is all-or-nothing

    Lifecycle: open() → persist_batch() (any number of times) → close().
    Sinks are also context managers.

    persist_batch() MUST:
        - Apply the additive merge contract when the sink keeps state
          across runs (upsert sinks)
        - Either report every failed row in the SinkReport (atomic=False)
          or roll back and raise SinkWriteError (atomic=True)
    """

    name: str = ""
    atomic: bool = False

    def open(self) -> None:
        """Prepare the destination. Raises SchemaError when it cannot."""

    def close(self) -> None:
        """Release the destination."""

    @abstractmethod
    def persist_batch(self, rows: Sequence[AggregateRow]) -> SinkReport:
        ...

    def __enter__(self) -> "BaseSink":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def __repr__(self) -> str:
        return f"<Sink:{self.name} atomic={self.atomic}>"


class RowStreamSink(BaseSink):
    """
    Base for stateless, row-at-a-time sinks (stdout, flat files).

    A row that fails to serialise is logged with its uuid and skipped;
    the remaining rows are still written.
    """

    atomic = False

    @abstractmethod
    def write_row(self, row: AggregateRow) -> None:
        ...

    def flush(self) -> None:
        """Flush buffered output after a batch."""

    def persist_batch(self, rows: Sequence[AggregateRow]) -> SinkReport:
        report = SinkReport()
        for row in rows:
            try:
                self.write_row(row)
            except Exception as exc:
                error = SinkWriteError(f"{self.name}: cannot write row: {exc}", row.uuid)
                logger.error("%s", error)
                report.failed.append(row.uuid)
                METRICS.rows_failed.inc()
                continue
            report.written += 1
            METRICS.rows_written.inc()
        self.flush()
        logger.info("%s: %r", self.name, report)
        return report
