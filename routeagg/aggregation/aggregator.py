"""
aggregation/aggregator.py

Aggregator — the single-pass driver of a run.

Consumes RouteUpdate objects from the record source, normalises each into
a RouteKey, derives its identity and upserts it into a RouteTracker.
When the source is exhausted the tracker is drained and the finalized
rows are returned for a sink.

The source is a finite, non-restartable iterable: it is consumed exactly
once. If it raises part-way through, the run is aborted with SourceError
and the in-memory rows are discarded (nothing has been persisted yet).

Stats dict (logged by main.py at the end of a run):
    records_processed — updates consumed from the source
    rows_active       — current number of distinct shapes in the tracker
    rows_drained      — rows handed out by the last drain
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..errors import RouteAggError, SourceError
from ..metrics import METRICS
from ..models import RouteUpdate
from .identity import identity_of
from .models import AggregateRow, make_route_key
from .tracker import RouteTracker

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100_000


class Aggregator:
    """
    Bridges the record source → RouteTracker → finalized rows.

    Args:
        tracker: Optional RouteTracker to accumulate into. A fresh one is
                 created when omitted.
    """

    def __init__(self, tracker: RouteTracker | None = None) -> None:
        self._tracker = tracker if tracker is not None else RouteTracker()
        self.stats: dict[str, int] = {
            "records_processed": 0,
            "rows_active": 0,
            "rows_drained": 0,
        }

    @property
    def tracker(self) -> RouteTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, update: RouteUpdate) -> AggregateRow:
        """Normalise one update and fold it into the tracker."""
        key = make_route_key(update)
        row = self._tracker.upsert(identity_of(key), key, update.timestamp)
        self.stats["records_processed"] += 1
        self.stats["rows_active"] = self._tracker.active_count
        METRICS.records_read.inc()
        return row

    def consume(self, records: Iterable[RouteUpdate]) -> None:
        """
        Consume the whole source.

        Raises:
            SourceError: the source failed mid-sequence. The tracker has
                         been emptied before the error propagates.
        """
        logger.info("Aggregator started")
        try:
            for update in records:
                self.add(update)
                if self.stats["records_processed"] % PROGRESS_EVERY == 0:
                    logger.info(
                        "Progress — records=%d shapes=%d",
                        self.stats["records_processed"],
                        self._tracker.active_count,
                    )
        except RouteAggError:
            self._abort()
            raise
        except Exception as exc:
            self._abort()
            raise SourceError(
                f"record source failed after {self.stats['records_processed']} "
                f"records: {exc}"
            ) from exc

    def drain(self) -> list[AggregateRow]:
        """Finalize the run: hand out every row and empty the tracker."""
        rows = self._tracker.drain()
        self.stats["rows_drained"] = len(rows)
        self.stats["rows_active"] = 0
        logger.info(
            "Aggregator finished — records=%d shapes=%d",
            self.stats["records_processed"],
            len(rows),
        )
        return rows

    def run(self, records: Iterable[RouteUpdate]) -> list[AggregateRow]:
        """consume() then drain()."""
        self.consume(records)
        return self.drain()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _abort(self) -> None:
        logger.error(
            "Aggregation aborted after %d records — in-memory rows discarded",
            self.stats["records_processed"],
        )
        self._tracker.discard()
        self.stats["rows_active"] = 0


def merge_runs(*runs: Iterable[AggregateRow]) -> list[AggregateRow]:
    """
    Combine the finalized rows of independent runs with the merge contract.

    The contract is per-field commutative and associative (sum, min, max),
    so the result does not depend on how the input was split.
    """
    tracker = RouteTracker()
    for rows in runs:
        tracker.absorb(rows)
    return tracker.drain()
