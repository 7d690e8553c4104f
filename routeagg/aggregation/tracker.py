"""
aggregation/tracker.py

RouteTracker — owns the identity → AggregateRow mapping for one run.

Design constraints:
  - No raw RouteUpdate objects stored — only derived stats.
  - One instance per run; nothing is module-level, so several independent
    runs can coexist in one process (tests rely on this).
  - drain() hands the rows over and empties the mapping; the tracker can
    then be reused or discarded.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Iterable

from .models import AggregateRow, RouteKey

logger = logging.getLogger(__name__)


class RouteTracker:
    """
    Accumulates per-shape statistics keyed on content-derived identities.

    Thread safety: NOT thread-safe. A run is a single-threaded pass over
    the record source, so no locking is needed.
    """

    def __init__(self) -> None:
        self.rows: dict[uuid.UUID, AggregateRow] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def upsert(
        self, identity: uuid.UUID, key: RouteKey, timestamp: float
    ) -> AggregateRow:
        """
        Create or update the row for this identity.

        Returns the updated AggregateRow.
        """
        row = self.rows.get(identity)
        if row is None:
            row = AggregateRow.first_seen(identity, key, timestamp)
            self.rows[identity] = row
            logger.debug("New shape: %r (total: %d)", key, len(self.rows))
        else:
            row.observe(timestamp)
        return row

    def absorb(self, rows: Iterable[AggregateRow]) -> None:
        """
        Fold finalized rows from another run into this mapping.

        Applies the cross-run merge contract: counts add, bounds widen,
        the first writer's canonical fields stay.
        """
        merged = 0
        for incoming in rows:
            row = self.rows.get(incoming.uuid)
            if row is None:
                # copy: the caller's row must not alias ours
                self.rows[incoming.uuid] = replace(incoming)
            else:
                row.merge(incoming)
                merged += 1
        logger.debug("Absorbed rows — %d merged into existing identities", merged)

    def drain(self) -> list[AggregateRow]:
        """
        Return every row and empty the mapping.

        Order is insertion order, but callers must treat it as unordered.
        """
        drained = list(self.rows.values())
        self.rows = {}
        logger.debug("Drained %d rows", len(drained))
        return drained

    def discard(self) -> None:
        """Drop everything accumulated so far (used on an aborted run)."""
        if self.rows:
            logger.warning("Discarding %d in-memory rows", len(self.rows))
        self.rows = {}

    def get(self, identity: uuid.UUID) -> AggregateRow | None:
        return self.rows.get(identity)

    @property
    def active_count(self) -> int:
        return len(self.rows)
