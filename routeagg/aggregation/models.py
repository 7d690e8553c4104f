"""
aggregation/models.py

Data models for the aggregation core.

RouteKey     — hashable canonical 5-tuple, the grouping unit
AggregateRow — per-identity statistics (no raw updates stored)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import NamedTuple

from ..models import RouteUpdate
from .derive import origin_asn, prefix_bounds


# ---------------------------------------------------------------------------
# RouteKey: hashable canonical 5-tuple
# ---------------------------------------------------------------------------

class RouteKey(NamedTuple):
    """
    Canonical route-event shape.

    Field order is part of the identity contract: the key is hashed in
    exactly this order (see identity.canonical_string).
    """

    elem_type: str
    prefix: str
    as_path: str
    next_hop: str
    peer_ip: str

    def __repr__(self) -> str:
        return (
            f"{self.elem_type} {self.prefix}"
            f" [{self.as_path}] via {self.next_hop or '-'}"
            f" from {self.peer_ip}"
        )


def _as_path_text(as_path) -> str:
    if as_path is None:
        return ""
    if isinstance(as_path, str):
        return " ".join(as_path.split())
    return " ".join(str(asn) for asn in as_path)


def make_route_key(update: RouteUpdate) -> RouteKey:
    """
    Build the canonical RouteKey for one route update.

    Total: never raises. A missing AS path or next hop becomes the empty
    string, so "absent" and "empty" fall into the same key class.
    The timestamp is not part of the key.
    """
    elem_type = update.elem_type
    return RouteKey(
        elem_type=getattr(elem_type, "value", str(elem_type)),
        prefix=str(update.prefix),
        as_path=_as_path_text(update.as_path),
        next_hop="" if update.next_hop is None else str(update.next_hop),
        peer_ip=str(update.peer_ip),
    )


# ---------------------------------------------------------------------------
# AggregateRow: per-identity statistics
# ---------------------------------------------------------------------------

@dataclass
class AggregateRow:
    """
    Statistics for one route-event shape (identified by uuid).

    Memory is O(1) per row: only the canonical fields and three counters.
    """

    uuid: uuid.UUID
    elem_type: str
    prefix: str
    as_path: str
    next_hop: str
    peer_ip: str

    min_timestamp: float
    """Earliest observation seen for this shape."""

    max_timestamp: float
    """Latest observation seen for this shape."""

    count: int = 1
    """Number of observations. Python int, never wraps."""

    @classmethod
    def first_seen(
        cls, identity: uuid.UUID, key: RouteKey, timestamp: float
    ) -> "AggregateRow":
        return cls(
            uuid=identity,
            elem_type=key.elem_type,
            prefix=key.prefix,
            as_path=key.as_path,
            next_hop=key.next_hop,
            peer_ip=key.peer_ip,
            min_timestamp=timestamp,
            max_timestamp=timestamp,
            count=1,
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def observe(self, timestamp: float) -> None:
        """Fold one more observation into the row. Ties keep existing bounds."""
        if timestamp < self.min_timestamp:
            self.min_timestamp = timestamp
        if timestamp > self.max_timestamp:
            self.max_timestamp = timestamp
        self.count += 1

    def merge(self, other: "AggregateRow") -> None:
        """
        Merge another run's row for the same identity into this one.

        count is additive (this run + that run), bounds widen. Canonical
        fields of self are kept: they are implied by the uuid.
        """
        if other.uuid != self.uuid:
            raise ValueError(
                f"cannot merge rows with different identities: "
                f"{self.uuid} != {other.uuid}"
            )
        self.min_timestamp = min(self.min_timestamp, other.min_timestamp)
        self.max_timestamp = max(self.max_timestamp, other.max_timestamp)
        self.count += other.count

    # ------------------------------------------------------------------
    # Computed properties
    # ------------------------------------------------------------------

    @property
    def key(self) -> RouteKey:
        return RouteKey(
            self.elem_type, self.prefix, self.as_path, self.next_hop, self.peer_ip
        )

    @property
    def asn(self) -> str:
        """Origin AS: last AS number in the path, '' for an empty path."""
        return origin_asn(self.as_path)

    @property
    def start_ip(self) -> str:
        return prefix_bounds(self.prefix)[0]

    @property
    def end_ip(self) -> str:
        return prefix_bounds(self.prefix)[1]

    def __repr__(self) -> str:
        return (
            f"AggregateRow({self.uuid} {self.key!r} "
            f"count={self.count} "
            f"ts=[{self.min_timestamp}, {self.max_timestamp}])"
        )
