"""
routeagg/models.py

Shared dataclasses for every stage of the run.
Defining the inter-stage contracts here lets the ingest layer, the
aggregation core and the sinks be developed against a stable interface.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence


# ---------------------------------------------------------------------------
# Ingest output
# ---------------------------------------------------------------------------

class ElemType(str, Enum):
    """Kind of route-update element. The member name is the canonical text."""

    ANNOUNCE = "ANNOUNCE"
    WITHDRAW = "WITHDRAW"
    RIB      = "RIB"
    STATE    = "STATE"

    @classmethod
    def from_code(cls, code: str) -> "ElemType":
        """
        Map a parser element code to an ElemType.

        Accepts the single-letter codes used by MRT parsers ('A', 'W', 'R',
        'S') as well as the full names, case-insensitively.
        """
        text = str(code).strip().upper()
        if text in _ELEM_CODES:
            return _ELEM_CODES[text]
        return cls(text)


_ELEM_CODES = {
    "A": ElemType.ANNOUNCE,
    "W": ElemType.WITHDRAW,
    "R": ElemType.RIB,
    "S": ElemType.STATE,
}


@dataclass(slots=True)
class RouteUpdate:
    """Structured representation of a single BGP route-update element."""

    timestamp: float
    """Unix epoch seconds, fractional part preserved."""

    elem_type: ElemType
    """ANNOUNCE | WITHDRAW | RIB | STATE."""

    prefix: str
    """CIDR string exactly as the parser produced it, e.g. '10.0.0.0/24'."""

    peer_ip: str
    """Address of the peer that sent the update."""

    as_path: str | Sequence[int] | None = None
    """Either '100 200 300', a sequence of ASNs, or None when absent."""

    next_hop: str | None = None
    """Next-hop address, None for withdrawals."""

    peer_asn: int | None = None
    """Peer AS number when the parser supplies it (not part of the key)."""
