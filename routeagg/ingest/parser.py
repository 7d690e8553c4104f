"""
ingest/parser.py

Converts one element yielded by the MRT parser into a typed RouteUpdate.

Design principles:
  - Synchronous and fast — no I/O, no blocking calls.
  - Never keeps the parser's element object; extracts only the fields the
    aggregation needs.
  - Accepts both attribute-style elements (pybgpkit's Elem, iteration API)
    and plain dicts (pybgpkit's parse_all() output).

Element codes:
  'A' → ANNOUNCE   'W' → WITHDRAW   'R' → RIB   'S' → STATE
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..models import ElemType, RouteUpdate

logger = logging.getLogger(__name__)


def _field(elem: Any, name: str) -> Any:
    if isinstance(elem, Mapping):
        return elem.get(name)
    return getattr(elem, name, None)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_elem(elem: Any) -> RouteUpdate:
    """
    Build a RouteUpdate from a parser element.

    Raises:
        ValueError: the element lacks a timestamp, element type, prefix or
                    peer address, or carries an unknown element type.
                    The caller treats this as a source decoding failure.
    """
    timestamp = _field(elem, "timestamp")
    elem_type = _field(elem, "elem_type")
    prefix = _field(elem, "prefix")
    peer_ip = _field(elem, "peer_ip")

    if timestamp is None or elem_type is None or not prefix or not peer_ip:
        raise ValueError(f"incomplete route element: {elem!r}")

    as_path = _field(elem, "as_path")
    if isinstance(as_path, str):
        as_path = _optional_text(as_path)

    peer_asn = _field(elem, "peer_asn")

    return RouteUpdate(
        timestamp=float(timestamp),
        elem_type=ElemType.from_code(elem_type),
        prefix=str(prefix),
        peer_ip=str(peer_ip),
        as_path=as_path,
        next_hop=_optional_text(_field(elem, "next_hop")),
        peer_asn=int(peer_asn) if peer_asn is not None else None,
    )
