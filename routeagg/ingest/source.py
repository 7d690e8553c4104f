"""
ingest/source.py

Record source — wraps pybgpkit's Parser as a lazy, single-pass iterator of
RouteUpdate objects.

The location is anything the parser understands: a local MRT file
(optionally compressed) or a remote URL. Opening problems surface as
SourceError immediately; failures while iterating propagate to the
Aggregator, which turns them into SourceError and aborts the run.

Lifecycle:
    records = open_source("https://.../updates.20240101.0000.gz")
    rows = Aggregator().run(records)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Iterator
from urllib.parse import urlparse

from ..errors import SourceError
from ..metrics import METRICS
from ..models import RouteUpdate
from .parser import parse_elem

# Import the parser at module level so tests can patch it as a module attribute.
# The try/except allows importing this module where pybgpkit is not installed
# (e.g. type-checking); it IS required at runtime.
try:
    import bgpkit  # type: ignore[import-untyped]
except ImportError:  # pragma: no cover
    bgpkit = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = ("http", "https", "ftp", "s3")


def is_remote(location: str) -> bool:
    return urlparse(location).scheme.lower() in _REMOTE_SCHEMES


def open_source(
    location: str,
    filters: dict[str, str] | None = None,
) -> Iterator[RouteUpdate]:
    """
    Open the record source and return a lazy iterator of RouteUpdates.

    Args:
        location: Local path or URL of an MRT dump.
        filters:  Optional parser-side filters, passed through verbatim
                  (e.g. {"peer_ip": "192.0.2.1", "type": "announce"}).

    Raises:
        SourceError: the parser is unavailable or the location cannot be opened.
    """
    if not location:
        raise SourceError("no record source given")
    if not is_remote(location) and not os.path.exists(location):
        raise SourceError(f"record source not found: {location!r}")
    if bgpkit is None:
        raise SourceError(
            "pybgpkit is required to read MRT data. Install with: pip install pybgpkit"
        )

    try:
        if filters:
            parser = bgpkit.Parser(url=location, filters=filters)
        else:
            parser = bgpkit.Parser(url=location)
    except Exception as exc:
        raise SourceError(f"cannot open record source {location!r}: {exc}") from exc

    logger.info("Record source opened — location=%r filters=%s", location, filters or {})
    return _iter_updates(parser)


def _iter_updates(parser: Any) -> Iterator[RouteUpdate]:
    for elem in parser:
        try:
            update = parse_elem(elem)
        except ValueError:
            METRICS.records_rejected.inc()
            raise
        yield update
