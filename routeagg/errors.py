"""
routeagg/errors.py

Error taxonomy for a single aggregation run.

SourceError    — the record source could not be opened or failed mid-stream.
ConfigError    — destination/output configuration missing or invalid.
SchemaError    — destination table could not be created or verified.
SinkWriteError — one or more aggregate rows could not be persisted.

SourceError, ConfigError and SchemaError are fatal. SinkWriteError is
raised by transactional sinks only; stream sinks log the failing row and
report it in their SinkReport instead.
"""

from __future__ import annotations

import uuid


class RouteAggError(Exception):
    """Base class for every error raised by routeagg."""


class SourceError(RouteAggError):
    pass


class ConfigError(RouteAggError):
    pass


class SchemaError(RouteAggError):
    pass


class SinkWriteError(RouteAggError):
    """A row (or a whole transactional batch) failed to persist."""

    def __init__(self, message: str, row_uuid: uuid.UUID | None = None) -> None:
        super().__init__(message)
        self.row_uuid = row_uuid

    def __str__(self) -> str:
        base = super().__str__()
        if self.row_uuid is not None:
            return f"{base} (uuid={self.row_uuid})"
        return base
