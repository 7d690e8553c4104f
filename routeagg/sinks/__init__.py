"""
sinks/__init__.py

Public API for the sinks sub-package, plus build_sink(): the one place that
maps a configured sink name onto a concrete sink.
"""

from __future__ import annotations

from ..config import Settings
from ..errors import ConfigError
from ..storage import PostgresStore
from .base import BaseSink, SinkReport, export_columns
from .files import CsvFileSink, TextFileSink
from .stream import JsonlSink
from .upsert import EmbeddedUpsertSink, RelationalUpsertSink

__all__ = [
    "BaseSink",
    "SinkReport",
    "JsonlSink",
    "CsvFileSink",
    "TextFileSink",
    "EmbeddedUpsertSink",
    "RelationalUpsertSink",
    "build_sink",
    "export_columns",
]


def build_sink(cfg: Settings) -> BaseSink:
    """
    Build the sink selected by cfg.SINK.

    Raises:
        ConfigError: unknown sink or missing options for the chosen one.
    """
    cfg.require_sink_options()

    if cfg.SINK == "stdout-jsonl":
        return JsonlSink(
            include_uuid=cfg.INCLUDE_UUID,
            include_ip_range=cfg.INCLUDE_IP_RANGE,
        )
    if cfg.SINK == "csv-file":
        return CsvFileSink(cfg.OUTPUT_PATH, include_ip_range=cfg.INCLUDE_IP_RANGE)
    if cfg.SINK == "text-file":
        return TextFileSink(cfg.OUTPUT_PATH, include_ip_range=cfg.INCLUDE_IP_RANGE)
    if cfg.SINK == "embedded-upsert":
        # store tables always carry start_ip / end_ip
        return EmbeddedUpsertSink(cfg.DB_PATH, table=cfg.TABLE_NAME)
    if cfg.SINK == "relational-upsert":
        return RelationalUpsertSink(
            PostgresStore(
                host=cfg.PGHOST,
                port=cfg.PGPORT,
                user=cfg.PGUSER,
                password=cfg.PGPASSWORD,
                dbname=cfg.PGDATABASE,
                schema=cfg.PGSCHEMA,
                table=cfg.TABLE_NAME,
            )
        )
    raise ConfigError(f"unknown sink {cfg.SINK!r}")  # pragma: no cover
