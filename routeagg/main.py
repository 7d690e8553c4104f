from __future__ import annotations

import argparse
import logging
import sys
from typing import NoReturn, Sequence

from .aggregation import Aggregator
from .config import SINK_NAMES, Settings, load_settings
from .errors import ConfigError, SchemaError, SinkWriteError, SourceError
from .ingest import open_source
from .metrics import METRICS
from .sinks import BaseSink, SinkReport, build_sink

logger = logging.getLogger("routeagg.main")

EXIT_OK = 0
EXIT_ROW_FAILURES = 1
EXIT_FATAL = 2


def run(
    location: str,
    sink: BaseSink,
    filters: dict[str, str] | None = None,
) -> SinkReport:
    """
    One batch run: source → aggregation → sink.

    The source and the sink are both opened before any record is read, so
    SourceError / SchemaError surface at startup. Nothing is persisted
    unless the whole source was consumed.
    """
    records = open_source(location, filters)
    aggregator = Aggregator()
    with sink:
        rows = aggregator.run(records)
        report = sink.persist_batch(rows)
    logger.info(
        "Run complete — aggregator=%s sink=%s %r",
        aggregator.stats, sink.name, report,
    )
    return report


def _parse_filter(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected key=value, got {text!r}")
    return key.strip(), value.strip()


def _parse_args(
    argv: Sequence[str] | None, defaults: Settings
) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Aggregate BGP route updates into deduplicated route-event shapes",
    )
    parser.add_argument(
        "source", nargs="?", default=defaults.SOURCE,
        help="MRT file path or URL",
    )
    parser.add_argument("--sink", default=defaults.SINK, choices=SINK_NAMES)
    parser.add_argument("--output", default=defaults.OUTPUT_PATH, dest="output_path")
    parser.add_argument("--db-path", default=defaults.DB_PATH)
    parser.add_argument("--table", default=defaults.TABLE_NAME)
    parser.add_argument(
        "--filter", action="append", type=_parse_filter, default=[],
        dest="filters", metavar="KEY=VALUE",
        help="parser filter, e.g. peer_ip=192.0.2.1 (repeatable)",
    )
    parser.add_argument(
        "--include-ip-range", action="store_true", default=defaults.INCLUDE_IP_RANGE,
    )
    parser.add_argument(
        "--no-uuid", action="store_false", dest="include_uuid",
        default=defaults.INCLUDE_UUID,
    )
    parser.add_argument(
        "--log-level", default=defaults.LOG_LEVEL.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def _settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    filters = dict(base.PARSER_FILTERS)
    filters.update(dict(args.filters))
    return base.model_copy(update={
        "SOURCE": args.source,
        "SINK": args.sink,
        "OUTPUT_PATH": args.output_path,
        "DB_PATH": args.db_path,
        "TABLE_NAME": args.table,
        "PARSER_FILTERS": filters,
        "INCLUDE_IP_RANGE": args.include_ip_range,
        "INCLUDE_UUID": args.include_uuid,
    })


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def main(argv: Sequence[str] | None = None) -> NoReturn:
    try:
        base = load_settings()
    except ConfigError as exc:
        _configure_logging("INFO")
        logger.error("ConfigError: %s", exc)
        sys.exit(EXIT_FATAL)

    args = _parse_args(argv, base)
    _configure_logging(args.log_level)
    cfg = _settings_from_args(args, base)

    try:
        sink = build_sink(cfg)
        report = run(cfg.SOURCE, sink, cfg.PARSER_FILTERS)
    except (ConfigError, SourceError, SchemaError) as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        sys.exit(EXIT_FATAL)
    except SinkWriteError as exc:
        logger.error("SinkWriteError: %s", exc)
        sys.exit(EXIT_ROW_FAILURES)
    finally:
        logger.info("METRICS %s", METRICS.as_dict())

    if not report.ok:
        logger.error(
            "%d rows failed to persist: %s",
            len(report.failed), ", ".join(str(u) for u in report.failed),
        )
        sys.exit(EXIT_ROW_FAILURES)
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
