"""
sinks/files.py

Flat-file sinks. Both write one line per aggregate row in the fixed
column order of sinks.base.TABLE_COLUMNS (+ start_ip / end_ip):

  CsvFileSink  — csv module, standard quoting, header row first
  TextFileSink — fields joined by a literal tab-pipe-tab separator, no header

Rows go to a temporary file that replaces the target only after the batch
is written; these sinks keep no cross-run state.
"""

from __future__ import annotations

import contextlib
import csv
import logging
import os
import tempfile
from typing import IO, Any, Sequence

from ..aggregation.models import AggregateRow
from ..errors import SchemaError, SinkWriteError
from .base import RowStreamSink, SinkReport, export_columns, row_values

logger = logging.getLogger(__name__)

TEXT_SEPARATOR = "\t|\t"


def _text(value: Any) -> str:
    if isinstance(value, float):
        return repr(value)
    return str(value)


class _FileSink(RowStreamSink):
    """
    Writes into a temporary file next to the target. The target is only
    replaced once persist_batch() has finished, so a run that aborts
    before that leaves any previous output untouched.
    """

    def __init__(self, path: str, include_ip_range: bool = False) -> None:
        self.path = path
        self.columns = export_columns(include_ip_range)
        self._fh: IO[str] | None = None

    def open(self) -> None:
        try:
            parent = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(parent, exist_ok=True)
            self._fh = tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                newline="",
                dir=parent,
                prefix=f".{os.path.basename(self.path)}.",
                suffix=".tmp",
                delete=False,
            )
        except OSError as exc:
            raise SchemaError(f"{self.name}: cannot create {self.path!r}: {exc}") from exc
        self._start()
        logger.info("%s: writing to %r", self.name, self.path)

    def persist_batch(self, rows: Sequence[AggregateRow]) -> SinkReport:
        """Write the whole batch, then move the file into place (once per open)."""
        if self._fh is None:
            raise RuntimeError(f"{self.name} is not open. Call open() first.")
        report = super().persist_batch(rows)
        self._publish()
        return report

    def close(self) -> None:
        if self._fh is not None:
            # never published: drop the partial output
            self._fh.close()
            with contextlib.suppress(FileNotFoundError):
                os.unlink(self._fh.name)
            logger.debug("%s: discarded %r", self.name, self._fh.name)
            self._fh = None

    def flush(self) -> None:
        if self._fh is not None:
            self._fh.flush()

    @property
    def fh(self) -> IO[str]:
        if self._fh is None:
            raise RuntimeError(f"{self.name} is not open. Call open() first.")
        return self._fh

    def _start(self) -> None:
        """Hook run right after the file is opened."""

    def _publish(self) -> None:
        fh = self.fh
        fh.close()
        try:
            os.replace(fh.name, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                os.unlink(fh.name)
            raise SinkWriteError(
                f"{self.name}: cannot move output into {self.path!r}: {exc}"
            ) from exc
        finally:
            self._fh = None
        logger.debug("%s: published %r", self.name, self.path)


class CsvFileSink(_FileSink):

    name = "csv-file"

    def __init__(
        self, path: str, include_ip_range: bool = False, header: bool = True
    ) -> None:
        super().__init__(path, include_ip_range)
        self._header = header
        self._writer = None

    def _start(self) -> None:
        self._writer = csv.writer(self.fh)
        if self._header:
            self._writer.writerow(self.columns)

    def write_row(self, row: AggregateRow) -> None:
        if self._writer is None:
            raise RuntimeError(f"{self.name} is not open. Call open() first.")
        self._writer.writerow([_text(v) for v in row_values(row, self.columns)])


class TextFileSink(_FileSink):

    name = "text-file"

    def write_row(self, row: AggregateRow) -> None:
        fields = [_text(v) for v in row_values(row, self.columns)]
        self.fh.write(TEXT_SEPARATOR.join(fields) + "\n")
