"""
sinks/stream.py

JsonlSink — one JSON object per aggregate row on a text stream
(stdout by default). Logging goes to stderr, so stdout stays clean.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from ..aggregation.models import AggregateRow
from ..serializers import RouteRowResponse
from .base import RowStreamSink

logger = logging.getLogger(__name__)


class JsonlSink(RowStreamSink):
    """
    Args:
        stream:           Text stream to write to; sys.stdout when None.
        include_uuid:     Add the row identity as "uuid".
        include_ip_range: Add "start_ip" / "end_ip".
    """

    name = "stdout-jsonl"

    def __init__(
        self,
        stream: TextIO | None = None,
        include_uuid: bool = True,
        include_ip_range: bool = False,
    ) -> None:
        self._stream = stream
        self._include_uuid = include_uuid
        self._include_ip_range = include_ip_range

    @property
    def stream(self) -> TextIO:
        # resolved lazily so a redirected sys.stdout is honoured
        return self._stream if self._stream is not None else sys.stdout

    def write_row(self, row: AggregateRow) -> None:
        line = RouteRowResponse.from_row(
            row,
            include_uuid=self._include_uuid,
            include_ip_range=self._include_ip_range,
        ).to_json_line()
        self.stream.write(line + "\n")

    def flush(self) -> None:
        self.stream.flush()
