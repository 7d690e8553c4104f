"""
routeagg/serializers.py

Pydantic model for one exported aggregate row (stdout JSONL sink).
"""

from __future__ import annotations

from pydantic import BaseModel

from .aggregation.models import AggregateRow


class RouteRowResponse(BaseModel):
    elem_type: str
    prefix: str
    as_path: str
    asn: str
    next_hop: str
    peer_ip: str
    min_timestamp: float
    max_timestamp: float
    count: int
    uuid: str | None = None
    start_ip: str | None = None
    end_ip: str | None = None

    @classmethod
    def from_row(
        cls,
        row: AggregateRow,
        include_uuid: bool = True,
        include_ip_range: bool = False,
    ) -> "RouteRowResponse":
        return cls(
            elem_type=row.elem_type,
            prefix=row.prefix,
            as_path=row.as_path,
            asn=row.asn,
            next_hop=row.next_hop,
            peer_ip=row.peer_ip,
            min_timestamp=row.min_timestamp,
            max_timestamp=row.max_timestamp,
            count=row.count,
            uuid=str(row.uuid) if include_uuid else None,
            start_ip=row.start_ip if include_ip_range else None,
            end_ip=row.end_ip if include_ip_range else None,
        )

    def to_json_line(self) -> str:
        """Compact JSON, optional fields left out when not requested."""
        return self.model_dump_json(exclude_none=True)
