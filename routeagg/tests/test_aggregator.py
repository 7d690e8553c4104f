"""
tests/test_aggregator.py

End-to-end tests for the Aggregator — feeds RouteUpdate iterables and
asserts the finalized AggregateRows.

All tests use in-memory lists and generators; no MRT data required.
"""

from __future__ import annotations

import pytest

from routeagg.aggregation.aggregator import Aggregator, merge_runs
from routeagg.aggregation.identity import identity_of
from routeagg.aggregation.models import make_route_key
from routeagg.errors import SourceError
from routeagg.metrics import METRICS
from routeagg.models import ElemType, RouteUpdate


@pytest.fixture(autouse=True)
def _reset_metrics():
    METRICS.reset_all()
    yield


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def upd(
    elem_type=ElemType.ANNOUNCE,
    prefix="10.0.0.0/24",
    as_path="100 200",
    next_hop="1.1.1.1",
    peer_ip="2.2.2.2",
    ts=100.0,
) -> RouteUpdate:
    return RouteUpdate(
        timestamp=ts,
        elem_type=elem_type,
        prefix=prefix,
        peer_ip=peer_ip,
        as_path=as_path,
        next_hop=next_hop,
    )


def example_updates() -> list[RouteUpdate]:
    return [
        upd(ts=100.0),
        upd(ts=50.0),
        upd(elem_type=ElemType.WITHDRAW, as_path="", next_hop="", ts=200.0),
    ]


def by_identity(rows) -> dict:
    return {r.uuid: (r.min_timestamp, r.max_timestamp, r.count) for r in rows}


# ---------------------------------------------------------------------------
# Aggregation results
# ---------------------------------------------------------------------------

class TestAggregatorRun:

    def test_three_record_example(self):
        rows = Aggregator().run(example_updates())
        assert len(rows) == 2
        stats = {r.elem_type: (r.count, r.min_timestamp, r.max_timestamp) for r in rows}
        assert stats["ANNOUNCE"] == (2, 50.0, 100.0)
        assert stats["WITHDRAW"] == (1, 200.0, 200.0)

    def test_rows_carry_content_identity(self):
        rows = Aggregator().run([upd()])
        assert rows[0].uuid == identity_of(make_route_key(upd()))

    def test_timestamp_only_difference_groups(self):
        rows = Aggregator().run([upd(ts=1.0), upd(ts=2.0), upd(ts=3.0)])
        assert len(rows) == 1
        assert rows[0].count == 3

    def test_absent_vs_empty_as_path_group(self):
        rows = Aggregator().run([upd(as_path=None), upd(as_path="")])
        assert len(rows) == 1
        assert rows[0].count == 2

    def test_empty_source(self):
        assert Aggregator().run([]) == []

    def test_source_consumed_once(self):
        gen = (u for u in example_updates())
        agg = Aggregator()
        assert len(agg.run(gen)) == 2
        assert agg.run(gen) == []

    def test_independent_runs_in_one_process(self):
        a, b = Aggregator(), Aggregator()
        a.consume([upd(ts=1.0)])
        b.consume([upd(ts=2.0), upd(ts=3.0)])
        assert a.drain()[0].count == 1
        assert b.drain()[0].count == 2


class TestAggregatorStats:

    def test_stats_initialized(self):
        agg = Aggregator()
        assert agg.stats == {"records_processed": 0, "rows_active": 0, "rows_drained": 0}

    def test_stats_after_run(self):
        agg = Aggregator()
        agg.consume(example_updates())
        assert agg.stats["records_processed"] == 3
        assert agg.stats["rows_active"] == 2
        agg.drain()
        assert agg.stats["rows_drained"] == 2
        assert agg.stats["rows_active"] == 0

    def test_records_read_metric(self):
        Aggregator().run(example_updates())
        assert METRICS.records_read.value == 3


# ---------------------------------------------------------------------------
# Source failure
# ---------------------------------------------------------------------------

class TestSourceFailure:

    def test_mid_stream_failure_raises_source_error(self):
        def broken():
            yield upd(ts=1.0)
            yield upd(ts=2.0)
            raise OSError("truncated MRT record")

        agg = Aggregator()
        with pytest.raises(SourceError, match="after 2 records"):
            agg.run(broken())

    def test_failure_discards_in_memory_rows(self):
        def broken():
            yield upd()
            raise RuntimeError("decode error")

        agg = Aggregator()
        with pytest.raises(SourceError):
            agg.consume(broken())
        assert agg.tracker.active_count == 0
        assert agg.drain() == []

    def test_source_error_passes_through_unwrapped(self):
        def broken():
            raise SourceError("cannot open")
            yield  # pragma: no cover

        with pytest.raises(SourceError, match="cannot open"):
            Aggregator().run(broken())


# ---------------------------------------------------------------------------
# Merge associativity across split runs
# ---------------------------------------------------------------------------

class TestMergeRuns:

    def _updates(self) -> list[RouteUpdate]:
        out = []
        for i in range(30):
            out.append(upd(prefix=f"10.{i % 4}.0.0/16", ts=float((i * 37) % 101)))
            out.append(upd(elem_type=ElemType.WITHDRAW, peer_ip=f"2.2.2.{i % 3}",
                           as_path=None, next_hop=None, ts=float(i)))
        return out

    @pytest.mark.parametrize("split", [0, 1, 17, 59, 60])
    def test_split_then_merge_equals_single_pass(self, split):
        updates = self._updates()
        single = by_identity(Aggregator().run(updates))
        first = Aggregator().run(updates[:split])
        second = Aggregator().run(updates[split:])
        assert by_identity(merge_runs(first, second)) == single

    def test_merge_order_does_not_matter(self):
        updates = self._updates()
        a = Aggregator().run(updates[:20])
        b = Aggregator().run(updates[20:40])
        c = Aggregator().run(updates[40:])
        assert by_identity(merge_runs(a, b, c)) == by_identity(merge_runs(c, a, b))

    def test_same_batch_twice_doubles_counts_only(self):
        rows = Aggregator().run(example_updates())
        merged = by_identity(merge_runs(rows, rows))
        for r in rows:
            assert merged[r.uuid] == (r.min_timestamp, r.max_timestamp, r.count * 2)
