"""
tests/test_postgres.py

Tests for storage/postgres.py and the relational upsert sink.
psycopg2.connect and execute_values are patched; no database required.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from routeagg.aggregation import Aggregator
from routeagg.errors import ConfigError, SchemaError, SinkWriteError
from routeagg.models import ElemType, RouteUpdate
from routeagg.sinks import RelationalUpsertSink
from routeagg.storage.database import REQUIRED_COLUMNS
from routeagg.storage.postgres import PostgresStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def conn():
    c = MagicMock()
    with patch("routeagg.storage.postgres.psycopg2.connect", return_value=c):
        yield c


@pytest.fixture
def cur(conn):
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture
def store(conn):
    s = PostgresStore(host="db", user="routes", password="pw", dbname="bgp", schema="routing")
    s.connect()
    return s


def make_rows():
    updates = [
        RouteUpdate(ts, ElemType.ANNOUNCE, f"10.{i}.0.0/16", "2.2.2.2", "100 200", "1.1.1.1")
        for i, ts in enumerate((1.0, 2.0, 3.0))
    ]
    return Aggregator().run(updates)


# ---------------------------------------------------------------------------
# Connection / schema
# ---------------------------------------------------------------------------

class TestConnect:

    def test_connect_sets_search_path(self, store, conn, cur):
        assert cur.execute.call_count == 1
        conn.commit.assert_called_once()

    def test_no_schema_no_search_path(self, conn, cur):
        PostgresStore(host="db", user="u", password="", dbname="bgp").connect()
        cur.execute.assert_not_called()

    def test_connect_failure_is_schema_error(self):
        with patch(
            "routeagg.storage.postgres.psycopg2.connect",
            side_effect=psycopg2.OperationalError("could not connect"),
        ):
            with pytest.raises(SchemaError, match="could not connect"):
                PostgresStore(host="db", user="u", password="", dbname="bgp").connect()

    def test_invalid_identifiers(self):
        with pytest.raises(ConfigError):
            PostgresStore(host="db", user="u", password="", dbname="bgp", table="a-b")
        with pytest.raises(ConfigError):
            PostgresStore(host="db", user="u", password="", dbname="bgp", schema="x;y")

    def test_not_connected(self):
        s = PostgresStore(host="db", user="u", password="", dbname="bgp")
        with pytest.raises(RuntimeError):
            s.upsert_rows(make_rows())


class TestInitSchema:

    def test_verified(self, store, cur):
        cur.fetchall.side_effect = [[(c,) for c in REQUIRED_COLUMNS], [("uuid",)]]
        store.init_schema()

    def test_missing_columns(self, store, cur):
        cur.fetchall.side_effect = [[("uuid",), ("prefix",)], [("uuid",)]]
        with pytest.raises(SchemaError, match="missing columns"):
            store.init_schema()

    def test_uuid_not_a_key(self, store, cur):
        cur.fetchall.side_effect = [[(c,) for c in REQUIRED_COLUMNS], []]
        with pytest.raises(SchemaError, match="primary key"):
            store.init_schema()

    def test_create_failure(self, store, conn, cur):
        cur.execute.side_effect = psycopg2.ProgrammingError("permission denied")
        with pytest.raises(SchemaError, match="permission denied"):
            store.init_schema()
        conn.rollback.assert_called_once()


# ---------------------------------------------------------------------------
# upsert_rows
# ---------------------------------------------------------------------------

class TestUpsertRows:

    def test_bulk_upsert_in_one_transaction(self, store, conn):
        rows = make_rows()
        conn.commit.reset_mock()
        with patch("routeagg.storage.postgres.execute_values") as ev:
            assert store.upsert_rows(rows) == 3
        ev.assert_called_once()
        params = ev.call_args.args[2]
        assert [p[0] for p in params] == [r.uuid for r in rows]
        assert params[0][4] == "200"  # asn
        conn.commit.assert_called_once()

    def test_params_follow_column_order(self, store):
        row = make_rows()[0]
        p = store._params(row)
        assert len(p) == len(REQUIRED_COLUMNS)
        assert dict(zip(REQUIRED_COLUMNS, p))["count"] == row.count
        assert dict(zip(REQUIRED_COLUMNS, p))["start_ip"] == "167772160"

    def test_empty_batch(self, store):
        with patch("routeagg.storage.postgres.execute_values") as ev:
            assert store.upsert_rows([]) == 0
        ev.assert_not_called()

    def test_failure_rolls_back_and_names_row(self, store, conn, cur):
        rows = make_rows()
        conn.commit.reset_mock()
        cur.execute.side_effect = [None, psycopg2.DataError("bigint out of range")]
        with patch(
            "routeagg.storage.postgres.execute_values",
            side_effect=psycopg2.DataError("bigint out of range"),
        ):
            with pytest.raises(SinkWriteError) as exc_info:
                store.upsert_rows(rows)
        assert exc_info.value.row_uuid == rows[1].uuid
        conn.commit.assert_not_called()
        assert conn.rollback.call_count == 2


class TestRelationalUpsertSink:

    def test_lifecycle(self):
        store = MagicMock(spec=PostgresStore)
        store.upsert_rows.return_value = 3
        with RelationalUpsertSink(store) as sink:
            report = sink.persist_batch(make_rows())
        store.connect.assert_called_once()
        store.init_schema.assert_called_once()
        store.disconnect.assert_called_once()
        assert report.written == 3
        assert sink.atomic is True

    def test_write_error_propagates(self):
        store = MagicMock(spec=PostgresStore)
        store.upsert_rows.side_effect = SinkWriteError("rolled back")
        sink = RelationalUpsertSink(store)
        with pytest.raises(SinkWriteError):
            sink.persist_batch(make_rows())
