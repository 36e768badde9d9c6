"""
Tests for the database layer against local SQLite files.
"""

import pytest
from sqlalchemy import text

from leadpulse.collector.fanout import FanOutExecutor
from leadpulse.database import (
    Client,
    ReadReplica,
    SqlTableMappingSource,
    TableMapping,
    create_read_replica_engine,
    create_write_engine,
    get_read_replica_url,
    get_session_factory,
    session_scope,
)
from leadpulse.database.circuit_breaker import CircuitBreaker
from leadpulse.utils.config import Settings


@pytest.fixture
def settings():
    return Settings(READ_REPLICA_DATABASE_URL=None, WRITE_DATABASE_URL=None)


@pytest.fixture
def replica(settings, tmp_path):
    engine = create_read_replica_engine(settings, url=f"sqlite:///{tmp_path / 'replica.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE gb_keto_hindi (id INTEGER PRIMARY KEY, created_at_ts TEXT)"))
        for i in range(3):
            conn.execute(text("INSERT INTO gb_keto_hindi (created_at_ts) VALUES (:ts)"), {"ts": f"2024-06-1{i}"})
    replica = ReadReplica(engine)
    yield replica
    replica.dispose()


class TestUrls:

    def test_mysql_url_uses_pymysql(self):
        settings = Settings(READ_REPLICA_DATABASE_URL="mysql://user:pw@replica:3306/leads")
        assert get_read_replica_url(settings) == "mysql+pymysql://user:pw@replica:3306/leads"

    def test_sqlite_fallback(self, settings):
        assert get_read_replica_url(settings).startswith("sqlite:///")


class TestReadReplica:

    @pytest.mark.asyncio
    async def test_execute_returns_dict_rows(self, replica):
        rows = await replica.execute("SELECT COUNT(*) AS count FROM `gb_keto_hindi`")
        assert rows == [{"count": 3}]

    @pytest.mark.asyncio
    async def test_bound_parameters(self, replica):
        rows = await replica(
            "SELECT COUNT(*) AS count FROM gb_keto_hindi WHERE created_at_ts >= :start",
            {"start": "2024-06-11"},
        )
        assert rows == [{"count": 2}]

    @pytest.mark.asyncio
    async def test_ping(self, replica):
        assert await replica.ping() is True

    @pytest.mark.asyncio
    async def test_executor_over_replica(self, replica):
        executor = FanOutExecutor(replica.execute, CircuitBreaker())
        counts = await executor.count_all(["gb_keto_hindi", "missing_table"])
        assert counts == [
            {"table_name": "gb_keto_hindi", "count": 3},
            {"table_name": "missing_table", "count": 0},
        ]

    def test_pool_status(self, replica):
        assert "pool_class" in replica.get_pool_status()


class TestTableMappings:

    @pytest.fixture
    def session_factory(self, settings, tmp_path):
        engine = create_write_engine(settings, url=f"sqlite:///{tmp_path / 'write.db'}")
        factory = get_session_factory(engine)
        with session_scope(factory) as db:
            client = Client(name="Asha", company="GB Foods", email="asha@example.com")
            db.add(client)
            db.flush()
            db.add_all([
                TableMapping(client_id=client.xata_id, table_name="gb_men_x_tamil",
                             custom_table_name="Men X Tamil"),
                TableMapping(client_id=client.xata_id, table_name="gb_keto_hindi"),
                TableMapping(client_id=client.xata_id, table_name="gb_retired", is_active="false"),
            ])
        yield factory
        engine.dispose()

    @pytest.mark.asyncio
    async def test_active_mappings_only(self, session_factory):
        mappings = await SqlTableMappingSource(session_factory).get_active_mappings()
        assert [m.table_name for m in mappings] == ["gb_keto_hindi", "gb_men_x_tamil"]
        assert mappings[1].display_name == "Men X Tamil"
        assert mappings[0].display_name == "gb_keto_hindi"

    def test_record_ids(self, session_factory):
        with session_scope(session_factory) as db:
            client = db.query(Client).one()
            assert client.xata_id.startswith("rec_")
            assert len(client.table_mappings) == 3
