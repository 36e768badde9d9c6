"""
Tests for the analytics aggregation service.

These tests verify:
- Envelope shape on success and failure
- Period breakdowns and in-memory aggregation
- Growth against the preceding window
- Memoization of every aggregate
"""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from leadpulse.services.analytics import AnalyticsService, aggregate_daily_stats
from leadpulse.services.windows import PERIOD_NAMES

from .conftest import ScriptedReplica

MEN = "gb_men_x_tamil"
KETO = "gb_keto_hindi"

TODAY_START = datetime(2024, 6, 11, 18, 30)
YESTERDAY_START = datetime(2024, 6, 10, 18, 30)

# 2024-06-01..07 in local time and the week before it
RANGE_START = datetime(2024, 5, 31, 18, 30)
PREVIOUS_START = datetime(2024, 5, 24, 18, 30)


@pytest.fixture
def replica() -> ScriptedReplica:
    return ScriptedReplica(
        totals={MEN: 5000, KETO: 800},
        windowed={
            (MEN, TODAY_START): 120,
            (MEN, YESTERDAY_START): 100,
            (KETO, TODAY_START): 45,
            (KETO, YESTERDAY_START): 50,
        },
        sizes={MEN: 1.5, KETO: 0.25},
    )


@pytest.fixture
def service(make_service, replica) -> AnalyticsService:
    return make_service(replica)


class BrokenMappingSource:
    async def get_active_mappings(self):
        raise ConnectionError("write store unreachable")


class TestMappings:

    @pytest.mark.asyncio
    async def test_table_mappings(self, service):
        result = await service.get_all_table_mappings()
        assert result["success"] is True
        assert result["mappings"] == [
            {"table_name": MEN, "custom_table_name": "Men X Tamil"},
            {"table_name": KETO, "custom_table_name": None},
        ]

    @pytest.mark.asyncio
    async def test_table_names(self, service):
        result = await service.get_all_table_names()
        assert result == {"success": True, "table_names": [MEN, KETO]}

    @pytest.mark.asyncio
    async def test_mapping_failure_is_an_envelope(self, make_service, replica):
        service = make_service(replica, source=BrokenMappingSource())
        result = await service.get_all_table_counts()
        assert result["success"] is False
        assert result["counts"] == []
        assert "get_all_table_counts failed" in result["error"]
        assert "write store unreachable" in result["error"]


class TestCounts:

    @pytest.mark.asyncio
    async def test_table_count(self, service):
        assert await service.get_table_count(KETO) == {
            "success": True, "table_name": KETO, "count": 800,
        }

    @pytest.mark.asyncio
    async def test_invalid_table_count_fails_cleanly(self, service, replica):
        result = await service.get_table_count("leads; DROP TABLE x")
        assert result["success"] is False
        assert result["count"] == 0
        assert replica.calls == []

    @pytest.mark.asyncio
    async def test_table_size(self, service):
        result = await service.get_table_size(MEN)
        assert result["size_mb"] == 1.5

    @pytest.mark.asyncio
    async def test_all_counts_keep_display_names(self, service):
        result = await service.get_all_table_counts()
        assert result["counts"] == [
            {"table_name": MEN, "custom_table_name": "Men X Tamil", "count": 5000},
            {"table_name": KETO, "custom_table_name": None, "count": 800},
        ]

    @pytest.mark.asyncio
    async def test_total_count(self, service):
        assert (await service.get_total_count())["total"] == 5800

    @pytest.mark.asyncio
    async def test_summary(self, service):
        summary = (await service.get_analytics_summary())["summary"]
        assert summary == {
            "total_tables": 2,
            "total_records": 5800,
            "total_size_mb": 1.75,
            "average_records_per_table": 2900,
        }

    @pytest.mark.asyncio
    async def test_summary_without_tables(self, make_service, replica):
        from leadpulse.database.mappings import StaticTableMappingSource

        service = make_service(replica, source=StaticTableMappingSource([]))
        summary = (await service.get_analytics_summary())["summary"]
        assert summary["average_records_per_table"] == 0
        assert summary["total_tables"] == 0


class TestDailyStats:

    @pytest.mark.asyncio
    async def test_daily_stats_and_aggregation(self, service):
        result = await service.get_daily_stats()
        assert result["success"] is True

        men, keto = result["stats"]
        assert men["table_name"] == MEN
        assert (men["today"], men["yesterday"], men["has_data"]) == (120, 100, True)
        assert (keto["today"], keto["yesterday"], keto["has_data"]) == (45, 50, True)

        aggregated = result["aggregated"]
        assert aggregated["today"] == 165
        assert aggregated["yesterday"] == 150
        assert aggregated["total_records"] == 5800
        assert aggregated["tables_with_data"] == 2
        assert aggregated["total_tables"] == 2

    @pytest.mark.asyncio
    async def test_subset_of_tables(self, service):
        result = await service.get_daily_stats([KETO])
        assert [s["table_name"] for s in result["stats"]] == [KETO]
        assert result["aggregated"]["today"] == 45

    @pytest.mark.asyncio
    async def test_failing_table_is_zeroed(self, make_service, replica):
        replica.failing[KETO] = RuntimeError("Table doesn't exist")
        result = await make_service(replica).get_daily_stats()

        assert result["success"] is True
        keto = result["stats"][1]
        assert keto["has_data"] is False
        assert all(keto[name] == 0 for name in PERIOD_NAMES)
        assert result["aggregated"]["today"] == 120

    @pytest.mark.asyncio
    async def test_single_table(self, service):
        result = await service.get_table_daily_stats(MEN)
        assert result["stats"]["today"] == 120
        assert result["stats"]["total_records"] == 5000

    @pytest.mark.asyncio
    async def test_period_lead_counts(self, service):
        counts = (await service.get_period_lead_counts())["counts"]
        assert counts["today"] == 165
        assert counts["yesterday"] == 150
        assert counts["total"] == 5800

    def test_aggregate_empty(self):
        aggregated = aggregate_daily_stats([])
        assert aggregated["total_tables"] == 0
        assert all(aggregated[name] == 0 for name in PERIOD_NAMES)


class TestGrowth:

    @pytest.fixture
    def growth_replica(self) -> ScriptedReplica:
        return ScriptedReplica(windowed={
            (MEN, RANGE_START): 12,
            (MEN, PREVIOUS_START): 10,
            (KETO, RANGE_START): 30,
            (KETO, PREVIOUS_START): 0,
        })

    @pytest.mark.asyncio
    async def test_counts_with_growth(self, make_service, growth_replica):
        service = make_service(growth_replica)
        result = await service.get_table_wise_counts_with_growth("2024-06-01", "2024-06-07")

        assert result["success"] is True
        assert [r["table_name"] for r in result["data"]] == [KETO, MEN]

        keto, men = result["data"]
        assert (keto["count"], keto["previous_count"], keto["growth"]) == (30, 0, 100.0)
        assert (men["count"], men["previous_count"], men["growth"]) == (12, 10, 20.0)
        assert men["display_name"] == "Men X Tamil"
        assert keto["display_name"] == KETO

        assert result["total_leads"] == 42
        # The table with no baseline contributes 0 to the average
        assert result["average_growth"] == 10.0
        assert result["period"]["start"] == RANGE_START.isoformat()
        assert result["period"]["previous_start"] == PREVIOUS_START.isoformat()

    @pytest.mark.asyncio
    async def test_bad_date_range_is_an_envelope(self, service, replica):
        result = await service.get_table_wise_counts_with_growth("2024-06-07", "2024-06-01")
        assert result["success"] is False
        assert result["data"] == []
        assert replica.calls == []


class TestDashboardAndScores:

    @pytest.mark.asyncio
    async def test_dashboard_bundle(self, service):
        result = await service.get_dashboard_data()
        assert result["success"] is True

        data = result["data"]
        assert data["total_tables"] == 2
        assert data["total_records"] == 5800
        assert data["period_counts"]["today"] == 165
        assert data["total_leads"] == 165
        assert [r["table_name"] for r in data["table_counts"]] == [MEN, KETO]
        # (20 + -10) / 2
        assert data["average_growth"] == 5.0

    @pytest.mark.asyncio
    async def test_performance_scores(self, service):
        scores = (await service.get_performance_scores())["scores"]
        assert [s["table_name"] for s in scores] == [MEN, KETO]
        assert scores[0]["score"] == 54
        assert scores[0]["trend"] == "up"
        assert scores[1]["trend"] == "stable"


class TestCaching:

    @pytest.mark.asyncio
    async def test_repeat_call_is_served_from_cache(self, service, replica):
        first = await service.get_daily_stats()
        calls = len(replica.calls)

        second = await service.get_daily_stats()
        assert second == first
        assert len(replica.calls) == calls

    @pytest.mark.asyncio
    async def test_total_reuses_cached_counts(self, service, replica):
        await service.get_all_table_counts()
        calls = len(replica.calls)
        await service.get_total_count()
        assert len(replica.calls) == calls

    @pytest.mark.asyncio
    async def test_cache_expires(self, service, replica, clock):
        await service.get_all_table_counts()
        calls = len(replica.calls)

        clock.advance(181)
        await service.get_all_table_counts()
        assert len(replica.calls) > calls

    @pytest.mark.asyncio
    async def test_mapping_changes_show_after_invalidate(self, service, mapping_source):
        await service.get_all_table_names()
        mapping_source.set_tables([KETO])
        assert (await service.get_all_table_names())["table_names"] == [MEN, KETO]

        invalidated = await service.invalidate()
        assert invalidated["cleared"] > 0
        assert (await service.get_all_table_names())["table_names"] == [KETO]

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, make_service, replica):
        source = AsyncMock()
        source.get_active_mappings.side_effect = [ConnectionError("down"), []]
        service = make_service(replica, source=source)

        assert (await service.get_all_table_names())["success"] is False
        assert (await service.get_all_table_names()) == {"success": True, "table_names": []}

    @pytest.mark.asyncio
    async def test_warm(self, service):
        result = await service.warm()
        assert result["success"] is True
        assert all(result["warmed"].values())
        assert set(result["warmed"]) == {
            "table_mappings", "table_counts", "table_stats",
            "total_count", "summary", "daily_stats",
        }

    @pytest.mark.asyncio
    async def test_metrics(self, service):
        await service.get_all_table_counts()
        await service.get_all_table_counts()

        metrics = await service.get_metrics()
        assert metrics["success"] is True
        assert metrics["queries"]["successful_queries"] == 2
        assert metrics["circuit_breaker"]["state"] == "CLOSED"
        assert metrics["cache"]["stats"]["hits"] >= 1
