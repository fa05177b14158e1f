"""
Test custom report planning and the in-memory report backend
"""
import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cmms_analytics.core.exceptions import InvalidReportQueryError, MissingTenantError
from cmms_analytics.models.work_order import WorkOrderStatus
from cmms_analytics.schemas.reports import ReportQuery
from cmms_analytics.services.report_backends import InMemoryReportBackend
from cmms_analytics.services.report_models import ReportModel
from cmms_analytics.services.report_query import normalize_value, plan_report_query, run_report_query

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def query(**data) -> ReportQuery:
    return ReportQuery.model_validate(data)


class TestPlanning:
    def test_defaults(self):
        request = plan_report_query(1, ReportQuery())
        assert request.spec.model == ReportModel.WORK_ORDERS
        assert [f.key for f in request.projection] == ["title", "status", "priority"]
        assert request.limit == 250
        assert not request.grouped
        assert request.joins_needed() == []

    def test_missing_tenant(self):
        with pytest.raises(MissingTenantError):
            plan_report_query(None, ReportQuery())

    def test_unknown_model(self):
        with pytest.raises(InvalidReportQueryError) as exc_info:
            plan_report_query(1, query(model="invoices"))
        assert exc_info.value.field == "model"

    @pytest.mark.parametrize("limit,expected", [(None, 250), (0, 250), (-3, 1), (5000, 1000), (40, 40)])
    def test_limit_is_clamped(self, limit, expected):
        assert plan_report_query(1, query(limit=limit)).limit == expected

    def test_unknown_filter_fields_are_dropped(self):
        request = plan_report_query(1, query(filters=[{"field": "bogus", "value": 1}]))
        assert request.conditions == ()

    @pytest.mark.parametrize(
        "data,field",
        [
            ({"groupBy": ["bogus"]}, "bogus"),
            ({"fields": ["title", "bogus"]}, "bogus"),
            ({"calculations": [{"operation": "sum", "field": "title"}]}, "title"),
            ({"calculations": [{"operation": "median", "field": "totalCost"}]}, "calculations"),
            ({"calculations": [{"operation": "sum"}]}, "calculations"),
            ({"filters": [{"field": "totalCost", "operator": "gte", "value": "lots"}]}, "totalCost"),
            ({"filters": [{"field": "totalCost", "value": True}]}, "totalCost"),
            ({"filters": [{"field": "status", "value": "bogus"}]}, "status"),
            ({"filters": [{"field": "createdAt", "operator": "gte", "value": "yesterday"}]}, "createdAt"),
            ({"filters": [{"field": "title", "operator": "contains", "value": ""}]}, "title"),
            ({"filters": [{"field": "totalCost", "operator": "lte"}]}, "totalCost"),
            ({"filters": [{"field": "siteId", "value": 10 ** 20}]}, "siteId"),
            ({"filters": [{"field": "siteId", "operator": "in", "value": ["1", str(-(2 ** 63) - 1)]}]}, "siteId"),
            ({"filters": [{"field": "totalCost", "operator": "gte", "value": "inf"}]}, "totalCost"),
            ({"filters": [{"field": "totalCost", "operator": "gte", "value": "nan"}]}, "totalCost"),
        ],
    )
    def test_rejections_name_the_field(self, data, field):
        with pytest.raises(InvalidReportQueryError) as exc_info:
            plan_report_query(1, query(**data))
        assert exc_info.value.field == field

    def test_duplicate_output_keys(self):
        with pytest.raises(InvalidReportQueryError):
            plan_report_query(1, query(groupBy=["status"], calculations=[{"operation": "count", "alias": "status"}]))

    def test_group_without_calculations_uses_defaults(self):
        request = plan_report_query(1, query(groupBy=["status"]))
        assert [a.key for a in request.accumulators] == [
            "count", "totalCost", "averageDowntime", "averageLaborHours",
        ]

    def test_calculation_keys_and_labels(self):
        request = plan_report_query(1, query(calculations=[
            {"operation": "count"},
            {"operation": "average", "field": "laborHours"},
            {"operation": "sum", "field": "totalCost", "alias": "spend"},
        ]))
        assert request.grouped
        assert [(a.key, a.label) for a in request.accumulators] == [
            ("count_0", "Count"),
            ("avg_laborHours", "Average of Labor Hours"),
            ("spend", "spend"),
        ]

    def test_values_are_coerced(self):
        request = plan_report_query(1, query(filters=[
            {"field": "totalCost", "operator": "gte", "value": "10.5"},
            {"field": "siteId", "value": "4"},
            {"field": "status", "operator": "in", "value": "completed, requested"},
            {"field": "createdAt", "operator": "lte", "value": "2024-03-01"},
            {"field": "priority", "value": None},
        ]))
        assert [c.value for c in request.conditions] == [
            10.5, 4, ("completed", "requested"), datetime(2024, 3, 1, tzinfo=timezone.utc), None,
        ]

    def test_joins_follow_referenced_fields(self):
        request = plan_report_query(1, query(
            fields=["title", "assetName"],
            filters=[{"field": "siteName", "operator": "contains", "value": "North"}],
        ))
        assert request.joins_needed() == ["site", "asset"]


class TestNormalizeValue:
    def test_values(self):
        assert normalize_value(None) is None
        assert normalize_value(T0) == "2024-03-01T08:00:00.000Z"
        assert normalize_value(WorkOrderStatus.COMPLETED) == "completed"
        assert normalize_value(Decimal("1.50")) == 1.5
        assert normalize_value(math.nan) is None
        assert normalize_value(True) == "true"
        assert normalize_value({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'


@pytest.fixture
def backend() -> InMemoryReportBackend:
    return InMemoryReportBackend({
        ReportModel.WORK_ORDERS: [
            {"id": 1, "organization_id": 1, "title": "Replace bearing", "status": "completed", "priority": "high",
             "assetName": "Press 1", "createdAt": T0, "totalCost": 100.0, "laborHours": 2.0},
            {"id": 2, "organization_id": 1, "title": "Lathe PM", "status": "completed", "priority": "medium",
             "assetName": "Lathe 2", "createdAt": T0 + timedelta(hours=3), "totalCost": 50.0, "laborHours": 1.0},
            {"id": 3, "organization_id": 1, "title": "Press noise", "status": "requested", "priority": "high",
             "assetName": "Press 1", "createdAt": T0 + timedelta(days=1), "totalCost": None},
            {"id": 4, "organization_id": 2, "title": "Other tenant", "status": "completed", "priority": "low",
             "createdAt": T0, "totalCost": 999.0},
        ],
    })


class TestInMemoryBackend:
    @pytest.mark.asyncio
    async def test_flat_rows_newest_first(self, backend):
        result = await run_report_query(backend, 1, ReportQuery())
        assert [c.key for c in result.columns] == ["title", "status", "priority"]
        assert [r["title"] for r in result.rows] == ["Press noise", "Lathe PM", "Replace bearing"]
        assert result.total == 3

    @pytest.mark.asyncio
    async def test_undated_rows_sort_last(self, backend):
        backend.records[ReportModel.WORK_ORDERS].append(
            {"id": 9, "organization_id": 1, "title": "Undated", "status": "assigned", "createdAt": None}
        )
        result = await run_report_query(backend, 1, ReportQuery())
        assert result.rows[-1]["title"] == "Undated"

    @pytest.mark.asyncio
    async def test_grouped(self, backend):
        result = await run_report_query(backend, 1, query(
            groupBy=["status"],
            calculations=[
                {"operation": "count", "alias": "count"},
                {"operation": "sum", "field": "totalCost", "alias": "cost"},
                {"operation": "avg", "field": "laborHours", "alias": "labor"},
            ],
        ))
        assert result.group_by == ["status"]
        assert result.rows == [
            {"status": "completed", "count": 2, "cost": 150.0, "labor": 1.5},
            {"status": "requested", "count": 1, "cost": 0, "labor": 0},
        ]

    @pytest.mark.asyncio
    async def test_calculation_without_grouping_is_one_row(self, backend):
        result = await run_report_query(backend, 1, query(calculations=[{"operation": "count", "alias": "n"}]))
        assert result.rows == [{"n": 3}]

    @pytest.mark.asyncio
    async def test_other_tenant(self, backend):
        result = await run_report_query(backend, 2, query(calculations=[
            {"operation": "sum", "field": "totalCost", "alias": "cost"},
        ]))
        assert result.rows == [{"cost": 999.0}]

    @pytest.mark.asyncio
    async def test_filters(self, backend):
        async def titles(filters):
            result = await run_report_query(backend, 1, query(filters=filters))
            return [r["title"] for r in result.rows]

        assert await titles([{"field": "priority", "operator": "ne", "value": "high"}]) == ["Lathe PM"]
        assert await titles([{"field": "title", "operator": "contains", "value": "PRESS"}]) == ["Press noise"]
        assert await titles([{"field": "status", "operator": "in", "value": []}]) == []
        assert await titles([{"field": "totalCost", "operator": "gte", "value": 60}]) == ["Replace bearing"]
        assert await titles([{"field": "totalCost", "value": None}]) == ["Press noise"]

    @pytest.mark.asyncio
    async def test_applied_filters_exclude_unknown_fields(self, backend):
        result = await run_report_query(backend, 1, query(filters=[
            {"field": "bogus", "value": 1},
            {"field": "status", "value": "completed"},
        ]))
        assert [f.field for f in result.filters] == ["status"]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_date_range(self, backend):
        result = await run_report_query(backend, 1, query(dateRange={
            "from": (T0 + timedelta(hours=2)).isoformat(),
            "to": (T0 + timedelta(days=1, hours=1)).isoformat(),
        }))
        assert [r["title"] for r in result.rows] == ["Press noise", "Lathe PM"]

    @pytest.mark.asyncio
    async def test_limit(self, backend):
        result = await run_report_query(backend, 1, query(limit=1))
        assert [r["title"] for r in result.rows] == ["Press noise"]

    @pytest.mark.asyncio
    async def test_rejection_happens_before_backend(self):
        class ExplodingBackend:
            async def execute(self, request):
                raise AssertionError("backend must not be called")

        with pytest.raises(InvalidReportQueryError):
            await run_report_query(ExplodingBackend(), 1, query(groupBy=["bogus"]))
