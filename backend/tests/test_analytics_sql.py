"""
Test analytics against the SQLAlchemy record store
"""
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cmms_analytics.core.exceptions import DataSourceError
from cmms_analytics.models import ProductionRecord, SensorReading
from cmms_analytics.services.analytics_service import AnalyticsService
from cmms_analytics.services.filters import AnalyticsFilters
from cmms_analytics.services.record_store import ENERGY_METRIC, RecordScope, SqlRecordStore

from conftest import T0


@pytest.fixture
def service(test_session_maker) -> AnalyticsService:
    return AnalyticsService(SqlRecordStore(test_session_maker), clock=lambda: T0 + timedelta(days=3))


@pytest.fixture
async def production(db_session, seeded):
    a = seeded["A"]
    press = a.assets["press"]
    db_session.add_all([
        ProductionRecord(
            organization_id=a.org.id, site_id=press.site_id, asset_id=press.id, recorded_at=T0,
            planned_time_minutes=100, downtime_minutes=20, actual_units=50, good_units=45,
            ideal_cycle_time_sec=60, energy_consumed_kwh=5.0,
        ),
        SensorReading(organization_id=a.org.id, asset_id=press.id, timestamp=T0, metric=ENERGY_METRIC, value=10.0),
        SensorReading(organization_id=a.org.id, asset_id=press.id, timestamp=T0, metric="temperature", value=70.0),
    ])
    await db_session.commit()
    return seeded


class TestSqlRecordStore:
    @pytest.mark.asyncio
    async def test_work_orders_are_tenant_scoped(self, test_session_maker, seeded):
        store = SqlRecordStore(test_session_maker)
        a_orders = await store.fetch_work_orders(seeded["A"].org.id, RecordScope())
        b_orders = await store.fetch_work_orders(seeded["B"].org.id, RecordScope())

        assert len(a_orders) == 3
        assert [wo.tenant_id for wo in b_orders] == [seeded["B"].org.id]
        first = next(wo for wo in a_orders if wo.failure_code == "BRG")
        assert first.created_at == T0
        assert first.status == "completed"
        assert [(p.cost, p.qty) for p in first.parts] == [(20.0, 2)]

    @pytest.mark.asyncio
    async def test_asset_ids_for_sites(self, test_session_maker, seeded):
        store = SqlRecordStore(test_session_maker)
        a = seeded["A"]
        ids = await store.asset_ids_for_sites(a.org.id, [a.sites["north"].id])
        assert ids == [a.assets["press"].id]
        assert await store.asset_ids_for_sites(a.org.id, []) == []
        assert await store.fetch_assets(a.org.id, []) == []

    @pytest.mark.asyncio
    async def test_unreachable_database_raises_data_source_error(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nowhere.db'}")
        store = SqlRecordStore(async_sessionmaker(engine, class_=AsyncSession))
        try:
            with pytest.raises(DataSourceError) as exc_info:
                await store.fetch_sites(1)
            assert exc_info.value.source == "sites"
        finally:
            await engine.dispose()


class TestAnalyticsOverSql:
    @pytest.mark.asyncio
    async def test_kpis(self, service, production):
        a = production["A"]
        result = await service.compute_kpis(a.org.id, AnalyticsFilters())
        assert result.mttr == pytest.approx(3.5)
        assert result.mtbf == pytest.approx(6.0)
        assert result.backlog == 1
        assert result.oee == pytest.approx(0.45)
        assert result.energy.total_kwh == pytest.approx(15.0)
        assert [e.name for e in result.benchmarks.assets] == ["Press 1"]
        assert [e.name for e in result.benchmarks.sites] == ["North Plant"]
        assert {r.reason for r in result.downtime.reasons} == {"BRG", "unspecified"}

    @pytest.mark.asyncio
    async def test_other_tenant(self, service, production):
        result = await service.compute_kpis(production["B"].org.id, AnalyticsFilters())
        assert result.mttr == pytest.approx(1.0)
        assert result.backlog == 0
        assert result.energy.total_kwh == 0

    @pytest.mark.asyncio
    async def test_site_filter(self, service, production):
        a = production["A"]
        result = await service.compute_kpis(a.org.id, AnalyticsFilters(site_ids=(a.sites["south"].id,)))
        assert result.mttr == pytest.approx(5.0)
        assert result.backlog == 0
        assert result.energy.total_kwh == 0

    @pytest.mark.asyncio
    async def test_dashboard(self, service, seeded):
        a = seeded["A"]
        result = await service.compute_dashboard_summary(a.org.id, AnalyticsFilters())
        counts = {s.status: s.count for s in result.statuses}
        assert counts == {
            "requested": 1, "assigned": 0, "in_progress": 0, "paused": 0, "completed": 2, "cancelled": 0,
        }
        assert result.overdue == 1
        assert result.maintenance_cost == pytest.approx(40.0)
        assert result.labor_utilization == pytest.approx(2 / 240 * 100)

    @pytest.mark.asyncio
    async def test_corporate_overview(self, service, seeded):
        a = seeded["A"]
        overview = await service.compute_corporate_overview(a.org.id, AnalyticsFilters())
        assert [s.site_name for s in overview.per_site] == ["North Plant", "South Plant"]
        assert [s.total_work_orders for s in overview.per_site] == [2, 1]
        assert overview.totals.pm_compliance == pytest.approx(100.0)
