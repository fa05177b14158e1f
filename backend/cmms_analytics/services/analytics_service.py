"""
Analytics service: resolves filters into tenant-scoped reads and hands the
records to the metric calculations.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from cmms_analytics.core.exceptions import MissingTenantError
from cmms_analytics.schemas.analytics import (
    CorporateOverview,
    CorporateSiteSummary,
    DashboardKpiResult,
    KPIResult,
    MaintenanceMetrics,
    MetricWithTrend,
    PmComplianceMetric,
    PmWhatIfResponse,
    TrendResult,
    WorkOrderVolumeMetric,
)
from cmms_analytics.services import metrics
from cmms_analytics.services.filters import AnalyticsFilters, ensure_utc
from cmms_analytics.services.record_store import RecordScope, RecordStore, WorkOrderView

logger = logging.getLogger(__name__)

DASHBOARD_DATE_FIELDS = ("created_at", "completed_at", "due_date")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsService:
    """Entry points for KPI, trend, dashboard, corporate and what-if views."""

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    @staticmethod
    def _require_tenant(tenant_id: Optional[int]) -> int:
        if tenant_id is None:
            raise MissingTenantError()
        return tenant_id

    async def _scoped_asset_ids(self, tenant_id: int, filters: AnalyticsFilters) -> Tuple[int, ...]:
        """Asset filter, resolved from the site filter when only sites were given."""
        if filters.asset_ids or not filters.site_ids:
            return filters.asset_ids
        return tuple(await self.store.asset_ids_for_sites(tenant_id, filters.site_ids))

    async def load_sources(self, tenant_id: int, filters: AnalyticsFilters) -> metrics.AnalyticsSources:
        tenant_id = self._require_tenant(tenant_id)
        asset_ids = await self._scoped_asset_ids(tenant_id, filters)
        scope = RecordScope(
            asset_ids=asset_ids,
            site_ids=filters.site_ids,
            start=filters.start_date,
            end=filters.end_date,
        )
        # Sensor readings carry no site; a site filter matching no assets matches no readings.
        site_without_assets = bool(filters.site_ids) and not asset_ids

        async def energy_readings():
            if site_without_assets:
                return []
            return await self.store.fetch_energy_readings(tenant_id, scope)

        work_orders, production, readings = await asyncio.gather(
            self.store.fetch_work_orders(tenant_id, scope),
            self.store.fetch_production(tenant_id, scope),
            energy_readings(),
        )
        return metrics.AnalyticsSources(
            work_orders=work_orders,
            production=production,
            energy_readings=readings,
        )

    async def compute_kpis(self, tenant_id: int, filters: AnalyticsFilters) -> KPIResult:
        sources = await self.load_sources(tenant_id, filters)

        referenced = {r.asset_id for r in sources.production if r.asset_id is not None}
        referenced |= {r.asset_id for r in sources.energy_readings if r.asset_id is not None}
        assets, sites = await asyncio.gather(
            self.store.fetch_assets(tenant_id, sorted(referenced)),
            self.store.fetch_sites(tenant_id),
        )
        return metrics.compute_kpis(sources, assets, sites, filters)

    async def compute_trends(self, tenant_id: int, filters: AnalyticsFilters) -> TrendResult:
        sources = await self.load_sources(tenant_id, filters)
        return metrics.compute_trends(sources)

    async def _dashboard_asset_ids(self, tenant_id: int, filters: AnalyticsFilters) -> Optional[Tuple[int, ...]]:
        """
        Asset scope for dashboard reads. Site and asset filters intersect;
        None means the intersection is empty and nothing can match.
        """
        asset_ids = filters.asset_ids
        if filters.site_ids:
            site_assets = await self.store.asset_ids_for_sites(tenant_id, filters.site_ids)
            if asset_ids:
                allowed = set(site_assets)
                asset_ids = tuple(asset_id for asset_id in asset_ids if asset_id in allowed)
                if not asset_ids:
                    logger.debug(f"Dashboard filters for tenant {tenant_id} select no assets")
                    return None
            elif site_assets:
                asset_ids = tuple(site_assets)
        return asset_ids

    async def _dashboard_work_orders(
        self, tenant_id: int, filters: AnalyticsFilters, asset_ids: Tuple[int, ...]
    ) -> List[WorkOrderView]:
        scope = RecordScope(
            asset_ids=asset_ids,
            site_ids=filters.site_ids,
            start=filters.start_date,
            end=filters.end_date,
            work_order_dates=DASHBOARD_DATE_FIELDS,
        )
        return await self.store.fetch_work_orders(tenant_id, scope)

    async def _scoped_dashboard_work_orders(
        self, tenant_id: int, filters: AnalyticsFilters
    ) -> List[WorkOrderView]:
        tenant_id = self._require_tenant(tenant_id)
        asset_ids = await self._dashboard_asset_ids(tenant_id, filters)
        if asset_ids is None:
            return []
        return await self._dashboard_work_orders(tenant_id, filters, asset_ids)

    async def compute_dashboard_summary(
        self, tenant_id: int, filters: AnalyticsFilters
    ) -> DashboardKpiResult:
        tenant_id = self._require_tenant(tenant_id)
        asset_ids = await self._dashboard_asset_ids(tenant_id, filters)
        if asset_ids is None:
            return metrics.empty_dashboard()

        labor_scope = RecordScope(asset_ids=asset_ids, start=filters.start_date, end=filters.end_date)
        work_orders, labor = await asyncio.gather(
            self._dashboard_work_orders(tenant_id, filters, asset_ids),
            self.store.fetch_labor(tenant_id, labor_scope),
        )
        return metrics.compute_dashboard(work_orders, labor, filters, self.clock())

    async def compute_dashboard_mtbf(self, tenant_id: int, filters: AnalyticsFilters) -> MetricWithTrend:
        work_orders = await self._scoped_dashboard_work_orders(tenant_id, filters)
        return metrics.compute_dashboard_mtbf(work_orders, filters)

    async def compute_dashboard_pm_compliance(
        self, tenant_id: int, filters: AnalyticsFilters
    ) -> PmComplianceMetric:
        work_orders = await self._scoped_dashboard_work_orders(tenant_id, filters)
        return metrics.compute_dashboard_pm_compliance(work_orders, filters)

    async def compute_dashboard_work_order_volume(
        self, tenant_id: int, filters: AnalyticsFilters
    ) -> WorkOrderVolumeMetric:
        work_orders = await self._scoped_dashboard_work_orders(tenant_id, filters)
        return metrics.compute_dashboard_work_order_volume(work_orders, filters)

    async def compute_maintenance_metrics(
        self, tenant_id: int, filters: AnalyticsFilters
    ) -> MaintenanceMetrics:
        kpis, dashboard = await asyncio.gather(
            self.compute_kpis(tenant_id, filters),
            self.compute_dashboard_summary(tenant_id, filters),
        )
        return MaintenanceMetrics(
            mttr=kpis.mttr,
            mtbf=kpis.mtbf,
            backlog=kpis.backlog,
            pm_compliance=dashboard.pm_compliance,
            range=kpis.range,
        )

    async def compute_site_summaries(
        self, tenant_id: int, filters: AnalyticsFilters
    ) -> List[CorporateSiteSummary]:
        tenant_id = self._require_tenant(tenant_id)
        scope = RecordScope(
            site_ids=filters.site_ids,
            start=filters.start_date,
            end=filters.end_date,
            work_order_dates=DASHBOARD_DATE_FIELDS,
        )
        sites, work_orders = await asyncio.gather(
            self.store.fetch_sites(tenant_id, filters.site_ids or None),
            self.store.fetch_work_orders(tenant_id, scope),
        )
        return metrics.compute_site_summaries(tenant_id, sites, work_orders)

    async def compute_corporate_overview(
        self, tenant_id: int, filters: AnalyticsFilters
    ) -> CorporateOverview:
        per_site = await self.compute_site_summaries(tenant_id, filters)
        return metrics.compute_corporate_overview(per_site)

    async def compute_what_if_simulations(
        self, tenant_id: int, now: Optional[datetime] = None
    ) -> PmWhatIfResponse:
        tenant_id = self._require_tenant(tenant_id)
        now = ensure_utc(now) if now is not None else self.clock()
        production_scope = RecordScope(start=now - timedelta(days=metrics.PRODUCTION_LOOKBACK_DAYS))
        work_order_scope = RecordScope(
            start=now - timedelta(days=metrics.WORKORDER_LOOKBACK_DAYS),
            work_order_dates=("created_at",),
        )
        assets, production, work_orders = await asyncio.gather(
            self.store.fetch_assets(tenant_id),
            self.store.fetch_production(tenant_id, production_scope),
            self.store.fetch_work_orders(tenant_id, work_order_scope),
        )
        result = metrics.compute_what_if(assets, production, work_orders, now)
        logger.info(f"PM what-if for tenant {tenant_id}: {len(result.assets)} assets ranked")
        return result
