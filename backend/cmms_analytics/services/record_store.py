"""
Read access to the operational records the analytics engine aggregates.

``RecordStore`` is the interface the metrics service depends on. ``SqlRecordStore``
reads through SQLAlchemy, opening one session per read so that independent reads
can be awaited together. ``InMemoryRecordStore`` serves the same views from plain
lists and backs the unit tests.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from cmms_analytics.core.exceptions import DataSourceError
from cmms_analytics.models.asset import Asset
from cmms_analytics.models.production import ProductionRecord, SensorReading
from cmms_analytics.models.site import Site
from cmms_analytics.models.work_order import WorkHistory, WorkOrder, WorkOrderType
from cmms_analytics.services.filters import ensure_utc

logger = logging.getLogger(__name__)

ENERGY_METRIC = "energy_kwh"


# ---------------------------------------------------------------------------
# Read views
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SiteView:
    tenant_id: int
    id: int
    name: str


@dataclass(frozen=True)
class AssetView:
    tenant_id: int
    id: int
    name: str
    site_id: Optional[int] = None


@dataclass(frozen=True)
class PartLine:
    cost: Optional[float] = None
    qty: Optional[float] = None


@dataclass(frozen=True)
class WorkOrderView:
    tenant_id: int
    id: int
    status: str
    work_type: str = WorkOrderType.CORRECTIVE.value
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    asset_id: Optional[int] = None
    site_id: Optional[int] = None
    pm_task_id: Optional[int] = None
    failure_code: Optional[str] = None
    time_spent_min: Optional[float] = None
    parts: Tuple[PartLine, ...] = ()

    @property
    def is_preventive(self) -> bool:
        return self.pm_task_id is not None or self.work_type == WorkOrderType.PREVENTIVE.value


@dataclass(frozen=True)
class ProductionView:
    tenant_id: int
    recorded_at: datetime
    asset_id: Optional[int] = None
    site_id: Optional[int] = None
    planned_units: Optional[float] = None
    actual_units: Optional[float] = None
    good_units: Optional[float] = None
    ideal_cycle_time_sec: Optional[float] = None
    planned_time_minutes: Optional[float] = None
    run_time_minutes: Optional[float] = None
    downtime_minutes: Optional[float] = None
    downtime_reason: Optional[str] = None
    energy_consumed_kwh: Optional[float] = None


@dataclass(frozen=True)
class EnergyReadingView:
    tenant_id: int
    timestamp: datetime
    value: float
    asset_id: Optional[int] = None


@dataclass(frozen=True)
class LaborView:
    tenant_id: int
    completed_at: Optional[datetime] = None
    time_spent_hours: Optional[float] = None
    asset_id: Optional[int] = None


@dataclass(frozen=True)
class RecordScope:
    """Restrictions applied inside every read, on top of the tenant id.

    ``work_order_dates`` names the work-order timestamps a record may match the
    date range on; any one of them falling in range is enough.
    """

    asset_ids: Tuple[int, ...] = ()
    site_ids: Tuple[int, ...] = ()
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    work_order_dates: Tuple[str, ...] = ("created_at", "completed_at")

    def in_range(self, moment: Optional[datetime]) -> bool:
        if self.start is None and self.end is None:
            return True
        if moment is None:
            return False
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


class RecordStore(Protocol):
    """Tenant-scoped reads the analytics engine needs."""

    async def asset_ids_for_sites(self, tenant_id: int, site_ids: Sequence[int]) -> List[int]:
        ...

    async def fetch_assets(
        self,
        tenant_id: int,
        asset_ids: Optional[Sequence[int]] = None,
        site_ids: Optional[Sequence[int]] = None,
    ) -> List[AssetView]:
        ...

    async def fetch_sites(self, tenant_id: int, site_ids: Optional[Sequence[int]] = None) -> List[SiteView]:
        ...

    async def fetch_work_orders(self, tenant_id: int, scope: RecordScope) -> List[WorkOrderView]:
        ...

    async def fetch_production(self, tenant_id: int, scope: RecordScope) -> List[ProductionView]:
        ...

    async def fetch_energy_readings(self, tenant_id: int, scope: RecordScope) -> List[EnergyReadingView]:
        ...

    async def fetch_labor(self, tenant_id: int, scope: RecordScope) -> List[LaborView]:
        ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

def _range_condition(column, start: Optional[datetime], end: Optional[datetime]):
    conditions = []
    if start is not None:
        conditions.append(column >= start)
    if end is not None:
        conditions.append(column <= end)
    return and_(*conditions)


class SqlRecordStore:
    """RecordStore backed by the application database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    @asynccontextmanager
    async def _session(self, source: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_maker() as db:
                yield db
        except (SQLAlchemyError, OSError, OverflowError) as exc:
            logger.error(f"Failed reading {source}: {exc}", exc_info=True)
            raise DataSourceError(source) from exc

    async def asset_ids_for_sites(self, tenant_id: int, site_ids: Sequence[int]) -> List[int]:
        if not site_ids:
            return []
        async with self._session("assets") as db:
            result = await db.execute(
                select(Asset.id)
                .where(Asset.organization_id == tenant_id)
                .where(Asset.site_id.in_(list(site_ids)))
            )
            return list(result.scalars())

    async def fetch_assets(
        self,
        tenant_id: int,
        asset_ids: Optional[Sequence[int]] = None,
        site_ids: Optional[Sequence[int]] = None,
    ) -> List[AssetView]:
        query = select(Asset.id, Asset.name, Asset.site_id).where(Asset.organization_id == tenant_id)
        if asset_ids is not None:
            if not asset_ids:
                return []
            query = query.where(Asset.id.in_(list(asset_ids)))
        if site_ids:
            query = query.where(Asset.site_id.in_(list(site_ids)))
        async with self._session("assets") as db:
            result = await db.execute(query)
            return [
                AssetView(tenant_id=tenant_id, id=row.id, name=row.name, site_id=row.site_id)
                for row in result
            ]

    async def fetch_sites(self, tenant_id: int, site_ids: Optional[Sequence[int]] = None) -> List[SiteView]:
        query = select(Site.id, Site.name).where(Site.organization_id == tenant_id)
        if site_ids is not None:
            if not site_ids:
                return []
            query = query.where(Site.id.in_(list(site_ids)))
        async with self._session("sites") as db:
            result = await db.execute(query)
            return [SiteView(tenant_id=tenant_id, id=row.id, name=row.name) for row in result]

    async def fetch_work_orders(self, tenant_id: int, scope: RecordScope) -> List[WorkOrderView]:
        query = (
            select(WorkOrder)
            .options(selectinload(WorkOrder.parts_used))
            .where(WorkOrder.organization_id == tenant_id)
        )
        if scope.asset_ids:
            query = query.where(WorkOrder.asset_id.in_(scope.asset_ids))
        if scope.site_ids:
            query = query.where(WorkOrder.site_id.in_(scope.site_ids))
        if scope.start is not None or scope.end is not None:
            query = query.where(
                or_(*[
                    _range_condition(getattr(WorkOrder, name), scope.start, scope.end)
                    for name in scope.work_order_dates
                ])
            )

        async with self._session("work_orders") as db:
            result = await db.execute(query)
            return [
                WorkOrderView(
                    tenant_id=wo.organization_id,
                    id=wo.id,
                    status=wo.status.value,
                    work_type=wo.work_type.value,
                    created_at=ensure_utc(wo.created_at),
                    completed_at=ensure_utc(wo.completed_at),
                    due_date=ensure_utc(wo.due_date),
                    asset_id=wo.asset_id,
                    site_id=wo.site_id,
                    pm_task_id=wo.pm_task_id,
                    failure_code=wo.failure_code,
                    time_spent_min=wo.time_spent_min,
                    parts=tuple(PartLine(cost=p.unit_cost, qty=p.quantity) for p in wo.parts_used),
                )
                for wo in result.scalars()
            ]

    async def fetch_production(self, tenant_id: int, scope: RecordScope) -> List[ProductionView]:
        query = select(ProductionRecord).where(ProductionRecord.organization_id == tenant_id)
        if scope.asset_ids:
            query = query.where(ProductionRecord.asset_id.in_(scope.asset_ids))
        if scope.site_ids:
            query = query.where(ProductionRecord.site_id.in_(scope.site_ids))
        if scope.start is not None or scope.end is not None:
            query = query.where(_range_condition(ProductionRecord.recorded_at, scope.start, scope.end))

        async with self._session("production_records") as db:
            result = await db.execute(query)
            return [
                ProductionView(
                    tenant_id=record.organization_id,
                    recorded_at=ensure_utc(record.recorded_at),
                    asset_id=record.asset_id,
                    site_id=record.site_id,
                    planned_units=record.planned_units,
                    actual_units=record.actual_units,
                    good_units=record.good_units,
                    ideal_cycle_time_sec=record.ideal_cycle_time_sec,
                    planned_time_minutes=record.planned_time_minutes,
                    run_time_minutes=record.run_time_minutes,
                    downtime_minutes=record.downtime_minutes,
                    downtime_reason=record.downtime_reason,
                    energy_consumed_kwh=record.energy_consumed_kwh,
                )
                for record in result.scalars()
            ]

    async def fetch_energy_readings(self, tenant_id: int, scope: RecordScope) -> List[EnergyReadingView]:
        query = (
            select(SensorReading.asset_id, SensorReading.timestamp, SensorReading.value)
            .where(SensorReading.organization_id == tenant_id)
            .where(SensorReading.metric == ENERGY_METRIC)
        )
        if scope.asset_ids:
            query = query.where(SensorReading.asset_id.in_(scope.asset_ids))
        if scope.start is not None or scope.end is not None:
            query = query.where(_range_condition(SensorReading.timestamp, scope.start, scope.end))

        async with self._session("sensor_readings") as db:
            result = await db.execute(query)
            return [
                EnergyReadingView(
                    tenant_id=tenant_id,
                    timestamp=ensure_utc(row.timestamp),
                    value=row.value,
                    asset_id=row.asset_id,
                )
                for row in result
            ]

    async def fetch_labor(self, tenant_id: int, scope: RecordScope) -> List[LaborView]:
        query = select(
            WorkHistory.asset_id, WorkHistory.completed_at, WorkHistory.time_spent_hours
        ).where(WorkHistory.organization_id == tenant_id)
        if scope.asset_ids:
            query = query.where(WorkHistory.asset_id.in_(scope.asset_ids))
        if scope.start is not None or scope.end is not None:
            query = query.where(_range_condition(WorkHistory.completed_at, scope.start, scope.end))

        async with self._session("work_history") as db:
            result = await db.execute(query)
            return [
                LaborView(
                    tenant_id=tenant_id,
                    completed_at=ensure_utc(row.completed_at),
                    time_spent_hours=row.time_spent_hours,
                    asset_id=row.asset_id,
                )
                for row in result
            ]


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------

def _in(value: Optional[int], ids: Tuple[int, ...]) -> bool:
    return not ids or value in ids


@dataclass
class InMemoryRecordStore:
    """RecordStore over Python lists. Applies the same scoping rules as the SQL store."""

    sites: List[SiteView] = field(default_factory=list)
    assets: List[AssetView] = field(default_factory=list)
    work_orders: List[WorkOrderView] = field(default_factory=list)
    production: List[ProductionView] = field(default_factory=list)
    energy_readings: List[EnergyReadingView] = field(default_factory=list)
    labor: List[LaborView] = field(default_factory=list)

    async def asset_ids_for_sites(self, tenant_id: int, site_ids: Sequence[int]) -> List[int]:
        wanted = set(site_ids)
        return [a.id for a in self.assets if a.tenant_id == tenant_id and a.site_id in wanted]

    async def fetch_assets(
        self,
        tenant_id: int,
        asset_ids: Optional[Sequence[int]] = None,
        site_ids: Optional[Sequence[int]] = None,
    ) -> List[AssetView]:
        return [
            a for a in self.assets
            if a.tenant_id == tenant_id
            and (asset_ids is None or a.id in asset_ids)
            and (not site_ids or a.site_id in site_ids)
        ]

    async def fetch_sites(self, tenant_id: int, site_ids: Optional[Sequence[int]] = None) -> List[SiteView]:
        return [
            s for s in self.sites
            if s.tenant_id == tenant_id and (site_ids is None or s.id in site_ids)
        ]

    async def fetch_work_orders(self, tenant_id: int, scope: RecordScope) -> List[WorkOrderView]:
        return [
            wo for wo in self.work_orders
            if wo.tenant_id == tenant_id
            and _in(wo.asset_id, scope.asset_ids)
            and _in(wo.site_id, scope.site_ids)
            and (
                (scope.start is None and scope.end is None)
                or any(scope.in_range(getattr(wo, name)) for name in scope.work_order_dates)
            )
        ]

    async def fetch_production(self, tenant_id: int, scope: RecordScope) -> List[ProductionView]:
        return [
            p for p in self.production
            if p.tenant_id == tenant_id
            and _in(p.asset_id, scope.asset_ids)
            and _in(p.site_id, scope.site_ids)
            and scope.in_range(p.recorded_at)
        ]

    async def fetch_energy_readings(self, tenant_id: int, scope: RecordScope) -> List[EnergyReadingView]:
        return [
            r for r in self.energy_readings
            if r.tenant_id == tenant_id
            and _in(r.asset_id, scope.asset_ids)
            and scope.in_range(r.timestamp)
        ]

    async def fetch_labor(self, tenant_id: int, scope: RecordScope) -> List[LaborView]:
        return [
            entry for entry in self.labor
            if entry.tenant_id == tenant_id
            and _in(entry.asset_id, scope.asset_ids)
            and scope.in_range(entry.completed_at)
        ]
