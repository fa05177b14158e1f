"""
Reliability and production metric calculations.

Everything here is a pure function of the record views passed in. Sparse or
zero-valued inputs degrade to zeros; nothing in this module divides by zero or
raises on empty collections.
"""
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from cmms_analytics.models.work_order import WorkOrderStatus, WorkOrderType
from cmms_analytics.schemas.analytics import (
    AssetEnergy,
    BenchmarkEntry,
    Benchmarks,
    CorporateOverview,
    CorporateSiteSummary,
    CorporateTotals,
    DashboardKpiResult,
    DateRange,
    DowntimeReason,
    DowntimeSummary,
    EnergySummary,
    KPIResult,
    MetricWithTrend,
    PmAssetCompliance,
    PmAssetInsight,
    PmCompliance,
    PmComplianceMetric,
    PmScenario,
    PmUsage,
    PmWhatIfResponse,
    SiteEnergy,
    StatusCount,
    Thresholds,
    TrendPoint,
    TrendResult,
    WorkOrderVolumeMetric,
)
from cmms_analytics.services.filters import AnalyticsFilters, ensure_utc, isoformat_utc
from cmms_analytics.services.record_store import (
    AssetView,
    EnergyReadingView,
    LaborView,
    ProductionView,
    SiteView,
    WorkOrderView,
)

UNASSIGNED = "unassigned"
UNSPECIFIED_REASON = "unspecified"

PRODUCTION_LOOKBACK_DAYS = 30
WORKORDER_LOOKBACK_DAYS = 180
WHAT_IF_TOP_ASSETS = 12
LABOR_HOURS_PER_DAY = 8
DEFAULT_LABOR_WINDOW_DAYS = 30

DEFAULT_THRESHOLDS = Thresholds(availability=0.85, performance=0.9, quality=0.95, oee=0.8)

WORK_ORDER_STATUS_ORDER = [status.value for status in WorkOrderStatus]
CLOSED_STATUSES = {WorkOrderStatus.COMPLETED.value, WorkOrderStatus.CANCELLED.value}


@dataclass
class AnalyticsSources:
    """The filtered record set a KPI or trend computation runs over."""

    work_orders: List[WorkOrderView] = field(default_factory=list)
    production: List[ProductionView] = field(default_factory=list)
    energy_readings: List[EnergyReadingView] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def safe_divide(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


def day_bucket(moment: datetime) -> str:
    return ensure_utc(moment).date().isoformat()


def _key(value: Optional[int]) -> str:
    return str(value) if value is not None else UNASSIGNED


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600


def _sorted_trend(buckets: Mapping[str, float]) -> List[TrendPoint]:
    return [TrendPoint(period=period, value=value) for period, value in sorted(buckets.items())]


# ---------------------------------------------------------------------------
# Work-order reliability
# ---------------------------------------------------------------------------

def calculate_mttr(work_orders: Iterable[WorkOrderView]) -> float:
    """Mean hours from creation to completion over completed work orders."""
    completed = [wo for wo in work_orders if wo.completed_at is not None]
    if not completed:
        return 0.0
    total = 0.0
    for wo in completed:
        start = wo.created_at or wo.completed_at
        total += max(_hours(wo.completed_at - start), 0.0)
    return safe_divide(total, len(completed))


def calculate_mtbf(work_orders: Iterable[WorkOrderView]) -> float:
    """Mean hours between consecutive completions."""
    completions = sorted(wo.completed_at for wo in work_orders if wo.completed_at is not None)
    if len(completions) < 2:
        return 0.0
    gaps = sum(_hours(later - earlier) for earlier, later in zip(completions, completions[1:]))
    return safe_divide(gaps, len(completions) - 1)


def calculate_backlog(work_orders: Iterable[WorkOrderView]) -> int:
    return sum(1 for wo in work_orders if wo.status != WorkOrderStatus.COMPLETED.value)


def pm_compliance(work_orders: Iterable[WorkOrderView]) -> PmCompliance:
    preventive = [wo for wo in work_orders if wo.is_preventive]
    completed = sum(1 for wo in preventive if wo.status == WorkOrderStatus.COMPLETED.value)
    return PmCompliance(
        total=len(preventive),
        completed=completed,
        percentage=safe_divide(completed, len(preventive)) * 100,
    )


@dataclass
class DowntimeBreakdown:
    total_minutes: float = 0.0
    reasons: Dict[str, float] = field(default_factory=dict)
    trend: Dict[str, float] = field(default_factory=dict)


def work_order_downtime_minutes(wo: WorkOrderView) -> float:
    minutes = wo.time_spent_min or 0.0
    if not minutes and wo.created_at and wo.completed_at and wo.completed_at > wo.created_at:
        minutes = (wo.completed_at - wo.created_at).total_seconds() / 60
    return minutes


def calculate_downtime(work_orders: Iterable[WorkOrderView]) -> DowntimeBreakdown:
    breakdown = DowntimeBreakdown()
    for wo in work_orders:
        minutes = work_order_downtime_minutes(wo)
        if not minutes:
            continue
        breakdown.total_minutes += minutes
        reason = wo.failure_code or UNSPECIFIED_REASON
        breakdown.reasons[reason] = breakdown.reasons.get(reason, 0.0) + minutes
        moment = wo.completed_at or wo.created_at
        if moment is not None:
            day = day_bucket(moment)
            breakdown.trend[day] = breakdown.trend.get(day, 0.0) + minutes
    return breakdown


def downtime_summary(breakdown: DowntimeBreakdown) -> DowntimeSummary:
    reasons = sorted(breakdown.reasons.items(), key=lambda item: item[1], reverse=True)
    return DowntimeSummary(
        total_minutes=breakdown.total_minutes,
        reasons=[DowntimeReason(reason=reason, minutes=minutes) for reason, minutes in reasons],
        trend=_sorted_trend(breakdown.trend),
    )


# ---------------------------------------------------------------------------
# OEE
# ---------------------------------------------------------------------------

@dataclass
class ProductionTotals:
    planned_time_minutes: float = 0.0
    run_time_minutes: float = 0.0
    downtime_minutes: float = 0.0
    actual_units: float = 0.0
    good_units: float = 0.0
    ideal_time_seconds: float = 0.0


@dataclass(frozen=True)
class OeeFactors:
    availability: float
    performance: float
    quality: float

    @property
    def oee(self) -> float:
        return self.availability * self.performance * self.quality


def aggregate_production(records: Iterable[ProductionView]) -> ProductionTotals:
    totals = ProductionTotals()
    for record in records:
        actual = record.actual_units or 0.0
        good = record.good_units if record.good_units is not None else actual
        totals.planned_time_minutes += record.planned_time_minutes or 0.0
        totals.run_time_minutes += record.run_time_minutes or 0.0
        totals.downtime_minutes += record.downtime_minutes or 0.0
        totals.actual_units += actual
        totals.good_units += good
        totals.ideal_time_seconds += (record.ideal_cycle_time_sec or 0.0) * actual
    return totals


def compute_oee(totals: ProductionTotals) -> OeeFactors:
    """Availability, performance and quality for an aggregated record set.

    Run time is the recorded run time when present, otherwise planned time less
    downtime (never below zero), so every factor stays within [0, 1].
    """
    planned = totals.planned_time_minutes
    run_time = totals.run_time_minutes or max(planned - totals.downtime_minutes, 0.0)
    availability = min(1.0, max(0.0, run_time / planned)) if planned else 0.0
    performance = min(1.0, safe_divide(totals.ideal_time_seconds, run_time * 60)) if run_time else 0.0
    quality = safe_divide(totals.good_units, totals.actual_units) if totals.actual_units else 0.0
    return OeeFactors(availability=availability, performance=performance, quality=quality)


def build_benchmarks(
    records: Iterable[ProductionView],
    key_for: Callable[[ProductionView], Optional[str]],
    names: Mapping[str, str],
) -> List[BenchmarkEntry]:
    """Per-entity OEE leaderboard, best first."""
    groups: Dict[str, List[ProductionView]] = defaultdict(list)
    for record in records:
        groups[key_for(record) or UNASSIGNED].append(record)

    entries = []
    for entity_id, group in groups.items():
        factors = compute_oee(aggregate_production(group))
        default_name = "Unassigned" if entity_id == UNASSIGNED else entity_id
        entries.append(
            BenchmarkEntry(
                id=entity_id,
                name=names.get(entity_id, default_name),
                availability=factors.availability,
                performance=factors.performance,
                quality=factors.quality,
                oee=factors.oee,
            )
        )
    return sorted(entries, key=lambda entry: entry.oee, reverse=True)


# ---------------------------------------------------------------------------
# Energy
# ---------------------------------------------------------------------------

def compute_energy(
    readings: Sequence[EnergyReadingView],
    production: Iterable[ProductionView],
    asset_names: Mapping[str, str],
    site_names: Mapping[str, str],
    asset_sites: Mapping[str, Optional[str]],
    filters: AnalyticsFilters,
) -> EnergySummary:
    per_asset: Dict[str, float] = {}
    for reading in readings:
        key = _key(reading.asset_id)
        per_asset[key] = per_asset.get(key, 0.0) + reading.value
    for record in production:
        if not record.energy_consumed_kwh:
            continue
        key = _key(record.asset_id)
        per_asset[key] = per_asset.get(key, 0.0) + record.energy_consumed_kwh

    per_site: Dict[str, float] = {}
    for asset_id, value in per_asset.items():
        site_id = asset_sites.get(asset_id) or UNASSIGNED
        per_site[site_id] = per_site.get(site_id, 0.0) + value

    total_kwh = sum(per_asset.values())

    timestamps = [reading.timestamp for reading in readings]
    start = filters.start_date or (min(timestamps) if timestamps else None)
    end = filters.end_date or (max(timestamps) if timestamps else None)
    hours = _hours(end - start) if start and end and end > start else 0.0

    return EnergySummary(
        total_kwh=total_kwh,
        average_per_hour=total_kwh / hours if hours else total_kwh,
        per_asset=sorted(
            (
                AssetEnergy(asset_id=asset_id, asset_name=asset_names.get(asset_id), total_kwh=value)
                for asset_id, value in per_asset.items()
            ),
            key=lambda entry: entry.total_kwh,
            reverse=True,
        ),
        per_site=sorted(
            (
                SiteEnergy(site_id=site_id, site_name=site_names.get(site_id), total_kwh=value)
                for site_id, value in per_site.items()
            ),
            key=lambda entry: entry.total_kwh,
            reverse=True,
        ),
    )


# ---------------------------------------------------------------------------
# KPI summary and trends
# ---------------------------------------------------------------------------

def compute_kpis(
    sources: AnalyticsSources,
    assets: Iterable[AssetView],
    sites: Iterable[SiteView],
    filters: AnalyticsFilters,
) -> KPIResult:
    """Assemble the KPI summary from an already-filtered record set.

    ``assets`` and ``sites`` only resolve names and asset-to-site membership.
    """
    factors = compute_oee(aggregate_production(sources.production))
    downtime = calculate_downtime(sources.work_orders)

    asset_names = {str(asset.id): asset.name for asset in assets}
    asset_sites = {
        str(asset.id): str(asset.site_id) if asset.site_id is not None else None
        for asset in assets
    }
    site_names = {str(site.id): site.name for site in sites}

    def site_key(record: ProductionView) -> Optional[str]:
        if record.site_id is not None:
            return str(record.site_id)
        if record.asset_id is not None:
            return asset_sites.get(str(record.asset_id))
        return None

    return KPIResult(
        mttr=calculate_mttr(sources.work_orders),
        mtbf=calculate_mtbf(sources.work_orders),
        backlog=calculate_backlog(sources.work_orders),
        availability=factors.availability,
        performance=factors.performance,
        quality=factors.quality,
        oee=factors.oee,
        energy=compute_energy(
            sources.energy_readings, sources.production, asset_names, site_names, asset_sites, filters
        ),
        downtime=downtime_summary(downtime),
        benchmarks=Benchmarks(
            assets=build_benchmarks(
                sources.production,
                lambda record: str(record.asset_id) if record.asset_id is not None else None,
                asset_names,
            ),
            sites=build_benchmarks(sources.production, site_key, site_names),
        ),
        thresholds=DEFAULT_THRESHOLDS,
        range=DateRange(**filters.range_payload()),
    )


def compute_trends(sources: AnalyticsSources) -> TrendResult:
    by_day: Dict[str, List[ProductionView]] = defaultdict(list)
    for record in sources.production:
        by_day[day_bucket(record.recorded_at)].append(record)

    result = TrendResult()
    for period in sorted(by_day):
        factors = compute_oee(aggregate_production(by_day[period]))
        result.oee.append(TrendPoint(period=period, value=factors.oee))
        result.availability.append(TrendPoint(period=period, value=factors.availability))
        result.performance.append(TrendPoint(period=period, value=factors.performance))
        result.quality.append(TrendPoint(period=period, value=factors.quality))

    energy: Dict[str, float] = {}
    for reading in sources.energy_readings:
        period = day_bucket(reading.timestamp)
        energy[period] = energy.get(period, 0.0) + reading.value
    for record in sources.production:
        if record.energy_consumed_kwh:
            period = day_bucket(record.recorded_at)
            energy[period] = energy.get(period, 0.0) + record.energy_consumed_kwh

    result.energy = _sorted_trend(energy)
    result.downtime = _sorted_trend(calculate_downtime(sources.work_orders).trend)
    return result


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def empty_dashboard() -> DashboardKpiResult:
    return DashboardKpiResult(
        statuses=[StatusCount(status=status, count=0) for status in WORK_ORDER_STATUS_ORDER],
    )


def parts_cost(wo: WorkOrderView) -> float:
    total = 0.0
    for line in wo.parts:
        qty = line.qty if line.qty is not None else 1
        total += (line.cost or 0.0) * qty
    return total


def labor_window_days(filters: AnalyticsFilters, now: datetime) -> int:
    if not filters.has_range:
        return DEFAULT_LABOR_WINDOW_DAYS
    end = filters.end_date or now
    start = filters.start_date or now
    return max(1, math.ceil((end - start).total_seconds() / 86400))


def compute_dashboard(
    work_orders: Sequence[WorkOrderView],
    labor: Iterable[LaborView],
    filters: AnalyticsFilters,
    now: datetime,
) -> DashboardKpiResult:
    """Status histogram, overdue count, PM compliance, cost, backlog aging and labor use."""
    if not work_orders:
        return empty_dashboard()

    reference = filters.end_date or now
    counts = {status: 0 for status in WORK_ORDER_STATUS_ORDER}
    overdue = 0
    cost = 0.0
    backlog_age = 0.0
    backlog_count = 0
    for wo in work_orders:
        counts[wo.status] = counts.get(wo.status, 0) + 1
        is_open = wo.status not in CLOSED_STATUSES
        if is_open and wo.due_date is not None and wo.due_date < reference:
            overdue += 1
        if is_open and wo.created_at is not None:
            backlog_age += max(0.0, (reference - wo.created_at).total_seconds() / 86400)
            backlog_count += 1
        cost += parts_cost(wo)

    labor_hours = sum(entry.time_spent_hours or 0.0 for entry in labor)
    capacity = labor_window_days(filters, now) * LABOR_HOURS_PER_DAY

    return DashboardKpiResult(
        statuses=[StatusCount(status=status, count=counts[status]) for status in WORK_ORDER_STATUS_ORDER],
        overdue=overdue,
        pm_compliance=pm_compliance(work_orders),
        downtime_hours=calculate_downtime(work_orders).total_minutes / 60,
        maintenance_cost=cost,
        parts_spend=cost,
        backlog_aging_days=safe_divide(backlog_age, backlog_count),
        labor_utilization=min(100.0, safe_divide(labor_hours, capacity) * 100),
        mttr=calculate_mttr(work_orders),
        mtbf=calculate_mtbf(work_orders),
    )


def scope_by_date(
    work_orders: Iterable[WorkOrderView],
    filters: AnalyticsFilters,
    moment: Callable[[WorkOrderView], Optional[datetime]],
) -> List[WorkOrderView]:
    """Keep the work orders whose ``moment`` falls in the filter range."""
    return [wo for wo in work_orders if filters.contains(moment(wo))]


def _by_completion_day(work_orders: Iterable[WorkOrderView]) -> Dict[str, List[WorkOrderView]]:
    buckets: Dict[str, List[WorkOrderView]] = defaultdict(list)
    for wo in work_orders:
        if wo.completed_at is not None:
            buckets[day_bucket(wo.completed_at)].append(wo)
    return buckets


def compute_dashboard_mtbf(work_orders: Iterable[WorkOrderView], filters: AnalyticsFilters) -> MetricWithTrend:
    """MTBF over work orders completed in range, with a daily MTBF series."""
    scoped = scope_by_date(work_orders, filters, lambda wo: wo.completed_at)
    trend = {
        period: round(calculate_mtbf(orders), 2)
        for period, orders in _by_completion_day(scoped).items()
    }
    return MetricWithTrend(value=round(calculate_mtbf(scoped), 2), trend=_sorted_trend(trend))


def compute_dashboard_pm_compliance(
    work_orders: Iterable[WorkOrderView], filters: AnalyticsFilters
) -> PmComplianceMetric:
    scoped = scope_by_date(work_orders, filters, lambda wo: wo.completed_at)
    overall = pm_compliance(scoped)
    trend = {
        period: round(pm_compliance(orders).percentage, 1)
        for period, orders in _by_completion_day(wo for wo in scoped if wo.is_preventive).items()
    }
    return PmComplianceMetric(
        total=overall.total,
        completed=overall.completed,
        percentage=overall.percentage,
        trend=_sorted_trend(trend),
    )


def compute_dashboard_work_order_volume(
    work_orders: Iterable[WorkOrderView], filters: AnalyticsFilters
) -> WorkOrderVolumeMetric:
    """Work orders created in range by status, plus daily created counts."""
    scoped = scope_by_date(work_orders, filters, lambda wo: wo.created_at)
    counts = {status: 0 for status in WORK_ORDER_STATUS_ORDER}
    created: Dict[str, float] = defaultdict(float)
    for wo in scoped:
        if wo.status in counts:
            counts[wo.status] += 1
        if wo.created_at is not None:
            created[day_bucket(wo.created_at)] += 1
    return WorkOrderVolumeMetric(
        total=len(scoped),
        by_status=[StatusCount(status=status, count=counts[status]) for status in WORK_ORDER_STATUS_ORDER],
        trend=_sorted_trend(created),
    )


# ---------------------------------------------------------------------------
# Corporate rollups
# ---------------------------------------------------------------------------

def compute_site_summaries(
    tenant_id: int,
    sites: Iterable[SiteView],
    work_orders: Iterable[WorkOrderView],
) -> List[CorporateSiteSummary]:
    """One summary per site, including sites without work orders, sorted by name."""
    site_names = {str(site.id): site.name for site in sites}
    grouped: Dict[str, List[WorkOrderView]] = defaultdict(list)
    for wo in work_orders:
        grouped[_key(wo.site_id)].append(wo)
    for site_id in site_names:
        grouped.setdefault(site_id, [])

    summaries = []
    for site_id, orders in grouped.items():
        summaries.append(
            CorporateSiteSummary(
                site_id=site_id,
                site_name=site_names.get(site_id, "Unassigned" if site_id == UNASSIGNED else None),
                tenant_id=str(tenant_id),
                total_work_orders=len(orders),
                open_work_orders=sum(1 for wo in orders if wo.status not in CLOSED_STATUSES),
                completed_work_orders=sum(
                    1 for wo in orders if wo.status == WorkOrderStatus.COMPLETED.value
                ),
                backlog=calculate_backlog(orders),
                mttr_hours=calculate_mttr(orders),
                mtbf_hours=calculate_mtbf(orders),
                pm_compliance=pm_compliance(orders),
            )
        )
    return sorted(summaries, key=lambda s: ((s.site_name or s.site_id).casefold(), s.site_id))


def compute_corporate_overview(per_site: List[CorporateSiteSummary]) -> CorporateOverview:
    totals = CorporateTotals()
    pm_total = 0
    pm_completed = 0
    for site in per_site:
        totals.total_work_orders += site.total_work_orders
        totals.open_work_orders += site.open_work_orders
        totals.completed_work_orders += site.completed_work_orders
        totals.backlog += site.backlog
        pm_total += site.pm_compliance.total
        pm_completed += site.pm_compliance.completed
    if per_site:
        totals.average_mttr = sum(site.mttr_hours for site in per_site) / len(per_site)
        totals.average_mtbf = sum(site.mtbf_hours for site in per_site) / len(per_site)
    totals.pm_compliance = safe_divide(pm_completed, pm_total) * 100
    return CorporateOverview(totals=totals, per_site=per_site)


# ---------------------------------------------------------------------------
# PM what-if simulation
# ---------------------------------------------------------------------------

def format_usage(value: float) -> float:
    return round(value, 2) if math.isfinite(value) else 0.0


def format_probability(value: float) -> float:
    return round(value, 3) if math.isfinite(value) else 0.0


@dataclass
class _PmStats:
    preventive: int = 0
    completed_preventive: int = 0
    overdue: int = 0
    corrective: int = 0
    total: int = 0


def compute_what_if(
    assets: Iterable[AssetView],
    production: Iterable[ProductionView],
    work_orders: Iterable[WorkOrderView],
    now: datetime,
) -> PmWhatIfResponse:
    """Rank assets by PM risk and derive the fixed interval scenarios.

    ``production`` should cover the production lookback window and
    ``work_orders`` the work-order lookback window; records outside them are
    ignored here as well.
    """
    production_cutoff = now - timedelta(days=PRODUCTION_LOOKBACK_DAYS)
    work_order_cutoff = now - timedelta(days=WORKORDER_LOOKBACK_DAYS)

    asset_names = {str(asset.id): asset.name for asset in sorted(assets, key=lambda a: a.id)}

    run_minutes: Dict[str, float] = {}
    cycles: Dict[str, float] = {}
    for record in production:
        if record.asset_id is None or record.recorded_at < production_cutoff:
            continue
        key = str(record.asset_id)
        run_minutes[key] = run_minutes.get(key, 0.0) + (record.run_time_minutes or 0.0)
        cycles[key] = cycles.get(key, 0.0) + (record.actual_units or 0.0)

    pm_stats: Dict[str, _PmStats] = {}
    for wo in work_orders:
        if wo.asset_id is None or wo.created_at is None or wo.created_at < work_order_cutoff:
            continue
        stats = pm_stats.setdefault(str(wo.asset_id), _PmStats())
        stats.total += 1
        if wo.work_type == WorkOrderType.CORRECTIVE.value:
            stats.corrective += 1
        if wo.is_preventive:
            stats.preventive += 1
            if wo.status == WorkOrderStatus.COMPLETED.value:
                stats.completed_preventive += 1
            elif wo.due_date is not None and wo.due_date < now:
                stats.overdue += 1

    asset_ids = list(dict.fromkeys([*asset_names, *run_minutes, *pm_stats]))
    insights = []
    for asset_id in asset_ids:
        stats = pm_stats.get(asset_id, _PmStats())
        compliance = safe_divide(stats.completed_preventive, stats.preventive) * 100
        failure_probability = safe_divide(stats.corrective, stats.total)
        impact = min(100.0, stats.overdue * 10 + (1 - compliance / 100) * 40 + failure_probability * 50)
        insights.append(
            PmAssetInsight(
                asset_id=asset_id,
                asset_name=asset_names.get(asset_id),
                usage=PmUsage(
                    run_hours_per_day=format_usage(run_minutes.get(asset_id, 0.0) / 60 / PRODUCTION_LOOKBACK_DAYS),
                    cycles_per_day=format_usage(cycles.get(asset_id, 0.0) / PRODUCTION_LOOKBACK_DAYS),
                ),
                failure_probability=format_probability(failure_probability),
                compliance=PmAssetCompliance(
                    total=stats.preventive,
                    completed=stats.completed_preventive,
                    overdue=stats.overdue,
                    percentage=format_usage(compliance),
                    impact_score=format_usage(impact),
                ),
            )
        )

    ranked = sorted(insights, key=lambda i: i.compliance.impact_score, reverse=True)[:WHAT_IF_TOP_ASSETS]
    average_failure = safe_divide(sum(i.failure_probability for i in ranked), len(ranked))
    average_compliance = safe_divide(sum(i.compliance.percentage for i in ranked), len(ranked))

    scenarios = [
        PmScenario(
            label="Current plan",
            description="Existing preventive maintenance cadence.",
            interval_delta=0,
            failure_probability=format_probability(average_failure),
            compliance_percentage=format_usage(average_compliance),
        ),
        PmScenario(
            label="Accelerate PM",
            description="Reduce PM intervals by 20% to target high-risk assets.",
            interval_delta=-20,
            failure_probability=format_probability(max(average_failure - 0.12, 0.0)),
            compliance_percentage=format_usage(min(average_compliance + 8, 100.0)),
        ),
        PmScenario(
            label="Defer PM",
            description="Extend PM intervals by 15% and accept higher risk.",
            interval_delta=15,
            failure_probability=format_probability(min(average_failure + 0.1, 1.0)),
            compliance_percentage=format_usage(max(average_compliance - 6, 0.0)),
        ),
    ]

    return PmWhatIfResponse(updated_at=isoformat_utc(now), assets=ranked, scenarios=scenarios)
