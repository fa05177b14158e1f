"""
Analytics result schemas.
"""
from typing import List, Optional

from cmms_analytics.schemas.common import CamelSchema


class TrendPoint(CamelSchema):
    period: str
    value: float


class DateRange(CamelSchema):
    start: Optional[str] = None
    end: Optional[str] = None


class Thresholds(CamelSchema):
    availability: float
    performance: float
    quality: float
    oee: float


# Energy
class AssetEnergy(CamelSchema):
    asset_id: str
    asset_name: Optional[str] = None
    total_kwh: float


class SiteEnergy(CamelSchema):
    site_id: str
    site_name: Optional[str] = None
    total_kwh: float


class EnergySummary(CamelSchema):
    total_kwh: float = 0
    average_per_hour: float = 0
    per_asset: List[AssetEnergy] = []
    per_site: List[SiteEnergy] = []


# Downtime
class DowntimeReason(CamelSchema):
    reason: str
    minutes: float


class DowntimeSummary(CamelSchema):
    total_minutes: float = 0
    reasons: List[DowntimeReason] = []
    trend: List[TrendPoint] = []


# Benchmarks
class BenchmarkEntry(CamelSchema):
    id: str
    name: str
    availability: float
    performance: float
    quality: float
    oee: float


class Benchmarks(CamelSchema):
    assets: List[BenchmarkEntry] = []
    sites: List[BenchmarkEntry] = []


class KPIResult(CamelSchema):
    """Point-in-time reliability and production metrics."""
    mttr: float
    mtbf: float
    backlog: int
    availability: float
    performance: float
    quality: float
    oee: float
    energy: EnergySummary
    downtime: DowntimeSummary
    benchmarks: Benchmarks
    thresholds: Thresholds
    range: DateRange


class TrendResult(CamelSchema):
    """Daily series, each ascending by period."""
    oee: List[TrendPoint] = []
    availability: List[TrendPoint] = []
    performance: List[TrendPoint] = []
    quality: List[TrendPoint] = []
    energy: List[TrendPoint] = []
    downtime: List[TrendPoint] = []


# Dashboard
class StatusCount(CamelSchema):
    status: str
    count: int


class PmCompliance(CamelSchema):
    total: int = 0
    completed: int = 0
    percentage: float = 0


class DashboardKpiResult(CamelSchema):
    statuses: List[StatusCount]
    overdue: int = 0
    pm_compliance: PmCompliance = PmCompliance()
    downtime_hours: float = 0
    maintenance_cost: float = 0
    parts_spend: float = 0
    backlog_aging_days: float = 0
    labor_utilization: float = 0
    mttr: float = 0
    mtbf: float = 0


class MetricWithTrend(CamelSchema):
    value: float = 0
    trend: List[TrendPoint] = []


class PmComplianceMetric(PmCompliance):
    trend: List[TrendPoint] = []


class WorkOrderVolumeMetric(CamelSchema):
    """Created work orders in range: status histogram and a daily series."""
    total: int = 0
    by_status: List[StatusCount]
    trend: List[TrendPoint] = []


class MaintenanceMetrics(CamelSchema):
    mttr: float
    mtbf: float
    backlog: int
    pm_compliance: PmCompliance
    range: DateRange


# Corporate rollups
class CorporateSiteSummary(CamelSchema):
    site_id: str
    site_name: Optional[str] = None
    tenant_id: str
    total_work_orders: int
    open_work_orders: int
    completed_work_orders: int
    backlog: int
    mttr_hours: float
    mtbf_hours: float
    pm_compliance: PmCompliance


class CorporateTotals(CamelSchema):
    total_work_orders: int = 0
    open_work_orders: int = 0
    completed_work_orders: int = 0
    backlog: int = 0
    pm_compliance: float = 0
    average_mttr: float = 0
    average_mtbf: float = 0


class CorporateOverview(CamelSchema):
    totals: CorporateTotals
    per_site: List[CorporateSiteSummary]


# PM what-if
class PmUsage(CamelSchema):
    run_hours_per_day: float = 0
    cycles_per_day: float = 0


class PmAssetCompliance(CamelSchema):
    total: int
    completed: int
    overdue: int
    percentage: float
    impact_score: float


class PmAssetInsight(CamelSchema):
    asset_id: str
    asset_name: Optional[str] = None
    usage: PmUsage
    failure_probability: float
    compliance: PmAssetCompliance


class PmScenario(CamelSchema):
    label: str
    description: str
    interval_delta: int
    failure_probability: float
    compliance_percentage: float


class PmWhatIfResponse(CamelSchema):
    updated_at: str
    assets: List[PmAssetInsight]
    scenarios: List[PmScenario]
