"""
Operational analytics endpoints: KPIs, trends, dashboard, corporate rollups
and PM what-if simulations.
"""
from typing import Any, List

from fastapi import APIRouter, Query
from fastapi.responses import Response

from cmms_analytics.api.deps import Analytics, CurrentCaller, Filters
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
from cmms_analytics.services.report_generator import (
    ReportGenerator,
    describe_range,
    kpi_sections,
    kpi_summary_metrics,
)

router = APIRouter()


@router.get("/kpis", response_model=KPIResult)
async def get_kpis(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    """
    MTTR, MTBF, backlog, OEE factors, energy, downtime and benchmarks.
    """
    return await service.compute_kpis(caller.tenant_id, filters)


@router.get("/kpis/export")
async def export_kpis(
    caller: CurrentCaller,
    filters: Filters,
    service: Analytics,
    format: str = Query("csv", description="csv, pdf or xlsx"),
) -> Response:
    """Export the KPI summary."""
    kpis = await service.compute_kpis(caller.tenant_id, filters)
    rendered = ReportGenerator().render(
        format,
        basename="kpi_summary",
        title="Operational KPI Summary",
        subtitle=describe_range(kpis.range.start, kpis.range.end),
        sections=kpi_sections(kpis),
        summary_metrics=kpi_summary_metrics(kpis),
    )
    return Response(
        content=rendered.content,
        media_type=rendered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )


@router.get("/trends", response_model=TrendResult)
async def get_trends(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    """Daily OEE, availability, performance, quality, energy and downtime series."""
    return await service.compute_trends(caller.tenant_id, filters)


@router.get("/dashboard", response_model=DashboardKpiResult)
async def get_dashboard(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    return await service.compute_dashboard_summary(caller.tenant_id, filters)


@router.get("/dashboard/mtbf", response_model=MetricWithTrend)
async def get_dashboard_mtbf(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    """MTBF over work orders completed in range, with a daily series."""
    return await service.compute_dashboard_mtbf(caller.tenant_id, filters)


@router.get("/dashboard/pm-compliance", response_model=PmComplianceMetric)
async def get_dashboard_pm_compliance(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    return await service.compute_dashboard_pm_compliance(caller.tenant_id, filters)


@router.get("/dashboard/work-order-volume", response_model=WorkOrderVolumeMetric)
async def get_dashboard_work_order_volume(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    return await service.compute_dashboard_work_order_volume(caller.tenant_id, filters)


@router.get("/maintenance", response_model=MaintenanceMetrics)
async def get_maintenance_metrics(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    return await service.compute_maintenance_metrics(caller.tenant_id, filters)


@router.get("/corporate/sites", response_model=List[CorporateSiteSummary])
async def get_site_summaries(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    """Per-site work-order rollups, sorted by site name."""
    return await service.compute_site_summaries(caller.tenant_id, filters)


@router.get("/corporate/overview", response_model=CorporateOverview)
async def get_corporate_overview(caller: CurrentCaller, filters: Filters, service: Analytics) -> Any:
    return await service.compute_corporate_overview(caller.tenant_id, filters)


@router.get("/pm/what-if", response_model=PmWhatIfResponse)
async def get_pm_what_if(caller: CurrentCaller, service: Analytics) -> Any:
    """
    Rank assets by failure probability and project PM interval scenarios.
    """
    return await service.compute_what_if_simulations(caller.tenant_id)
