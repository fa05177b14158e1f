"""
Pydantic schemas for API request/response validation.
"""
from cmms_analytics.schemas.common import CamelSchema, ErrorResponse
from cmms_analytics.schemas.analytics import (
    KPIResult, TrendResult, DashboardKpiResult, MaintenanceMetrics,
    CorporateSiteSummary, CorporateOverview, PmWhatIfResponse,
)
from cmms_analytics.schemas.reports import (
    ReportQuery, ReportFilter, ReportCalculation, ReportDateRange,
    CustomReportResponse, ReportModelInfo,
    ReportTemplateCreate, ReportTemplateUpdate, ReportTemplateResponse,
)
