"""
Custom report builder endpoints: model catalogue, ad-hoc queries, exports
and saved templates.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Query, status
from fastapi.responses import Response

from cmms_analytics.api.deps import CurrentCaller, ReportBackendDep, TemplateService
from cmms_analytics.schemas.common import ErrorResponse
from cmms_analytics.schemas.reports import (
    CustomReportResponse,
    ReportFieldInfo,
    ReportModelInfo,
    ReportQuery,
    ReportTemplateCreate,
    ReportTemplateResponse,
    ReportTemplateUpdate,
)
from cmms_analytics.services.permissions import assert_permission
from cmms_analytics.services.report_generator import ReportGenerator, custom_report_section, describe_range
from cmms_analytics.services.report_models import REPORT_MODELS
from cmms_analytics.services.report_query import run_report_query

router = APIRouter(
    responses={
        400: {"model": ErrorResponse, "description": "Invalid report query"},
        403: {"model": ErrorResponse, "description": "Permission or visibility denied"},
        404: {"model": ErrorResponse, "description": "Template not found in tenant"},
    }
)


@router.get("/models", response_model=List[ReportModelInfo])
async def list_report_models(caller: CurrentCaller) -> Any:
    """Selectable fields per report model."""
    assert_permission(caller, "reports", "read")
    return [
        ReportModelInfo(
            model=spec.model.value,
            label=spec.label,
            time_field=spec.time_field,
            fields=[
                ReportFieldInfo(
                    key=field.key,
                    label=field.label,
                    kind=field.kind.value,
                    numeric=field.numeric,
                    choices=list(field.choices),
                )
                for field in spec.fields
            ],
            default_fields=list(spec.default_fields),
        )
        for spec in REPORT_MODELS.values()
    ]


@router.post("/query", response_model=CustomReportResponse)
async def run_query(query: ReportQuery, caller: CurrentCaller, backend: ReportBackendDep) -> Any:
    assert_permission(caller, "reports", "read")
    return await run_report_query(backend, caller.tenant_id, query)


@router.post("/export")
async def export_query(
    query: ReportQuery,
    caller: CurrentCaller,
    backend: ReportBackendDep,
    format: str = Query("csv", description="csv, pdf or xlsx"),
) -> Response:
    """Run a query and return it as a downloadable file."""
    assert_permission(caller, "reports", "export")
    report = await run_report_query(backend, caller.tenant_id, query)
    date_range = query.date_range
    rendered = ReportGenerator().render(
        format,
        basename=f"custom_report_{query.model}",
        title="Custom Report",
        subtitle=describe_range(date_range.from_ if date_range else None, date_range.to if date_range else None),
        sections=[custom_report_section(report)],
    )
    return Response(
        content=rendered.content,
        media_type=rendered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )


@router.get("/templates", response_model=List[ReportTemplateResponse])
async def list_templates(caller: CurrentCaller, service: TemplateService) -> Any:
    """Templates visible to the caller, most recently updated first."""
    return await service.list_templates(caller)


@router.post("/templates", response_model=ReportTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(data: ReportTemplateCreate, caller: CurrentCaller, service: TemplateService) -> Any:
    return await service.create_template(caller, data)


@router.get("/templates/{template_ref}", response_model=ReportTemplateResponse)
async def get_template(template_ref: str, caller: CurrentCaller, service: TemplateService) -> Any:
    """Fetch by numeric id or share id."""
    return await service.get_template(caller, template_ref)


@router.put("/templates/{template_ref}", response_model=ReportTemplateResponse)
async def update_template(
    template_ref: str,
    data: ReportTemplateUpdate,
    caller: CurrentCaller,
    service: TemplateService,
) -> Any:
    return await service.update_template(caller, template_ref, data)


@router.post("/templates/{template_ref}/run", response_model=CustomReportResponse)
async def run_template(
    template_ref: str,
    caller: CurrentCaller,
    service: TemplateService,
    limit: Optional[int] = Query(None, ge=1),
) -> Any:
    return await service.run_template(caller, template_ref, limit)
