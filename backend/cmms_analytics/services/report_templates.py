"""
Saved report templates: create, update, list, get and run, with one
visibility rule shared by every read path.
"""
import logging
from typing import Callable, List, Optional, Union

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cmms_analytics.core.exceptions import ForbiddenError, NotFoundError
from cmms_analytics.models.report_template import ReportTemplate, VisibilityScope, generate_share_id
from cmms_analytics.schemas.reports import (
    CustomReportResponse,
    ReportQuery,
    ReportTemplateCreate,
    ReportTemplateResponse,
    ReportTemplateUpdate,
    TemplateVisibility,
)
from cmms_analytics.services.filters import parse_id
from cmms_analytics.services.permissions import Caller, assert_permission
from cmms_analytics.services.report_backends import SqlAlchemyReportBackend
from cmms_analytics.services.report_query import ReportBackend, plan_report_query, run_report_query

logger = logging.getLogger(__name__)

REPORTS = "reports"


def is_template_visible(template: ReportTemplate, caller: Caller) -> bool:
    """Owner, tenant-wide templates, or role-scoped templates sharing a role with the caller."""
    if template.owner_id == caller.user_id:
        return True
    scope = VisibilityScope(template.visibility_scope)
    if scope == VisibilityScope.TENANT:
        return True
    if scope == VisibilityScope.ROLES:
        return bool(set(template.visibility_roles or []) & set(caller.roles))
    return False


def template_query(template: ReportTemplate) -> ReportQuery:
    """The stored query definition as a ReportQuery."""
    return ReportQuery.model_validate(
        {
            "model": template.model,
            "fields": template.fields or [],
            "filters": template.filters or [],
            "groupBy": template.group_by or [],
            "calculations": template.calculations or [],
            "dateRange": template.date_range,
        }
    )


def serialize_template(template: ReportTemplate) -> ReportTemplateResponse:
    return ReportTemplateResponse(
        id=template.id,
        tenant_id=str(template.organization_id),
        owner_id=template.owner_id,
        name=template.name,
        description=template.description,
        model=template.model,
        fields=template.fields or [],
        filters=template.filters or [],
        group_by=template.group_by or [],
        calculations=template.calculations or [],
        date_range=template.date_range,
        visibility=TemplateVisibility(
            scope=VisibilityScope(template.visibility_scope).value,
            roles=template.visibility_roles or [],
        ),
        share_id=template.share_id,
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


def _dump_query(query: ReportQuery) -> dict:
    return {
        "model": query.model,
        "fields": list(query.fields),
        "filters": [f.model_dump(by_alias=True) for f in query.filters],
        "group_by": list(query.group_by),
        "calculations": [c.model_dump(by_alias=True) for c in query.calculations],
        "date_range": query.date_range.model_dump(by_alias=True) if query.date_range else None,
    }


class ReportTemplateService:
    """Template persistence on an AsyncSession. Callers commit through the session dependency."""

    def __init__(
        self,
        db: AsyncSession,
        backend_factory: Optional[Callable[[AsyncSession], ReportBackend]] = None,
    ):
        self.db = db
        self.backend_factory = backend_factory or SqlAlchemyReportBackend

    async def _find(self, tenant_id: int, id_or_share_id: Union[int, str]) -> ReportTemplate:
        key = str(id_or_share_id)
        clauses = [ReportTemplate.share_id == key]
        template_id = parse_id(key) if key.isdigit() else None
        if template_id is not None:
            clauses.append(ReportTemplate.id == template_id)
        result = await self.db.execute(
            select(ReportTemplate)
            .where(ReportTemplate.organization_id == tenant_id)
            .where(or_(*clauses))
        )
        template = result.scalars().first()
        if template is None:
            raise NotFoundError("ReportTemplate", id_or_share_id, tenant_id)
        return template

    async def list_templates(self, caller: Caller) -> List[ReportTemplateResponse]:
        assert_permission(caller, REPORTS, "read")
        tenant_id = caller.require_tenant()
        result = await self.db.execute(
            select(ReportTemplate)
            .where(ReportTemplate.organization_id == tenant_id)
            .order_by(ReportTemplate.updated_at.desc(), ReportTemplate.id.desc())
        )
        return [
            serialize_template(template)
            for template in result.scalars().all()
            if is_template_visible(template, caller)
        ]

    async def create_template(self, caller: Caller, data: ReportTemplateCreate) -> ReportTemplateResponse:
        assert_permission(caller, REPORTS, "build")
        tenant_id = caller.require_tenant()
        plan_report_query(tenant_id, data)

        template = ReportTemplate(
            organization_id=tenant_id,
            owner_id=caller.user_id,
            name=data.name,
            description=data.description,
            visibility_scope=VisibilityScope(data.visibility.scope),
            visibility_roles=list(data.visibility.roles),
            share_id=generate_share_id(),
            **_dump_query(data),
        )
        self.db.add(template)
        await self.db.flush()
        await self.db.refresh(template)
        logger.info(f"Report template {template.id} created by user {caller.user_id} in tenant {tenant_id}")
        return serialize_template(template)

    async def update_template(
        self,
        caller: Caller,
        id_or_share_id: Union[int, str],
        data: ReportTemplateUpdate,
    ) -> ReportTemplateResponse:
        assert_permission(caller, REPORTS, "build")
        tenant_id = caller.require_tenant()
        template = await self._find(tenant_id, id_or_share_id)

        update_data = data.model_dump(exclude_unset=True)
        query_keys = ("model", "fields", "filters", "group_by", "calculations", "date_range")
        changes = {
            key: getattr(data, key)
            for key in query_keys
            if key in update_data and (key == "date_range" or getattr(data, key) is not None)
        }
        if changes:
            merged = template_query(template).model_copy(update=changes)
            plan_report_query(tenant_id, merged)
            for key, value in _dump_query(merged).items():
                setattr(template, key, value)

        if "name" in update_data and data.name is not None:
            template.name = data.name
        if "description" in update_data:
            template.description = data.description
        if data.visibility is not None:
            template.visibility_scope = VisibilityScope(data.visibility.scope)
            template.visibility_roles = list(data.visibility.roles)
        if not template.share_id:
            template.share_id = generate_share_id()

        await self.db.flush()
        await self.db.refresh(template)
        logger.info(f"Report template {template.id} updated by user {caller.user_id}")
        return serialize_template(template)

    async def _get_visible(self, caller: Caller, id_or_share_id: Union[int, str]) -> ReportTemplate:
        assert_permission(caller, REPORTS, "read")
        tenant_id = caller.require_tenant()
        template = await self._find(tenant_id, id_or_share_id)
        if not is_template_visible(template, caller):
            logger.warning(f"User {caller.user_id} may not view report template {template.id}")
            raise ForbiddenError("Report template is not shared with you")
        return template

    async def get_template(self, caller: Caller, id_or_share_id: Union[int, str]) -> ReportTemplateResponse:
        return serialize_template(await self._get_visible(caller, id_or_share_id))

    async def run_template(
        self,
        caller: Caller,
        id_or_share_id: Union[int, str],
        limit: Optional[int] = None,
    ) -> CustomReportResponse:
        template = await self._get_visible(caller, id_or_share_id)
        query = template_query(template)
        if limit is not None:
            query = query.model_copy(update={"limit": limit})
        return await run_report_query(self.backend_factory(self.db), caller.tenant_id, query)
