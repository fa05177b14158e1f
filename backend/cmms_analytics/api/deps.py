"""
API dependencies for authentication, caller resolution and service wiring.
"""
from typing import Annotated, List, Optional

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cmms_analytics.core.database import async_session_maker, get_db
from cmms_analytics.core.security import decode_token
from cmms_analytics.models.user import Role, User, UserRole
from cmms_analytics.services.analytics_service import AnalyticsService
from cmms_analytics.services.filters import AnalyticsFilters, build_filters, parse_id
from cmms_analytics.services.permissions import Caller
from cmms_analytics.services.record_store import SqlRecordStore
from cmms_analytics.services.report_backends import SqlAlchemyReportBackend
from cmms_analytics.services.report_templates import ReportTemplateService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

DBSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    db: DBSession,
    token: Optional[str] = Depends(oauth2_scheme),
) -> User:
    """
    Get current authenticated user from a JWT bearer token.
    Roles and their permissions are loaded with the user.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        raise credentials_exception

    user_id = parse_id(payload.get("sub"))
    if user_id is None:
        raise credentials_exception

    result = await db.execute(
        select(User)
        .options(selectinload(User.user_roles).selectinload(UserRole.role).selectinload(Role.permissions))
        .where(User.id == user_id)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )
    return user


def caller_from_user(user: User) -> Caller:
    roles = [user_role.role for user_role in user.user_roles if user_role.role is not None]
    return Caller(
        tenant_id=user.organization_id,
        user_id=user.id,
        roles=frozenset(role.code for role in roles),
        permissions=frozenset(permission.code for role in roles for permission in role.permissions),
        is_superuser=user.is_superuser,
    )


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_current_caller(current_user: CurrentUser) -> Caller:
    return caller_from_user(current_user)


async def get_analytics_filters(
    start_date: Optional[str] = Query(None, alias="startDate", description="ISO date-time"),
    end_date: Optional[str] = Query(None, alias="endDate", description="ISO date-time"),
    asset_ids: Optional[List[str]] = Query(None, alias="assetIds", description="Repeated or comma-separated"),
    site_ids: Optional[List[str]] = Query(None, alias="siteIds", description="Repeated or comma-separated"),
) -> AnalyticsFilters:
    """Malformed dates and non-numeric ids are ignored rather than rejected."""
    return build_filters(start_date, end_date, asset_ids, site_ids)


def get_analytics_service() -> AnalyticsService:
    return AnalyticsService(SqlRecordStore(async_session_maker))


def get_report_backend(db: DBSession) -> SqlAlchemyReportBackend:
    return SqlAlchemyReportBackend(db)


def get_template_service(db: DBSession) -> ReportTemplateService:
    return ReportTemplateService(db)


# Type aliases for cleaner signatures
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
Filters = Annotated[AnalyticsFilters, Depends(get_analytics_filters)]
Analytics = Annotated[AnalyticsService, Depends(get_analytics_service)]
ReportBackendDep = Annotated[SqlAlchemyReportBackend, Depends(get_report_backend)]
TemplateService = Annotated[ReportTemplateService, Depends(get_template_service)]
