"""
Service-layer exception hierarchy.

Services raise these; ``main.py`` maps them to HTTP responses once:

    InvalidReportQueryError -> 400
    NotFoundError           -> 404
    ForbiddenError          -> 403
    DataSourceError         -> 503

Usage:
    from cmms_analytics.core.exceptions import NotFoundError

    raise NotFoundError(resource="ReportTemplate", resource_id="abc123")
"""
from typing import Optional, Union


class AnalyticsError(Exception):
    """Base class for errors surfaced by the analytics and reporting services."""


class InvalidReportQueryError(AnalyticsError):
    """Raised when a request is rejected before any record store is touched."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class MissingTenantError(InvalidReportQueryError):
    """Raised when no tenant context could be resolved for the caller."""

    def __init__(self, message: str = "Tenant context is required for reports") -> None:
        super().__init__(message)


class NotFoundError(AnalyticsError):
    """Raised when a resource does not exist within the caller's tenant.

    Kept distinct from ForbiddenError: a template that exists but is hidden
    from the caller is forbidden, not missing.
    """

    def __init__(
        self,
        resource: str,
        resource_id: Union[int, str, None] = None,
        tenant_id: Optional[int] = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(AnalyticsError):
    """Raised when a permission check or a visibility rule excludes the caller."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class DataSourceError(AnalyticsError):
    """Raised when an upstream record store cannot be read."""

    def __init__(self, source: str, message: Optional[str] = None) -> None:
        self.source = source
        super().__init__(message or f"Record store '{source}' is unavailable")
