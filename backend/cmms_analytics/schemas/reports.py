"""
Custom report query, result and template schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from cmms_analytics.schemas.common import CamelSchema

FilterOperator = Literal["eq", "ne", "in", "contains", "gte", "lte"]
ReportValue = Union[int, float, str, None]


class ReportFilter(CamelSchema):
    field: str
    operator: FilterOperator = "eq"
    value: Any = None


class ReportCalculation(CamelSchema):
    """``operation`` is count, sum or avg; ``average`` is accepted for avg."""
    operation: str
    field: Optional[str] = None
    alias: Optional[str] = None


class ReportDateRange(CamelSchema):
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None


class ReportQuery(CamelSchema):
    """Declarative report request."""
    model: str = "workOrders"
    fields: List[str] = []
    filters: List[ReportFilter] = []
    group_by: List[str] = []
    calculations: List[ReportCalculation] = []
    date_range: Optional[ReportDateRange] = None
    limit: Optional[int] = None


class ReportColumn(CamelSchema):
    key: str
    label: str


class CalculationResult(CamelSchema):
    key: str
    label: str
    operation: str
    field: Optional[str] = None


class CustomReportResponse(CamelSchema):
    columns: List[ReportColumn]
    rows: List[Dict[str, ReportValue]]
    total: int
    group_by: List[str] = []
    filters: List[ReportFilter] = []
    calculations: List[CalculationResult] = []


# Model catalogue
class ReportFieldInfo(CamelSchema):
    key: str
    label: str
    kind: str
    numeric: bool
    choices: List[str] = []


class ReportModelInfo(CamelSchema):
    model: str
    label: str
    time_field: str
    fields: List[ReportFieldInfo]
    default_fields: List[str]


# Templates
class TemplateVisibility(CamelSchema):
    scope: Literal["private", "tenant", "roles"] = "private"
    roles: List[str] = []


class ReportTemplateBase(ReportQuery):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    visibility: TemplateVisibility = TemplateVisibility()


class ReportTemplateCreate(ReportTemplateBase):
    pass


class ReportTemplateUpdate(CamelSchema):
    """Partial update. The share id is not writable."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    model: Optional[str] = None
    fields: Optional[List[str]] = None
    filters: Optional[List[ReportFilter]] = None
    group_by: Optional[List[str]] = None
    calculations: Optional[List[ReportCalculation]] = None
    date_range: Optional[ReportDateRange] = None
    visibility: Optional[TemplateVisibility] = None


class ReportTemplateResponse(CamelSchema):
    id: int
    tenant_id: str
    owner_id: int
    name: str
    description: Optional[str] = None
    model: str
    fields: List[str]
    filters: List[ReportFilter]
    group_by: List[str]
    calculations: List[ReportCalculation]
    date_range: Optional[ReportDateRange] = None
    visibility: TemplateVisibility
    share_id: str
    created_at: datetime
    updated_at: datetime
