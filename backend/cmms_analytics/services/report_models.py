"""
Data sources available to the custom report builder.

Each ``ReportModel`` maps to a static ``ReportModelSpec``: the ORM entity it
reads, the tenant column, the default time field, the selectable fields and the
joins needed to expose fields that live on related rows. Field paths are either
an attribute of the entity (``"title"``) or ``"<join>.<attribute>"``
(``"asset.name"``). The registry is closed and is checked once at import.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from cmms_analytics.core.database import Base
from cmms_analytics.models.asset import Asset, AssetCriticality, AssetStatus
from cmms_analytics.models.inventory import Part
from cmms_analytics.models.production import SensorReading
from cmms_analytics.models.site import Site
from cmms_analytics.models.user import User
from cmms_analytics.models.work_order import (
    WorkHistory,
    WorkOrder,
    WorkOrderPriority,
    WorkOrderStatus,
    WorkOrderType,
)


class ReportModel(str, enum.Enum):
    WORK_ORDERS = "workOrders"
    ASSETS = "assets"
    LABOR = "labor"
    PARTS = "parts"
    IOT_EVENTS = "iotEvents"


class FieldKind(str, enum.Enum):
    TEXT = "text"
    NUMBER = "number"
    IDENTIFIER = "identifier"
    DATETIME = "datetime"


class CalculationOp(str, enum.Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"


@dataclass(frozen=True)
class ReportField:
    key: str
    label: str
    path: str
    kind: FieldKind = FieldKind.TEXT
    choices: Tuple[str, ...] = ()

    @property
    def numeric(self) -> bool:
        return self.kind == FieldKind.NUMBER

    @property
    def join(self) -> Optional[str]:
        return self.path.split(".", 1)[0] if "." in self.path else None

    @property
    def attribute(self) -> str:
        return self.path.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class ReportJoin:
    """Outer join from the model entity to ``entity`` on ``local_key`` = ``remote_key``."""

    name: str
    entity: Type[Base]
    local_key: str
    remote_key: str = "id"


@dataclass(frozen=True)
class DefaultCalculation:
    operation: CalculationOp
    key: str
    label: str
    field: Optional[str] = None


@dataclass(frozen=True)
class ReportModelSpec:
    model: ReportModel
    label: str
    entity: Type[Base]
    time_field: str
    fields: Tuple[ReportField, ...]
    default_fields: Tuple[str, ...]
    default_calculations: Tuple[DefaultCalculation, ...]
    joins: Tuple[ReportJoin, ...] = ()
    tenant_field: str = "organization_id"

    def field(self, key: str) -> Optional[ReportField]:
        for candidate in self.fields:
            if candidate.key == key:
                return candidate
        return None

    def join(self, name: str) -> Optional[ReportJoin]:
        for candidate in self.joins:
            if candidate.name == name:
                return candidate
        return None


def _choices(enum_cls) -> Tuple[str, ...]:
    return tuple(member.value for member in enum_cls)


WORK_ORDERS = ReportModelSpec(
    model=ReportModel.WORK_ORDERS,
    label="Work Orders",
    entity=WorkOrder,
    time_field="createdAt",
    fields=(
        ReportField("title", "Title", "title"),
        ReportField("status", "Status", "status", choices=_choices(WorkOrderStatus)),
        ReportField("priority", "Priority", "priority", choices=_choices(WorkOrderPriority)),
        ReportField("type", "Type", "work_type", choices=_choices(WorkOrderType)),
        ReportField("assetName", "Asset", "asset.name"),
        ReportField("assigneeName", "Assignee", "assignee.full_name"),
        ReportField("siteId", "Site", "site_id", FieldKind.IDENTIFIER),
        ReportField("siteName", "Site Name", "site.name"),
        ReportField("failureCode", "Failure Code", "failure_code"),
        ReportField("createdAt", "Created", "created_at", FieldKind.DATETIME),
        ReportField("dueDate", "Due Date", "due_date", FieldKind.DATETIME),
        ReportField("completedAt", "Completed", "completed_at", FieldKind.DATETIME),
        ReportField("totalCost", "Total Cost", "total_cost", FieldKind.NUMBER),
        ReportField("downtimeMinutes", "Downtime (min)", "downtime_minutes", FieldKind.NUMBER),
        ReportField("laborHours", "Labor Hours", "labor_hours", FieldKind.NUMBER),
    ),
    default_fields=("title", "status", "priority"),
    default_calculations=(
        DefaultCalculation(CalculationOp.COUNT, "count", "Count"),
        DefaultCalculation(CalculationOp.SUM, "totalCost", "Total Cost", "totalCost"),
        DefaultCalculation(CalculationOp.AVG, "averageDowntime", "Avg. Downtime (min)", "downtimeMinutes"),
        DefaultCalculation(CalculationOp.AVG, "averageLaborHours", "Avg. Labor Hours", "laborHours"),
    ),
    joins=(
        ReportJoin("asset", Asset, "asset_id"),
        ReportJoin("assignee", User, "assigned_to_id"),
        ReportJoin("site", Site, "site_id"),
    ),
)

ASSETS = ReportModelSpec(
    model=ReportModel.ASSETS,
    label="Assets",
    entity=Asset,
    time_field="createdAt",
    fields=(
        ReportField("name", "Name", "name"),
        ReportField("assetNum", "Asset Number", "asset_num"),
        ReportField("category", "Category", "category"),
        ReportField("status", "Status", "status", choices=_choices(AssetStatus)),
        ReportField("criticality", "Criticality", "criticality", choices=_choices(AssetCriticality)),
        ReportField("manufacturer", "Manufacturer", "manufacturer"),
        ReportField("siteId", "Site", "site_id", FieldKind.IDENTIFIER),
        ReportField("siteName", "Site Name", "site.name"),
        ReportField("purchasePrice", "Purchase Price", "purchase_price", FieldKind.NUMBER),
        ReportField("createdAt", "Created", "created_at", FieldKind.DATETIME),
    ),
    default_fields=("name", "category", "status"),
    default_calculations=(
        DefaultCalculation(CalculationOp.COUNT, "count", "Count"),
        DefaultCalculation(CalculationOp.SUM, "totalPurchasePrice", "Total Purchase Price", "purchasePrice"),
    ),
    joins=(ReportJoin("site", Site, "site_id"),),
)

LABOR = ReportModelSpec(
    model=ReportModel.LABOR,
    label="Labor",
    entity=WorkHistory,
    time_field="completedAt",
    fields=(
        ReportField("technicianName", "Technician", "technician.full_name"),
        ReportField("workOrderTitle", "Work Order", "workOrder.title"),
        ReportField("assetName", "Asset", "asset.name"),
        ReportField("craft", "Craft", "craft"),
        ReportField("hours", "Hours", "time_spent_hours", FieldKind.NUMBER),
        ReportField("completedAt", "Completed", "completed_at", FieldKind.DATETIME),
    ),
    default_fields=("technicianName", "hours", "completedAt"),
    default_calculations=(
        DefaultCalculation(CalculationOp.COUNT, "count", "Count"),
        DefaultCalculation(CalculationOp.SUM, "totalHours", "Total Hours", "hours"),
        DefaultCalculation(CalculationOp.AVG, "averageHours", "Avg. Hours", "hours"),
    ),
    joins=(
        ReportJoin("technician", User, "technician_id"),
        ReportJoin("workOrder", WorkOrder, "work_order_id"),
        ReportJoin("asset", Asset, "asset_id"),
    ),
)

PARTS = ReportModelSpec(
    model=ReportModel.PARTS,
    label="Parts",
    entity=Part,
    time_field="createdAt",
    fields=(
        ReportField("partNumber", "Part Number", "part_number"),
        ReportField("name", "Name", "name"),
        ReportField("category", "Category", "category"),
        ReportField("vendorName", "Vendor", "vendor_name"),
        ReportField("quantityOnHand", "On Hand", "quantity_on_hand", FieldKind.NUMBER),
        ReportField("reorderPoint", "Reorder Point", "reorder_point", FieldKind.NUMBER),
        ReportField("unitCost", "Unit Cost", "unit_cost", FieldKind.NUMBER),
        ReportField("siteName", "Site", "site.name"),
        ReportField("createdAt", "Created", "created_at", FieldKind.DATETIME),
    ),
    default_fields=("partNumber", "name", "quantityOnHand"),
    default_calculations=(
        DefaultCalculation(CalculationOp.COUNT, "count", "Count"),
        DefaultCalculation(CalculationOp.SUM, "totalQuantity", "Total On Hand", "quantityOnHand"),
        DefaultCalculation(CalculationOp.AVG, "averageUnitCost", "Avg. Unit Cost", "unitCost"),
    ),
    joins=(ReportJoin("site", Site, "site_id"),),
)

IOT_EVENTS = ReportModelSpec(
    model=ReportModel.IOT_EVENTS,
    label="IoT Events",
    entity=SensorReading,
    time_field="timestamp",
    fields=(
        ReportField("assetName", "Asset", "asset.name"),
        ReportField("metric", "Metric", "metric"),
        ReportField("value", "Value", "value", FieldKind.NUMBER),
        ReportField("unit", "Unit", "unit"),
        ReportField("timestamp", "Timestamp", "timestamp", FieldKind.DATETIME),
    ),
    default_fields=("assetName", "metric", "value", "timestamp"),
    default_calculations=(
        DefaultCalculation(CalculationOp.COUNT, "count", "Count"),
        DefaultCalculation(CalculationOp.AVG, "averageValue", "Avg. Value", "value"),
    ),
    joins=(ReportJoin("asset", Asset, "asset_id"),),
)

REPORT_MODELS: Dict[ReportModel, ReportModelSpec] = {
    spec.model: spec for spec in (WORK_ORDERS, ASSETS, LABOR, PARTS, IOT_EVENTS)
}


def get_model_spec(model: ReportModel) -> ReportModelSpec:
    return REPORT_MODELS[model]


def validate_registry(registry: Dict[ReportModel, ReportModelSpec] = REPORT_MODELS) -> None:
    """Check every model/field/join combination; raises ValueError on the first defect."""
    missing = set(ReportModel) - set(registry)
    if missing:
        raise ValueError(f"Report models without a spec: {sorted(m.value for m in missing)}")

    for model, spec in registry.items():
        if spec.model != model:
            raise ValueError(f"Spec for {model.value} is registered as {spec.model.value}")
        if not hasattr(spec.entity, spec.tenant_field):
            raise ValueError(f"{model.value}: entity has no tenant column '{spec.tenant_field}'")

        join_names = [join.name for join in spec.joins]
        if len(join_names) != len(set(join_names)):
            raise ValueError(f"{model.value}: duplicate join names")
        for join in spec.joins:
            if not hasattr(spec.entity, join.local_key):
                raise ValueError(f"{model.value}: join '{join.name}' has unknown local key")
            if not hasattr(join.entity, join.remote_key):
                raise ValueError(f"{model.value}: join '{join.name}' has unknown remote key")
            if not hasattr(join.entity, spec.tenant_field):
                raise ValueError(f"{model.value}: join '{join.name}' target is not tenant scoped")

        keys = [f.key for f in spec.fields]
        if len(keys) != len(set(keys)):
            raise ValueError(f"{model.value}: duplicate field keys")
        for field in spec.fields:
            target = spec.entity
            if field.join is not None:
                join = spec.join(field.join)
                if join is None:
                    raise ValueError(f"{model.value}.{field.key}: undeclared join '{field.join}'")
                target = join.entity
            if not hasattr(target, field.attribute):
                raise ValueError(f"{model.value}.{field.key}: unknown path '{field.path}'")

        time_field = spec.field(spec.time_field)
        if time_field is None or time_field.kind != FieldKind.DATETIME or time_field.join:
            raise ValueError(f"{model.value}: time field must be a local datetime field")

        for key in spec.default_fields:
            if spec.field(key) is None:
                raise ValueError(f"{model.value}: unknown default field '{key}'")
        for calc in spec.default_calculations:
            if calc.operation == CalculationOp.COUNT:
                continue
            field = spec.field(calc.field) if calc.field else None
            if field is None or not field.numeric:
                raise ValueError(f"{model.value}: default calculation '{calc.key}' needs a numeric field")


validate_registry()
