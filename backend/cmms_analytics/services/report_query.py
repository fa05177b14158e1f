"""
Custom report planning and result shaping.

A ``ReportQuery`` is validated against the model registry and turned into an
``AggregationRequest``, a backend-neutral description of the conditions, grouping,
accumulators and projection. Backends execute the request and return raw rows;
``build_response`` normalizes those rows into the tabular result contract.
Every rejection happens here, before any backend is called.
"""
import enum
import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from cmms_analytics.core.config import get_settings
from cmms_analytics.core.exceptions import InvalidReportQueryError, MissingTenantError
from cmms_analytics.schemas.reports import (
    CalculationResult,
    CustomReportResponse,
    ReportColumn,
    ReportFilter,
    ReportQuery,
)
from cmms_analytics.services.filters import is_storable_id, isoformat_utc, parse_date
from cmms_analytics.services.report_models import (
    CalculationOp,
    FieldKind,
    ReportField,
    ReportModel,
    ReportModelSpec,
    get_model_spec,
)

logger = logging.getLogger(__name__)

OPERATION_ALIASES = {"average": CalculationOp.AVG.value}
OPERATION_LABELS = {
    CalculationOp.COUNT: "Count",
    CalculationOp.SUM: "Sum",
    CalculationOp.AVG: "Average",
}


@dataclass(frozen=True)
class Condition:
    field: ReportField
    operator: str
    value: Any


@dataclass(frozen=True)
class Accumulator:
    key: str
    label: str
    operation: CalculationOp
    field: Optional[ReportField] = None


@dataclass(frozen=True)
class AggregationRequest:
    """What to read, independent of how a backend reads it."""

    spec: ReportModelSpec
    tenant_id: int
    conditions: Tuple[Condition, ...]
    date_from: Optional[datetime]
    date_to: Optional[datetime]
    group_by: Tuple[ReportField, ...]
    accumulators: Tuple[Accumulator, ...]
    projection: Tuple[ReportField, ...]
    limit: int

    @property
    def grouped(self) -> bool:
        return bool(self.group_by or self.accumulators)

    @property
    def time_field(self) -> ReportField:
        return self.spec.field(self.spec.time_field)

    def referenced_fields(self) -> List[ReportField]:
        fields = [c.field for c in self.conditions]
        if self.grouped:
            fields.extend(self.group_by)
            fields.extend(a.field for a in self.accumulators if a.field is not None)
        else:
            fields.extend(self.projection)
        return fields

    def joins_needed(self) -> List[str]:
        names = []
        for field in self.referenced_fields():
            if field.join and field.join not in names:
                names.append(field.join)
        return names


class ReportBackend(Protocol):
    async def execute(self, request: AggregationRequest) -> List[Dict[str, Any]]:
        ...


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

def sanitize_limit(value: Optional[int]) -> int:
    settings = get_settings()
    if not value:
        return settings.REPORT_DEFAULT_LIMIT
    return min(max(1, int(value)), settings.REPORT_MAX_LIMIT)


def resolve_model(name: Optional[str]) -> ReportModelSpec:
    try:
        return get_model_spec(ReportModel(name or ReportModel.WORK_ORDERS.value))
    except ValueError:
        raise InvalidReportQueryError(f"Unknown report model '{name}'", field="model")


def coerce_value(field: ReportField, value: Any) -> Any:
    """Convert a filter value to the field's kind."""
    if isinstance(value, enum.Enum):
        value = value.value
    try:
        if field.kind == FieldKind.NUMBER:
            if isinstance(value, bool):
                raise ValueError(value)
            number = float(value)
            if not math.isfinite(number):
                raise ValueError(value)
            return number
        if field.kind == FieldKind.IDENTIFIER:
            if isinstance(value, bool):
                raise ValueError(value)
            number = int(value)
            if not is_storable_id(number):
                raise ValueError(value)
            return number
        if field.kind == FieldKind.DATETIME:
            parsed = parse_date(value)
            if parsed is None:
                raise ValueError(value)
            return parsed
    except (TypeError, ValueError, OverflowError):
        raise InvalidReportQueryError(
            f"Invalid value {value!r} for {field.kind.value} field '{field.key}'", field=field.key
        )
    text = str(value)
    if field.choices and text not in field.choices:
        raise InvalidReportQueryError(
            f"'{text}' is not a valid {field.key}; expected one of {', '.join(field.choices)}",
            field=field.key,
        )
    return text


def _plan_condition(field: ReportField, report_filter: ReportFilter) -> Condition:
    operator = report_filter.operator
    raw = report_filter.value

    if operator == "in":
        if isinstance(raw, (list, tuple)):
            items = list(raw)
        elif raw is None:
            items = []
        else:
            items = [part.strip() for part in str(raw).split(",") if part.strip()]
        return Condition(field, operator, tuple(coerce_value(field, item) for item in items))

    if operator in ("eq", "ne") and raw is None:
        return Condition(field, operator, None)

    if operator == "contains":
        if raw is None or str(raw) == "":
            raise InvalidReportQueryError(f"'contains' on '{field.key}' needs a value", field=field.key)
        return Condition(field, operator, str(raw))

    if raw is None:
        raise InvalidReportQueryError(f"'{operator}' on '{field.key}' needs a value", field=field.key)
    return Condition(field, operator, coerce_value(field, raw))


def _known_fields(spec: ReportModelSpec, keys: Iterable[str], role: str) -> Tuple[ReportField, ...]:
    resolved = []
    for key in keys:
        field = spec.field(key)
        if field is None:
            raise InvalidReportQueryError(f"Unknown {role} field '{key}' for {spec.model.value}", field=key)
        if field not in resolved:
            resolved.append(field)
    return tuple(resolved)


def _plan_accumulators(spec: ReportModelSpec, query: ReportQuery) -> Tuple[Accumulator, ...]:
    accumulators = []
    for index, calc in enumerate(query.calculations):
        op_name = OPERATION_ALIASES.get(calc.operation, calc.operation)
        try:
            operation = CalculationOp(op_name)
        except ValueError:
            raise InvalidReportQueryError(f"Unsupported calculation '{calc.operation}'", field="calculations")

        field = None
        if calc.field:
            field = spec.field(calc.field)
            if field is None:
                raise InvalidReportQueryError(
                    f"Unknown calculation field '{calc.field}' for {spec.model.value}", field=calc.field
                )
        if operation != CalculationOp.COUNT and (field is None or not field.numeric):
            raise InvalidReportQueryError(
                f"'{operation.value}' requires a numeric field", field=calc.field or "calculations"
            )

        key = calc.alias or (f"{operation.value}_{calc.field}" if calc.field else f"{operation.value}_{index}")
        if calc.alias:
            label = calc.alias
        elif field is not None:
            label = f"{OPERATION_LABELS[operation]} of {field.label}"
        else:
            label = OPERATION_LABELS[operation]
        accumulators.append(Accumulator(key=key, label=label, operation=operation, field=field))

    if not accumulators and query.group_by:
        for default in spec.default_calculations:
            accumulators.append(
                Accumulator(
                    key=default.key,
                    label=default.label,
                    operation=default.operation,
                    field=spec.field(default.field) if default.field else None,
                )
            )
    return tuple(accumulators)


def plan_report_query(tenant_id: Optional[int], query: ReportQuery) -> AggregationRequest:
    """Validate ``query`` and produce the request a backend executes."""
    try:
        return _plan(tenant_id, query)
    except InvalidReportQueryError as e:
        logger.warning(f"Rejected report query for tenant {tenant_id}: {e}")
        raise


def _plan(tenant_id: Optional[int], query: ReportQuery) -> AggregationRequest:
    if tenant_id is None:
        raise MissingTenantError()
    spec = resolve_model(query.model)

    conditions = []
    for report_filter in query.filters:
        field = spec.field(report_filter.field)
        if field is None:
            logger.debug(f"Dropping filter on unknown field '{report_filter.field}'")
            continue
        conditions.append(_plan_condition(field, report_filter))

    group_by = _known_fields(spec, query.group_by, "group-by")
    accumulators = _plan_accumulators(spec, query)
    projection = _known_fields(spec, query.fields or spec.default_fields, "selected")

    keys = [field.key for field in group_by] + [acc.key for acc in accumulators]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise InvalidReportQueryError(f"Duplicate output keys: {', '.join(duplicates)}", field="calculations")

    date_from = date_to = None
    if query.date_range is not None:
        date_from = parse_date(query.date_range.from_)
        date_to = parse_date(query.date_range.to)

    return AggregationRequest(
        spec=spec,
        tenant_id=tenant_id,
        conditions=tuple(conditions),
        date_from=date_from,
        date_to=date_to,
        group_by=group_by,
        accumulators=accumulators,
        projection=projection,
        limit=sanitize_limit(query.limit),
    )


# ---------------------------------------------------------------------------
# Result shaping
# ---------------------------------------------------------------------------

class ValueClass(enum.Enum):
    EMPTY = "empty"
    DATE = "date"
    IDENTIFIER = "identifier"
    PRIMITIVE = "primitive"
    OTHER = "other"


def classify_value(value: Any) -> ValueClass:
    if value is None:
        return ValueClass.EMPTY
    if isinstance(value, (datetime, date)):
        return ValueClass.DATE
    if isinstance(value, (UUID, enum.Enum)):
        return ValueClass.IDENTIFIER
    if isinstance(value, bool):
        return ValueClass.OTHER
    if isinstance(value, (str, int, float, Decimal)):
        return ValueClass.PRIMITIVE
    return ValueClass.OTHER


def normalize_value(value: Any) -> Any:
    """Reduce any backend value to a string, a number or None."""
    kind = classify_value(value)
    if kind is ValueClass.EMPTY:
        return None
    if kind is ValueClass.DATE:
        if not isinstance(value, datetime):
            value = datetime.combine(value, time.min, tzinfo=timezone.utc)
        return isoformat_utc(value)
    if kind is ValueClass.IDENTIFIER:
        return str(value.value) if isinstance(value, enum.Enum) else str(value)
    if kind is ValueClass.PRIMITIVE:
        if isinstance(value, Decimal):
            value = float(value)
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value
    return json.dumps(value, default=str, sort_keys=True)


def _round(value: Any) -> Any:
    if value is None:
        return 0
    if isinstance(value, Decimal):
        value = float(value)
    return round(value, 2)


def build_response(
    request: AggregationRequest,
    raw_rows: Sequence[Mapping[str, Any]],
    filters: Sequence[ReportFilter] = (),
) -> CustomReportResponse:
    if request.grouped:
        columns = [ReportColumn(key=f.key, label=f.label) for f in request.group_by]
        columns += [ReportColumn(key=a.key, label=a.label) for a in request.accumulators]
    else:
        columns = [ReportColumn(key=f.key, label=f.label) for f in request.projection]

    rows = []
    for raw in raw_rows:
        row = {}
        for field in request.group_by if request.grouped else request.projection:
            row[field.key] = normalize_value(raw.get(field.key))
        if request.grouped:
            for acc in request.accumulators:
                value = raw.get(acc.key)
                if acc.operation == CalculationOp.COUNT:
                    row[acc.key] = int(value or 0)
                else:
                    row[acc.key] = normalize_value(_round(value))
        rows.append(row)

    return CustomReportResponse(
        columns=columns,
        rows=rows,
        total=len(rows),
        group_by=[f.key for f in request.group_by],
        filters=list(filters),
        calculations=[
            CalculationResult(
                key=a.key,
                label=a.label,
                operation=a.operation.value,
                field=a.field.key if a.field else None,
            )
            for a in request.accumulators
        ],
    )


async def run_report_query(
    backend: ReportBackend,
    tenant_id: Optional[int],
    query: ReportQuery,
) -> CustomReportResponse:
    request = plan_report_query(tenant_id, query)
    raw_rows = await backend.execute(request)
    applied = [f for f in query.filters if request.spec.field(f.field) is not None]
    return build_response(request, raw_rows, applied)
