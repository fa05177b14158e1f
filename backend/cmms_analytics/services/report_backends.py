"""
Report backends: execute an ``AggregationRequest`` and return raw rows keyed by
output key (field keys for projected and grouped columns, accumulator keys for
calculations).
"""
import enum
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import String, and_, cast, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from cmms_analytics.core.exceptions import DataSourceError
from cmms_analytics.services.filters import ensure_utc
from cmms_analytics.services.report_models import CalculationOp, ReportField, ReportModel
from cmms_analytics.services.report_query import Accumulator, AggregationRequest, Condition

logger = logging.getLogger(__name__)


class SqlAlchemyReportBackend:
    """Pushes filtering, grouping and aggregation down to the database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _aliases(self, request: AggregationRequest) -> Dict[str, Any]:
        return {
            name: aliased(request.spec.join(name).entity, name=f"report_{name}")
            for name in request.joins_needed()
        }

    @staticmethod
    def _column(request: AggregationRequest, aliases: Dict[str, Any], field: ReportField):
        if field.join is None:
            return getattr(request.spec.entity, field.attribute)
        return getattr(aliases[field.join], field.attribute)

    @staticmethod
    def _condition(column, condition: Condition):
        value = condition.value
        if condition.operator == "eq":
            return column.is_(None) if value is None else column == value
        if condition.operator == "ne":
            return column.is_not(None) if value is None else or_(column.is_(None), column != value)
        if condition.operator == "in":
            return column.in_(list(value))
        if condition.operator == "contains":
            return func.lower(cast(column, String)).contains(value.lower(), autoescape=True)
        if condition.operator == "gte":
            return column >= value
        return column <= value

    @staticmethod
    def _aggregate(column, accumulator: Accumulator):
        if accumulator.operation == CalculationOp.COUNT:
            return func.count() if column is None else func.count(column)
        if accumulator.operation == CalculationOp.SUM:
            return func.coalesce(func.sum(func.coalesce(column, 0)), 0)
        return func.avg(func.coalesce(column, 0))

    def build_statement(self, request: AggregationRequest):
        spec = request.spec
        entity = spec.entity
        aliases = self._aliases(request)

        def column(field: ReportField):
            return self._column(request, aliases, field)

        if request.grouped:
            group_columns = [column(field) for field in request.group_by]
            selected = [col.label(field.key) for col, field in zip(group_columns, request.group_by)]
            selected += [
                self._aggregate(column(acc.field) if acc.field else None, acc).label(acc.key)
                for acc in request.accumulators
            ]
        else:
            selected = [column(field).label(field.key) for field in request.projection]

        stmt = select(*selected).select_from(entity)
        for name, alias in aliases.items():
            join = spec.join(name)
            stmt = stmt.outerjoin(
                alias,
                and_(
                    getattr(entity, join.local_key) == getattr(alias, join.remote_key),
                    getattr(alias, spec.tenant_field) == request.tenant_id,
                ),
            )

        stmt = stmt.where(getattr(entity, spec.tenant_field) == request.tenant_id)
        for condition in request.conditions:
            stmt = stmt.where(self._condition(column(condition.field), condition))

        time_column = column(request.time_field)
        if request.date_from is not None:
            stmt = stmt.where(time_column >= request.date_from)
        if request.date_to is not None:
            stmt = stmt.where(time_column <= request.date_to)

        if request.grouped:
            if group_columns:
                stmt = stmt.group_by(*group_columns)
                stmt = stmt.order_by(*[col.asc().nulls_first() for col in group_columns])
        else:
            stmt = stmt.order_by(time_column.desc().nulls_last(), entity.id.desc())

        return stmt.limit(request.limit)

    async def execute(self, request: AggregationRequest) -> List[Dict[str, Any]]:
        stmt = self.build_statement(request)
        try:
            result = await self.db.execute(stmt)
            return [dict(row) for row in result.mappings().all()]
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"Report query on {request.spec.model.value} failed: {e}", exc_info=True)
            raise DataSourceError(request.spec.model.value, str(e)) from e


def _comparable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


def _matches(value: Any, condition: Condition) -> bool:
    value = _comparable(value)
    expected = condition.value
    if condition.operator == "eq":
        return value is None if expected is None else value is not None and value == expected
    if condition.operator == "ne":
        return value is not None if expected is None else value is None or value != expected
    if value is None:
        return False
    if condition.operator == "in":
        return value in expected
    if condition.operator == "contains":
        return expected.lower() in str(value).lower()
    if condition.operator == "gte":
        return value >= expected
    return value <= expected


def _null_first(value: Any):
    value = _comparable(value)
    return (0, "") if value is None else (1, value)


class InMemoryReportBackend:
    """
    Evaluates requests over plain rows, one list per report model. Rows are keyed
    by field key and carry ``organization_id``; joined fields are pre-resolved.
    """

    def __init__(self, records: Optional[Dict[ReportModel, List[Dict[str, Any]]]] = None):
        self.records = records or {}

    def _rows(self, request: AggregationRequest) -> List[Dict[str, Any]]:
        time_key = request.time_field.key
        rows = []
        for row in self.records.get(request.spec.model, []):
            if row.get(request.spec.tenant_field) != request.tenant_id:
                continue
            if not all(_matches(row.get(c.field.key), c) for c in request.conditions):
                continue
            moment = _comparable(row.get(time_key))
            if request.date_from is not None and (moment is None or moment < request.date_from):
                continue
            if request.date_to is not None and (moment is None or moment > request.date_to):
                continue
            rows.append(row)
        return rows

    @staticmethod
    def _accumulate(rows: List[Dict[str, Any]], accumulator: Accumulator) -> Any:
        if accumulator.operation == CalculationOp.COUNT:
            if accumulator.field is None:
                return len(rows)
            return sum(1 for row in rows if row.get(accumulator.field.key) is not None)
        values = [row.get(accumulator.field.key) or 0 for row in rows]
        if accumulator.operation == CalculationOp.SUM:
            return sum(values)
        return sum(values) / len(values) if values else None

    async def execute(self, request: AggregationRequest) -> List[Dict[str, Any]]:
        rows = self._rows(request)

        if not request.grouped:
            time_key = request.time_field.key
            rows = sorted(rows, key=lambda row: row.get("id") or 0, reverse=True)
            rows = sorted(rows, key=lambda row: _null_first(row.get(time_key)), reverse=True)
            return [
                {field.key: row.get(field.key) for field in request.projection}
                for row in rows[: request.limit]
            ]

        groups: Dict[tuple, List[Dict[str, Any]]] = {}
        for row in rows:
            key = tuple(_comparable(row.get(field.key)) for field in request.group_by)
            groups.setdefault(key, []).append(row)
        if not request.group_by:
            groups = {(): rows}

        output = []
        for key in sorted(groups, key=lambda k: tuple(_null_first(v) for v in k)):
            members = groups[key]
            result = dict(zip((field.key for field in request.group_by), key))
            for acc in request.accumulators:
                result[acc.key] = self._accumulate(members, acc)
            output.append(result)
        return output[: request.limit]
