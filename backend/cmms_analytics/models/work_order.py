"""
Work Order models including parts-used cost lines and labor history.
"""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Text, Integer, ForeignKey, Float, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from cmms_analytics.core.database import Base
from cmms_analytics.models.base import TimestampMixin, TenantMixin, SiteMixin

if TYPE_CHECKING:
    from cmms_analytics.models.asset import Asset
    from cmms_analytics.models.user import User
    from cmms_analytics.models.inventory import Part


class WorkOrderType(str, enum.Enum):
    """Type of work order."""
    PREVENTIVE = "preventive"  # Scheduled PM
    CORRECTIVE = "corrective"  # Reactive/breakdown maintenance


class WorkOrderStatus(str, enum.Enum):
    """Work order lifecycle status, in display order."""
    REQUESTED = "requested"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkOrderPriority(str, enum.Enum):
    """Work order priority level."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class WorkOrder(Base, TimestampMixin, TenantMixin, SiteMixin):
    """
    Work Order represents a maintenance task to be performed.
    """

    __tablename__ = "work_orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    wo_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    work_type: Mapped[WorkOrderType] = mapped_column(
        SQLEnum(WorkOrderType, values_callable=_enum_values, native_enum=False),
        default=WorkOrderType.CORRECTIVE,
        nullable=False,
    )
    status: Mapped[WorkOrderStatus] = mapped_column(
        SQLEnum(WorkOrderStatus, values_callable=_enum_values, native_enum=False),
        default=WorkOrderStatus.REQUESTED,
        nullable=False,
        index=True,
    )
    priority: Mapped[WorkOrderPriority] = mapped_column(
        SQLEnum(WorkOrderPriority, values_callable=_enum_values, native_enum=False),
        default=WorkOrderPriority.MEDIUM,
        nullable=False,
    )

    # Asset and assignment
    asset_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("assets.id"), nullable=True, index=True
    )
    assigned_to_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )

    # PM task that generated this work order (owned by the PM scheduler)
    pm_task_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    # Scheduling and completion
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Actuals
    time_spent_min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    downtime_minutes: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    labor_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Failure tracking
    failure_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Relationships
    asset: Mapped[Optional["Asset"]] = relationship("Asset", foreign_keys=[asset_id])
    assigned_to: Mapped[Optional["User"]] = relationship("User", foreign_keys=[assigned_to_id])
    parts_used: Mapped[List["WorkOrderPart"]] = relationship(
        "WorkOrderPart", back_populates="work_order", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<WorkOrder(id={self.id}, wo_number='{self.wo_number}', status='{self.status}')>"


class WorkOrderPart(Base, TimestampMixin):
    """
    Part consumed on a work order. Cost lines feed maintenance cost and parts spend.
    """

    __tablename__ = "work_order_parts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    work_order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    part_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("parts.id"), nullable=True, index=True
    )
    quantity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Relationships
    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="parts_used")
    part: Mapped[Optional["Part"]] = relationship("Part", foreign_keys=[part_id])

    def __repr__(self) -> str:
        return f"<WorkOrderPart(wo_id={self.work_order_id}, part_id={self.part_id})>"


class WorkHistory(Base, TimestampMixin, TenantMixin):
    """
    Labor time recorded by a technician, optionally against a work order.
    """

    __tablename__ = "work_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    work_order_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("work_orders.id", ondelete="SET NULL"), nullable=True, index=True
    )
    asset_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("assets.id"), nullable=True, index=True
    )
    technician_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    time_spent_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    craft: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # Electrician, Mechanic, etc.
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    work_order: Mapped[Optional["WorkOrder"]] = relationship("WorkOrder", foreign_keys=[work_order_id])
    technician: Mapped[Optional["User"]] = relationship("User", foreign_keys=[technician_id])

    def __repr__(self) -> str:
        return f"<WorkHistory(id={self.id}, hours={self.time_spent_hours})>"
