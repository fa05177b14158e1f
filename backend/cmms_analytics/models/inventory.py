"""
Inventory part master.
"""
from typing import Optional
from sqlalchemy import String, Boolean, Text, Float
from sqlalchemy.orm import Mapped, mapped_column

from cmms_analytics.core.database import Base
from cmms_analytics.models.base import TimestampMixin, TenantMixin, SiteMixin


class Part(Base, TimestampMixin, TenantMixin, SiteMixin):
    """
    Part/inventory item master record.
    """

    __tablename__ = "parts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    part_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vendor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Stock
    uom: Mapped[str] = mapped_column(String(20), default="EA", nullable=False)  # EA, BOX, CASE, etc.
    quantity_on_hand: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    reorder_point: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Costing
    unit_cost: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Part(id={self.id}, part_number='{self.part_number}')>"
