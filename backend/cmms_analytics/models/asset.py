"""
Asset model.
"""
from datetime import date
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, Boolean, Text, Float, Date, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from cmms_analytics.core.database import Base
from cmms_analytics.models.base import TimestampMixin, TenantMixin, SiteMixin

if TYPE_CHECKING:
    from cmms_analytics.models.site import Site


class AssetStatus(str, enum.Enum):
    """Asset operational status."""
    OPERATING = "operating"
    NOT_OPERATING = "not_operating"
    IN_REPAIR = "in_repair"
    STANDBY = "standby"
    DECOMMISSIONED = "decommissioned"


class AssetCriticality(str, enum.Enum):
    """Asset criticality for prioritization."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Asset(Base, TimestampMixin, TenantMixin, SiteMixin):
    """
    Asset represents equipment, machinery, or any maintainable item.
    Site membership drives the energy and benchmark rollups.
    """

    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    asset_num: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    asset_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    manufacturer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # Status
    status: Mapped[AssetStatus] = mapped_column(
        SQLEnum(AssetStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=AssetStatus.OPERATING,
        nullable=False,
    )
    criticality: Mapped[AssetCriticality] = mapped_column(
        SQLEnum(AssetCriticality, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=AssetCriticality.MEDIUM,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Financial
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    purchase_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Relationships
    site: Mapped[Optional["Site"]] = relationship("Site", back_populates="assets")

    def __repr__(self) -> str:
        return f"<Asset(id={self.id}, asset_num='{self.asset_num}', name='{self.name}')>"
