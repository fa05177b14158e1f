"""
Site model used for corporate rollups.
"""
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cmms_analytics.core.database import Base
from cmms_analytics.models.base import TimestampMixin, TenantMixin

if TYPE_CHECKING:
    from cmms_analytics.models.organization import Organization
    from cmms_analytics.models.asset import Asset


class Site(Base, TimestampMixin, TenantMixin):
    """
    Site represents a plant or facility that owns assets.
    """

    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    organization: Mapped["Organization"] = relationship("Organization", back_populates="sites")
    assets: Mapped[List["Asset"]] = relationship("Asset", back_populates="site")

    def __repr__(self) -> str:
        return f"<Site(id={self.id}, code='{self.code}', name='{self.name}')>"
