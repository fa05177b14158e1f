"""
Base model with common fields and mixins.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, Integer, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, declared_attr


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TenantMixin:
    """Mixin for multi-tenancy support via organization_id."""

    @declared_attr
    def organization_id(cls) -> Mapped[int]:
        return mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)


class SiteMixin:
    """Mixin for records that may belong to a site."""

    @declared_attr
    def site_id(cls) -> Mapped[Optional[int]]:
        return mapped_column(Integer, ForeignKey("sites.id"), nullable=True, index=True)
