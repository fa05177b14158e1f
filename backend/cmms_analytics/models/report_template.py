"""
Saved custom report definitions.
"""
import enum
import uuid
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Text, Integer, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cmms_analytics.core.database import Base
from cmms_analytics.models.base import TimestampMixin, TenantMixin

if TYPE_CHECKING:
    from cmms_analytics.models.user import User


class VisibilityScope(str, enum.Enum):
    """Who besides the owner may read a template."""
    PRIVATE = "private"
    TENANT = "tenant"
    ROLES = "roles"


def generate_share_id() -> str:
    return uuid.uuid4().hex


class ReportTemplate(Base, TimestampMixin, TenantMixin):
    """
    A persisted report query plus ownership and visibility.
    Templates are never hard-deleted.
    """

    __tablename__ = "report_templates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Query definition
    model: Mapped[str] = mapped_column(String(50), default="workOrders", nullable=False)
    fields: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    filters: Mapped[List[dict]] = mapped_column(JSON, default=list, nullable=False)
    group_by: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    calculations: Mapped[List[dict]] = mapped_column(JSON, default=list, nullable=False)
    date_range: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Visibility
    visibility_scope: Mapped[VisibilityScope] = mapped_column(
        SQLEnum(VisibilityScope, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=VisibilityScope.PRIVATE,
        nullable=False,
    )
    visibility_roles: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    share_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True, default=generate_share_id
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", foreign_keys=[owner_id])

    def __repr__(self) -> str:
        return f"<ReportTemplate(id={self.id}, name='{self.name}', share_id='{self.share_id}')>"
