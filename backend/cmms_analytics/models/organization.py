"""
Organization model for multi-tenancy support.
"""
from typing import List, TYPE_CHECKING
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cmms_analytics.core.database import Base
from cmms_analytics.models.base import TimestampMixin

if TYPE_CHECKING:
    from cmms_analytics.models.site import Site
    from cmms_analytics.models.user import User


class Organization(Base, TimestampMixin):
    """
    Organization represents a tenant.
    Every analytics read and every report template is isolated by organization.
    """

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)

    users: Mapped[List["User"]] = relationship("User", back_populates="organization")
    sites: Mapped[List["Site"]] = relationship("Site", back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, code='{self.code}', name='{self.name}')>"
