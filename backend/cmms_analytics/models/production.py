"""
Production counters and sensor readings recorded against assets.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, ForeignKey, Float, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from cmms_analytics.core.database import Base
from cmms_analytics.models.base import TimestampMixin, TenantMixin, SiteMixin


class ProductionRecord(Base, TimestampMixin, TenantMixin, SiteMixin):
    """
    One production interval for an asset: unit counts, time split and energy.
    """

    __tablename__ = "production_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    asset_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("assets.id"), nullable=True, index=True
    )
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    # Units
    planned_units: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    actual_units: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    good_units: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ideal_cycle_time_sec: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Time split, in minutes
    planned_time_minutes: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    run_time_minutes: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    downtime_minutes: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    downtime_reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    energy_consumed_kwh: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    def __repr__(self) -> str:
        return f"<ProductionRecord(id={self.id}, asset_id={self.asset_id})>"


class SensorReading(Base, TenantMixin):
    """
    A single IoT reading. Metric names are free-form, e.g. "energy_kwh", "temperature".
    """

    __tablename__ = "sensor_readings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    asset_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("assets.id"), nullable=True, index=True
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    metric: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<SensorReading(asset_id={self.asset_id}, metric='{self.metric}', value={self.value})>"
