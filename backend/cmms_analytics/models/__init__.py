"""
Database models for the analytics and reporting service.
"""
from cmms_analytics.models.organization import Organization
from cmms_analytics.models.site import Site
from cmms_analytics.models.asset import Asset, AssetStatus, AssetCriticality
from cmms_analytics.models.user import User, Role, Permission, UserRole
from cmms_analytics.models.inventory import Part
from cmms_analytics.models.work_order import (
    WorkOrder,
    WorkOrderPart,
    WorkHistory,
    WorkOrderType,
    WorkOrderStatus,
    WorkOrderPriority,
)
from cmms_analytics.models.production import ProductionRecord, SensorReading
from cmms_analytics.models.report_template import ReportTemplate, VisibilityScope

__all__ = [
    "Organization",
    "Site",
    "Asset",
    "AssetStatus",
    "AssetCriticality",
    "User",
    "Role",
    "Permission",
    "UserRole",
    "Part",
    "WorkOrder",
    "WorkOrderPart",
    "WorkHistory",
    "WorkOrderType",
    "WorkOrderStatus",
    "WorkOrderPriority",
    "ProductionRecord",
    "SensorReading",
    "ReportTemplate",
    "VisibilityScope",
]
