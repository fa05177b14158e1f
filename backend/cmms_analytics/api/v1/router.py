"""
API v1 router aggregating all endpoints.
"""
from fastapi import APIRouter

from cmms_analytics.api.v1.endpoints import analytics, custom_reports

api_router = APIRouter()

api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
api_router.include_router(custom_reports.router, prefix="/reports/custom", tags=["Custom Reports"])
