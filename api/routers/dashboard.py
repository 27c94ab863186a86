"""
Dashboard API Endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from api.auth import Role, require_role
from api.models import ActivityResponse, DashboardMetricsResponse
from services.metrics_service import get_dashboard_metrics, get_recent_activity

router = APIRouter(dependencies=[Depends(require_role(Role.ADMIN))])


@router.get(
    "/dashboard/metrics",
    response_model=DashboardMetricsResponse,
    summary="Dashboard Metrics",
    description="Active revenue, available and sold license counts, customers created in the last N days.",
)
def get_metrics(days: int = Query(30, ge=0, le=3650, description="Window for counting new customers")):
    return DashboardMetricsResponse.from_domain(get_dashboard_metrics(new_customer_days=days))


@router.get(
    "/dashboard/activity",
    response_model=List[ActivityResponse],
    summary="Recent Activity",
)
def get_activity(limit: int = Query(10, ge=1, le=100)):
    return [ActivityResponse.from_domain(entry) for entry in get_recent_activity(limit)]
