from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.db import get_session
from src.inventory.responses import ApiResponse, success_envelope
from src.inventory.schemas import DashboardSummary, DatabaseStats
from src.inventory.services.dashboard import dashboard_summary, database_stats
from src.inventory.services.filters import build_criteria

router = APIRouter(tags=["Dashboard"])


# PUBLIC_INTERFACE
@router.get("/dashboard/summary", summary="Dashboard summary", response_model=ApiResponse[DashboardSummary])
async def dashboard_summary_endpoint(
    subscription_id: Optional[int] = Query(None, description="Only resources of this subscription"),
    resource_group_id: Optional[int] = Query(None, description="Only resources of this resource group"),
    environment: Optional[str] = Query(None, description="Only resources of this environment"),
    location: Optional[str] = Query(None, description="Only resources in this region"),
    session: AsyncSession = Depends(get_session),
) -> ApiResponse[DashboardSummary]:
    """Totals plus type/location/environment breakdowns with percentages.

    Parameters:
        subscription_id, resource_group_id, environment, location: Optional restrictions.

    Returns:
        DashboardSummary for the matching resources.
    """
    criteria = build_criteria(
        subscription_id=subscription_id,
        resource_group_id=resource_group_id,
        environment=environment,
        location=location,
    )
    return success_envelope(DashboardSummary(**await dashboard_summary(session, criteria)))


# PUBLIC_INTERFACE
@router.get("/stats", summary="Database statistics", response_model=ApiResponse[DatabaseStats], tags=["Health"])
async def stats_endpoint(session: AsyncSession = Depends(get_session)) -> ApiResponse[DatabaseStats]:
    return success_envelope(DatabaseStats(**await database_stats(session)))
