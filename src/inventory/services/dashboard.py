from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.models import Application, Resource, ResourceGroup, Subscription
from src.inventory.services.filters import ResourceCriteria
from src.inventory.services.resources import count_by

logger = logging.getLogger("inventory.services.dashboard")

UNKNOWN = "Unknown"


def _percentage(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(count * 100.0 / total, 2)


async def _breakdown(session: AsyncSession, column, conditions: list, total: int, fill: Optional[str] = None) -> List[Dict]:
    rows = await count_by(session, column, conditions, fill=fill)
    return [dict(row, percentage=_percentage(row["count"], total)) for row in rows]


async def _scalar(session: AsyncSession, stmt) -> int:
    return int((await session.execute(stmt)).scalar_one() or 0)


# PUBLIC_INTERFACE
async def dashboard_summary(session: AsyncSession, criteria: ResourceCriteria) -> Dict:
    """Totals and type/location/environment breakdowns for the resources matching ``criteria``.

    Without filters the subscription and resource-group totals count every row of those tables.
    With filters they count the distinct subscriptions/groups the matching resources belong to.

    Returns:
        dict shaped like DashboardSummary; percentages are shares of total_resources (0-100).
    """
    conditions = criteria.clauses()
    total_resources = await _scalar(
        session, select(func.count()).select_from(select(Resource.id).where(*conditions).subquery())
    )

    if criteria.is_empty:
        total_subscriptions = await _scalar(session, select(func.count()).select_from(Subscription))
        total_groups = await _scalar(session, select(func.count()).select_from(ResourceGroup))
    else:
        total_subscriptions = await _scalar(
            session, select(func.count(func.distinct(Resource.subscription_id))).where(*conditions)
        )
        total_groups = await _scalar(
            session, select(func.count(func.distinct(Resource.resource_group_id))).where(*conditions)
        )

    locations = await _breakdown(session, Resource.location, conditions, total_resources)
    summary = {
        "total_resources": total_resources,
        "total_subscriptions": total_subscriptions,
        "total_resource_groups": total_groups,
        "total_locations": len(locations),
        "resource_types": await _breakdown(session, Resource.resource_type, conditions, total_resources),
        "locations": locations,
        "environments": await _breakdown(session, Resource.environment, conditions, total_resources, fill=UNKNOWN),
    }
    logger.debug("Dashboard summary criteria=%s total=%s", criteria, total_resources)
    return summary


# PUBLIC_INTERFACE
async def database_stats(session: AsyncSession) -> Dict[str, int]:
    """Row counts of the main inventory tables."""
    return {
        "total_resources": await _scalar(session, select(func.count()).select_from(Resource)),
        "total_subscriptions": await _scalar(session, select(func.count()).select_from(Subscription)),
        "total_resource_groups": await _scalar(session, select(func.count()).select_from(ResourceGroup)),
        "total_applications": await _scalar(session, select(func.count()).select_from(Application)),
    }
