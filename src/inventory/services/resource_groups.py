from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.errors import ConflictError, NotFoundError
from src.inventory.models import Resource, ResourceGroup
from src.inventory.services.subscriptions import get_subscription

logger = logging.getLogger("inventory.services.resource_groups")


# PUBLIC_INTERFACE
async def list_resource_groups(session: AsyncSession, subscription_id: Optional[int] = None) -> List[ResourceGroup]:
    """List resource groups ordered by name, optionally restricted to one subscription."""
    stmt = select(ResourceGroup)
    if subscription_id is not None:
        stmt = stmt.where(ResourceGroup.subscription_id == subscription_id)
    res = await session.execute(stmt.order_by(ResourceGroup.name, ResourceGroup.id))
    return list(res.scalars().all())


# PUBLIC_INTERFACE
async def get_resource_group(session: AsyncSession, group_id: int) -> ResourceGroup:
    group = await session.get(ResourceGroup, group_id)
    if group is None:
        raise NotFoundError("Resource group", group_id)
    return group


async def _ensure_name_free(
    session: AsyncSession, subscription_id: int, name: str, exclude_id: Optional[int] = None
) -> None:
    stmt = select(ResourceGroup.id).where(
        ResourceGroup.subscription_id == subscription_id, ResourceGroup.name == name
    )
    if exclude_id is not None:
        stmt = stmt.where(ResourceGroup.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise ConflictError(f"Resource group '{name}' already exists in subscription {subscription_id}")


# PUBLIC_INTERFACE
async def create_resource_group(session: AsyncSession, name: str, subscription_id: int) -> ResourceGroup:
    await get_subscription(session, subscription_id)
    await _ensure_name_free(session, subscription_id, name)
    group = ResourceGroup(name=name, subscription_id=subscription_id)
    session.add(group)
    await session.flush()
    logger.info("Created resource group id=%s name=%s subscription=%s", group.id, name, subscription_id)
    return group


# PUBLIC_INTERFACE
async def update_resource_group(session: AsyncSession, group_id: int, changes: Dict) -> ResourceGroup:
    """Rename a resource group or move it to another subscription."""
    group = await get_resource_group(session, group_id)
    subscription_id = changes.get("subscription_id", group.subscription_id)
    name = changes.get("name", group.name)

    if subscription_id != group.subscription_id:
        await get_subscription(session, subscription_id)
        moved = (
            await session.execute(
                select(func.count()).select_from(Resource).where(
                    Resource.resource_group_id == group_id, Resource.subscription_id != subscription_id
                )
            )
        ).scalar_one()
        if moved:
            raise ConflictError(
                f"Resource group {group_id} holds {moved} resource(s) of another subscription"
            )
    if (subscription_id, name) != (group.subscription_id, group.name):
        await _ensure_name_free(session, subscription_id, name, exclude_id=group.id)

    group.subscription_id = subscription_id
    group.name = name
    await session.flush()
    return group


# PUBLIC_INTERFACE
async def delete_resource_group(session: AsyncSession, group_id: int) -> None:
    """Delete an empty resource group.

    Raises:
        ConflictError: resources still belong to the group.
    """
    group = await get_resource_group(session, group_id)
    resources = (
        await session.execute(select(func.count()).select_from(Resource).where(Resource.resource_group_id == group_id))
    ).scalar_one()
    if resources:
        raise ConflictError(f"Resource group {group_id} still has {resources} resource(s)")

    await session.delete(group)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise ConflictError(f"Resource group {group_id} is still referenced") from exc
    logger.info("Deleted resource group id=%s", group_id)
