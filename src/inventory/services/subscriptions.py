from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.errors import ConflictError, NotFoundError
from src.inventory.models import Resource, ResourceGroup, Subscription

logger = logging.getLogger("inventory.services.subscriptions")


# PUBLIC_INTERFACE
async def list_subscriptions(session: AsyncSession) -> List[Subscription]:
    res = await session.execute(select(Subscription).order_by(Subscription.name, Subscription.id))
    return list(res.scalars().all())


# PUBLIC_INTERFACE
async def get_subscription(session: AsyncSession, subscription_id: int) -> Subscription:
    subscription = await session.get(Subscription, subscription_id)
    if subscription is None:
        raise NotFoundError("Subscription", subscription_id)
    return subscription


async def _ensure_name_free(session: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(Subscription.id).where(Subscription.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Subscription.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise ConflictError(f"Subscription '{name}' already exists")


# PUBLIC_INTERFACE
async def create_subscription(session: AsyncSession, name: str, tenant_id: Optional[str] = None) -> Subscription:
    await _ensure_name_free(session, name)
    subscription = Subscription(name=name, tenant_id=tenant_id)
    session.add(subscription)
    await session.flush()
    logger.info("Created subscription id=%s name=%s", subscription.id, name)
    return subscription


# PUBLIC_INTERFACE
async def update_subscription(session: AsyncSession, subscription_id: int, changes: Dict) -> Subscription:
    subscription = await get_subscription(session, subscription_id)
    if "name" in changes and changes["name"] != subscription.name:
        await _ensure_name_free(session, changes["name"], exclude_id=subscription.id)
        subscription.name = changes["name"]
    if "tenant_id" in changes:
        subscription.tenant_id = changes["tenant_id"]
    await session.flush()
    return subscription


# PUBLIC_INTERFACE
async def delete_subscription(session: AsyncSession, subscription_id: int) -> None:
    """Delete a subscription that no longer owns resource groups or resources.

    Raises:
        ConflictError: dependent resource groups or resources still reference it.
    """
    subscription = await get_subscription(session, subscription_id)

    groups = (
        await session.execute(select(func.count()).select_from(ResourceGroup).where(ResourceGroup.subscription_id == subscription_id))
    ).scalar_one()
    resources = (
        await session.execute(select(func.count()).select_from(Resource).where(Resource.subscription_id == subscription_id))
    ).scalar_one()
    if groups or resources:
        raise ConflictError(
            f"Subscription {subscription_id} still has {groups} resource group(s) and {resources} resource(s)"
        )

    await session.delete(subscription)
    try:
        await session.flush()
    except IntegrityError as exc:
        # Something was attached between the check and the delete
        raise ConflictError(f"Subscription {subscription_id} is still referenced") from exc
    logger.info("Deleted subscription id=%s", subscription_id)
