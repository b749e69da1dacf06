from __future__ import annotations

import asyncio
import logging
import os
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.errors import ConflictError, InvalidInputError, NotFoundError, classify_db_error
from src.inventory.models import (
    Application,
    Resource,
    ResourceApplicationMap,
    ResourceGroup,
    Subscription,
)
from src.inventory.services.filters import ResourceCriteria
from src.inventory.services.pagination import PageInfo, PageRequest, SortSpec, page_info
from src.inventory.services.tags import dialect_insert, replace_tag_set

logger = logging.getLogger("inventory.services.resources")

# Public sort names -> columns; only names from pagination.SORTABLE_FIELDS reach this map
_SORT_COLUMNS = {
    "name": Resource.name,
    "type": Resource.resource_type,
    "location": Resource.location,
    "environment": Resource.environment,
    "vendor": Resource.vendor,
    "created_at": Resource.created_at,
    "updated_at": Resource.updated_at,
}

# Resource columns a create/update payload may set directly (tags go through the tag store)
_WRITABLE = (
    "azure_id",
    "name",
    "kind",
    "location",
    "subscription_id",
    "resource_group_id",
    "extended_location",
    "vendor",
    "environment",
    "provisioner",
)


def _query_timeout() -> Optional[float]:
    raw = os.getenv("QUERY_TIMEOUT_SECONDS", "30")
    try:
        value = float(raw)
    except ValueError:
        return 30.0
    return value if value > 0 else None


def _order_by(sort: SortSpec) -> list:
    column = _SORT_COLUMNS[sort.field]
    tiebreak = Resource.id.desc() if sort.descending else Resource.id.asc()
    return [column.desc() if sort.descending else column.asc(), tiebreak]


# PUBLIC_INTERFACE
async def search_resources(
    session: AsyncSession,
    criteria: ResourceCriteria,
    sort: SortSpec,
    page: PageRequest,
) -> Tuple[List[Resource], PageInfo]:
    """Run the bounded page query and the matching count query.

    Both statements share the same WHERE clauses. They are not snapshot-isolated, so under
    concurrent writes the total may drift slightly from the page contents.

    Raises:
        InfrastructureError: the database failed or exceeded QUERY_TIMEOUT_SECONDS. Not retried here.
    """
    conditions = criteria.clauses()
    count_stmt = select(func.count()).select_from(select(Resource.id).where(*conditions).subquery())
    page_stmt = (
        select(Resource).where(*conditions).order_by(*_order_by(sort)).limit(page.limit).offset(page.offset)
    )
    timeout = _query_timeout()

    try:
        total_res = await asyncio.wait_for(session.execute(count_stmt), timeout)
        total = int(total_res.scalar_one() or 0)
        res = await asyncio.wait_for(session.execute(page_stmt), timeout)
        items: List[Resource] = list(res.scalars().all())
    except (SQLAlchemyError, asyncio.TimeoutError, OSError) as exc:
        raise classify_db_error(exc, "Resource search failed") from exc

    info = page_info(page, total)
    logger.debug(
        "Resource search criteria=%s sort=%s %s page=%s size=%s total=%s",
        criteria, sort.field, sort.direction, page.page, page.size, total,
    )
    return items, info


# PUBLIC_INTERFACE
async def get_resource(session: AsyncSession, resource_id: int) -> Resource:
    resource = await session.get(Resource, resource_id)
    if resource is None:
        raise NotFoundError("Resource", resource_id)
    return resource


async def _check_references(session: AsyncSession, values: Dict) -> None:
    """Make sure referenced subscription/resource group exist and agree with each other."""
    subscription_id = values.get("subscription_id")
    group_id = values.get("resource_group_id")
    if subscription_id is not None and await session.get(Subscription, subscription_id) is None:
        raise NotFoundError("Subscription", subscription_id)
    if group_id is not None:
        group = await session.get(ResourceGroup, group_id)
        if group is None:
            raise NotFoundError("Resource group", group_id)
        if subscription_id is not None and group.subscription_id != subscription_id:
            raise InvalidInputError(
                f"Resource group {group_id} belongs to subscription {group.subscription_id}, not {subscription_id}"
            )


async def _check_azure_id(session: AsyncSession, azure_id: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not azure_id:
        return
    stmt = select(Resource.id).where(Resource.azure_id == azure_id)
    if exclude_id is not None:
        stmt = stmt.where(Resource.id != exclude_id)
    res = await session.execute(stmt)
    if res.first() is not None:
        raise ConflictError(f"Resource with azure_id '{azure_id}' already exists")


async def _flush(session: AsyncSession, action: str) -> None:
    try:
        await session.flush()
    except IntegrityError as exc:
        logger.warning("%s violated a constraint: %s", action, exc.orig)
        raise ConflictError(f"{action} conflicts with existing data") from exc


# PUBLIC_INTERFACE
async def create_resource(session: AsyncSession, values: Dict, tags: Dict[str, str]) -> Resource:
    """Insert a resource together with its tag rows.

    ``values`` holds the validated payload (``type`` under its public name). Must run inside
    ``session.begin()`` so the resource row, the tag blob and the tag rows commit together.
    """
    await _check_azure_id(session, values.get("azure_id"))
    await _check_references(session, values)

    resource = Resource(resource_type=values["type"], **{k: values.get(k) for k in _WRITABLE})
    session.add(resource)
    await _flush(session, "Resource creation")
    await replace_tag_set(session, resource, tags)
    await session.refresh(resource)
    logger.info("Created resource id=%s name=%s tags=%d", resource.id, resource.name, len(tags))
    return resource


# PUBLIC_INTERFACE
async def update_resource(session: AsyncSession, resource_id: int, changes: Dict) -> Resource:
    """Merge supplied fields into a resource.

    ``changes`` only contains keys present in the request. A ``tags`` entry that is not None
    replaces the full tag set (rows for dropped keys are deleted). Must run inside ``session.begin()``.
    """
    resource = await get_resource(session, resource_id)
    changes = dict(changes)
    tags = changes.pop("tags", None)

    if "azure_id" in changes:
        await _check_azure_id(session, changes["azure_id"], exclude_id=resource.id)
    if "subscription_id" in changes or "resource_group_id" in changes:
        await _check_references(
            session,
            {
                "subscription_id": changes.get("subscription_id", resource.subscription_id),
                "resource_group_id": changes.get("resource_group_id", resource.resource_group_id),
            },
        )

    if "type" in changes:
        resource.resource_type = changes.pop("type")
    for key, value in changes.items():
        if key in _WRITABLE:
            setattr(resource, key, value)

    await _flush(session, "Resource update")
    if tags is not None:
        await replace_tag_set(session, resource, tags)
    await session.refresh(resource)
    logger.info("Updated resource id=%s fields=%s tags_replaced=%s", resource.id, sorted(changes), tags is not None)
    return resource


# PUBLIC_INTERFACE
async def delete_resource(session: AsyncSession, resource_id: int) -> None:
    """Delete a resource; its tag rows and application links go with it (FK cascade)."""
    resource = await get_resource(session, resource_id)
    await session.delete(resource)
    await _flush(session, "Resource deletion")
    logger.info("Deleted resource id=%s", resource_id)


async def count_by(
    session: AsyncSession, column, conditions: Sequence = (), fill: Optional[str] = None
) -> List[Dict]:
    """Group matching resources by ``column``, largest groups first.

    NULL values are reported under ``fill`` when given and skipped otherwise.
    """
    count = func.count().label("count")
    stmt = select(column, count).where(*conditions).group_by(column)
    if fill is None:
        stmt = stmt.where(column.is_not(None))
    res = await session.execute(stmt)

    counts: Dict[str, int] = {}
    for name, n in res.all():
        name = fill if name is None else name
        counts[name] = counts.get(name, 0) + int(n)
    return [{"name": name, "count": n} for name, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]


# PUBLIC_INTERFACE
async def resource_statistics(session: AsyncSession) -> Dict[str, List[Dict]]:
    """Counts of resources grouped by type, location, environment and vendor.

    Resources without an environment are reported under ``Unknown``; missing locations and
    vendors are left out.
    """
    return {
        "by_type": await count_by(session, Resource.resource_type),
        "by_location": await count_by(session, Resource.location),
        "by_environment": await count_by(session, Resource.environment, fill="Unknown"),
        "by_vendor": await count_by(session, Resource.vendor),
    }


# PUBLIC_INTERFACE
async def distinct_resource_types(session: AsyncSession) -> List[str]:
    res = await session.execute(select(Resource.resource_type).distinct().order_by(Resource.resource_type))
    return [row[0] for row in res.all()]


# --- Resource <-> application links ---


# PUBLIC_INTERFACE
async def link_application(
    session: AsyncSession, resource_id: int, application_id: int, relation_type: str = "uses"
) -> Tuple[ResourceApplicationMap, bool]:
    """Relate a resource to an application. Linking the same pair and relation twice is a no-op.

    Returns:
        (link, created) where created is False when the link already existed.
    """
    await get_resource(session, resource_id)
    if await session.get(Application, application_id) is None:
        raise NotFoundError("Application", application_id)

    relation_type = relation_type.strip() or "uses"
    key = (resource_id, application_id, relation_type)
    existing = await session.get(ResourceApplicationMap, key)
    if existing is not None:
        return existing, False

    # A concurrent request may have inserted the same link in the meantime
    stmt = (
        dialect_insert(session, ResourceApplicationMap)
        .values(resource_id=resource_id, application_id=application_id, relation_type=relation_type)
        .on_conflict_do_nothing(index_elements=["resource_id", "application_id", "relation_type"])
    )
    await session.execute(stmt)
    link = await session.get(ResourceApplicationMap, key)
    assert link is not None
    logger.info("Linked resource %s to application %s (%s)", resource_id, application_id, relation_type)
    return link, True


# PUBLIC_INTERFACE
async def unlink_application(
    session: AsyncSession, resource_id: int, application_id: int, relation_type: Optional[str] = None
) -> int:
    """Remove links between a resource and an application (all relations unless one is named)."""
    await get_resource(session, resource_id)
    stmt = select(ResourceApplicationMap).where(
        ResourceApplicationMap.resource_id == resource_id,
        ResourceApplicationMap.application_id == application_id,
    )
    if relation_type:
        stmt = stmt.where(ResourceApplicationMap.relation_type == relation_type)
    res = await session.execute(stmt)
    links = list(res.scalars().all())
    if not links:
        raise NotFoundError("Application link", f"{resource_id}->{application_id}")
    for link in links:
        await session.delete(link)
    await session.flush()
    return len(links)


# PUBLIC_INTERFACE
async def list_resource_applications(
    session: AsyncSession, resource_id: int
) -> List[Tuple[ResourceApplicationMap, Application]]:
    await get_resource(session, resource_id)
    res = await session.execute(
        select(ResourceApplicationMap, Application)
        .join(Application, Application.id == ResourceApplicationMap.application_id)
        .where(ResourceApplicationMap.resource_id == resource_id)
        .order_by(Application.id, ResourceApplicationMap.relation_type)
    )
    return [(link, app) for link, app in res.all()]
