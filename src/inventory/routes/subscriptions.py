from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.db import get_session
from src.inventory.models import ResourceGroup, Subscription
from src.inventory.responses import ApiResponse, ErrorResponse, PaginatedResponse, paginated_envelope, success_envelope
from src.inventory.routes.resource_groups import resource_group_out
from src.inventory.routes.resources import resource_out
from src.inventory.schemas import (
    ResourceGroupOut,
    ResourceOut,
    SubscriptionIn,
    SubscriptionOut,
    SubscriptionUpdate,
)
from src.inventory.services import resource_groups as groups_svc
from src.inventory.services import subscriptions as svc
from src.inventory.services.filters import build_criteria
from src.inventory.services.pagination import DEFAULT_SIZE, MAX_SIZE, resolve_page, resolve_sort
from src.inventory.services.resources import search_resources

router = APIRouter(tags=["Subscriptions"])


def subscription_out(s: Subscription) -> SubscriptionOut:
    return SubscriptionOut(id=s.id, name=s.name, tenant_id=s.tenant_id)


# PUBLIC_INTERFACE
@router.get("/subscriptions", summary="List subscriptions", response_model=ApiResponse[List[SubscriptionOut]])
async def list_subscriptions_endpoint(session: AsyncSession = Depends(get_session)) -> ApiResponse[List[SubscriptionOut]]:
    items = await svc.list_subscriptions(session)
    return success_envelope([subscription_out(s) for s in items])


# PUBLIC_INTERFACE
@router.post(
    "/subscriptions",
    summary="Create subscription",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[SubscriptionOut],
    responses={409: {"model": ErrorResponse, "description": "Name already taken"}},
)
async def create_subscription_endpoint(
    payload: SubscriptionIn, session: AsyncSession = Depends(get_session)
) -> ApiResponse[SubscriptionOut]:
    async with session.begin():
        subscription = await svc.create_subscription(session, payload.name, payload.tenant_id)
    return success_envelope(subscription_out(subscription), "Subscription created")


# PUBLIC_INTERFACE
@router.get(
    "/subscriptions/{subscription_id}",
    summary="Get subscription",
    response_model=ApiResponse[SubscriptionOut],
    responses={404: {"model": ErrorResponse, "description": "Subscription not found"}},
)
async def get_subscription_endpoint(
    subscription_id: int, session: AsyncSession = Depends(get_session)
) -> ApiResponse[SubscriptionOut]:
    return success_envelope(subscription_out(await svc.get_subscription(session, subscription_id)))


# PUBLIC_INTERFACE
@router.put(
    "/subscriptions/{subscription_id}",
    summary="Update subscription",
    response_model=ApiResponse[SubscriptionOut],
    responses={
        404: {"model": ErrorResponse, "description": "Subscription not found"},
        409: {"model": ErrorResponse, "description": "Name already taken"},
    },
)
async def update_subscription_endpoint(
    subscription_id: int, payload: SubscriptionUpdate, session: AsyncSession = Depends(get_session)
) -> ApiResponse[SubscriptionOut]:
    async with session.begin():
        subscription = await svc.update_subscription(session, subscription_id, payload.model_dump(exclude_unset=True))
    return success_envelope(subscription_out(subscription), "Subscription updated")


# PUBLIC_INTERFACE
@router.delete(
    "/subscriptions/{subscription_id}",
    summary="Delete subscription",
    response_model=ApiResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Subscription not found"},
        409: {"model": ErrorResponse, "description": "Subscription still owns resource groups or resources"},
    },
)
async def delete_subscription_endpoint(subscription_id: int, session: AsyncSession = Depends(get_session)) -> ApiResponse:
    async with session.begin():
        await svc.delete_subscription(session, subscription_id)
    return success_envelope(None, "Subscription deleted")


# PUBLIC_INTERFACE
@router.get(
    "/subscriptions/{subscription_id}/resources",
    summary="List resources of a subscription",
    response_model=PaginatedResponse[ResourceOut],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
        404: {"model": ErrorResponse, "description": "Subscription not found"},
    },
)
async def list_subscription_resources_endpoint(
    subscription_id: int,
    search: Optional[str] = Query(None, description="Case-insensitive substring of the resource name"),
    resource_type: Optional[str] = Query(None, description="Exact resource type"),
    location: Optional[str] = Query(None, description="Exact region"),
    environment: Optional[str] = Query(None, description="Exact environment"),
    resource_group_id: Optional[int] = Query(None, description="Owning resource group id"),
    tags: Optional[str] = Query(None, description="Comma-separated key:value pairs, all must match"),
    sort_field: Optional[str] = Query(None, description="Sort column"),
    sort_direction: Optional[str] = Query(None, description="asc or desc"),
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    size: int = Query(DEFAULT_SIZE, ge=1, le=MAX_SIZE, description="Page size"),
    session: AsyncSession = Depends(get_session),
) -> PaginatedResponse[ResourceOut]:
    """Same filters and paging as ``GET /resources``, restricted to one subscription."""
    sort = resolve_sort(sort_field, sort_direction)
    await svc.get_subscription(session, subscription_id)
    criteria = build_criteria(
        search=search,
        resource_type=resource_type,
        location=location,
        environment=environment,
        resource_group_id=resource_group_id,
        tags=tags,
    ).narrow(subscription_id=subscription_id)
    items, info = await search_resources(session, criteria, sort, resolve_page(page, size))
    return paginated_envelope([resource_out(r) for r in items], info)


# PUBLIC_INTERFACE
@router.get(
    "/subscriptions/{subscription_id}/resource-groups",
    summary="List resource groups of a subscription",
    response_model=ApiResponse[List[ResourceGroupOut]],
    responses={404: {"model": ErrorResponse, "description": "Subscription not found"}},
)
async def list_subscription_groups_endpoint(
    subscription_id: int, session: AsyncSession = Depends(get_session)
) -> ApiResponse[List[ResourceGroupOut]]:
    await svc.get_subscription(session, subscription_id)
    groups: List[ResourceGroup] = await groups_svc.list_resource_groups(session, subscription_id)
    return success_envelope([resource_group_out(g) for g in groups])
