from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.db import get_session
from src.inventory.models import ResourceGroup
from src.inventory.responses import ApiResponse, ErrorResponse, success_envelope
from src.inventory.schemas import ResourceGroupIn, ResourceGroupOut, ResourceGroupUpdate
from src.inventory.services import resource_groups as svc

router = APIRouter(tags=["Resource Groups"])


def resource_group_out(g: ResourceGroup) -> ResourceGroupOut:
    return ResourceGroupOut(id=g.id, name=g.name, subscription_id=g.subscription_id)


# PUBLIC_INTERFACE
@router.get("/resource-groups", summary="List resource groups", response_model=ApiResponse[List[ResourceGroupOut]])
async def list_resource_groups_endpoint(
    subscription_id: Optional[int] = Query(None, description="Only groups of this subscription"),
    session: AsyncSession = Depends(get_session),
) -> ApiResponse[List[ResourceGroupOut]]:
    groups = await svc.list_resource_groups(session, subscription_id)
    return success_envelope([resource_group_out(g) for g in groups])


# PUBLIC_INTERFACE
@router.post(
    "/resource-groups",
    summary="Create resource group",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[ResourceGroupOut],
    responses={
        404: {"model": ErrorResponse, "description": "Subscription not found"},
        409: {"model": ErrorResponse, "description": "Name already used in the subscription"},
    },
)
async def create_resource_group_endpoint(
    payload: ResourceGroupIn, session: AsyncSession = Depends(get_session)
) -> ApiResponse[ResourceGroupOut]:
    async with session.begin():
        group = await svc.create_resource_group(session, payload.name, payload.subscription_id)
    return success_envelope(resource_group_out(group), "Resource group created")


# PUBLIC_INTERFACE
@router.get(
    "/resource-groups/{group_id}",
    summary="Get resource group",
    response_model=ApiResponse[ResourceGroupOut],
    responses={404: {"model": ErrorResponse, "description": "Resource group not found"}},
)
async def get_resource_group_endpoint(group_id: int, session: AsyncSession = Depends(get_session)) -> ApiResponse[ResourceGroupOut]:
    return success_envelope(resource_group_out(await svc.get_resource_group(session, group_id)))


# PUBLIC_INTERFACE
@router.put(
    "/resource-groups/{group_id}",
    summary="Update resource group",
    response_model=ApiResponse[ResourceGroupOut],
    responses={
        404: {"model": ErrorResponse, "description": "Resource group or subscription not found"},
        409: {"model": ErrorResponse, "description": "Name clash or resources of another subscription"},
    },
)
async def update_resource_group_endpoint(
    group_id: int, payload: ResourceGroupUpdate, session: AsyncSession = Depends(get_session)
) -> ApiResponse[ResourceGroupOut]:
    async with session.begin():
        group = await svc.update_resource_group(session, group_id, payload.model_dump(exclude_unset=True))
    return success_envelope(resource_group_out(group), "Resource group updated")


# PUBLIC_INTERFACE
@router.delete(
    "/resource-groups/{group_id}",
    summary="Delete resource group",
    response_model=ApiResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Resource group not found"},
        409: {"model": ErrorResponse, "description": "Resource group still has resources"},
    },
)
async def delete_resource_group_endpoint(group_id: int, session: AsyncSession = Depends(get_session)) -> ApiResponse:
    async with session.begin():
        await svc.delete_resource_group(session, group_id)
    return success_envelope(None, "Resource group deleted")
