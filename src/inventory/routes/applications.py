from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.db import get_session
from src.inventory.responses import ApiResponse, ErrorResponse, success_envelope
from src.inventory.routes.resources import application_out, resource_out
from src.inventory.schemas import ApplicationIn, ApplicationOut, ApplicationUpdate, LinkedResourceOut
from src.inventory.services import applications as svc

router = APIRouter(tags=["Applications"])


# PUBLIC_INTERFACE
@router.get("/applications", summary="List applications", response_model=ApiResponse[List[ApplicationOut]])
async def list_applications_endpoint(session: AsyncSession = Depends(get_session)) -> ApiResponse[List[ApplicationOut]]:
    return success_envelope([application_out(a) for a in await svc.list_applications(session)])


# PUBLIC_INTERFACE
@router.post(
    "/applications",
    summary="Create application",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[ApplicationOut],
    responses={409: {"model": ErrorResponse, "description": "Application code already exists"}},
)
async def create_application_endpoint(
    payload: ApplicationIn, session: AsyncSession = Depends(get_session)
) -> ApiResponse[ApplicationOut]:
    async with session.begin():
        app = await svc.create_application(session, payload.model_dump())
    return success_envelope(application_out(app), "Application created")


# PUBLIC_INTERFACE
@router.get(
    "/applications/{application_id}",
    summary="Get application",
    response_model=ApiResponse[ApplicationOut],
    responses={404: {"model": ErrorResponse, "description": "Application not found"}},
)
async def get_application_endpoint(
    application_id: int, session: AsyncSession = Depends(get_session)
) -> ApiResponse[ApplicationOut]:
    return success_envelope(application_out(await svc.get_application(session, application_id)))


# PUBLIC_INTERFACE
@router.put(
    "/applications/{application_id}",
    summary="Update application",
    response_model=ApiResponse[ApplicationOut],
    responses={
        404: {"model": ErrorResponse, "description": "Application not found"},
        409: {"model": ErrorResponse, "description": "Application code already exists"},
    },
)
async def update_application_endpoint(
    application_id: int, payload: ApplicationUpdate, session: AsyncSession = Depends(get_session)
) -> ApiResponse[ApplicationOut]:
    async with session.begin():
        app = await svc.update_application(session, application_id, payload.model_dump(exclude_unset=True))
    return success_envelope(application_out(app), "Application updated")


# PUBLIC_INTERFACE
@router.delete(
    "/applications/{application_id}",
    summary="Delete application",
    response_model=ApiResponse,
    responses={404: {"model": ErrorResponse, "description": "Application not found"}},
)
async def delete_application_endpoint(application_id: int, session: AsyncSession = Depends(get_session)) -> ApiResponse:
    async with session.begin():
        await svc.delete_application(session, application_id)
    return success_envelope(None, "Application deleted")


# PUBLIC_INTERFACE
@router.get(
    "/applications/{application_id}/resources",
    summary="List resources of an application",
    response_model=ApiResponse[List[LinkedResourceOut]],
    responses={404: {"model": ErrorResponse, "description": "Application not found"}},
)
async def list_application_resources_endpoint(
    application_id: int, session: AsyncSession = Depends(get_session)
) -> ApiResponse[List[LinkedResourceOut]]:
    """Resources linked to the application, each with the relation it was linked under."""
    pairs = await svc.list_application_resources(session, application_id)
    return success_envelope(
        [LinkedResourceOut(relation_type=relation, resource=resource_out(r)) for r, relation in pairs]
    )
