from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.db import get_session
from src.inventory.models import Application, Resource, ResourceApplicationMap
from src.inventory.responses import ApiResponse, ErrorResponse, PaginatedResponse, paginated_envelope, success_envelope
from src.inventory.schemas import (
    ApplicationLinkIn,
    ApplicationLinkOut,
    ApplicationOut,
    ResourceCreate,
    ResourceOut,
    ResourceStats,
    ResourceUpdate,
)
from src.inventory.services import resources as svc
from src.inventory.services.filters import build_criteria
from src.inventory.services.pagination import DEFAULT_SIZE, MAX_SIZE, SORTABLE_FIELDS, resolve_page, resolve_sort

router = APIRouter(tags=["Resources"])

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    503: {"model": ErrorResponse, "description": "Database unavailable"},
}


def resource_out(r: Resource) -> ResourceOut:
    """Map an ORM resource onto its public representation."""
    return ResourceOut(
        id=r.id,
        azure_id=r.azure_id,
        name=r.name,
        type=r.resource_type,
        kind=r.kind,
        location=r.location,
        subscription_id=r.subscription_id,
        resource_group_id=r.resource_group_id,
        tags=r.tags or {},
        extended_location=r.extended_location,
        vendor=r.vendor,
        environment=r.environment,
        provisioner=r.provisioner,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


def application_out(a: Application) -> ApplicationOut:
    return ApplicationOut(
        id=a.id,
        code=a.code,
        name=a.name,
        owner_team=a.owner_team,
        owner_email=a.owner_email,
    )


def _link_out(link: ResourceApplicationMap, app: Optional[Application] = None) -> ApplicationLinkOut:
    return ApplicationLinkOut(
        resource_id=link.resource_id,
        application_id=link.application_id,
        relation_type=link.relation_type,
        application=application_out(app) if app is not None else None,
    )


# PUBLIC_INTERFACE
@router.get(
    "/resources",
    summary="List resources",
    response_model=PaginatedResponse[ResourceOut],
    responses={200: {"description": "Paginated resource list"}, **_ERRORS},
)
async def list_resources_endpoint(
    search: Optional[str] = Query(None, description="Case-insensitive substring of the resource name"),
    resource_type: Optional[str] = Query(None, description="Exact resource type (e.g., Virtual machine)"),
    location: Optional[str] = Query(None, description="Exact region (e.g., southeastasia)"),
    environment: Optional[str] = Query(None, description="Exact environment (e.g., PRD)"),
    vendor: Optional[str] = Query(None, description="Exact vendor"),
    subscription_id: Optional[int] = Query(None, description="Owning subscription id"),
    resource_group_id: Optional[int] = Query(None, description="Owning resource group id"),
    tags: Optional[str] = Query(None, description="Comma-separated key:value pairs, all must match"),
    sort_field: Optional[str] = Query(None, description=f"One of: {', '.join(SORTABLE_FIELDS)}"),
    sort_direction: Optional[str] = Query(None, description="asc or desc"),
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    size: int = Query(DEFAULT_SIZE, ge=1, le=MAX_SIZE, description="Page size"),
    session: AsyncSession = Depends(get_session),
) -> PaginatedResponse[ResourceOut]:
    """List resources with optional filters, ordering and pagination.

    Parameters:
        search: Substring of the resource name.
        resource_type, location, environment, vendor: Exact-match filters.
        subscription_id, resource_group_id: Hierarchy filters.
        tags: ``Environment:Production,Owner:IT``. Value matching is partial and case-insensitive.
        sort_field: Column to sort by; defaults to newest first.
        sort_direction: asc (default when a field is given) or desc.
        page: 1-based page number (default 1).
        size: Page size (default 20, max 100).

    Returns:
        Paginated envelope of resources. Pages past the end return an empty list.
    """
    sort = resolve_sort(sort_field, sort_direction)
    criteria = build_criteria(
        search=search,
        resource_type=resource_type,
        location=location,
        environment=environment,
        vendor=vendor,
        subscription_id=subscription_id,
        resource_group_id=resource_group_id,
        tags=tags,
    )
    items, info = await svc.search_resources(session, criteria, sort, resolve_page(page, size))
    return paginated_envelope([resource_out(r) for r in items], info)


# PUBLIC_INTERFACE
@router.get(
    "/resources/stats",
    summary="Resource statistics",
    response_model=ApiResponse[ResourceStats],
)
async def resource_stats_endpoint(session: AsyncSession = Depends(get_session)) -> ApiResponse[ResourceStats]:
    """Counts by type, location, environment (``Unknown`` when unset) and vendor."""
    stats = await svc.resource_statistics(session)
    return success_envelope(ResourceStats(**stats))


# PUBLIC_INTERFACE
@router.get(
    "/resources/types",
    summary="Distinct resource types",
    response_model=ApiResponse[List[str]],
)
async def resource_types_endpoint(session: AsyncSession = Depends(get_session)) -> ApiResponse[List[str]]:
    return success_envelope(await svc.distinct_resource_types(session))


# PUBLIC_INTERFACE
@router.post(
    "/resources",
    summary="Create resource",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[ResourceOut],
    responses={
        201: {"description": "Resource created"},
        404: {"model": ErrorResponse, "description": "Referenced subscription or resource group not found"},
        409: {"model": ErrorResponse, "description": "azure_id already exists"},
        **_ERRORS,
    },
)
async def create_resource_endpoint(
    payload: ResourceCreate,
    session: AsyncSession = Depends(get_session),
) -> ApiResponse[ResourceOut]:
    """Create a resource. Its tags are stored both as a blob and as one row per pair, atomically."""
    values = payload.model_dump(exclude={"tags"})
    async with session.begin():
        resource = await svc.create_resource(session, values, payload.tags)
    return success_envelope(resource_out(resource), "Resource created")


# PUBLIC_INTERFACE
@router.get(
    "/resources/{resource_id}",
    summary="Get resource",
    response_model=ApiResponse[ResourceOut],
    responses={404: {"model": ErrorResponse, "description": "Resource not found"}},
)
async def get_resource_endpoint(resource_id: int, session: AsyncSession = Depends(get_session)) -> ApiResponse[ResourceOut]:
    resource = await svc.get_resource(session, resource_id)
    return success_envelope(resource_out(resource))


# PUBLIC_INTERFACE
@router.put(
    "/resources/{resource_id}",
    summary="Update resource",
    response_model=ApiResponse[ResourceOut],
    responses={
        404: {"model": ErrorResponse, "description": "Resource or referenced parent not found"},
        409: {"model": ErrorResponse, "description": "azure_id already exists"},
        **_ERRORS,
    },
)
async def update_resource_endpoint(
    resource_id: int,
    payload: ResourceUpdate,
    session: AsyncSession = Depends(get_session),
) -> ApiResponse[ResourceOut]:
    """Apply a partial update.

    Only fields present in the body change. ``tags`` replaces the complete tag set; omit it
    (or send null) to keep the current tags, send ``{}`` to clear them.
    """
    async with session.begin():
        resource = await svc.update_resource(session, resource_id, payload.model_dump(exclude_unset=True))
    return success_envelope(resource_out(resource), "Resource updated")


# PUBLIC_INTERFACE
@router.delete(
    "/resources/{resource_id}",
    summary="Delete resource",
    response_model=ApiResponse,
    responses={404: {"model": ErrorResponse, "description": "Resource not found"}},
)
async def delete_resource_endpoint(resource_id: int, session: AsyncSession = Depends(get_session)) -> ApiResponse:
    async with session.begin():
        await svc.delete_resource(session, resource_id)
    return success_envelope(None, "Resource deleted")


# PUBLIC_INTERFACE
@router.get(
    "/resources/{resource_id}/applications",
    summary="List applications of a resource",
    response_model=ApiResponse[List[ApplicationLinkOut]],
    responses={404: {"model": ErrorResponse, "description": "Resource not found"}},
)
async def list_resource_applications_endpoint(
    resource_id: int, session: AsyncSession = Depends(get_session)
) -> ApiResponse[List[ApplicationLinkOut]]:
    links = await svc.list_resource_applications(session, resource_id)
    return success_envelope([_link_out(link, app) for link, app in links])


# PUBLIC_INTERFACE
@router.post(
    "/resources/{resource_id}/applications",
    summary="Link resource to application",
    response_model=ApiResponse[ApplicationLinkOut],
    responses={404: {"model": ErrorResponse, "description": "Resource or application not found"}},
)
async def link_application_endpoint(
    resource_id: int,
    payload: ApplicationLinkIn,
    session: AsyncSession = Depends(get_session),
) -> ApiResponse[ApplicationLinkOut]:
    """Relate a resource to an application. Repeating the call leaves a single link."""
    async with session.begin():
        link, created = await svc.link_application(session, resource_id, payload.application_id, payload.relation_type)
    return success_envelope(_link_out(link), "Application linked" if created else "Application already linked")


# PUBLIC_INTERFACE
@router.delete(
    "/resources/{resource_id}/applications/{application_id}",
    summary="Unlink resource from application",
    response_model=ApiResponse,
    responses={404: {"model": ErrorResponse, "description": "Link not found"}},
)
async def unlink_application_endpoint(
    resource_id: int,
    application_id: int,
    relation_type: Optional[str] = Query(None, description="Only remove this relation; all relations when omitted"),
    session: AsyncSession = Depends(get_session),
) -> ApiResponse:
    async with session.begin():
        removed = await svc.unlink_application(session, resource_id, application_id, relation_type)
    return success_envelope({"removed": removed}, "Application unlinked")
