from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.errors import ConflictError, NotFoundError
from src.inventory.models import Application, Resource, ResourceApplicationMap

logger = logging.getLogger("inventory.services.applications")

_FIELDS = ("code", "name", "owner_team", "owner_email")


# PUBLIC_INTERFACE
async def list_applications(session: AsyncSession) -> List[Application]:
    res = await session.execute(select(Application).order_by(Application.code, Application.id))
    return list(res.scalars().all())


# PUBLIC_INTERFACE
async def get_application(session: AsyncSession, application_id: int) -> Application:
    app = await session.get(Application, application_id)
    if app is None:
        raise NotFoundError("Application", application_id)
    return app


async def _ensure_code_free(session: AsyncSession, code: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not code:
        return
    stmt = select(Application.id).where(Application.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Application.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise ConflictError(f"Application with code '{code}' already exists")


# PUBLIC_INTERFACE
async def create_application(session: AsyncSession, values: Dict) -> Application:
    await _ensure_code_free(session, values.get("code"))
    app = Application(**{k: values.get(k) for k in _FIELDS})
    session.add(app)
    await session.flush()
    logger.info("Created application id=%s code=%s", app.id, app.code)
    return app


# PUBLIC_INTERFACE
async def update_application(session: AsyncSession, application_id: int, changes: Dict) -> Application:
    app = await get_application(session, application_id)
    if "code" in changes:
        await _ensure_code_free(session, changes["code"], exclude_id=app.id)
    for key in _FIELDS:
        if key in changes:
            setattr(app, key, changes[key])
    await session.flush()
    return app


# PUBLIC_INTERFACE
async def delete_application(session: AsyncSession, application_id: int) -> None:
    """Delete an application; its resource links are removed with it."""
    app = await get_application(session, application_id)
    await session.delete(app)
    await session.flush()
    logger.info("Deleted application id=%s", application_id)


# PUBLIC_INTERFACE
async def list_application_resources(session: AsyncSession, application_id: int) -> List[tuple]:
    """Return ``(resource, relation_type)`` pairs for every resource linked to an application."""
    await get_application(session, application_id)
    res = await session.execute(
        select(Resource, ResourceApplicationMap.relation_type)
        .join(ResourceApplicationMap, ResourceApplicationMap.resource_id == Resource.id)
        .where(ResourceApplicationMap.application_id == application_id)
        .order_by(Resource.name, Resource.id, ResourceApplicationMap.relation_type)
    )
    return [(resource, relation) for resource, relation in res.all()]
