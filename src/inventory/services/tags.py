from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Dict, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.errors import InvalidInputError
from src.inventory.models import Resource, ResourceTag

logger = logging.getLogger("inventory.services.tags")

POPULAR_TAG_LIMIT = 20
SUGGESTION_LIMIT = 10


# PUBLIC_INTERFACE
def parse_tag_blob(raw) -> Optional[Dict[str, str]]:
    """Turn a supplied tag blob into a flat ``{str: str}`` mapping.

    Accepts a mapping, or a JSON string encoding one (the raw form resource exports use).
    ``None`` means "no tags supplied" and is returned unchanged. Keys are stripped of
    surrounding whitespace, the same way tag filters strip them.

    Raises:
        InvalidInputError: the blob is not a flat string-to-string mapping, has a blank key,
            or has two keys that are equal once stripped.
    """
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except ValueError as exc:
            raise InvalidInputError(f"not valid JSON ({exc})") from exc
    if not isinstance(raw, Mapping):
        raise InvalidInputError("expected an object mapping tag names to string values")
    tags: Dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            raise InvalidInputError("tag names must be non-empty strings")
        if not isinstance(value, str):
            raise InvalidInputError(f"value of '{key}' must be a string")
        name = key.strip()
        if name in tags:
            raise InvalidInputError(f"duplicate tag name '{name}'")
        tags[name] = value
    return tags


def dialect_insert(session: AsyncSession, model):
    """Return the appropriate dialect-specific insert() to support ON CONFLICT."""
    bind = session.get_bind()
    name = getattr(getattr(bind, "dialect", None), "name", "")
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert

        return pg_insert(model)
    from sqlalchemy.dialects.sqlite import insert as sqlite_insert

    return sqlite_insert(model)


# PUBLIC_INTERFACE
async def replace_tag_set(session: AsyncSession, resource: Resource, tags: Dict[str, str]) -> None:
    """Make ``tags`` the complete tag set of ``resource``.

    Writes the blob, upserts every pair into resource_tag and deletes rows whose key is gone.
    Runs inside the caller's transaction: callers must wrap it in ``session.begin()`` together
    with the resource write so the blob and the rows commit or roll back as one unit.
    """
    resource.tags = dict(tags)
    await session.flush()

    stale = delete(ResourceTag).where(ResourceTag.resource_id == resource.id)
    if tags:
        stale = stale.where(ResourceTag.key.not_in(list(tags)))
    await session.execute(stale.execution_options(synchronize_session=False))

    if tags:
        stmt = dialect_insert(session, ResourceTag).values(
            [{"resource_id": resource.id, "key": k, "value": v} for k, v in tags.items()]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ResourceTag.resource_id, ResourceTag.key],
            set_={"value": stmt.excluded.value},
        )
        await session.execute(stmt)
    logger.debug("Replaced tag set of resource %s with %d pairs", resource.id, len(tags))


# PUBLIC_INTERFACE
async def get_tag_rows(session: AsyncSession, resource_id: int) -> Dict[str, Optional[str]]:
    """Return the decomposed tag rows of one resource as a mapping."""
    res = await session.execute(
        select(ResourceTag.key, ResourceTag.value).where(ResourceTag.resource_id == resource_id)
    )
    return {key: value for key, value in res.all()}


# PUBLIC_INTERFACE
async def tag_vocabulary(session: AsyncSession) -> dict:
    """All tag keys with their distinct values, plus the most used key/value pairs.

    Returns:
        dict with keys ``tags`` ({key: [values...]}) and ``popular_tags`` ([{key, value, count}]).
    """
    usage = func.count().label("usage")
    res = await session.execute(
        select(ResourceTag.key, ResourceTag.value, usage)
        .group_by(ResourceTag.key, ResourceTag.value)
        .order_by(ResourceTag.key, ResourceTag.value)
    )
    rows = res.all()

    vocabulary: Dict[str, List[str]] = {}
    for key, value, _count in rows:
        values = vocabulary.setdefault(key, [])
        if value is not None:
            values.append(value)

    popular = sorted(rows, key=lambda r: (-r[2], r[0], r[1] or ""))[:POPULAR_TAG_LIMIT]
    return {
        "tags": vocabulary,
        "popular_tags": [{"key": k, "value": v or "", "count": int(c)} for k, v, c in popular],
    }


# PUBLIC_INTERFACE
async def tag_suggestions(session: AsyncSession, q: Optional[str], limit: int = SUGGESTION_LIMIT) -> List[dict]:
    """Autocomplete tag pairs whose key or value contains ``q`` (case-insensitive).

    Exact key or value matches come first, then the rest ordered by their ``key:value`` text.
    """
    term = (q or "").strip()
    stmt = select(ResourceTag.key, ResourceTag.value).distinct()
    if term:
        stmt = stmt.where(
            or_(
                ResourceTag.key.icontains(term, autoescape=True),
                ResourceTag.value.icontains(term, autoescape=True),
            )
        )
    res = await session.execute(stmt)

    lowered = term.lower()
    suggestions = [
        {"key": key, "value": value or "", "display": f"{key}:{value or ''}"}
        for key, value in res.all()
    ]
    suggestions.sort(
        key=lambda s: (
            not (s["key"].lower() == lowered or s["value"].lower() == lowered),
            s["display"],
        )
    )
    return suggestions[:limit]
