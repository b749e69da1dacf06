"""Translate optional list filters into bound SQLAlchemy predicates over ``resource``."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from sqlalchemy import exists
from sqlalchemy.sql.elements import ColumnElement

from src.inventory.models import Resource, ResourceTag

logger = logging.getLogger("inventory.services.filters")


@dataclass(frozen=True)
class TagPair:
    key: str
    value: str


# PUBLIC_INTERFACE
def parse_tag_filter(raw: Optional[str]) -> Tuple[TagPair, ...]:
    """Parse ``"Environment:Production,Owner:IT"`` into tag pairs.

    - Pairs are separated by commas and split on the first colon, so values may contain colons.
    - Pairs without a colon or with an empty key are skipped, not rejected.
    - Duplicate pairs collapse; order of first appearance is kept.
    """
    if not raw:
        return ()
    pairs: List[TagPair] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        key, sep, value = chunk.partition(":")
        key = key.strip()
        if not sep or not key:
            logger.debug("Ignoring malformed tag filter pair %r", chunk)
            continue
        pair = TagPair(key=key, value=value.strip())
        if pair not in pairs:
            pairs.append(pair)
    return tuple(pairs)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class ResourceCriteria:
    """Normalized resource filters. Every populated field narrows the result (logical AND)."""

    search: Optional[str] = None
    resource_type: Optional[str] = None
    location: Optional[str] = None
    environment: Optional[str] = None
    vendor: Optional[str] = None
    subscription_id: Optional[int] = None
    resource_group_id: Optional[int] = None
    tags: Tuple[TagPair, ...] = field(default_factory=tuple)

    def narrow(self, **overrides) -> "ResourceCriteria":
        """Return a copy with extra restrictions; tag pairs are appended rather than replaced."""
        extra_tags = overrides.pop("tags", ())
        merged = replace(self, **overrides)
        if extra_tags:
            merged = replace(merged, tags=self.tags + tuple(t for t in extra_tags if t not in self.tags))
        return merged

    @property
    def is_empty(self) -> bool:
        return self == ResourceCriteria()

    def clauses(self) -> List[ColumnElement[bool]]:
        """Render the criteria as WHERE clauses. User values are always bound parameters."""
        conditions: List[ColumnElement[bool]] = []
        if self.search:
            conditions.append(Resource.name.icontains(self.search, autoescape=True))
        if self.resource_type:
            conditions.append(Resource.resource_type == self.resource_type)
        if self.location:
            conditions.append(Resource.location == self.location)
        if self.environment:
            conditions.append(Resource.environment == self.environment)
        if self.vendor:
            conditions.append(Resource.vendor == self.vendor)
        if self.subscription_id is not None:
            conditions.append(Resource.subscription_id == self.subscription_id)
        if self.resource_group_id is not None:
            conditions.append(Resource.resource_group_id == self.resource_group_id)
        for pair in self.tags:
            conditions.append(_tag_clause(pair))
        return conditions


def _tag_clause(pair: TagPair) -> ColumnElement[bool]:
    # One EXISTS per pair gives AND semantics across pairs
    predicates = [ResourceTag.resource_id == Resource.id, ResourceTag.key == pair.key]
    if pair.value:
        predicates.append(ResourceTag.value.icontains(pair.value, autoescape=True))
    return exists().where(*predicates)


# PUBLIC_INTERFACE
def build_criteria(
    *,
    search: Optional[str] = None,
    resource_type: Optional[str] = None,
    location: Optional[str] = None,
    environment: Optional[str] = None,
    vendor: Optional[str] = None,
    subscription_id: Optional[int] = None,
    resource_group_id: Optional[int] = None,
    tags: Optional[str] = None,
) -> ResourceCriteria:
    """Normalize raw filter values: strings are trimmed, blanks dropped, the tag expression parsed."""
    return ResourceCriteria(
        search=_clean(search),
        resource_type=_clean(resource_type),
        location=_clean(location),
        environment=_clean(environment),
        vendor=_clean(vendor),
        subscription_id=subscription_id,
        resource_group_id=resource_group_id,
        tags=parse_tag_filter(tags),
    )
