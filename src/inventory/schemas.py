from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

from src.inventory.errors import InvalidInputError
from src.inventory.services.tags import parse_tag_blob


def _tags_before(value):
    try:
        return parse_tag_blob(value)
    except InvalidInputError as exc:
        raise ValueError(exc.message) from exc


def _not_blank(value: Optional[str], field: str) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError(f"{field} cannot be empty")
    return value


# ---------- Resources ----------


class ResourceBase(BaseModel):
    kind: Optional[str] = Field(None, description="Resource kind (e.g., StorageV2)")
    location: Optional[str] = Field(None, description="Azure region (e.g., southeastasia)")
    subscription_id: Optional[int] = Field(None, description="Owning subscription id")
    resource_group_id: Optional[int] = Field(None, description="Owning resource group id")
    extended_location: Optional[str] = Field(None, description="Extended location, if any")
    vendor: Optional[str] = Field(None, description="Vendor (usually from the 'Vendor' tag)")
    environment: Optional[str] = Field(None, description="Environment such as PRD or UAT")
    provisioner: Optional[str] = Field(None, description="Provisioning tool (e.g., Terraform)")


class ResourceCreate(ResourceBase):
    """Payload to create a resource."""

    azure_id: Optional[str] = Field(None, description="ARM resource id; unique when present")
    name: str = Field(..., min_length=1, description="Resource name")
    type: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("type", "resource_type"),
        description="Resource type (e.g., Virtual machine, Disk)",
    )
    tags: Dict[str, str] = Field(default_factory=dict, description="Flat string-to-string tag mapping")

    @field_validator("tags", mode="before")
    @classmethod
    def _parse_tags(cls, v):
        parsed = _tags_before(v)
        return {} if parsed is None else parsed

    @field_validator("name", "type")
    @classmethod
    def _strip_required(cls, v: str, info) -> str:
        _not_blank(v, info.field_name)
        return v.strip()


class ResourceUpdate(ResourceBase):
    """Partial update. Only fields present in the request body are applied.

    ``tags`` replaces the whole tag set when given; omitting it (or sending null) keeps the current tags.
    """

    azure_id: Optional[str] = Field(None, description="ARM resource id; unique when present")
    name: Optional[str] = Field(None, min_length=1, description="Resource name")
    type: Optional[str] = Field(
        None,
        min_length=1,
        validation_alias=AliasChoices("type", "resource_type"),
        description="Resource type",
    )
    tags: Optional[Dict[str, str]] = Field(None, description="New complete tag mapping")

    @field_validator("tags", mode="before")
    @classmethod
    def _parse_tags(cls, v):
        return _tags_before(v)

    @field_validator("name", "type")
    @classmethod
    def _strip_optional(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        _not_blank(v, info.field_name)
        return v.strip()


class ResourceOut(BaseModel):
    """Resource representation returned by the API."""

    id: int = Field(..., description="Resource id")
    azure_id: Optional[str] = Field(None, description="ARM resource id")
    name: str = Field(..., description="Resource name")
    type: str = Field(..., description="Resource type")
    kind: Optional[str] = None
    location: Optional[str] = None
    subscription_id: Optional[int] = None
    resource_group_id: Optional[int] = None
    tags: Dict[str, str] = Field(default_factory=dict, description="Tag mapping")
    extended_location: Optional[str] = None
    vendor: Optional[str] = None
    environment: Optional[str] = None
    provisioner: Optional[str] = None
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class CountItem(BaseModel):
    name: str = Field(..., description="Group value")
    count: int = Field(..., ge=0, description="Number of resources")


class ResourceStats(BaseModel):
    """Aggregate resource counts."""

    by_type: List[CountItem] = Field(default_factory=list)
    by_location: List[CountItem] = Field(default_factory=list)
    by_environment: List[CountItem] = Field(default_factory=list)
    by_vendor: List[CountItem] = Field(default_factory=list)


# ---------- Subscriptions / resource groups / applications ----------


class SubscriptionIn(BaseModel):
    """Payload to create a subscription."""

    name: str = Field(..., min_length=1, description="Subscription name (unique)")
    tenant_id: Optional[str] = Field(None, description="Azure AD tenant id")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        _not_blank(v, "name")
        return v.strip()


class SubscriptionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, description="New subscription name")
    tenant_id: Optional[str] = Field(None, description="Azure AD tenant id")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("name cannot be null")
        _not_blank(v, "name")
        return v.strip()


class SubscriptionOut(BaseModel):
    id: int
    name: str
    tenant_id: Optional[str] = None


class ResourceGroupIn(BaseModel):
    """Payload to create a resource group."""

    name: str = Field(..., min_length=1, description="Resource group name (unique per subscription)")
    subscription_id: int = Field(..., description="Owning subscription id")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        _not_blank(v, "name")
        return v.strip()


class ResourceGroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    subscription_id: Optional[int] = Field(None, description="Move to another subscription")

    @field_validator("name", "subscription_id")
    @classmethod
    def _not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        if isinstance(v, str):
            _not_blank(v, info.field_name)
            return v.strip()
        return v


class ResourceGroupOut(BaseModel):
    id: int
    name: str
    subscription_id: int


class ApplicationIn(BaseModel):
    """Payload to create an application."""

    code: Optional[str] = Field(None, min_length=1, description="Business application code (unique), e.g. AP2411")
    name: Optional[str] = Field(None, description="Application name")
    owner_team: Optional[str] = Field(None, description="Owning team")
    owner_email: Optional[EmailStr] = Field(None, description="Owner contact e-mail")


class ApplicationUpdate(ApplicationIn):
    """Partial application update; only fields present in the body are applied."""


class ApplicationOut(BaseModel):
    id: int
    code: Optional[str] = None
    name: Optional[str] = None
    owner_team: Optional[str] = None
    owner_email: Optional[str] = None


class ApplicationLinkIn(BaseModel):
    """Link a resource to an application."""

    application_id: int = Field(..., description="Application id")
    relation_type: str = Field("uses", min_length=1, description="Relation such as uses, owns, managed-by")


class ApplicationLinkOut(BaseModel):
    resource_id: int
    application_id: int
    relation_type: str
    application: Optional[ApplicationOut] = None


class LinkedResourceOut(BaseModel):
    relation_type: str
    resource: ResourceOut


# ---------- Tags ----------


class TagUsage(BaseModel):
    key: str
    value: str
    count: int = Field(..., ge=0)


class TagVocabulary(BaseModel):
    """Known tag keys with their values, and the most used pairs."""

    tags: Dict[str, List[str]] = Field(default_factory=dict)
    popular_tags: List[TagUsage] = Field(default_factory=list)


class TagSuggestion(BaseModel):
    key: str
    value: str
    display: str = Field(..., description="key:value text for autocomplete")


# ---------- Dashboard / health ----------


class BreakdownItem(BaseModel):
    name: str
    count: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0, description="Share of total_resources, 0-100")


class DashboardSummary(BaseModel):
    """Inventory overview for the dashboard, honoring the supplied filters."""

    total_resources: int = 0
    total_subscriptions: int = 0
    total_resource_groups: int = 0
    total_locations: int = 0
    resource_types: List[BreakdownItem] = Field(default_factory=list)
    locations: List[BreakdownItem] = Field(default_factory=list)
    environments: List[BreakdownItem] = Field(default_factory=list)


class HealthOut(BaseModel):
    status: str = Field(..., description="healthy when the database answers")
    timestamp: datetime
    version: str


class DatabaseStats(BaseModel):
    total_resources: int = 0
    total_subscriptions: int = 0
    total_resource_groups: int = 0
    total_applications: int = 0
