from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.inventory.db import Base

# BIGSERIAL on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
_PK = BigInteger().with_variant(Integer(), "sqlite")
_FK = BigInteger().with_variant(Integer(), "sqlite")

# JSONB on PostgreSQL so the tag blob can carry a GIN index
_TAG_BLOB = JSON().with_variant(JSONB(), "postgresql")


# --- Azure hierarchy ---


class Subscription(Base):
    """Top-level tenant/billing grouping."""

    __tablename__ = "subscription"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    tenant_id: Mapped[str | None] = mapped_column(Text, nullable=True)


class ResourceGroup(Base):
    """Resource group; always belongs to exactly one subscription."""

    __tablename__ = "resource_group"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # No ON DELETE clause: deleting a subscription that still owns groups must fail
    subscription_id: Mapped[int] = mapped_column(_FK, ForeignKey("subscription.id"), nullable=False, index=True)


class Application(Base):
    """Logical application, usually identified by its business code (e.g. AP2411)."""

    __tablename__ = "application"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    code: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_team: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_email: Mapped[str | None] = mapped_column(Text, nullable=True)


# --- Inventory ---


class Resource(Base):
    """ORM model representing an inventoried cloud resource."""

    __tablename__ = "resource"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    azure_id: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    resource_type: Mapped[str] = mapped_column("type", Text, nullable=False)
    kind: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    subscription_id: Mapped[int | None] = mapped_column(_FK, ForeignKey("subscription.id"), nullable=True)
    resource_group_id: Mapped[int | None] = mapped_column(_FK, ForeignKey("resource_group.id"), nullable=True)
    # Whole tag mapping, kept in lockstep with the resource_tag rows
    tags: Mapped[dict | None] = mapped_column("tags_json", _TAG_BLOB, nullable=True)
    extended_location: Mapped[str | None] = mapped_column(Text, nullable=True)
    vendor: Mapped[str | None] = mapped_column(Text, nullable=True)
    environment: Mapped[str | None] = mapped_column(Text, nullable=True)
    provisioner: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_resource_type", "type"),
        Index("idx_resource_location", "location"),
        Index("idx_resource_vendor", "vendor"),
        Index("idx_resource_environment", "environment"),
        Index(
            "idx_resource_tags_gin",
            "tags_json",
            postgresql_using="gin",
            postgresql_ops={"tags_json": "jsonb_path_ops"},
        ),
    )


class ResourceTag(Base):
    """One decomposed tag (EAV row) of a resource."""

    __tablename__ = "resource_tag"

    resource_id: Mapped[int] = mapped_column(
        _FK, ForeignKey("resource.id", ondelete="CASCADE"), primary_key=True
    )
    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_resource_tag_key", "key"),
        Index("idx_resource_tag_key_val", "key", "value"),
    )


class ResourceApplicationMap(Base):
    """Many-to-many link between resources and applications, qualified by relation type."""

    __tablename__ = "resource_application_map"

    resource_id: Mapped[int] = mapped_column(
        _FK, ForeignKey("resource.id", ondelete="CASCADE"), primary_key=True
    )
    application_id: Mapped[int] = mapped_column(
        _FK, ForeignKey("application.id", ondelete="CASCADE"), primary_key=True
    )
    # uses | owns | managed-by
    relation_type: Mapped[str] = mapped_column(String, primary_key=True, default="uses", server_default="uses")
