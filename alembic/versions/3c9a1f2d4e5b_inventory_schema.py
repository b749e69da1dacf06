"""Inventory schema: subscriptions, resource groups, applications, resources and tags

Revision ID: 3c9a1f2d4e5b
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "3c9a1f2d4e5b"
down_revision = None
branch_labels = None
depends_on = None

_ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
_TAG_BLOB = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # Subscriptions
    op.create_table(
        "subscription",
        sa.Column("id", _ID, primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("tenant_id", sa.Text(), nullable=True),
    )

    # Resource groups (no ON DELETE: a subscription with groups cannot be deleted)
    op.create_table(
        "resource_group",
        sa.Column("id", _ID, primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("subscription_id", _ID, sa.ForeignKey("subscription.id"), nullable=False),
    )
    op.create_index("ix_resource_group_subscription_id", "resource_group", ["subscription_id"])

    # Applications
    op.create_table(
        "application",
        sa.Column("id", _ID, primary_key=True, autoincrement=True),
        sa.Column("code", sa.Text(), nullable=True, unique=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("owner_team", sa.Text(), nullable=True),
        sa.Column("owner_email", sa.Text(), nullable=True),
    )

    # Resources
    op.create_table(
        "resource",
        sa.Column("id", _ID, primary_key=True, autoincrement=True),
        sa.Column("azure_id", sa.Text(), nullable=True, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("kind", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("subscription_id", _ID, sa.ForeignKey("subscription.id"), nullable=True),
        sa.Column("resource_group_id", _ID, sa.ForeignKey("resource_group.id"), nullable=True),
        sa.Column("tags_json", _TAG_BLOB, nullable=True),
        sa.Column("extended_location", sa.Text(), nullable=True),
        sa.Column("vendor", sa.Text(), nullable=True),
        sa.Column("environment", sa.Text(), nullable=True),
        sa.Column("provisioner", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("idx_resource_type", "resource", ["type"])
    op.create_index("idx_resource_location", "resource", ["location"])
    op.create_index("idx_resource_vendor", "resource", ["vendor"])
    op.create_index("idx_resource_environment", "resource", ["environment"])
    if op.get_bind().dialect.name == "postgresql":
        op.create_index(
            "idx_resource_tags_gin",
            "resource",
            ["tags_json"],
            postgresql_using="gin",
            postgresql_ops={"tags_json": "jsonb_path_ops"},
        )

    # Decomposed tags (one row per key)
    op.create_table(
        "resource_tag",
        sa.Column("resource_id", _ID, sa.ForeignKey("resource.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("key", sa.Text(), primary_key=True),
        sa.Column("value", sa.Text(), nullable=True),
    )
    op.create_index("idx_resource_tag_key", "resource_tag", ["key"])
    op.create_index("idx_resource_tag_key_val", "resource_tag", ["key", "value"])

    # Resource <-> application links
    op.create_table(
        "resource_application_map",
        sa.Column("resource_id", _ID, sa.ForeignKey("resource.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("application_id", _ID, sa.ForeignKey("application.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("relation_type", sa.String(), primary_key=True, server_default="uses"),  # uses|owns|managed-by
    )


def downgrade() -> None:
    op.drop_table("resource_application_map")
    op.drop_index("idx_resource_tag_key_val", table_name="resource_tag")
    op.drop_index("idx_resource_tag_key", table_name="resource_tag")
    op.drop_table("resource_tag")
    if op.get_bind().dialect.name == "postgresql":
        op.drop_index("idx_resource_tags_gin", table_name="resource")
    op.drop_index("idx_resource_environment", table_name="resource")
    op.drop_index("idx_resource_vendor", table_name="resource")
    op.drop_index("idx_resource_location", table_name="resource")
    op.drop_index("idx_resource_type", table_name="resource")
    op.drop_table("resource")
    op.drop_table("application")
    op.drop_index("ix_resource_group_subscription_id", table_name="resource_group")
    op.drop_table("resource_group")
    op.drop_table("subscription")
