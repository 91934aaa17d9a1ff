"""init schema

Revision ID: 0001_init_schema
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("github_id", sa.String(255), nullable=False),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("email", name="uq_accounts_email"),
    )

    op.create_table(
        "apps",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("collaborators", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    )

    op.create_table(
        "deployments",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "app_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("apps.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("key", sa.String(255), nullable=False),
        sa.UniqueConstraint("key", name="uq_deployments_key"),
    )

    op.create_table(
        "packages",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "deployment_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("deployments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rollout", sa.Integer(), nullable=True),
        sa.Column("app_version", sa.String(255), nullable=False),
        sa.Column("package_hash", sa.String(255), nullable=False),
        sa.Column("blob_url", sa.String(255), nullable=True),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("manifest_blob_url", sa.String(255), nullable=True),
        sa.Column("release_method", sa.String(255), nullable=True),
        sa.Column("upload_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("original_label", sa.String(255), nullable=True),
        sa.Column("original_deployment", sa.String(255), nullable=True),
    )

    op.create_table(
        "blobs",
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column("url", sa.String(255), nullable=False),
    )

    op.create_table(
        "access_keys",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("friendly_name", sa.String(255), nullable=True),
        sa.Column("is_session", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("name", name="uq_access_keys_name"),
    )

    op.create_table(
        "access_key_to_account_map",
        sa.Column(
            "access_key_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("access_keys.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("access_key_id", "account_id"),
        sa.UniqueConstraint("access_key_id", name="uq_access_key_map_key"),
    )

    op.create_table(
        "account_to_apps_map",
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "app_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("apps.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("account_id", "app_id"),
    )

    # Indexes
    op.create_index("idx_deployments_app", "deployments", ["app_id"])
    op.create_index("idx_packages_deployment_upload_time", "packages", ["deployment_id", "upload_time"])
    op.create_index("idx_access_key_map_account", "access_key_to_account_map", ["account_id"])
    op.create_index("idx_account_apps_app", "account_to_apps_map", ["app_id"])


def downgrade() -> None:
    op.drop_index("idx_account_apps_app", table_name="account_to_apps_map")
    op.drop_index("idx_access_key_map_account", table_name="access_key_to_account_map")
    op.drop_index("idx_packages_deployment_upload_time", table_name="packages")
    op.drop_index("idx_deployments_app", table_name="deployments")

    op.drop_table("account_to_apps_map")
    op.drop_table("access_key_to_account_map")
    op.drop_table("access_keys")
    op.drop_table("blobs")
    op.drop_table("packages")
    op.drop_table("deployments")
    op.drop_table("apps")
    op.drop_table("accounts")
