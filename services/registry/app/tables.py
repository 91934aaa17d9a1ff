from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


METADATA = sa.MetaData()


def _uuid() -> sa.types.TypeEngine:
    # Ids travel as strings; SQLite (unit tests) has no native UUID type.
    return postgresql.UUID(as_uuid=False).with_variant(sa.String(36), "sqlite")


def _json() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


accounts = sa.Table(
    "accounts",
    METADATA,
    sa.Column("id", _uuid(), primary_key=True),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("email", sa.String(255), nullable=False, unique=True),
    sa.Column("github_id", sa.String(255), nullable=False),
    sa.Column("created_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
)

apps = sa.Table(
    "apps",
    METADATA,
    sa.Column("id", _uuid(), primary_key=True),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("created_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column("collaborators", _json(), nullable=True),
)

deployments = sa.Table(
    "deployments",
    METADATA,
    sa.Column("id", _uuid(), primary_key=True),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("app_id", _uuid(), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
    sa.Column("created_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column("key", sa.String(255), nullable=False, unique=True),
)

packages = sa.Table(
    "packages",
    METADATA,
    sa.Column("id", _uuid(), primary_key=True),
    sa.Column("deployment_id", _uuid(), sa.ForeignKey("deployments.id", ondelete="CASCADE"), nullable=False),
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

blobs = sa.Table(
    "blobs",
    METADATA,
    sa.Column("key", sa.String(255), primary_key=True),
    sa.Column("url", sa.String(255), nullable=False),
)

access_keys = sa.Table(
    "access_keys",
    METADATA,
    sa.Column("id", _uuid(), primary_key=True),
    sa.Column("name", sa.String(255), nullable=False, unique=True),
    sa.Column("created_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column("created_by", sa.String(255), nullable=True),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("expires", sa.DateTime(timezone=True), nullable=True),
    sa.Column("friendly_name", sa.String(255), nullable=True),
    sa.Column("is_session", sa.Boolean(), nullable=False, server_default=sa.false()),
)

access_key_to_account_map = sa.Table(
    "access_key_to_account_map",
    METADATA,
    sa.Column("access_key_id", _uuid(), sa.ForeignKey("access_keys.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("account_id", _uuid(), sa.ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("expires", sa.DateTime(timezone=True), nullable=True),
    sa.UniqueConstraint("access_key_id", name="uq_access_key_map_key"),
)

account_to_apps_map = sa.Table(
    "account_to_apps_map",
    METADATA,
    sa.Column("account_id", _uuid(), sa.ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("app_id", _uuid(), sa.ForeignKey("apps.id", ondelete="CASCADE"), primary_key=True),
)
