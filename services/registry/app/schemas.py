from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


Permission = Literal["Owner", "Collaborator"]


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Account(StrictModel):
    id: str | None = None
    name: str
    email: str
    github_id: str
    created_time: datetime | None = None


class AccountUpdate(StrictModel):
    name: str | None = None
    github_id: str | None = None


class AccessKey(StrictModel):
    id: str | None = None
    name: str
    created_time: datetime | None = None
    created_by: str | None = None
    description: str | None = None
    expires: datetime | None = None
    friendly_name: str | None = None
    is_session: bool | None = None


class CollaboratorProperties(StrictModel):
    account_id: str
    permission: Permission
    # Response-only: set on reads for the requesting account, never persisted.
    is_current_account: bool | None = None


CollaboratorMap = dict[str, CollaboratorProperties]


class App(StrictModel):
    id: str | None = None
    name: str
    created_time: datetime | None = None
    collaborators: CollaboratorMap = Field(default_factory=dict)


class Deployment(StrictModel):
    id: str | None = None
    name: str
    key: str
    app_id: str | None = None
    created_time: datetime | None = None


class DeploymentInfo(StrictModel):
    app_id: str
    deployment_id: str


class Package(StrictModel):
    id: str | None = None
    deployment_id: str | None = None
    description: str | None = None
    is_disabled: bool | None = None
    is_mandatory: bool | None = None
    # Percentage of devices receiving the release; None means full rollout.
    rollout: int | None = Field(default=None, ge=0, le=100)
    app_version: str
    package_hash: str
    blob_url: str | None = None
    size: int = Field(ge=0)
    manifest_blob_url: str | None = None
    release_method: str | None = None
    upload_time: datetime | None = None
    label: str | None = None
    original_label: str | None = None
    original_deployment: str | None = None

    @field_validator("app_version", "package_hash")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be non-empty")
        return v
