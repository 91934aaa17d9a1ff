from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine


class MemoryObjectStore:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    async def put(self, key, body, length):
        self.objects[key] = body

    async def delete(self, key):
        self.objects.pop(key, None)

    def url_for(self, key):
        return f"memory://bucket/{key}"


@pytest_asyncio.fixture
async def storage(seeded_db: dict, migrated_db: str):
    from services.registry.app.db import Database
    from services.registry.app.storage import Storage

    storage = Storage(Database(create_async_engine(migrated_db)), MemoryObjectStore())
    yield storage
    await storage.close()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_seeded_credentials_resolve(storage, seeded_db):
    account_id = await storage.access_keys.resolve_account_id(seeded_db["access_key"])
    assert account_id == seeded_db["account_id"]

    apps = await storage.apps.get_apps(account_id)
    assert [a.id for a in apps] == [seeded_db["app_id"]]
    assert apps[0].collaborators["dev@example.com"].is_current_account is True

    info = await storage.deployments.get_deployment_info(seeded_db["deployment_keys"]["Production"])
    assert info.app_id == seeded_db["app_id"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_release_flow_against_postgres(storage):
    from services.registry.app.schemas import Account, App, Deployment, Package

    suffix = datetime.now(tz=UTC).strftime("%H%M%S%f")
    owner = await storage.accounts.create(
        Account(name="Owner", email=f"owner-{suffix}@example.com", github_id="gh-owner")
    )
    other = await storage.accounts.create(
        Account(name="Other", email=f"other-{suffix}@example.com", github_id="gh-other")
    )
    app = await storage.apps.add_app(owner, App(name=f"app-{suffix}"))
    deployment_id = await storage.deployments.add_deployment(
        owner, app.id, Deployment(name="Staging", key=f"key-{suffix}")
    )

    t0 = datetime.now(tz=UTC)
    for n, rollout in enumerate([20, 40]):
        await storage.packages.commit_package(
            owner,
            app.id,
            deployment_id,
            Package(
                app_version="1.0.0",
                package_hash=f"h{n}",
                size=1,
                rollout=rollout,
                upload_time=t0 + timedelta(seconds=n),
            ),
        )

    history = await storage.packages.get_package_history_from_deployment_key(f"key-{suffix}")
    assert [(p.label, p.rollout) for p in history] == [("v1", None), ("v2", 40)]

    await storage.apps.transfer_app(owner, app.id, f"other-{suffix}@example.com")
    collaborators = await storage.apps.get_collaborators(other, app.id)
    assert [e for e, p in collaborators.items() if p.permission == "Owner"] == [f"other-{suffix}@example.com"]

    await storage.apps.remove_app(other, app.id)
    assert await storage.packages.get_package_history_from_deployment_key(f"key-{suffix}") == []
