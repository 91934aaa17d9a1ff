from __future__ import annotations

from uuid import uuid4

import sqlalchemy as sa

from services.registry.app.db import Database, as_utc, now
from services.registry.app.deployments import DeploymentManager
from services.registry.app.errors import invalid
from services.registry.app.logging import logger
from services.registry.app.observability import traced_operation
from services.registry.app.schemas import Package
from services.registry.app.tables import deployments, packages


# Fields a history edit may rewrite; provenance (original label/deployment) is fixed at commit.
_MUTABLE_FIELDS = {
    "rollout",
    "description",
    "is_disabled",
    "is_mandatory",
    "app_version",
    "package_hash",
    "blob_url",
    "size",
    "manifest_blob_url",
    "release_method",
    "upload_time",
    "label",
}


def _to_package(row) -> Package:
    return Package(
        id=row["id"],
        deployment_id=row["deployment_id"],
        description=row["description"],
        is_disabled=row["is_disabled"],
        is_mandatory=row["is_mandatory"],
        rollout=row["rollout"],
        app_version=row["app_version"],
        package_hash=row["package_hash"],
        blob_url=row["blob_url"],
        size=row["size"],
        manifest_blob_url=row["manifest_blob_url"],
        release_method=row["release_method"],
        upload_time=as_utc(row["upload_time"]),
        label=row["label"],
        original_label=row["original_label"],
        original_deployment=row["original_deployment"],
    )


def next_label(package_count: int) -> str:
    """
    Label for the next release of a deployment holding `package_count` packages.

    Count-based rather than a scan for the highest label: deleting history can leave gaps,
    but sequential commits never produce the same label twice.
    """
    return f"v{package_count + 1}"


class PackageManager:
    """
    Ordered release history per deployment.

    Rollout state machine: only the most recent release may be partially rolled out.
    Committing a new release clears `rollout` on its predecessor, which puts the
    predecessor at full rollout. Blobs referenced by packages are never deleted here.
    """

    def __init__(self, db: Database, deployments: DeploymentManager):
        self._db = db
        self._deployments = deployments

    @traced_operation("commit_package")
    async def commit_package(self, account_id: str, app_id: str, deployment_id: str, pkg: Package) -> Package:
        async with self._db.unit_of_work() as session:
            await self._deployments.get_deployment(account_id, app_id, deployment_id)

            latest_id = (
                await session.execute(
                    sa.select(packages.c.id)
                    .where(packages.c.deployment_id == deployment_id)
                    .order_by(packages.c.upload_time.desc())
                    .limit(1)
                )
            ).scalar_one_or_none()
            if latest_id is not None:
                await session.execute(sa.update(packages).where(packages.c.id == latest_id).values(rollout=None))

            count = (
                await session.execute(
                    sa.select(sa.func.count(packages.c.id)).where(packages.c.deployment_id == deployment_id)
                )
            ).scalar_one()

            committed = pkg.model_copy(
                update={
                    "id": str(uuid4()),
                    "deployment_id": deployment_id,
                    "is_disabled": bool(pkg.is_disabled),
                    "is_mandatory": bool(pkg.is_mandatory),
                    "upload_time": pkg.upload_time or now(),
                    "label": next_label(int(count or 0)),
                }
            )
            await session.execute(sa.insert(packages).values(**committed.model_dump()))

        logger.info(
            "package_committed",
            deployment_id=deployment_id,
            package_id=committed.id,
            label=committed.label,
            rollout=committed.rollout,
        )
        return committed

    @traced_operation("get_package_history")
    async def get_package_history(self, account_id: str, app_id: str, deployment_id: str) -> list[Package]:
        """
        All packages of the deployment.

        Rows come back ordered by upload time, but callers must sort themselves if order matters.
        """
        async with self._db.unit_of_work() as session:
            await self._deployments.get_deployment(account_id, app_id, deployment_id)
            rows = (
                await session.execute(
                    sa.select(packages)
                    .where(packages.c.deployment_id == deployment_id)
                    .order_by(packages.c.upload_time)
                )
            ).mappings().all()
        return [_to_package(r) for r in rows]

    @traced_operation("get_package_history_from_deployment_key")
    async def get_package_history_from_deployment_key(self, deployment_key: str) -> list[Package]:
        q = (
            sa.select(packages)
            .select_from(deployments.join(packages, packages.c.deployment_id == deployments.c.id))
            .where(deployments.c.key == deployment_key)
            .order_by(packages.c.upload_time)
        )
        async with self._db.unit_of_work() as session:
            rows = (await session.execute(q)).mappings().all()
        return [_to_package(r) for r in rows]

    @traced_operation("update_package_history")
    async def update_package_history(
        self, account_id: str, app_id: str, deployment_id: str, history: list[Package]
    ) -> None:
        if not history:
            raise invalid("Cannot clear package history from an update operation")

        async with self._db.unit_of_work() as session:
            await self._deployments.get_deployment(account_id, app_id, deployment_id)
            for h in history:
                values = h.model_dump(include=_MUTABLE_FIELDS)
                values["is_disabled"] = bool(h.is_disabled)
                values["is_mandatory"] = bool(h.is_mandatory)
                if h.upload_time is None:
                    del values["upload_time"]
                await session.execute(
                    sa.update(packages)
                    .where(sa.and_(packages.c.id == h.id, packages.c.deployment_id == deployment_id))
                    .values(**values)
                )

        logger.info("package_history_updated", deployment_id=deployment_id, packages=len(history))

    @traced_operation("clear_package_history")
    async def clear_package_history(self, account_id: str, app_id: str, deployment_id: str) -> None:
        """Hard-delete every package of the deployment. Orphaned blobs are the caller's to reconcile."""
        async with self._db.unit_of_work() as session:
            await self._deployments.get_deployment(account_id, app_id, deployment_id)
            result = await session.execute(sa.delete(packages).where(packages.c.deployment_id == deployment_id))
            removed = result.rowcount

        logger.info("package_history_cleared", deployment_id=deployment_id, packages=removed)
