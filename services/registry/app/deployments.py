from __future__ import annotations

from uuid import uuid4

import sqlalchemy as sa

from services.registry.app.apps import AppManager
from services.registry.app.db import Database, now
from services.registry.app.errors import not_found
from services.registry.app.logging import logger
from services.registry.app.observability import traced_operation
from services.registry.app.schemas import Deployment, DeploymentInfo
from services.registry.app.tables import deployments


def _to_deployment(row) -> Deployment:
    return Deployment(
        id=row["id"],
        name=row["name"],
        key=row["key"],
        app_id=row["app_id"],
        created_time=row["created_time"],
    )


class DeploymentManager:
    def __init__(self, db: Database, apps: AppManager):
        self._db = db
        self._apps = apps

    @traced_operation("add_deployment")
    async def add_deployment(self, account_id: str, app_id: str, deployment: Deployment) -> str:
        async with self._db.unit_of_work() as session:
            await self._apps.get_app(account_id, app_id)

            deployment_id = str(uuid4())
            await session.execute(
                sa.insert(deployments).values(
                    id=deployment_id,
                    name=deployment.name,
                    app_id=app_id,
                    created_time=now(),
                    key=deployment.key,
                )
            )

        logger.info("deployment_created", app_id=app_id, deployment_id=deployment_id, name=deployment.name)
        return deployment_id

    @traced_operation("get_deployment_info")
    async def get_deployment_info(self, deployment_key: str) -> DeploymentInfo:
        """Resolve a public deployment key without an account context (client acquisition path)."""
        async with self._db.unit_of_work() as session:
            row = (
                await session.execute(
                    sa.select(deployments.c.id, deployments.c.app_id).where(deployments.c.key == deployment_key)
                )
            ).mappings().first()

        if not row or not row["app_id"]:
            raise not_found("deployment not found")
        return DeploymentInfo(app_id=row["app_id"], deployment_id=row["id"])

    @traced_operation("get_deployment")
    async def get_deployment(self, account_id: str, app_id: str, deployment_id: str) -> Deployment:
        async with self._db.unit_of_work() as session:
            await self._apps.get_app(account_id, app_id)
            row = (
                await session.execute(sa.select(deployments).where(deployments.c.id == deployment_id))
            ).mappings().first()

        if not row:
            raise not_found("deployment not found")
        return _to_deployment(row)

    @traced_operation("get_deployments")
    async def get_deployments(self, account_id: str, app_id: str) -> list[Deployment]:
        async with self._db.unit_of_work() as session:
            await self._apps.get_app(account_id, app_id)
            rows = (
                await session.execute(
                    sa.select(deployments).where(deployments.c.app_id == app_id).order_by(deployments.c.created_time)
                )
            ).mappings().all()
        return [_to_deployment(r) for r in rows]

    @traced_operation("remove_deployment")
    async def remove_deployment(self, account_id: str, app_id: str, deployment_id: str) -> None:
        async with self._db.unit_of_work() as session:
            deployment = await self.get_deployment(account_id, app_id, deployment_id)
            # get_deployment looks up by id alone.
            if deployment.app_id != app_id:
                raise not_found("deployment not found")

            await session.execute(sa.delete(deployments).where(deployments.c.id == deployment_id))

        logger.info("deployment_removed", app_id=app_id, deployment_id=deployment_id)

    @traced_operation("update_deployment")
    async def update_deployment(self, account_id: str, app_id: str, deployment: Deployment) -> None:
        if not deployment.id:
            raise not_found("deployment not found")

        async with self._db.unit_of_work() as session:
            await self.get_deployment(account_id, app_id, deployment.id)
            await session.execute(
                sa.update(deployments)
                .where(deployments.c.id == deployment.id)
                .values(name=deployment.name, key=deployment.key)
            )

        logger.info("deployment_updated", app_id=app_id, deployment_id=deployment.id)
