from __future__ import annotations

from uuid import uuid4

import sqlalchemy as sa

from services.registry.app import collaborators as collab
from services.registry.app.accounts import AccountRegistry
from services.registry.app.db import Database, now
from services.registry.app.errors import already_exists, invalid, not_found, unauthorized
from services.registry.app.logging import logger
from services.registry.app.observability import traced_operation
from services.registry.app.schemas import App, CollaboratorMap, CollaboratorProperties
from services.registry.app.tables import account_to_apps_map, apps


def _to_app(row, account_id: str) -> App:
    return App(
        id=row["id"],
        name=row["name"],
        created_time=row["created_time"],
        collaborators=collab.annotate_current_account(collab.from_storage(row["collaborators"]), account_id),
    )


class AppManager:
    """
    App lifecycle and the collaborator map.

    This is the only writer of permission transitions. Every transition leaves exactly one
    `Owner` entry in the map and keeps `account_to_apps_map` (what an account can list) in
    step with it inside the same unit of work.
    """

    def __init__(self, db: Database, accounts: AccountRegistry):
        self._db = db
        self._accounts = accounts

    @traced_operation("add_app")
    async def add_app(self, account_id: str, app: App) -> App:
        async with self._db.unit_of_work() as session:
            account = await self._accounts.get_by_id(account_id)

            collaborators: CollaboratorMap = {
                account.email: CollaboratorProperties(account_id=account_id, permission=collab.OWNER)
            }
            app_id = str(uuid4())
            created_time = now()
            await session.execute(
                sa.insert(apps).values(
                    id=app_id,
                    name=app.name,
                    created_time=created_time,
                    collaborators=collab.to_storage(collaborators),
                )
            )
            await self._add_app_pointer(account.id, app_id)

        logger.info("app_created", account_id=account_id, app_id=app_id)
        return App(id=app_id, name=app.name, created_time=created_time, collaborators=collaborators)

    @traced_operation("get_apps")
    async def get_apps(self, account_id: str) -> list[App]:
        q = (
            sa.select(apps)
            .select_from(account_to_apps_map.join(apps, apps.c.id == account_to_apps_map.c.app_id))
            .where(account_to_apps_map.c.account_id == account_id)
            .order_by(apps.c.created_time)
        )
        async with self._db.unit_of_work() as session:
            rows = (await session.execute(q)).mappings().all()
        return [_to_app(r, account_id) for r in rows]

    @traced_operation("get_app")
    async def get_app(self, account_id: str, app_id: str) -> App:
        """
        Fetch an app by id, annotated for `account_id`.

        Visibility is not checked here: any existing account can read any app id. Callers
        that need membership must check the collaborator map themselves.
        """
        async with self._db.unit_of_work() as session:
            account = await self._accounts.get_by_id(account_id)
            row = (await session.execute(sa.select(apps).where(apps.c.id == app_id))).mappings().first()
        if not row:
            raise not_found("app not found")
        return _to_app(row, account.id)

    @traced_operation("get_collaborators")
    async def get_collaborators(self, account_id: str, app_id: str) -> CollaboratorMap:
        app = await self.get_app(account_id, app_id)
        return app.collaborators

    @traced_operation("remove_app")
    async def remove_app(self, account_id: str, app_id: str) -> None:
        async with self._db.unit_of_work() as session:
            app = await self.get_app(account_id, app_id)
            linked = (
                await session.execute(
                    sa.select(account_to_apps_map.c.account_id).where(
                        sa.and_(
                            account_to_apps_map.c.app_id == app_id,
                            account_to_apps_map.c.account_id == account_id,
                        )
                    )
                )
            ).first()
            if linked is None or collab.owner_account_id(app.collaborators) != account_id:
                raise unauthorized("Wrong accountId")

            # Deployments and their packages go with the app (ON DELETE CASCADE).
            await session.execute(sa.delete(apps).where(apps.c.id == app_id))

        logger.info("app_removed", account_id=account_id, app_id=app_id)

    @traced_operation("update_app")
    async def update_app(self, account_id: str, app: App, ensure_is_owner: bool = True) -> None:
        """
        Overwrite the app's name and full collaborator map.

        `ensure_is_owner` is asserted by the calling operation (collaborator removal passes
        False so a collaborator can remove themselves); it is not re-derived here.
        """
        if not app.id:
            raise not_found("app not found")

        async with self._db.unit_of_work() as session:
            await self.get_app(account_id, app.id)
            await session.execute(
                sa.update(apps)
                .where(apps.c.id == app.id)
                .values(name=app.name, collaborators=collab.to_storage(app.collaborators))
            )

        logger.info("app_updated", account_id=account_id, app_id=app.id, ensure_is_owner=ensure_is_owner)

    @traced_operation("transfer_app")
    async def transfer_app(self, account_id: str, app_id: str, email: str) -> None:
        if collab.is_prototype_pollution_key(email.lower()):
            raise invalid("Invalid email parameter")

        async with self._db.unit_of_work():
            app = await self.get_app(account_id, app_id)
            requester = await self._accounts.get_by_id(account_id)
            target = await self._accounts.get_by_email(email.lower())
            email = target.email

            if collab.is_owner(app.collaborators, email):
                raise already_exists(f"{email} already owns this app")
            # Exactly one Owner entry at all times.
            if not collab.is_owner(app.collaborators, requester.email):
                raise unauthorized("only the owner can transfer an app")

            members = collab.strip_current_account(app.collaborators)
            members[requester.email] = members[requester.email].model_copy(update={"permission": collab.COLLABORATOR})
            if collab.is_collaborator(members, email):
                members[email] = members[email].model_copy(update={"permission": collab.OWNER})
            else:
                members[email] = CollaboratorProperties(account_id=target.id, permission=collab.OWNER)
                await self._add_app_pointer(target.id, app_id)

            app = app.model_copy(update={"collaborators": members})
            await self.update_app(account_id, app)

        logger.info("app_transferred", app_id=app_id, from_account_id=account_id, to_account_id=target.id)

    @traced_operation("add_collaborator")
    async def add_collaborator(self, account_id: str, app_id: str, email: str) -> None:
        if collab.is_prototype_pollution_key(email.lower()):
            raise invalid("Invalid email parameter")

        email = email.lower()
        async with self._db.unit_of_work():
            app = await self.get_app(account_id, app_id)
            if collab.is_collaborator(app.collaborators, email) or collab.is_owner(app.collaborators, email):
                raise already_exists(f"{email} is already a collaborator")

            target = await self._accounts.get_by_email(email)
            members = collab.strip_current_account(app.collaborators)
            members[email] = CollaboratorProperties(account_id=target.id, permission=collab.COLLABORATOR)
            await self._add_app_pointer(target.id, app_id)
            await self.update_app(account_id, app.model_copy(update={"collaborators": members}))

        logger.info("collaborator_added", app_id=app_id, account_id=account_id, collaborator_account_id=target.id)

    @traced_operation("remove_collaborator")
    async def remove_collaborator(self, account_id: str, app_id: str, email: str) -> None:
        email = email.lower()
        async with self._db.unit_of_work():
            app = await self.get_app(account_id, app_id)
            if collab.is_owner(app.collaborators, email):
                raise not_found("Cannot remove the owner of the app from collaborator list.")

            target = await self._accounts.get_by_email(email)
            if not collab.is_collaborator(app.collaborators, email):
                raise not_found("collaborator not found")

            await self._remove_app_pointer(target.id, app_id)
            members = collab.strip_current_account(app.collaborators)
            del members[email]
            await self.update_app(account_id, app.model_copy(update={"collaborators": members}), ensure_is_owner=False)

        logger.info("collaborator_removed", app_id=app_id, account_id=account_id, collaborator_account_id=target.id)

    async def _add_app_pointer(self, account_id: str, app_id: str) -> None:
        async with self._db.unit_of_work() as session:
            await session.execute(sa.insert(account_to_apps_map).values(account_id=account_id, app_id=app_id))

    async def _remove_app_pointer(self, account_id: str, app_id: str) -> None:
        async with self._db.unit_of_work() as session:
            await session.execute(
                sa.delete(account_to_apps_map).where(
                    sa.and_(
                        account_to_apps_map.c.account_id == account_id,
                        account_to_apps_map.c.app_id == app_id,
                    )
                )
            )
