from __future__ import annotations

from uuid import uuid4

import sqlalchemy as sa

from services.registry.app.accounts import AccountRegistry
from services.registry.app.db import Database, as_utc, now
from services.registry.app.errors import expired, not_found
from services.registry.app.logging import logger
from services.registry.app.observability import traced_operation
from services.registry.app.schemas import AccessKey
from services.registry.app.tables import access_key_to_account_map, access_keys


def _to_access_key(row) -> AccessKey:
    return AccessKey(
        id=row["id"],
        name=row["name"],
        created_time=row["created_time"],
        created_by=row["created_by"],
        description=row["description"],
        expires=as_utc(row["expires"]),
        friendly_name=row["friendly_name"],
        is_session=row["is_session"],
    )


class AccessKeyStore:
    """
    Access keys and their account mapping.

    The mapping row carries its own `expires`, and that copy is the one authorization
    checks against. Deleting the key row is the only way to revoke it before expiry.
    """

    def __init__(self, db: Database, accounts: AccountRegistry):
        self._db = db
        self._accounts = accounts

    @traced_operation("get_account_id_from_access_key")
    async def resolve_account_id(self, access_key: str) -> str:
        q = (
            sa.select(access_key_to_account_map.c.account_id, access_key_to_account_map.c.expires)
            .select_from(
                access_keys.join(
                    access_key_to_account_map,
                    access_key_to_account_map.c.access_key_id == access_keys.c.id,
                )
            )
            .where(access_keys.c.name == access_key)
        )
        async with self._db.unit_of_work() as session:
            row = (await session.execute(q)).mappings().first()

        if not row:
            raise not_found("access key not found")

        expires = as_utc(row["expires"])
        # A mapping without an expiry is never valid.
        if expires is None or now() >= expires:
            logger.info("access_key_expired", access_key=access_key)
            raise expired("The access key has expired.")

        return row["account_id"]

    @traced_operation("add_access_key")
    async def add_access_key(self, account_id: str, access_key: AccessKey) -> str:
        async with self._db.unit_of_work() as session:
            account = await self._accounts.get_by_id(account_id)

            access_key_id = str(uuid4())
            await session.execute(
                sa.insert(access_keys).values(
                    id=access_key_id,
                    name=access_key.name,
                    created_time=now(),
                    created_by=account.email,
                    description=access_key.description,
                    expires=access_key.expires,
                    friendly_name=access_key.friendly_name,
                    is_session=bool(access_key.is_session),
                )
            )
            await session.execute(
                sa.insert(access_key_to_account_map).values(
                    access_key_id=access_key_id,
                    account_id=account_id,
                    expires=access_key.expires,
                )
            )

        logger.info("access_key_created", account_id=account_id, access_key_id=access_key_id, is_session=bool(access_key.is_session))
        return access_key_id

    @traced_operation("get_access_key")
    async def get_access_key(self, account_id: str, access_key_id: str) -> AccessKey:
        q = (
            sa.select(access_keys, access_key_to_account_map.c.account_id)
            .select_from(
                access_keys.join(
                    access_key_to_account_map,
                    access_key_to_account_map.c.access_key_id == access_keys.c.id,
                )
            )
            .where(access_keys.c.id == access_key_id)
        )
        async with self._db.unit_of_work() as session:
            row = (await session.execute(q)).mappings().first()

        # Keys mapped to another account are reported exactly like missing ones.
        if not row or row["account_id"] != account_id:
            raise not_found("access key not found")
        return _to_access_key(row)

    @traced_operation("get_access_keys")
    async def get_access_keys(self, account_id: str) -> list[AccessKey]:
        q = (
            sa.select(access_keys)
            .select_from(
                access_key_to_account_map.join(
                    access_keys,
                    access_keys.c.id == access_key_to_account_map.c.access_key_id,
                )
            )
            .where(access_key_to_account_map.c.account_id == account_id)
            .order_by(access_keys.c.created_time)
        )
        async with self._db.unit_of_work() as session:
            rows = (await session.execute(q)).mappings().all()
        return [_to_access_key(r) for r in rows]

    @traced_operation("remove_access_key")
    async def remove_access_key(self, account_id: str, access_key_id: str) -> None:
        async with self._db.unit_of_work() as session:
            await self.get_access_key(account_id, access_key_id)
            await session.execute(sa.delete(access_keys).where(access_keys.c.id == access_key_id))

        logger.info("access_key_removed", account_id=account_id, access_key_id=access_key_id)

    @traced_operation("update_access_key")
    async def update_access_key(self, account_id: str, access_key: AccessKey) -> None:
        if not access_key.id:
            raise not_found("access key not found")

        async with self._db.unit_of_work() as session:
            await self.get_access_key(account_id, access_key.id)
            await session.execute(
                sa.update(access_keys)
                .where(access_keys.c.id == access_key.id)
                .values(
                    name=access_key.name,
                    description=access_key.description,
                    expires=access_key.expires,
                    friendly_name=access_key.friendly_name,
                    is_session=bool(access_key.is_session),
                )
            )
            # Resolution checks the mapping copy of the expiry.
            await session.execute(
                sa.update(access_key_to_account_map)
                .where(
                    sa.and_(
                        access_key_to_account_map.c.access_key_id == access_key.id,
                        access_key_to_account_map.c.account_id == account_id,
                    )
                )
                .values(expires=access_key.expires)
            )

        logger.info("access_key_updated", account_id=account_id, access_key_id=access_key.id)
