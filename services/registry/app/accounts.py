from __future__ import annotations

from uuid import uuid4

import sqlalchemy as sa

from services.registry.app.db import Database, now
from services.registry.app.errors import ErrorCode, StorageError, already_exists, invalid, not_found
from services.registry.app.logging import logger
from services.registry.app.observability import traced_operation
from services.registry.app.schemas import Account, AccountUpdate
from services.registry.app.tables import accounts


def _to_account(row) -> Account:
    return Account(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        github_id=row["github_id"],
        created_time=row["created_time"],
    )


class AccountRegistry:
    def __init__(self, db: Database):
        self._db = db

    @traced_operation("add_account")
    async def create(self, account: Account) -> str:
        """
        Register a new account and return its generated id.

        The duplicate check is a read before the insert; two concurrent registrations for the
        same email can both pass it, in which case the unique index rejects the loser with the
        store's own integrity error.
        """
        email = account.email.lower()
        async with self._db.unit_of_work() as session:
            try:
                await self.get_by_email(email)
            except StorageError as e:
                if e.code != ErrorCode.NOT_FOUND:
                    raise
            else:
                raise already_exists(f"account already exists for {email}")

            account_id = str(uuid4())
            await session.execute(
                sa.insert(accounts).values(
                    id=account_id,
                    name=account.name,
                    email=email,
                    github_id=account.github_id,
                    created_time=now(),
                )
            )

        logger.info("account_created", account_id=account_id)
        return account_id

    @traced_operation("get_account")
    async def get_by_id(self, account_id: str) -> Account:
        async with self._db.unit_of_work() as session:
            row = (await session.execute(sa.select(accounts).where(accounts.c.id == account_id))).mappings().first()
        if not row:
            raise not_found("account not found")
        return _to_account(row)

    @traced_operation("get_account_by_email")
    async def get_by_email(self, email: str) -> Account:
        async with self._db.unit_of_work() as session:
            row = (
                await session.execute(sa.select(accounts).where(accounts.c.email == email.lower()))
            ).mappings().first()
        if not row:
            raise not_found("account not found")
        return _to_account(row)

    @traced_operation("update_account")
    async def update(self, email: str, patch: AccountUpdate) -> None:
        """Rewrite name/identity reference of the account owning `email`; email itself is immutable."""
        if not email:
            raise invalid("no account email")

        async with self._db.unit_of_work() as session:
            account = await self.get_by_email(email)
            values = patch.model_dump(exclude_none=True)
            if not values:
                return
            await session.execute(sa.update(accounts).where(accounts.c.id == account.id).values(**values))

        logger.info("account_updated", account_id=account.id, fields=sorted(values))
