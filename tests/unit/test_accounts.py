from __future__ import annotations

import pytest

from services.registry.app.errors import ErrorCode, StorageError
from services.registry.app.schemas import Account, AccountUpdate


def _account(email: str = "Ana@Example.com") -> Account:
    return Account(name="Ana", email=email, github_id="gh-ana")


@pytest.mark.asyncio
async def test_create_lowercases_email_and_returns_id(storage):
    account_id = await storage.accounts.create(_account())

    fetched = await storage.accounts.get_by_id(account_id)
    assert fetched.id == account_id
    assert fetched.email == "ana@example.com"
    assert fetched.created_time is not None


@pytest.mark.asyncio
async def test_get_by_email_is_case_insensitive(storage):
    account_id = await storage.accounts.create(_account())

    fetched = await storage.accounts.get_by_email("ANA@EXAMPLE.COM")
    assert fetched.id == account_id


@pytest.mark.asyncio
async def test_duplicate_email_is_already_exists(storage):
    await storage.accounts.create(_account())

    with pytest.raises(StorageError) as exc:
        await storage.accounts.create(_account("ana@example.com"))
    assert exc.value.code == ErrorCode.ALREADY_EXISTS


@pytest.mark.asyncio
async def test_unknown_account_is_not_found(storage):
    with pytest.raises(StorageError) as exc:
        await storage.accounts.get_by_id("00000000-0000-0000-0000-000000000000")
    assert exc.value.code == ErrorCode.NOT_FOUND

    with pytest.raises(StorageError) as exc:
        await storage.accounts.get_by_email("nobody@example.com")
    assert exc.value.code == ErrorCode.NOT_FOUND


@pytest.mark.asyncio
async def test_update_rewrites_only_given_fields(storage):
    account_id = await storage.accounts.create(_account())

    await storage.accounts.update("ana@example.com", AccountUpdate(name="Ana Maria"))

    fetched = await storage.accounts.get_by_id(account_id)
    assert fetched.name == "Ana Maria"
    assert fetched.github_id == "gh-ana"


@pytest.mark.asyncio
async def test_update_without_email_is_invalid(storage):
    with pytest.raises(StorageError) as exc:
        await storage.accounts.update("", AccountUpdate(name="x"))
    assert exc.value.code == ErrorCode.INVALID


@pytest.mark.asyncio
async def test_update_unknown_email_is_not_found(storage):
    with pytest.raises(StorageError) as exc:
        await storage.accounts.update("ghost@example.com", AccountUpdate(name="x"))
    assert exc.value.code == ErrorCode.NOT_FOUND
