from __future__ import annotations

import pytest

from services.registry.app.errors import ErrorCode, StorageError
from services.registry.app.observability import REGISTRY
from services.registry.app.schemas import Account, App


def _errors(operation: str, code: str) -> float:
    return REGISTRY.get_sample_value("storage_error_total", {"operation": operation, "code": code}) or 0.0


@pytest.mark.asyncio
async def test_nested_failure_is_counted_once_under_outer_operation(storage):
    alice = await storage.accounts.create(Account(name="Alice", email="alice@example.com", github_id="gh"))
    app = await storage.apps.add_app(alice, App(name="Weather"))
    before_transfer = _errors("transfer_app", "NotFound")
    before_lookup = _errors("get_account_by_email", "NotFound")

    with pytest.raises(StorageError) as exc:
        await storage.apps.transfer_app(alice, app.id, "ghost@example.com")
    assert exc.value.code == ErrorCode.NOT_FOUND

    assert _errors("transfer_app", "NotFound") == before_transfer + 1
    assert _errors("get_account_by_email", "NotFound") == before_lookup


@pytest.mark.asyncio
async def test_direct_failure_is_counted(storage):
    before = _errors("get_account_by_email", "NotFound")

    with pytest.raises(StorageError):
        await storage.accounts.get_by_email("ghost@example.com")

    assert _errors("get_account_by_email", "NotFound") == before + 1
