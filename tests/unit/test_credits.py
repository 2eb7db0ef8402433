"""Unit tests for credit accounting."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from zyflow_engine.engine.credits import UNLIMITED, AccountRecord, AccountStore, CreditGate
from zyflow_engine.engine.errors import CreditExhausted, OwnerNotFound


def test_balances_are_parsed_from_strings() -> None:
    assert AccountRecord.model_validate({"owner_id": "u", "credits": "5"}).credits == 5
    assert AccountRecord.model_validate({"owner_id": "u", "credits": "unlimited"}).credits == UNLIMITED
    assert AccountRecord.model_validate({"owner_id": "u", "credits": 3}).credits == 3


def test_garbage_balance_is_rejected() -> None:
    with pytest.raises(ValidationError):
        AccountRecord.model_validate({"owner_id": "u", "credits": "lots"})


def test_authorize() -> None:
    assert CreditGate.authorize(AccountRecord(owner_id="u", credits=1))
    assert CreditGate.authorize(AccountRecord(owner_id="u", credits=UNLIMITED))
    assert not CreditGate.authorize(AccountRecord(owner_id="u", credits=0))


def test_debit_floors_at_zero(account_store: AccountStore) -> None:
    account_store.upsert(AccountRecord(owner_id="u", credits=1))

    assert account_store.debit("u").credits == 0
    assert account_store.debit("u").credits == 0


def test_debit_leaves_unlimited_untouched(account_store: AccountStore) -> None:
    account_store.upsert(AccountRecord(owner_id="u", credits=UNLIMITED))

    assert account_store.debit("u").unlimited
    assert account_store.get("u").credits == UNLIMITED


def test_debit_of_unknown_owner_raises(account_store: AccountStore) -> None:
    with pytest.raises(OwnerNotFound):
        account_store.debit("ghost")


def test_require(account_store: AccountStore) -> None:
    gate = CreditGate(account_store)
    account_store.upsert(AccountRecord(owner_id="rich", credits=2))
    account_store.upsert(AccountRecord(owner_id="broke", credits=0))

    assert gate.require("rich").credits == 2
    with pytest.raises(CreditExhausted):
        gate.require("broke")
    with pytest.raises(OwnerNotFound):
        gate.require("ghost")


def test_accounts_are_found_by_resource_id(account_store: AccountStore) -> None:
    account_store.upsert(AccountRecord(owner_id="u1", resource_id="res-1", credits=1))
    account_store.upsert(AccountRecord(owner_id="u2", credits=1))

    found = account_store.find_by_resource_id("res-1")
    assert found is not None
    assert found.owner_id == "u1"
    assert account_store.find_by_resource_id("res-2") is None
