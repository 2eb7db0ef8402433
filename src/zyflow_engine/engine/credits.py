"""Per-owner credit accounting.

An owner's balance is either a non-negative integer or the sentinel
``"Unlimited"``. Authorization never changes the balance; passes debit one unit
through :meth:`AccountStore.debit` once they have run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator

from zyflow_engine.engine.errors import CreditExhausted, OwnerNotFound
from zyflow_engine.engine.jsonfile import JsonListFile

logger = logging.getLogger(__name__)

UNLIMITED: Literal["Unlimited"] = "Unlimited"

Credits = int | Literal["Unlimited"]


class AccountRecord(BaseModel):
    owner_id: str
    # Upstream watched resource (e.g. a Drive changes channel) mapped to this owner.
    resource_id: str | None = None
    credits: Credits = 0

    @field_validator("credits", mode="before")
    @classmethod
    def _parse_credits(cls, value: object) -> object:
        # Balances historically arrive as strings ("5", "Unlimited").
        if isinstance(value, str):
            text = value.strip()
            if text.lower() == UNLIMITED.lower():
                return UNLIMITED
            try:
                return int(text)
            except ValueError:
                raise ValueError(f"credits must be an integer or {UNLIMITED!r}") from None
        return value

    @property
    def unlimited(self) -> bool:
        return self.credits == UNLIMITED


class AccountStore:
    """JSON-file backed store for owner accounts."""

    def __init__(self, path: Path) -> None:
        self._file = JsonListFile(path, AccountRecord)

    def get(self, owner_id: str) -> AccountRecord | None:
        return next((a for a in self._file.load() if a.owner_id == owner_id), None)

    def find_by_resource_id(self, resource_id: str) -> AccountRecord | None:
        return next(
            (a for a in self._file.load() if a.resource_id and a.resource_id == resource_id),
            None,
        )

    def upsert(self, account: AccountRecord) -> AccountRecord:
        with self._file.transaction() as accounts:
            for idx, existing in enumerate(accounts):
                if existing.owner_id == account.owner_id:
                    accounts[idx] = account
                    break
            else:
                accounts.append(account)
        return account

    def debit(self, owner_id: str) -> AccountRecord:
        """Take one credit from the owner (no-op when unlimited, floored at zero).

        The read-modify-write happens in one file transaction so concurrent
        passes for the same owner cannot lose a debit.
        """

        with self._file.transaction() as accounts:
            for idx, account in enumerate(accounts):
                if account.owner_id != owner_id:
                    continue
                if not account.unlimited:
                    assert isinstance(account.credits, int)
                    accounts[idx] = account.model_copy(
                        update={"credits": max(account.credits - 1, 0)}
                    )
                return accounts[idx]
            raise OwnerNotFound(owner_id)


class CreditGate:
    """Decides whether an owner may run another execution pass."""

    def __init__(self, accounts: AccountStore) -> None:
        self._accounts = accounts

    @staticmethod
    def authorize(account: AccountRecord) -> bool:
        if account.unlimited:
            return True
        return isinstance(account.credits, int) and account.credits > 0

    def require(self, owner_id: str) -> AccountRecord:
        """Return the owner's account if it may run a pass.

        Raises:
            OwnerNotFound: If no account exists for the owner.
            CreditExhausted: If the balance is zero.
        """

        account = self._accounts.get(owner_id)
        if account is None:
            raise OwnerNotFound(owner_id)
        if not self.authorize(account):
            logger.warning(
                "Insufficient credits; pass not allowed",
                extra={"owner_id": owner_id, "credits": account.credits},
            )
            raise CreditExhausted(owner_id)
        return account

    def debit(self, owner_id: str) -> AccountRecord:
        account = self._accounts.debit(owner_id)
        logger.info(
            "Credit debited", extra={"owner_id": owner_id, "credits": account.credits}
        )
        return account
