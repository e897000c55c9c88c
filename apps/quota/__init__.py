"""Per-account usage quota."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import select, update

from apps.store import AccountRow, RecordStore
from lib.contracts.errors import StoreUnavailable
from lib.contracts.records import Account

DEFAULT_LIMIT = 5


class QuotaDecision(str, Enum):
    ALLOWED = "allowed"
    REJECTED = "rejected"


@dataclass
class QuotaEnforcer:
    store: RecordStore
    limit: int = DEFAULT_LIMIT

    def check_and_maybe_reject(self, account: Account, limit: int | None = None) -> QuotaDecision:
        """Decide on the usage recorded *before* the current message."""

        limit = self.limit if limit is None else limit
        if account.usage_count >= limit:
            return QuotaDecision.REJECTED
        return QuotaDecision.ALLOWED

    def increment(self, account_id: int) -> int:
        """Add one to the account's usage and return the new count.

        The addition is evaluated by the database so concurrent increments
        for the same account are never lost.  The new value is read back in
        the same transaction rather than through ``RETURNING``, which MySQL
        lacks.
        """

        with self.store.session() as sess:
            result = sess.execute(
                update(AccountRow)
                .where(AccountRow.account_id == account_id)
                .values(usage_count=AccountRow.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            new_count = None
            if result.rowcount:
                new_count = sess.scalar(
                    select(AccountRow.usage_count).where(AccountRow.account_id == account_id)
                )
        if new_count is None:
            raise StoreUnavailable(f"account {account_id} not found for increment")
        return new_count


__all__ = ["QuotaEnforcer", "QuotaDecision", "DEFAULT_LIMIT"]
