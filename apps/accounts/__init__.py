"""Account resolution.

Maps the messaging platform's user identifier onto a durable
:class:`~lib.contracts.records.Account`, creating it on first contact.
Creation relies on the ``accounts.external_user_id`` uniqueness constraint:
when two first-contact invocations race, the loser's insert collides and it
re-reads the winner's row, so exactly one account exists per user.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select

from apps.store import AccountRow, DuplicateRecord, RecordStore
from lib.contracts.records import Account
from lib.telemetry.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AccountResolver:
    store: RecordStore

    def _lookup(self, external_user_id: str) -> Account | None:
        with self.store.session() as sess:
            row = sess.scalars(
                select(AccountRow).where(AccountRow.external_user_id == external_user_id)
            ).first()
            return Account.model_validate(row) if row is not None else None

    def resolve(self, external_user_id: str, display_name_hint: str | None = "") -> Account:
        """Return the account for ``external_user_id``, creating it if absent."""

        account = self._lookup(external_user_id)
        if account is not None:
            return account

        try:
            with self.store.session() as sess:
                row = AccountRow(
                    external_user_id=external_user_id,
                    display_name=display_name_hint or "",
                    usage_count=0,
                )
                sess.add(row)
                sess.flush()
                account = Account.model_validate(row)
        except DuplicateRecord:
            logger.info("account %s created concurrently; reusing it", external_user_id)
            account = self._lookup(external_user_id)
            if account is None:
                raise
            return account

        logger.info("created account %s for user %s", account.account_id, external_user_id)
        return account


__all__ = ["AccountResolver"]
