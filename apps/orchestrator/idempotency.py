"""Ledger of Telegram ``update_id`` values already taken for processing.

Telegram redelivers an update when the webhook does not answer with a 2xx.
With ``dedupe_updates`` enabled the orchestrator claims each update id before
doing any work and drops ids that were claimed earlier.  A claim is released
again when processing fails so that the platform's retry is honoured.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import delete

from apps.store import DuplicateRecord, ProcessedUpdateRow, RecordStore


@dataclass
class UpdateLedger:
    store: RecordStore

    def claim(self, update_id: int) -> bool:
        """Return ``True`` if ``update_id`` was not seen before."""

        try:
            with self.store.session() as sess:
                sess.add(ProcessedUpdateRow(update_id=update_id))
        except DuplicateRecord:
            return False
        return True

    def release(self, update_id: int) -> None:
        with self.store.session() as sess:
            sess.execute(delete(ProcessedUpdateRow).where(ProcessedUpdateRow.update_id == update_id))


__all__ = ["UpdateLedger"]
