"""Conversation history.

Each inbound message and each generated reply is appended as one
:class:`~lib.contracts.records.ConversationTurn`.  :meth:`HistoryStore.recent_window`
rebuilds the bounded context for a chat; the query runs newest-first so the
``LIMIT`` keeps the latest turns, and the result is reversed to oldest-first
before it is returned.  ``created_at`` ties are broken by ``turn_id``, which
follows insertion order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import select

from apps.store import RecordStore, TurnRow
from lib.contracts.records import ChatMessage, ConversationTurn

DEFAULT_WINDOW = 10


@dataclass
class HistoryStore:
    store: RecordStore

    def append(self, chat_id: str, account_id: int, text: str, is_from_user: bool) -> ConversationTurn:
        with self.store.session() as sess:
            row = TurnRow(
                chat_id=chat_id,
                account_id=account_id,
                text=text,
                is_from_user=is_from_user,
            )
            sess.add(row)
            sess.flush()
            return ConversationTurn.model_validate(row)

    def recent_window(
        self,
        chat_id: str,
        limit: int = DEFAULT_WINDOW,
        exclude_turn_id: Optional[int] = None,
    ) -> List[ConversationTurn]:
        """Return up to ``limit`` latest turns of ``chat_id``, oldest first.

        Parameters
        ----------
        limit:
            Positive window size.  The window is always bounded.
        exclude_turn_id:
            Turn left out of the window, typically the inbound message that
            was just appended and is sent separately as the current turn.
        """

        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"window limit must be a positive integer, got {limit!r}")

        stmt = select(TurnRow).where(TurnRow.chat_id == chat_id)
        if exclude_turn_id is not None:
            stmt = stmt.where(TurnRow.turn_id != exclude_turn_id)
        stmt = stmt.order_by(TurnRow.created_at.desc(), TurnRow.turn_id.desc()).limit(limit)

        with self.store.session() as sess:
            newest_first = [ConversationTurn.model_validate(r) for r in sess.scalars(stmt)]
        newest_first.reverse()
        return newest_first


def to_chat_messages(turns: Iterable[ConversationTurn]) -> List[ChatMessage]:
    return [
        ChatMessage(role="user" if t.is_from_user else "assistant", content=t.text)
        for t in turns
    ]


__all__ = ["HistoryStore", "to_chat_messages", "DEFAULT_WINDOW"]
