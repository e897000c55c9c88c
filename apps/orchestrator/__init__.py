"""Relay orchestrator.

:class:`RelayOrchestrator` runs one inbound Telegram message through the
pipeline::

    Received -> UserResolved -> QuotaChecked
        -> Rejected -> NotifiedLimited -> Done
        -> Allowed -> HistoryLoaded -> Completed -> Delivered
           -> Persisted -> QuotaIncremented -> Done

Steps run strictly in order and nothing is retried here.  Any error before
the reply is delivered aborts the invocation (``Failed``) and is re-raised to
the HTTP layer.  Once the user has the reply, the increment is best effort:
its failure is logged and the invocation still ends ``Done``.  A failure to
persist the reply aborts the remaining step, so that exchange is neither in
history nor counted against the quota.

The collaborators are built once per process by :func:`build_orchestrator`
and injected; the orchestrator itself holds no per-invocation state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from apps.accounts import AccountResolver
from apps.completion import DEFAULT_SYSTEM_PROMPT, CompletionClient, build_context
from apps.gateway import MessagingGateway
from apps.history import DEFAULT_WINDOW, HistoryStore
from apps.quota import DEFAULT_LIMIT, QuotaDecision, QuotaEnforcer
from apps.store import RecordStore
from lib.config.relay_loader import RelayConfig
from lib.contracts.records import Account
from lib.contracts.update import InboundMessage
from lib.telemetry.logger import get_logger

from .idempotency import UpdateLedger

logger = get_logger(__name__)

DEFAULT_LIMIT_NOTICE = "You got limited"


class RelayState(str, Enum):
    RECEIVED = "Received"
    USER_RESOLVED = "UserResolved"
    QUOTA_CHECKED = "QuotaChecked"
    REJECTED = "Rejected"
    NOTIFIED_LIMITED = "NotifiedLimited"
    ALLOWED = "Allowed"
    HISTORY_LOADED = "HistoryLoaded"
    COMPLETED = "Completed"
    DELIVERED = "Delivered"
    PERSISTED = "Persisted"
    QUOTA_INCREMENTED = "QuotaIncremented"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class ProcessingResult:
    state: RelayState = RelayState.RECEIVED
    trail: List[RelayState] = field(default_factory=list)
    account: Optional[Account] = None
    reply_text: Optional[str] = None
    duplicate: bool = False

    def advance(self, state: RelayState) -> None:
        self.state = state
        self.trail.append(state)
        logger.debug("relay state -> %s", state.value)


@dataclass
class RelayOrchestrator:
    accounts: AccountResolver
    quota: QuotaEnforcer
    history: HistoryStore
    completion: Any
    gateway: Any
    ledger: Optional[UpdateLedger] = None
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    usage_limit: int = DEFAULT_LIMIT
    history_window: int = DEFAULT_WINDOW
    limit_notice: str = DEFAULT_LIMIT_NOTICE

    def process_update(self, message: Optional[InboundMessage]) -> ProcessingResult:
        """Handle one inbound message and return how far it got.

        ``None`` stands for an update without a message and ends ``Done``
        with no side effects.  Errors are logged, marked ``Failed`` and
        re-raised.
        """

        result = ProcessingResult()
        result.advance(RelayState.RECEIVED)
        if message is None:
            result.advance(RelayState.DONE)
            return result

        claimed = False
        if self.ledger is not None and message.update_id is not None:
            if not self.ledger.claim(message.update_id):
                logger.info("update %s already processed; skipping", message.update_id)
                result.duplicate = True
                result.advance(RelayState.DONE)
                return result
            claimed = True

        try:
            self._run(message, result)
        except Exception:
            failed_at = result.state
            result.advance(RelayState.FAILED)
            logger.exception("relay failed for chat %s after %s", message.chat_id, failed_at.value)
            if claimed:
                self._release(message.update_id)
            raise
        return result

    def _release(self, update_id: Optional[int]) -> None:
        try:
            self.ledger.release(update_id)
        except Exception:
            logger.exception("could not release update %s", update_id)

    def _run(self, message: InboundMessage, result: ProcessingResult) -> None:
        account = self.accounts.resolve(message.user_id, message.username)
        result.account = account
        result.advance(RelayState.USER_RESOLVED)

        decision = self.quota.check_and_maybe_reject(account, self.usage_limit)
        result.advance(RelayState.QUOTA_CHECKED)

        if decision is QuotaDecision.REJECTED:
            result.advance(RelayState.REJECTED)
            self.history.append(message.chat_id, account.account_id, message.text, True)
            self.gateway.deliver(message.chat_id, self.limit_notice)
            result.reply_text = self.limit_notice
            result.advance(RelayState.NOTIFIED_LIMITED)
            logger.info(
                "account %s limited (usage %d >= %d)",
                account.account_id,
                account.usage_count,
                self.usage_limit,
            )
            result.advance(RelayState.DONE)
            return

        result.advance(RelayState.ALLOWED)
        inbound = self.history.append(message.chat_id, account.account_id, message.text, True)
        window = self.history.recent_window(
            message.chat_id, self.history_window, exclude_turn_id=inbound.turn_id
        )
        context = build_context(self.system_prompt, window, message.text)
        result.advance(RelayState.HISTORY_LOADED)

        reply = self.completion.complete(context)
        result.reply_text = reply
        result.advance(RelayState.COMPLETED)

        self.gateway.deliver(message.chat_id, reply)
        result.advance(RelayState.DELIVERED)

        self.history.append(message.chat_id, account.account_id, reply, False)
        result.advance(RelayState.PERSISTED)

        try:
            usage = self.quota.increment(account.account_id)
        except Exception:
            logger.exception(
                "reply delivered to chat %s but usage increment failed for account %s",
                message.chat_id,
                account.account_id,
            )
        else:
            result.account = account.model_copy(update={"usage_count": usage})
            result.advance(RelayState.QUOTA_INCREMENTED)
            logger.info(
                "exchange complete chat=%s account=%s usage=%d history=%d",
                message.chat_id,
                account.account_id,
                usage,
                len(window),
            )
        result.advance(RelayState.DONE)


def build_orchestrator(config: RelayConfig, store: Optional[RecordStore] = None) -> RelayOrchestrator:
    """Construct the process-wide collaborators from ``config``."""

    store = store or RecordStore(config.store_url, project_id=config.store_project_id)
    store.create_schema()
    return RelayOrchestrator(
        accounts=AccountResolver(store),
        quota=QuotaEnforcer(store, limit=config.usage_limit),
        history=HistoryStore(store),
        completion=CompletionClient(
            model=config.completion_model,
            api_key=config.completion_api_key,
            base_url=config.completion_base_url,
            timeout=config.completion_timeout_seconds,
            max_retries=config.completion_max_retries,
        ),
        gateway=MessagingGateway(
            config.telegram_bot_token,
            api_base=config.telegram_api_base,
            max_length=config.max_message_length,
            timeout=config.telegram_timeout_seconds,
        ),
        ledger=UpdateLedger(store) if config.dedupe_updates else None,
        system_prompt=config.system_prompt,
        usage_limit=config.usage_limit,
        history_window=config.history_window,
        limit_notice=config.limit_notice,
    )


__all__ = [
    "RelayOrchestrator",
    "RelayState",
    "ProcessingResult",
    "build_orchestrator",
    "UpdateLedger",
]
