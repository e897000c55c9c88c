from typing import List, Optional, Tuple

import pytest

from apps.accounts import AccountResolver
from apps.history import HistoryStore
from apps.orchestrator import RelayOrchestrator, UpdateLedger
from apps.quota import QuotaEnforcer
from apps.store import RecordStore
from lib.contracts.errors import CompletionFailed, DeliveryFailed
from lib.contracts.records import ChatMessage


class FakeCompletion:
    """Records every context it receives and answers with ``reply``."""

    def __init__(self, reply: str = "hi there", fail: Optional[str] = None):
        self.reply = reply
        self.fail = fail
        self.calls: List[List[ChatMessage]] = []

    def complete(self, ordered_turns):
        self.calls.append(list(ordered_turns))
        if self.fail is not None:
            raise CompletionFailed(self.fail)
        return self.reply


class FakeGateway:
    def __init__(self, fail_status: Optional[int] = None):
        self.fail_status = fail_status
        self.sent: List[Tuple[str, str]] = []

    def deliver(self, chat_id, text):
        if self.fail_status is not None:
            raise DeliveryFailed(self.fail_status)
        self.sent.append((chat_id, text))


@pytest.fixture
def store():
    s = RecordStore("sqlite://")
    s.create_schema()
    yield s
    s.dispose()


@pytest.fixture
def accounts(store):
    return AccountResolver(store)


@pytest.fixture
def quota(store):
    return QuotaEnforcer(store, limit=5)


@pytest.fixture
def history(store):
    return HistoryStore(store)


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def orchestrator(accounts, quota, history, completion, gateway):
    return RelayOrchestrator(
        accounts=accounts,
        quota=quota,
        history=history,
        completion=completion,
        gateway=gateway,
    )


@pytest.fixture
def ledger(store):
    return UpdateLedger(store)
