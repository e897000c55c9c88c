import pytest
from fastapi.testclient import TestClient

from apps.accounts import AccountResolver
from apps.chat_adapter import ChatAdapter
from apps.chat_adapter.main import create_app, get_adapter
from apps.history import HistoryStore
from apps.orchestrator import RelayOrchestrator
from apps.quota import QuotaEnforcer
from apps.store import RecordStore

UPDATE = {
    "update_id": 9001,
    "message": {
        "message_id": 1,
        "chat": {"id": 42, "type": "private"},
        "from": {"id": 7, "is_bot": False, "username": "alice"},
        "text": "hello",
    },
}


@pytest.fixture
def client(orchestrator):
    app = create_app()
    app.dependency_overrides[get_adapter] = lambda: ChatAdapter(orchestrator)
    return TestClient(app)


def test_full_flow(client, completion, gateway, accounts):
    response = client.post("/webhook", json=UPDATE)
    assert response.status_code == 200
    assert response.content == b""
    assert gateway.sent == [("42", "hi there")]
    assert [m.content for m in completion.calls[0]] == ["You are a helpful assistant.", "hello"]
    assert accounts.resolve("7").usage_count == 1


def test_empty_update_is_a_no_op(client, gateway):
    response = client.post("/webhook", json={})
    assert response.status_code == 200
    assert response.content == b""
    assert gateway.sent == []


def test_root_path_is_accepted(client, gateway):
    assert client.post("/", json=UPDATE).status_code == 200
    assert len(gateway.sent) == 1


def test_garbage_body_is_a_no_op(client, gateway):
    response = client.post("/webhook", content=b"{not json", headers={"content-type": "application/json"})
    assert response.status_code == 200
    assert gateway.sent == []


def test_limited_user_sees_notice(client, accounts, quota, gateway, completion):
    account = accounts.resolve("7", "alice")
    for _ in range(5):
        quota.increment(account.account_id)

    response = client.post("/webhook", json=UPDATE)

    assert response.status_code == 200
    assert gateway.sent == [("42", "You got limited")]
    assert completion.calls == []
    assert accounts.resolve("7").usage_count == 5


def test_pipeline_failure_returns_empty_500(client, completion, gateway):
    completion.fail = "upstream down"
    response = client.post("/webhook", json=UPDATE)
    assert response.status_code == 500
    assert response.content == b""
    assert gateway.sent == []


def test_unreachable_store_returns_empty_500(tmp_path, completion, gateway):
    dead = RecordStore(f"sqlite:///{tmp_path / 'missing' / 'relay.db'}")
    orch = RelayOrchestrator(
        accounts=AccountResolver(dead),
        quota=QuotaEnforcer(dead),
        history=HistoryStore(dead),
        completion=completion,
        gateway=gateway,
    )
    app = create_app()
    app.dependency_overrides[get_adapter] = lambda: ChatAdapter(orch)

    response = TestClient(app).post("/webhook", json=UPDATE)

    assert response.status_code == 500
    assert response.content == b""
    assert completion.calls == []
    assert gateway.sent == []
