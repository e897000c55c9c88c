import json
from types import SimpleNamespace

import httpx
import pytest
from openai import OpenAI

from apps.completion import CompletionClient, build_context
from lib.contracts.errors import CompletionFailed
from lib.contracts.records import ChatMessage


class StubCompletions:
    def __init__(self, response):
        self.response = response
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        return self.response


def _stub_client(response):
    completions = StubCompletions(response)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def _reply(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


CONTEXT = [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hello")]


def test_build_context_without_history():
    messages = build_context("You are a helpful assistant.", [], "hello")
    assert [(m.role, m.content) for m in messages] == [
        ("system", "You are a helpful assistant."),
        ("user", "hello"),
    ]


def test_complete_returns_first_choice():
    client, completions = _stub_client(_reply("hi there"))
    cc = CompletionClient(client, model="m")
    assert cc.complete(CONTEXT) == "hi there"
    assert completions.kwargs == {
        "model": "m",
        "messages": [{"role": "system", "content": "sys"}, {"role": "user", "content": "hello"}],
    }


def test_missing_choices_is_a_failure():
    client, _ = _stub_client(SimpleNamespace(choices=[]))
    with pytest.raises(CompletionFailed, match="no choices"):
        CompletionClient(client).complete(CONTEXT)


def test_missing_content_is_a_failure():
    client, _ = _stub_client(_reply(None))
    with pytest.raises(CompletionFailed, match="no message content"):
        CompletionClient(client).complete(CONTEXT)


def _http_client(handler):
    return OpenAI(
        api_key="test-key",
        base_url="https://completion.test/v1",
        max_retries=0,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_error_payload_message_is_reported():
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "model is overloaded"}})

    with pytest.raises(CompletionFailed) as info:
        CompletionClient(_http_client(handler)).complete(CONTEXT)
    assert info.value.reason == "model is overloaded"


def test_error_without_message_uses_generic_reason():
    def handler(request):
        return httpx.Response(403, text="forbidden")

    with pytest.raises(CompletionFailed) as info:
        CompletionClient(_http_client(handler)).complete(CONTEXT)
    assert info.value.reason == "AI request failed"


def test_success_over_http():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "cmpl-1",
                "object": "chat.completion",
                "created": 0,
                "model": "moonshotai/kimi-k2:free",
                "choices": [
                    {
                        "index": 0,
                        "finish_reason": "stop",
                        "message": {"role": "assistant", "content": "hi there"},
                    }
                ],
            },
        )

    reply = CompletionClient(_http_client(handler)).complete(CONTEXT)
    assert reply == "hi there"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["model"] == "moonshotai/kimi-k2:free"
    assert seen["body"]["messages"][-1] == {"role": "user", "content": "hello"}
