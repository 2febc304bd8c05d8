from __future__ import annotations

import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

from casereview.config import Settings
from casereview.errors import ErrorSeverity, TransportError
from casereview.llm import OpenAILLMClient

_REQUEST = httpx.Request("POST", "https://llm.example.test/v1/chat/completions")


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeCompletions:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeModels:
    def __init__(self, error=None):
        self.error = error

    async def list(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=[])


def make_client(settings, outcomes=(), models_error=None):
    completions = FakeCompletions(outcomes)
    fake = SimpleNamespace(
        chat=SimpleNamespace(completions=completions),
        models=FakeModels(models_error),
    )
    return OpenAILLMClient(settings=settings, client=fake), completions


def test_chat_sends_model_messages_and_temperature(settings) -> None:
    client, completions = make_client(settings, [completion("- Insomnia")])
    messages = [{"role": "user", "content": "hi"}]

    result = asyncio.run(client.chat(messages, temperature=0.0))

    assert result == "- Insomnia"
    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["messages"] == messages
    assert request["temperature"] == 0.0
    assert "response_format" not in request


def test_json_response_requests_json_object(settings) -> None:
    client, completions = make_client(settings, [completion("{}")])

    asyncio.run(client.chat([{"role": "user", "content": "x"}], json_response=True, model="other"))

    assert completions.requests[0]["response_format"] == {"type": "json_object"}
    assert completions.requests[0]["model"] == "other"


def test_missing_content_becomes_empty_string(settings) -> None:
    client, _ = make_client(settings, [completion(None)])

    assert asyncio.run(client.chat([{"role": "user", "content": "x"}])) == ""


def test_connection_errors_escalate_when_repeated(settings) -> None:
    client, _ = make_client(
        settings,
        [
            openai.APIConnectionError(request=_REQUEST),
            openai.APIConnectionError(request=_REQUEST),
            completion("ok"),
        ],
    )
    messages = [{"role": "user", "content": "x"}]

    with pytest.raises(TransportError) as first:
        asyncio.run(client.chat(messages))
    with pytest.raises(TransportError) as second:
        asyncio.run(client.chat(messages))

    assert first.value.severity == ErrorSeverity.WARNING
    assert second.value.severity == ErrorSeverity.ERROR
    assert client.consecutive_failures == 2

    asyncio.run(client.chat(messages))
    assert client.consecutive_failures == 0


def test_http_status_is_recorded(settings) -> None:
    response = httpx.Response(503, request=_REQUEST)
    client, _ = make_client(
        settings, [openai.APIStatusError("unavailable", response=response, body=None)]
    )

    with pytest.raises(TransportError) as exc_info:
        asyncio.run(client.chat([{"role": "user", "content": "x"}]))

    assert exc_info.value.status_code == 503
    assert "503" in exc_info.value.message


def test_ping_lists_models_and_translates_errors(settings) -> None:
    healthy, _ = make_client(settings)
    asyncio.run(healthy.ping())

    broken, _ = make_client(settings, models_error=openai.APITimeoutError(request=_REQUEST))
    with pytest.raises(TransportError) as exc_info:
        asyncio.run(broken.ping())
    assert "timed out" in exc_info.value.message


def test_missing_api_key_is_rejected() -> None:
    settings = Settings(_env_file=None, openai_api_key=None)

    with pytest.raises(RuntimeError):
        OpenAILLMClient(settings=settings)
