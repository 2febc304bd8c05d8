from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from casereview.config import Settings
from casereview.llm import LLMClient
from casereview.reasoning import prompts


def classify_call(messages: List[Dict[str, str]], json_response: bool) -> str:
    """
    Work out which engine component issued a completion call.
    """
    system = messages[0]["content"]
    if json_response:
        return "legacy"
    if system == prompts.GROUNDING_SYSTEM_PROMPT:
        return "chat"
    if "extract every relevant symptom" in system:
        return "symptoms"
    if "Compare the symptoms against DSM-5" in system:
        return "criteria"
    if "Formulate possible diagnoses" in system:
        return "diagnoses"
    if "Suggest appropriate treatments" in system:
        return "treatments"
    raise AssertionError(f"unrecognised prompt: {system[:60]}")


class ScriptedLLM(LLMClient):
    """
    Fake completion client. `responses` maps a call kind (see classify_call)
    to a string, an exception, or a list consumed one item per call.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Any]] = None,
        ping_error: Optional[Exception] = None,
        ping_delay: float = 0.0,
        delay: float = 0.0,
    ):
        self.responses = dict(responses or {})
        self.ping_error = ping_error
        self.ping_delay = ping_delay
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.ping_calls = 0

    async def chat(self, messages, temperature=0.2, model=None, json_response=False) -> str:
        kind = classify_call(messages, json_response)
        self.calls.append(
            {
                "kind": kind,
                "messages": messages,
                "temperature": temperature,
                "json_response": json_response,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)

        response = self.responses.get(kind)
        if isinstance(response, list):
            response = response.pop(0)
        if response is None:
            raise AssertionError(f"no scripted response for {kind}")
        if isinstance(response, Exception):
            raise response
        return response

    async def ping(self) -> None:
        self.ping_calls += 1
        if self.ping_delay:
            await asyncio.sleep(self.ping_delay)
        if self.ping_error is not None:
            raise self.ping_error

    def kinds(self) -> List[str]:
        return [c["kind"] for c in self.calls]


STAGED_RESPONSES = {
    "symptoms": "- Insomnia for 3 weeks\n- Racing thoughts",
    "criteria": "1. Sleep disturbance criterion met\n2. Excessive worry criterion met",
    "diagnoses": (
        "Generalized anxiety disorder (F41.1)\n"
        "Insomnia disorder (F51.01)\n"
        "Adjustment disorder with anxiety (F43.22)"
    ),
    "treatments": "- Cognitive behavioural therapy for insomnia\n- CBT for anxiety\n- Sleep hygiene education",
}

LEGACY_RESPONSE = """
{
  "symptoms": ["Insomnia", "Racing thoughts"],
  "criteria_findings": ["Excessive worry for most days"],
  "diagnoses": [
    {"name": "Generalized anxiety disorder", "code": "F41.1", "confidence": "high"},
    {"name": "Insomnia disorder", "confidence": "medium"}
  ],
  "treatments": ["Cognitive behavioural therapy", "Sleep hygiene education"]
}
"""

CASE_TEXT = "patient reports insomnia and racing thoughts for 3 weeks"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="test-key",
        llm_model="test-model",
        probe_timeout=0.05,
        analysis_timeout=5.0,
        cache_ttl_seconds=3600.0,
        cache_max_entries=10,
    )


@pytest.fixture
def staged_llm() -> ScriptedLLM:
    return ScriptedLLM(dict(STAGED_RESPONSES))


class RecordingNotifier:
    def __init__(self):
        self.notifications = []

    def notify(self, message, severity) -> None:
        self.notifications.append((message, severity))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
