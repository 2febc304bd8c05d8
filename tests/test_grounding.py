from __future__ import annotations

import asyncio

import pytest

from casereview.errors import TransportError
from casereview.reasoning import prompts
from casereview.reasoning.grounding import ConversationalGrounding, split_state_delta
from casereview.reasoning.state import ChatTurn, ReasoningState, Speaker
from tests.conftest import CASE_TEXT, ScriptedLLM


def analysed_state() -> ReasoningState:
    return ReasoningState(
        case_text=CASE_TEXT,
        symptoms=["Insomnia", "Racing thoughts"],
        candidate_diagnoses=["Generalized anxiety disorder (F41.1)"],
    )


def test_two_questions_produce_four_ordered_turns(settings) -> None:
    llm = ScriptedLLM({"chat": ["First answer.", "Second answer."]})
    grounding = ConversationalGrounding(llm, settings)
    history = []

    async def scenario():
        await grounding.answer("Why insomnia?", analysed_state(), history)
        await grounding.answer("What next?", analysed_state(), history)

    asyncio.run(scenario())

    assert [(t.speaker, t.content) for t in history] == [
        (Speaker.USER, "Why insomnia?"),
        (Speaker.ASSISTANT, "First answer."),
        (Speaker.USER, "What next?"),
        (Speaker.ASSISTANT, "Second answer."),
    ]


def test_prompt_carries_history_summary_and_question(settings) -> None:
    llm = ScriptedLLM({"chat": "Answer."})
    history = [
        ChatTurn(Speaker.USER, "Earlier question"),
        ChatTurn(Speaker.ASSISTANT, "Earlier answer"),
    ]

    asyncio.run(ConversationalGrounding(llm, settings).answer("Dosage?", analysed_state(), history))

    call = llm.calls[0]
    messages = call["messages"]
    assert call["temperature"] == settings.chat_temperature
    assert messages[0] == {"role": "system", "content": prompts.GROUNDING_SYSTEM_PROMPT}
    assert messages[1] == {"role": "user", "content": "Earlier question"}
    assert messages[2] == {"role": "assistant", "content": "Earlier answer"}
    user = messages[3]["content"]
    assert CASE_TEXT in user
    assert "Generalized anxiety disorder (F41.1)" in user
    assert "Question: Dosage?" in user


def test_failed_call_leaves_history_untouched(settings) -> None:
    llm = ScriptedLLM({"chat": TransportError("timeout")})
    history = [ChatTurn(Speaker.USER, "q"), ChatTurn(Speaker.ASSISTANT, "a")]

    with pytest.raises(TransportError):
        asyncio.run(ConversationalGrounding(llm, settings).answer("again?", analysed_state(), history))

    assert len(history) == 2


def test_split_state_delta_extracts_trailing_block() -> None:
    raw = (
        "Consider adding sleep restriction therapy.\n\n"
        '```json\n{"treatments": ["Sleep restriction therapy"], "symptoms": ["Early waking"]}\n```'
    )

    answer, delta = split_state_delta(raw)

    assert answer == "Consider adding sleep restriction therapy."
    assert delta.treatment_suggestions == ("Sleep restriction therapy",)
    assert delta.symptoms == ("Early waking",)
    assert delta.candidate_diagnoses == ()


@pytest.mark.parametrize(
    "raw",
    [
        "Plain answer with no block.",
        "Answer.\n```json\n{not valid}\n```",
        'Answer.\n```json\n{"treatments": []}\n```',
        'Answer.\n```json\n{"unrelated": ["x"]}\n```',
    ],
)
def test_split_state_delta_without_usable_block(raw) -> None:
    answer, delta = split_state_delta(raw)

    assert delta is None
    assert answer.startswith("Plain answer") or answer.startswith("Answer.")
