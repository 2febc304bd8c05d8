# casereview/reasoning/grounding.py
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from casereview.config import Settings, get_settings
from casereview.llm import LLMClient
from casereview.reasoning import prompts
from casereview.reasoning.state import ChatTurn, PartialReasoningState, ReasoningState, Speaker

logger = logging.getLogger(__name__)

_DELTA_BLOCK = re.compile(r"```json\s*(\{.*?\})\s*```\s*$", re.DOTALL | re.IGNORECASE)

_DELTA_KEYS = {
    "symptoms": "symptoms",
    "criteria_findings": "criteria_findings",
    "diagnoses": "candidate_diagnoses",
    "treatments": "treatment_suggestions",
}


@dataclass
class GroundedAnswer:
    answer: str
    state_delta: Optional[PartialReasoningState] = None


def _history_messages(history: List[ChatTurn]) -> List[Dict[str, str]]:
    return [
        {
            "role": "user" if turn.speaker == Speaker.USER else "assistant",
            "content": turn.content,
        }
        for turn in history
    ]


def split_state_delta(raw: str) -> Tuple[str, Optional[PartialReasoningState]]:
    """
    Separate a trailing ```json block of new analysis entries from the
    answer text. Absence of the block (the normal case) or an unusable
    block leaves the answer untouched and returns no delta.
    """
    match = _DELTA_BLOCK.search(raw)
    if match is None:
        return raw.strip(), None

    try:
        data = json.loads(match.group(1))
    except ValueError:
        logger.debug("Ignoring unparseable state delta block")
        return raw.strip(), None
    if not isinstance(data, dict):
        return raw.strip(), None

    fields: Dict[str, tuple] = {}
    for key, attr in _DELTA_KEYS.items():
        values = data.get(key)
        if isinstance(values, list):
            fields[attr] = tuple(
                v.strip() for v in values if isinstance(v, str) and v.strip()
            )

    delta = PartialReasoningState(**fields)
    answer = raw[: match.start()].strip()
    if delta.is_empty():
        return answer, None
    return answer, delta


class ConversationalGrounding:
    """
    Answers follow-up questions against a (possibly partial) analysis.
    """

    def __init__(self, llm: LLMClient, settings: Optional[Settings] = None):
        self.llm = llm
        self.settings = settings or get_settings()

    async def answer(
        self,
        question: str,
        state: ReasoningState,
        history: List[ChatTurn],
    ) -> GroundedAnswer:
        """
        One completion call with the case text, a summary of `state`, the
        prior transcript and the new question.

        On success the question and the answer are appended to `history`
        (user then assistant); existing turns are never touched. If the
        call fails nothing is appended and the error propagates.
        """
        messages = [{"role": "system", "content": prompts.GROUNDING_SYSTEM_PROMPT}]
        messages.extend(_history_messages(history))
        messages.append(
            {"role": "user", "content": prompts.grounding_user_message(question, state)}
        )

        raw = await self.llm.chat(messages, temperature=self.settings.chat_temperature)
        answer, delta = split_state_delta(raw)

        history.append(ChatTurn(speaker=Speaker.USER, content=question))
        history.append(ChatTurn(speaker=Speaker.ASSISTANT, content=answer))
        return GroundedAnswer(answer=answer, state_delta=delta)
