# casereview/reasoning/stage_functions.py
from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Dict, List

from casereview.config import Settings
from casereview.errors import IncompleteStageError, StageParseError
from casereview.llm import LLMClient
from casereview.reasoning import prompts
from casereview.reasoning.stages import Stage
from casereview.reasoning.state import PartialReasoningState, ReasoningState

logger = logging.getLogger(__name__)

# "- ", "* ", "• ", "1. ", "2) " and similar list prefixes. A marker must be
# followed by whitespace, so "0.5 mg ..." keeps its leading digits.
_LIST_MARKER = re.compile(r"^\s*(?:[-*•‣·]+|\d+[.)])(?=\s|$)\s*")

# Markdown emphasis: **text** or __text__
_EMPHASIS = re.compile(r"(\*\*|__)(.+?)\1")

StageFunction = Callable[[ReasoningState, LLMClient, Settings], Awaitable[PartialReasoningState]]


def parse_list_response(stage: Stage, raw: Any) -> List[str]:
    """
    Decompose a completion into a flat list of entries:
      - split on line boundaries
      - strip list-marker prefixes (never the digits of a number like "0.5")
      - unwrap markdown emphasis ("**Insomnia**" -> "Insomnia")
      - drop blank entries

    Raises StageParseError for empty or non-text responses and
    IncompleteStageError when every line is blank once markers are removed.
    """
    if not isinstance(raw, str):
        raise StageParseError(stage.value, raw, reason="response is not text")
    if not raw.strip():
        raise StageParseError(stage.value, raw, reason="empty response")

    items = []
    for line in raw.splitlines():
        entry = _LIST_MARKER.sub("", line, count=1)
        entry = _EMPHASIS.sub(r"\2", entry).strip()
        if entry:
            items.append(entry)

    if not items:
        raise IncompleteStageError(stage.value)
    return items


async def _run_stage(
    stage: Stage,
    state: ReasoningState,
    llm: LLMClient,
    settings: Settings,
    build_messages: Callable[[ReasoningState], prompts.Messages],
) -> PartialReasoningState:
    raw = await llm.chat(build_messages(state), temperature=settings.stage_temperature)
    items = parse_list_response(stage, raw)
    logger.debug("Stage %s produced %d entries", stage.value, len(items))
    return PartialReasoningState.for_stage(stage, items)


async def extract_symptoms(
    state: ReasoningState, llm: LLMClient, settings: Settings
) -> PartialReasoningState:
    return await _run_stage(Stage.SYMPTOMS, state, llm, settings, prompts.symptoms_messages)


async def map_to_criteria(
    state: ReasoningState, llm: LLMClient, settings: Settings
) -> PartialReasoningState:
    return await _run_stage(Stage.CRITERIA, state, llm, settings, prompts.criteria_messages)


async def formulate_diagnoses(
    state: ReasoningState, llm: LLMClient, settings: Settings
) -> PartialReasoningState:
    return await _run_stage(Stage.DIAGNOSES, state, llm, settings, prompts.diagnoses_messages)


async def suggest_treatments(
    state: ReasoningState, llm: LLMClient, settings: Settings
) -> PartialReasoningState:
    return await _run_stage(Stage.TREATMENTS, state, llm, settings, prompts.treatments_messages)


STAGE_FUNCTIONS: Dict[Stage, StageFunction] = {
    Stage.SYMPTOMS: extract_symptoms,
    Stage.CRITERIA: map_to_criteria,
    Stage.DIAGNOSES: formulate_diagnoses,
    Stage.TREATMENTS: suggest_treatments,
}
