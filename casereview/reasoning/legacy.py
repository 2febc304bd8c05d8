# casereview/reasoning/legacy.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from casereview.config import Settings, get_settings
from casereview.errors import LegacyParseError
from casereview.llm import LLMClient
from casereview.reasoning import prompts
from casereview.reasoning.schema import ConfidenceTier
from casereview.reasoning.state import PartialReasoningState, ReasoningState, StrategyResult

logger = logging.getLogger(__name__)


_TIER_WORDS: Dict[str, ConfidenceTier] = {
    "high": ConfidenceTier.HIGH,
    "alta": ConfidenceTier.HIGH,
    "medium": ConfidenceTier.MEDIUM,
    "moderate": ConfidenceTier.MEDIUM,
    "media": ConfidenceTier.MEDIUM,
    "low": ConfidenceTier.LOW,
    "baja": ConfidenceTier.LOW,
}


def parse_confidence(value: Any) -> Optional[ConfidenceTier]:
    """
    Map a model-emitted confidence ("high", "Alta", 0.8, "80%") onto a tier.
    Returns None when the value is missing or unrecognised.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        score = float(value)
        if score > 1:
            score /= 100
        if score >= 0.7:
            return ConfidenceTier.HIGH
        if score >= 0.4:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.LOW
    if isinstance(value, str):
        text = value.strip().lower()
        if text.endswith("%"):
            try:
                return parse_confidence(float(text[:-1]))
            except ValueError:
                return None
        return _TIER_WORDS.get(text)
    return None


class LegacyDiagnosis(BaseModel):
    name: str
    description: Optional[str] = None
    confidence: Any = None
    code: Optional[str] = None

    model_config = {"extra": "ignore"}


class LegacyRecommendation(BaseModel):
    title: Optional[str] = None
    description: str

    model_config = {"extra": "ignore"}


class LegacyAnalysisModel(BaseModel):
    """
    Shape of the single-call JSON response.

    Accepts the alternative key names older prompts produced so a model
    that echoes them still parses.
    """

    symptoms: List[str] = Field(default_factory=list)
    criteria_findings: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("criteria_findings", "criteriaFindings", "dsmAnalysis"),
    )
    diagnoses: List[Union[str, LegacyDiagnosis]] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "diagnoses", "candidate_diagnoses", "candidateDiagnoses", "possibleDiagnoses"
        ),
    )
    treatments: List[Union[str, LegacyRecommendation]] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "treatments", "treatment_suggestions", "treatmentSuggestions", "recommendations"
        ),
    )

    # Allow extra fields from the LLM without crashing
    model_config = {
        "extra": "ignore",
    }


def clean_json_from_llm(raw: str) -> dict:
    """
    Try to robustly parse JSON from the LLM response.
    Handles cases where the model wraps it in ```json ... ``` fences.
    """
    text = raw.strip()

    if text.startswith("```"):
        text = text.lstrip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.rstrip("`").strip()

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def to_partial_state(model: LegacyAnalysisModel) -> PartialReasoningState:
    diagnoses: List[str] = []
    confidence: Dict[str, ConfidenceTier] = {}
    for entry in model.diagnoses:
        if isinstance(entry, str):
            name = entry.strip()
        else:
            name = entry.name.strip()
            if entry.code and entry.code not in name:
                name = f"{name} ({entry.code})"
            tier = parse_confidence(entry.confidence)
            if name and tier is not None:
                confidence[name] = tier
        if name:
            diagnoses.append(name)

    treatments = []
    for entry in model.treatments:
        text = entry if isinstance(entry, str) else entry.description
        if text.strip():
            treatments.append(text.strip())

    return PartialReasoningState(
        symptoms=tuple(s.strip() for s in model.symptoms if s.strip()),
        criteria_findings=tuple(c.strip() for c in model.criteria_findings if c.strip()),
        candidate_diagnoses=tuple(diagnoses),
        treatment_suggestions=tuple(treatments),
        diagnosis_confidence=confidence,
    )


class LegacyStrategy:
    """
    One completion call returning the whole artifact as a JSON object.
    Used when the staged pipeline is unavailable or failed.
    """

    name = "legacy"

    def __init__(self, llm: LLMClient, settings: Optional[Settings] = None):
        self.llm = llm
        self.settings = settings or get_settings()

    async def execute(self, case_text: str, progress=None) -> StrategyResult:
        """
        Returns either a fully parsed state or an empty state plus
        LegacyParseError. Never a partially parsed object. `progress` is
        accepted for interface parity with PipelineExecutor and unused.
        """
        raw = await self.llm.chat(
            prompts.legacy_messages(case_text),
            temperature=self.settings.legacy_temperature,
            json_response=True,
        )

        try:
            data = clean_json_from_llm(raw)
            model = LegacyAnalysisModel.model_validate(data)
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Legacy analysis response could not be parsed: %s", e)
            return StrategyResult(
                state=ReasoningState(case_text=case_text),
                error=LegacyParseError(f"Malformed analysis JSON: {e}", raw_response=raw),
            )

        update = to_partial_state(model)
        if update.is_empty():
            return StrategyResult(
                state=ReasoningState(case_text=case_text),
                error=LegacyParseError("Analysis JSON contained no entries", raw_response=raw),
            )

        state = ReasoningState(case_text=case_text).apply(update)
        return StrategyResult(state=state)
