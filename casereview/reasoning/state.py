# casereview/reasoning/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from casereview.reasoning.stages import Stage
from casereview.reasoning.schema import ConfidenceTier


# ReasoningState attribute holding each stage's output.
STAGE_FIELDS: Dict[Stage, str] = {
    Stage.SYMPTOMS: "symptoms",
    Stage.CRITERIA: "criteria_findings",
    Stage.DIAGNOSES: "candidate_diagnoses",
    Stage.TREATMENTS: "treatment_suggestions",
}


@dataclass(frozen=True)
class PartialReasoningState:
    """
    A partial update produced by one stage (or by a follow-up answer).

    Restricted to the four known array fields; merging is an explicit
    per-field append done by ReasoningState.apply.
    """

    symptoms: Tuple[str, ...] = ()
    criteria_findings: Tuple[str, ...] = ()
    candidate_diagnoses: Tuple[str, ...] = ()
    treatment_suggestions: Tuple[str, ...] = ()
    diagnosis_confidence: Mapping[str, ConfidenceTier] = field(default_factory=dict)

    @classmethod
    def for_stage(cls, stage: Stage, items: Sequence[str]) -> "PartialReasoningState":
        if stage not in STAGE_FIELDS:
            raise ValueError(f"Stage {stage} has no output field")
        return cls(**{STAGE_FIELDS[stage]: tuple(items)})

    def is_empty(self) -> bool:
        return not (
            self.symptoms
            or self.criteria_findings
            or self.candidate_diagnoses
            or self.treatment_suggestions
        )


@dataclass
class ReasoningState:
    """
    The pipeline's accumulator and the unit cached and returned.

    Arrays are append-only: the only mutator is `apply`. The current
    stage is derived from array population by the router and never stored.
    """

    case_text: str
    symptoms: List[str] = field(default_factory=list)
    criteria_findings: List[str] = field(default_factory=list)
    candidate_diagnoses: List[str] = field(default_factory=list)
    treatment_suggestions: List[str] = field(default_factory=list)

    # Only filled when a strategy received explicit confidence from the model.
    diagnosis_confidence: Dict[str, ConfidenceTier] = field(default_factory=dict)

    @property
    def current_stage(self) -> Stage:
        from casereview.reasoning.router import next_stage

        return next_stage(self)

    def items_for(self, stage: Stage) -> List[str]:
        return getattr(self, STAGE_FIELDS[stage])

    def apply(self, update: PartialReasoningState) -> "ReasoningState":
        self.symptoms.extend(update.symptoms)
        self.criteria_findings.extend(update.criteria_findings)
        self.candidate_diagnoses.extend(update.candidate_diagnoses)
        self.treatment_suggestions.extend(update.treatment_suggestions)
        for name, tier in update.diagnosis_confidence.items():
            self.diagnosis_confidence.setdefault(name, tier)
        return self

    def copy(self) -> "ReasoningState":
        return ReasoningState(
            case_text=self.case_text,
            symptoms=list(self.symptoms),
            criteria_findings=list(self.criteria_findings),
            candidate_diagnoses=list(self.candidate_diagnoses),
            treatment_suggestions=list(self.treatment_suggestions),
            diagnosis_confidence=dict(self.diagnosis_confidence),
        )

    def is_populated(self) -> bool:
        return any(self.items_for(stage) for stage in STAGE_FIELDS)


class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatTurn:
    speaker: Speaker
    content: str


@dataclass
class StrategyResult:
    """
    Uniform result of one execution strategy: the state produced plus
    the error that stopped it, if any.
    """

    state: ReasoningState
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
