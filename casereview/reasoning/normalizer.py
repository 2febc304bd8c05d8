# casereview/reasoning/normalizer.py
from __future__ import annotations

import re
from typing import Dict, List, Optional

from casereview.reasoning.schema import (
    AnalysisArtifact,
    ConfidenceTier,
    Diagnosis,
    Priority,
    Recommendation,
    ThoughtStatus,
    ThoughtStep,
)
from casereview.reasoning.stages import Stage, STAGE_ORDER
from casereview.reasoning.state import ReasoningState

# ICD-10 shape: one letter, two digits, optional decimal suffix (F41.1, F32).
# Criterion labels such as "A1" are too short to match.
CLINICAL_CODE_PATTERN = re.compile(r"\b[A-Z]\d{2}(?:\.\d+)?\b")
_PARENTHESISED_CODE = re.compile(r"\(\s*([A-Z]\d{2}(?:\.\d+)?)\s*\)")

STEP_TITLES: Dict[Stage, str] = {
    Stage.SYMPTOMS: "Symptom identification",
    Stage.CRITERIA: "DSM-5 analysis",
    Stage.DIAGNOSES: "Diagnostic formulation",
    Stage.TREATMENTS: "Recommendations",
}

_FINISHED_DESCRIPTIONS: Dict[Stage, str] = {
    Stage.SYMPTOMS: "Identified {n} relevant symptoms",
    Stage.CRITERIA: "Analysis completed with {n} criteria findings",
    Stage.DIAGNOSES: "Formulated {n} potential diagnoses",
    Stage.TREATMENTS: "Generated {n} treatment recommendations",
}

_PROCESSING_DESCRIPTIONS: Dict[Stage, str] = {
    Stage.SYMPTOMS: "Analyzing the patient's data",
    Stage.CRITERIA: "Comparing symptoms with DSM-5 / ICD criteria",
    Stage.DIAGNOSES: "Formulating potential diagnoses",
    Stage.TREATMENTS: "Suggesting treatment options",
}

_WAITING_DESCRIPTIONS: Dict[Stage, str] = {
    Stage.SYMPTOMS: "Waiting for patient data",
    Stage.CRITERIA: "Pending symptom identification",
    Stage.DIAGNOSES: "Pending DSM-5 analysis",
    Stage.TREATMENTS: "Pending diagnostic formulation",
}


def positional_tier(index: int) -> ConfidenceTier:
    if index == 0:
        return ConfidenceTier.HIGH
    if index == 1:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def extract_clinical_code(text: str) -> str:
    """
    Return the clinical code in `text` (e.g. "F41.1"), or "". A code in
    parentheses wins over one elsewhere in the text.
    """
    match = _PARENTHESISED_CODE.search(text)
    if match:
        return match.group(1)
    match = CLINICAL_CODE_PATTERN.search(text)
    return match.group(0) if match else ""


def build_thought_steps(
    state: ReasoningState,
    stage_error: Optional[Exception] = None,
) -> List[ThoughtStep]:
    steps: List[ThoughtStep] = []
    first_empty_seen = False

    for stage in STAGE_ORDER:
        items = state.items_for(stage)
        title = STEP_TITLES[stage]

        if items:
            steps.append(
                ThoughtStep(
                    title=title,
                    description=_FINISHED_DESCRIPTIONS[stage].format(n=len(items)),
                    status=ThoughtStatus.FINISHED,
                )
            )
        elif not first_empty_seen:
            first_empty_seen = True
            if stage_error is not None:
                steps.append(
                    ThoughtStep(
                        title=title,
                        description="Processing error",
                        status=ThoughtStatus.ERRORED,
                    )
                )
            else:
                steps.append(
                    ThoughtStep(
                        title=title,
                        description=_PROCESSING_DESCRIPTIONS[stage],
                        status=ThoughtStatus.PROCESSING,
                    )
                )
        else:
            steps.append(
                ThoughtStep(
                    title=title,
                    description=_WAITING_DESCRIPTIONS[stage],
                    status=ThoughtStatus.WAITING,
                )
            )

    return steps


def build_diagnoses(state: ReasoningState) -> List[Diagnosis]:
    diagnoses = []
    for i, name in enumerate(state.candidate_diagnoses):
        code = extract_clinical_code(name)
        tier = state.diagnosis_confidence.get(name) or positional_tier(i)
        description = "Diagnosis according to DSM-5 and ICD-10 criteria"
        if code:
            description = f"{description} ({code})"
        diagnoses.append(
            Diagnosis(
                name=name,
                description=description,
                confidence_tier=tier,
                code=code,
            )
        )
    return diagnoses


def build_recommendations(state: ReasoningState) -> List[Recommendation]:
    return [
        Recommendation(
            id=f"rec-{i}",
            title="Recommended treatment",
            description=treatment,
            category="treatment",
            priority=positional_tier(i),
        )
        for i, treatment in enumerate(state.treatment_suggestions)
    ]


def normalize(
    state: ReasoningState,
    stage_error: Optional[Exception] = None,
    source: str = "enhanced",
) -> AnalysisArtifact:
    """
    Map a ReasoningState onto the UI artifact.

    Step status comes from array population: finished when populated, the
    first empty stage is processing (or errored when `stage_error` is set),
    later ones wait. Diagnosis confidence uses the model's explicit tier
    when one was recorded, otherwise the position in the list.
    """
    return AnalysisArtifact(
        thought_steps=build_thought_steps(state, stage_error),
        diagnoses=build_diagnoses(state),
        recommendations=build_recommendations(state),
        source=source,
    )


def failure_artifact(reason: str = "") -> AnalysisArtifact:
    """
    Terminal artifact used when every strategy failed.
    """
    description = "The AI service response could not be processed"
    if reason:
        description = f"{description}: {reason}"
    return AnalysisArtifact(
        thought_steps=[
            ThoughtStep(
                title="Analysis failed",
                description=description,
                status=ThoughtStatus.ERRORED,
            )
        ],
        diagnoses=[],
        recommendations=[
            Recommendation(
                id="fallback-1",
                title="Case review",
                description=(
                    "Manual review of the case is recommended because automatic "
                    "processing failed."
                ),
                category="assessment",
                priority=Priority.MEDIUM,
            )
        ],
        source="failed",
    )


def superseded_artifact() -> AnalysisArtifact:
    """
    Returned to waiters of a run that was cancelled because newer case
    text replaced it.
    """
    return AnalysisArtifact(
        thought_steps=[
            ThoughtStep(
                title=STEP_TITLES[stage],
                description="Superseded by a newer version of the case text",
                status=ThoughtStatus.WAITING,
            )
            for stage in STAGE_ORDER
        ],
        source="superseded",
    )
