# casereview/reasoning/schema.py
from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class ThoughtStatus(str, Enum):
    WAITING = "wait"
    PROCESSING = "processing"
    FINISHED = "finish"
    ERRORED = "error"


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Recommendations share the positional high/medium/low scale.
Priority = ConfidenceTier


class ThoughtStep(BaseModel):
    title: str
    description: str = ""
    status: ThoughtStatus = ThoughtStatus.WAITING


class Diagnosis(BaseModel):
    name: str
    description: str = ""
    confidence_tier: ConfidenceTier = ConfidenceTier.LOW
    code: str = Field(
        "",
        description="Clinical code extracted from the diagnosis text, e.g. 'F41.1'",
    )


class Recommendation(BaseModel):
    id: str
    title: str
    description: str
    category: str = "treatment"
    priority: Priority = Priority.LOW


class AnalysisArtifact(BaseModel):
    """
    The UI-facing result of one analysis run.

    `source` records which strategy produced it: "enhanced", "legacy",
    "failed" (synthetic terminal artifact) or "superseded".
    """

    thought_steps: List[ThoughtStep] = Field(default_factory=list)
    diagnoses: List[Diagnosis] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    source: str = "enhanced"
