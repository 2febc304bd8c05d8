# casereview/api/schemas.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from casereview.reasoning.schema import AnalysisArtifact


class AnalyzeRequest(BaseModel):
    patient_id: str
    case_text: str = Field(..., min_length=1)
    session_id: Optional[str] = None


class AnalyzeResponse(BaseModel):
    fingerprint: str
    artifact: AnalysisArtifact


class QuestionRequest(BaseModel):
    patient_id: str
    case_text: str
    question: str = Field(..., min_length=1)
    session_id: str


class ChatTurnSchema(BaseModel):
    speaker: str
    content: str


class StateDeltaSchema(BaseModel):
    symptoms: List[str] = Field(default_factory=list)
    criteria_findings: List[str] = Field(default_factory=list)
    candidate_diagnoses: List[str] = Field(default_factory=list)
    treatment_suggestions: List[str] = Field(default_factory=list)


class QuestionResponse(BaseModel):
    answer: str
    state_delta: Optional[StateDeltaSchema] = None
    history: List[ChatTurnSchema]


class CacheStatusResponse(BaseModel):
    fingerprint: str
    cached: bool


class InvalidateResponse(BaseModel):
    fingerprint: str
    invalidated: bool


class SessionEndResponse(BaseModel):
    session_id: str
    ended: bool
