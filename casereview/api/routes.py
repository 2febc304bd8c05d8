# casereview/api/routes.py
from __future__ import annotations

from functools import lru_cache
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException

from casereview.config import get_settings
from casereview.errors import TransportError
from casereview.llm import OpenAILLMClient
from casereview.reasoning.state import ChatTurn
from casereview.services import FingerprintCache, OrchestrationController, make_fingerprint
from .schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    CacheStatusResponse,
    ChatTurnSchema,
    InvalidateResponse,
    QuestionRequest,
    QuestionResponse,
    SessionEndResponse,
    StateDeltaSchema,
)

router = APIRouter()

# One transcript per active case-review session; never persisted.
_session_transcripts: Dict[str, List[ChatTurn]] = {}


@lru_cache(maxsize=1)
def get_controller() -> OrchestrationController:
    """
    Build the process-wide controller once, with its single cache instance.
    """
    settings = get_settings()
    cache = FingerprintCache(
        default_ttl=settings.cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
    )
    return OrchestrationController(OpenAILLMClient(settings=settings), cache=cache, settings=settings)


def get_transcripts() -> Dict[str, List[ChatTurn]]:
    return _session_transcripts


@router.get("/analysis")
def analysis_health() -> dict:
    return {"status": "ok"}


@router.post("/analysis", response_model=AnalyzeResponse)
async def analyze_case(
    payload: AnalyzeRequest,
    controller: OrchestrationController = Depends(get_controller),
) -> AnalyzeResponse:
    """
    Run (or fetch from cache) the clinical analysis for a case.
    Always returns an artifact; failures are reported inside it.
    """
    fingerprint = make_fingerprint(payload.patient_id, payload.case_text)
    artifact = await controller.analyze(
        payload.case_text,
        fingerprint,
        session_id=payload.session_id,
    )
    return AnalyzeResponse(fingerprint=fingerprint, artifact=artifact)


@router.post("/analysis/question", response_model=QuestionResponse)
async def ask_question(
    payload: QuestionRequest,
    controller: OrchestrationController = Depends(get_controller),
    transcripts: Dict[str, List[ChatTurn]] = Depends(get_transcripts),
) -> QuestionResponse:
    fingerprint = make_fingerprint(payload.patient_id, payload.case_text)
    history = transcripts.setdefault(payload.session_id, [])

    try:
        result = await controller.answer(
            payload.question,
            fingerprint,
            history,
            case_text=payload.case_text,
        )
    except TransportError as e:
        raise HTTPException(
            status_code=502,
            detail=f"The analysis service could not answer: {e.message}",
        )

    delta = None
    if result.state_delta is not None:
        delta = StateDeltaSchema(
            symptoms=list(result.state_delta.symptoms),
            criteria_findings=list(result.state_delta.criteria_findings),
            candidate_diagnoses=list(result.state_delta.candidate_diagnoses),
            treatment_suggestions=list(result.state_delta.treatment_suggestions),
        )

    return QuestionResponse(
        answer=result.answer,
        state_delta=delta,
        history=[
            ChatTurnSchema(speaker=turn.speaker.value, content=turn.content)
            for turn in history
        ],
    )


@router.get("/analysis/{fingerprint}/cached", response_model=CacheStatusResponse)
def cache_status(
    fingerprint: str,
    controller: OrchestrationController = Depends(get_controller),
) -> CacheStatusResponse:
    return CacheStatusResponse(fingerprint=fingerprint, cached=controller.is_cached(fingerprint))


@router.delete("/analysis/{fingerprint}", response_model=InvalidateResponse)
def invalidate_analysis(
    fingerprint: str,
    controller: OrchestrationController = Depends(get_controller),
) -> InvalidateResponse:
    return InvalidateResponse(
        fingerprint=fingerprint,
        invalidated=controller.invalidate(fingerprint),
    )


@router.delete("/analysis/session/{session_id}", response_model=SessionEndResponse)
def end_session(
    session_id: str,
    controller: OrchestrationController = Depends(get_controller),
    transcripts: Dict[str, List[ChatTurn]] = Depends(get_transcripts),
) -> SessionEndResponse:
    """
    Drop the session's transcript and stop tracking its case text.
    """
    had_transcript = transcripts.pop(session_id, None) is not None
    tracked = controller.end_session(session_id)
    return SessionEndResponse(session_id=session_id, ended=had_transcript or tracked)
