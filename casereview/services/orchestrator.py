# casereview/services/orchestrator.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from casereview.config import Settings, get_settings
from casereview.errors import (
    BackendUnavailableError,
    ErrorSeverity,
    StageError,
    TransportError,
    classify_error,
)
from casereview.llm import LLMClient
from casereview.reasoning.grounding import ConversationalGrounding, GroundedAnswer
from casereview.reasoning.legacy import LegacyStrategy
from casereview.reasoning.normalizer import failure_artifact, normalize, superseded_artifact
from casereview.reasoning.pipeline import PipelineExecutor, ProgressCallback
from casereview.reasoning.schema import AnalysisArtifact
from casereview.reasoning.state import ChatTurn, PartialReasoningState, ReasoningState, StrategyResult
from casereview.services.cache import FingerprintCache
from casereview.services.notifications import LoggingNotificationSink, NotificationSink

logger = logging.getLogger(__name__)


def make_fingerprint(patient_id: str, case_text: str) -> str:
    """
    Cache key for "this case text, roughly, as of now".
    """
    return f"{patient_id}:{len(case_text)}"


@dataclass
class AnalysisRecord:
    """
    The cached unit: the state (for follow-up questions) and its artifact.
    """

    state: ReasoningState
    artifact: AnalysisArtifact


class AnalysisStrategy(Protocol):
    name: str

    async def execute(
        self, case_text: str, progress: Optional[ProgressCallback] = None
    ) -> StrategyResult:
        ...


class OrchestrationController:
    """
    Service that coordinates:
      - the fingerprint cache (hits never touch the network)
      - the availability probe for the staged backend
      - the ordered strategy list: staged pipeline first, single-call legacy second
      - normalisation of whichever state was produced
      - follow-up questions against the cached state

    Nothing raises past `analyze`: every failure path ends in an artifact.
    """

    def __init__(
        self,
        llm: LLMClient,
        cache: Optional[FingerprintCache[AnalysisRecord]] = None,
        settings: Optional[Settings] = None,
        notifier: Optional[NotificationSink] = None,
        strategies: Optional[List[AnalysisStrategy]] = None,
        probe: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.settings = settings or get_settings()
        if cache is None:
            cache = FingerprintCache(
                default_ttl=self.settings.cache_ttl_seconds,
                max_entries=self.settings.cache_max_entries,
            )
        self.cache = cache
        self.notifier = notifier or LoggingNotificationSink()
        self.enhanced = PipelineExecutor(llm, self.settings)
        self.legacy = LegacyStrategy(llm, self.settings)
        self.strategies: List[AnalysisStrategy] = (
            strategies if strategies is not None else [self.enhanced, self.legacy]
        )
        self.grounding = ConversationalGrounding(llm, self.settings)
        self._probe = probe or llm.ping

        self._inflight: Dict[str, asyncio.Task] = {}
        self._waiters: Dict[str, int] = {}
        self._session_fingerprints: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def analyze(
        self,
        case_text: str,
        fingerprint: str,
        session_id: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> AnalysisArtifact:
        # A cache hit still moves the session, so its older run is abandoned.
        if session_id is not None:
            self._supersede(session_id, fingerprint)

        record = self.cache.get(fingerprint)
        if record is not None:
            logger.debug("Cache hit for %s", fingerprint)
            return record.artifact

        task = self._inflight.get(fingerprint)
        if task is None:
            task = asyncio.create_task(self._run(case_text, fingerprint, session_id, progress))
            self._inflight[fingerprint] = task
            task.add_done_callback(partial(self._forget, fingerprint))
        else:
            logger.info("Analysis for %s already in flight; joining it", fingerprint)

        self._waiters[fingerprint] = self._waiters.get(fingerprint, 0) + 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                logger.info("Analysis for %s was superseded", fingerprint)
                return superseded_artifact()
            # The caller went away: stop the run if nobody else is waiting.
            if self._waiters.get(fingerprint, 0) <= 1:
                task.cancel()
            raise
        finally:
            remaining = self._waiters.get(fingerprint, 1) - 1
            if remaining > 0:
                self._waiters[fingerprint] = remaining
            else:
                self._waiters.pop(fingerprint, None)

    async def answer(
        self,
        question: str,
        fingerprint: str,
        history: List[ChatTurn],
        case_text: str = "",
    ) -> GroundedAnswer:
        """
        Answer a follow-up question against the cached analysis for
        `fingerprint` (or an empty one if nothing is cached yet). Any
        returned state delta is merged into the cached record.
        """
        record = self.cache.get(fingerprint)
        state = record.state if record is not None else ReasoningState(case_text=case_text)

        result = await self.grounding.answer(question, state, history)
        if result.state_delta is not None:
            self.merge_delta(fingerprint, result.state_delta)
        return result

    def merge_delta(
        self, fingerprint: str, delta: PartialReasoningState
    ) -> Optional[AnalysisArtifact]:
        record = self.cache.get(fingerprint)
        if record is None:
            return None
        record.state.apply(delta)
        record.artifact = normalize(record.state, source=record.artifact.source)
        self.cache.set(fingerprint, record, ttl=self.settings.cache_ttl_seconds)
        return record.artifact

    def is_cached(self, fingerprint: str) -> bool:
        return self.cache.contains(fingerprint)

    def invalidate(self, fingerprint: str) -> bool:
        return self.cache.invalidate(fingerprint)

    def cancel(self, fingerprint: str) -> bool:
        """
        Cancel the in-flight run for `fingerprint`, if any.
        """
        task = self._inflight.get(fingerprint)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def end_session(self, session_id: str) -> bool:
        """
        Forget `session_id`. Its run is cancelled unless another session
        still wants the same fingerprint. Cached results are kept.
        """
        fingerprint = self._session_fingerprints.pop(session_id, None)
        if fingerprint is None:
            return False
        if fingerprint not in self._session_fingerprints.values():
            self.cancel(fingerprint)
        logger.debug("Session %s ended", session_id)
        return True

    def sweep_cache(self) -> int:
        return self.cache.sweep()

    async def run_cache_sweeper(self, interval: Optional[float] = None) -> None:
        """
        Periodically drop expired cache entries. Runs until cancelled.
        """
        interval = interval or self.settings.cache_sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            self.sweep_cache()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(
        self,
        case_text: str,
        fingerprint: str,
        session_id: Optional[str],
        progress: Optional[ProgressCallback],
    ) -> AnalysisArtifact:
        last_error: Optional[Exception] = None

        for strategy in self.strategies:
            if getattr(strategy, "requires_probe", False) and not await self._backend_available():
                continue

            try:
                result = await asyncio.wait_for(
                    strategy.execute(case_text, progress=progress),
                    timeout=self.settings.analysis_timeout,
                )
            except asyncio.TimeoutError:
                last_error = TransportError(
                    f"{strategy.name} analysis timed out after {self.settings.analysis_timeout}s"
                )
                logger.warning("%s; falling back", last_error)
                continue
            except Exception as e:
                severity, source = classify_error(e)
                logger.warning(
                    "%s strategy failed (%s/%s): %s; falling back",
                    strategy.name,
                    severity.value,
                    source.value,
                    e,
                )
                last_error = e
                continue

            if self._acceptable(result):
                artifact = normalize(result.state, result.error, source=strategy.name)
                self._store(fingerprint, session_id, AnalysisRecord(result.state, artifact))
                return artifact

            last_error = result.error
            logger.warning("%s strategy produced no usable result: %s", strategy.name, result.error)

        reason = str(last_error) if last_error is not None else "no analysis strategy available"
        logger.error("All analysis strategies failed for %s: %s", fingerprint, reason)
        self.notifier.notify(f"Clinical analysis failed: {reason}", ErrorSeverity.ERROR)
        return failure_artifact(reason)

    async def _backend_available(self) -> bool:
        if not self.settings.enhanced_analysis_enabled:
            return False
        try:
            await asyncio.wait_for(self._probe(), timeout=self.settings.probe_timeout)
            return True
        except asyncio.TimeoutError:
            error = BackendUnavailableError(
                f"availability probe timed out after {self.settings.probe_timeout}s"
            )
        except Exception as e:
            error = BackendUnavailableError(f"availability probe failed: {e}")
        logger.info("Staged backend unavailable (%s); using fallback", error)
        return False

    @staticmethod
    def _acceptable(result: StrategyResult) -> bool:
        """
        Clean results are kept, and so are stage-level failures that got
        at least one stage done (the UI shows how far the run got).
        """
        if not result.state.is_populated():
            return False
        return result.error is None or isinstance(result.error, StageError)

    def _store(self, fingerprint: str, session_id: Optional[str], record: AnalysisRecord) -> None:
        if session_id is not None and fingerprint not in self._session_fingerprints.values():
            logger.info("Discarding result for superseded fingerprint %s", fingerprint)
            return
        self.cache.set(fingerprint, record, ttl=self.settings.cache_ttl_seconds)

    def _supersede(self, session_id: str, fingerprint: str) -> None:
        previous = self._session_fingerprints.get(session_id)
        self._session_fingerprints[session_id] = fingerprint
        if previous is None or previous == fingerprint:
            return
        if previous in self._session_fingerprints.values():
            # Another session still wants that run.
            return
        if self.cancel(previous):
            logger.info("Session %s moved to %s; cancelled run for %s", session_id, fingerprint, previous)

    def _forget(self, fingerprint: str, task: asyncio.Task) -> None:
        if self._inflight.get(fingerprint) is task:
            del self._inflight[fingerprint]
