# casereview/reasoning/pipeline.py
from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Optional

from casereview.config import Settings, get_settings
from casereview.errors import IncompleteStageError, StageError
from casereview.llm import LLMClient
from casereview.reasoning.router import route
from casereview.reasoning.stage_functions import STAGE_FUNCTIONS, StageFunction
from casereview.reasoning.stages import Stage
from casereview.reasoning.state import ReasoningState, StrategyResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ReasoningState], Any]


class PipelineExecutor:
    """
    PipelineExecutor drives the staged ("enhanced") analysis.

    Stages:
      - symptoms
      - criteria
      - diagnoses
      - treatments

    The router picks the next stage from array population; each stage
    makes exactly one completion call and its output is appended to the
    state. A stage-level failure stops the loop and the partial state is
    returned together with the error. There is no stage retry here;
    retrying belongs to the caller at whole-run granularity.
    """

    name = "enhanced"
    requires_probe = True

    def __init__(
        self,
        llm: LLMClient,
        settings: Optional[Settings] = None,
        stage_functions: Optional[Dict[Stage, StageFunction]] = None,
    ):
        self.llm = llm
        self.settings = settings or get_settings()
        self.stage_functions = stage_functions or STAGE_FUNCTIONS

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(
        self,
        case_text: str,
        progress: Optional[ProgressCallback] = None,
    ) -> StrategyResult:
        """
        Run every remaining stage for `case_text`.

        Transport errors are not caught: they are run-level failures and
        belong to the orchestration controller.
        """
        state = ReasoningState(case_text=case_text)
        return await self.resume(state, progress=progress)

    async def resume(
        self,
        state: ReasoningState,
        progress: Optional[ProgressCallback] = None,
    ) -> StrategyResult:
        while True:
            stage = route(state)
            if stage == Stage.DONE:
                return StrategyResult(state=state)

            try:
                update = await self.stage_functions[stage](state, self.llm, self.settings)
            except StageError as e:
                logger.warning("Pipeline stopped at stage %s: %s", stage.value, e)
                return StrategyResult(state=state, error=e)

            state.apply(update)
            if not state.items_for(stage):
                # The stage must populate its own array or the router would loop.
                error = IncompleteStageError(stage.value)
                logger.warning("Pipeline stopped at stage %s: %s", stage.value, error)
                return StrategyResult(state=state, error=error)

            await self._notify(progress, state)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _notify(self, progress: Optional[ProgressCallback], state: ReasoningState) -> None:
        if progress is None:
            return
        result = progress(state.copy())
        if inspect.isawaitable(result):
            await result
