# casereview/reasoning/router.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from casereview.reasoning.stages import Stage, STAGE_ORDER

if TYPE_CHECKING:
    from casereview.reasoning.state import ReasoningState

logger = logging.getLogger(__name__)


def next_stage(state: "ReasoningState") -> Stage:
    """
    Return the earliest stage whose output is still empty, or Stage.DONE.

    Pure function of the state. Traversal is forward-only: a stage whose
    array is populated is never rerun.
    """
    for stage in STAGE_ORDER:
        if not state.items_for(stage):
            return stage
    return Stage.DONE


def is_consistent(state: "ReasoningState") -> bool:
    """
    A later stage may only be populated if every earlier one is.
    """
    seen_empty = False
    for stage in STAGE_ORDER:
        populated = bool(state.items_for(stage))
        if populated and seen_empty:
            return False
        if not populated:
            seen_empty = True
    return True


def route(state: "ReasoningState") -> Stage:
    """
    next_stage, logging when stage ordering was broken from outside.
    The run then restarts from the earliest empty stage.
    """
    if not is_consistent(state):
        logger.warning(
            "Inconsistent reasoning state; restarting from earliest empty stage"
        )
    return next_stage(state)
