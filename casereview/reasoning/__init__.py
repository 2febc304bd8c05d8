# casereview/reasoning/__init__.py
from .stages import Stage, STAGE_ORDER
from .state import ChatTurn, PartialReasoningState, ReasoningState, Speaker, StrategyResult
from .schema import (
    AnalysisArtifact,
    ConfidenceTier,
    Diagnosis,
    Priority,
    Recommendation,
    ThoughtStatus,
    ThoughtStep,
)
from .router import next_stage
from .pipeline import PipelineExecutor
from .legacy import LegacyStrategy
from .normalizer import normalize
from .grounding import ConversationalGrounding, GroundedAnswer

__all__ = [
    "Stage",
    "STAGE_ORDER",
    "ChatTurn",
    "PartialReasoningState",
    "ReasoningState",
    "Speaker",
    "StrategyResult",
    "AnalysisArtifact",
    "ConfidenceTier",
    "Diagnosis",
    "Priority",
    "Recommendation",
    "ThoughtStatus",
    "ThoughtStep",
    "next_stage",
    "PipelineExecutor",
    "LegacyStrategy",
    "normalize",
    "ConversationalGrounding",
    "GroundedAnswer",
]
