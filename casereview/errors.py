# casereview/errors.py
"""
Error taxonomy for the reasoning engine.

Every engine error carries a severity and a source so the orchestration
controller and the notification sink can report it without inspecting
its concrete type.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorSource(str, Enum):
    API = "api"
    AI = "ai"
    ENGINE = "engine"
    UNKNOWN = "unknown"


class ReasoningError(Exception):
    """
    Base class for all errors raised by the engine.
    """

    default_severity = ErrorSeverity.ERROR
    default_source = ErrorSource.ENGINE

    def __init__(
        self,
        message: str,
        severity: Optional[ErrorSeverity] = None,
        source: Optional[ErrorSource] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity or self.default_severity
        self.source = source or self.default_source
        self.context: Dict[str, Any] = context or {}

    def to_error_data(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "source": self.source.value,
            "context": dict(self.context),
        }


class TransportError(ReasoningError):
    """
    The completion endpoint could not be reached or answered with an HTTP error.
    Warning on the first failure, Error once failures repeat.
    """

    default_severity = ErrorSeverity.WARNING
    default_source = ErrorSource.API

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        repeated: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        severity = ErrorSeverity.ERROR if repeated else ErrorSeverity.WARNING
        ctx = dict(context or {})
        ctx["status_code"] = status_code
        super().__init__(message, severity=severity, context=ctx)
        self.status_code = status_code
        self.repeated = repeated


class StageError(ReasoningError):
    """
    A single pipeline stage failed. Recovered by the pipeline executor.
    """

    default_severity = ErrorSeverity.WARNING
    default_source = ErrorSource.AI

    def __init__(self, message: str, stage: str, context: Optional[Dict[str, Any]] = None):
        ctx = dict(context or {})
        ctx["stage"] = stage
        super().__init__(message, context=ctx)
        self.stage = stage


class StageParseError(StageError):
    def __init__(self, stage: str, raw_response: Any, reason: str = "could not parse stage response"):
        super().__init__(
            f"[{stage}] {reason}",
            stage=stage,
            context={"raw_response": raw_response},
        )
        self.raw_response = raw_response


class IncompleteStageError(StageError):
    def __init__(self, stage: str):
        super().__init__(f"[{stage}] stage produced only blank entries", stage=stage)


class LegacyParseError(ReasoningError):
    default_severity = ErrorSeverity.ERROR
    default_source = ErrorSource.AI

    def __init__(self, message: str, raw_response: Any = None):
        super().__init__(message, context={"raw_response": raw_response})
        self.raw_response = raw_response


class BackendUnavailableError(ReasoningError):
    """
    The availability probe failed or timed out. Triggers fallback only.
    """

    default_severity = ErrorSeverity.INFO
    default_source = ErrorSource.API


def classify_error(exc: BaseException) -> Tuple[ErrorSeverity, ErrorSource]:
    """
    Map any exception onto (severity, source) for reporting.
    """
    if isinstance(exc, ReasoningError):
        return exc.severity, exc.source
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorSeverity.WARNING, ErrorSource.API
    if isinstance(exc, (ValueError, KeyError, TypeError)):
        return ErrorSeverity.ERROR, ErrorSource.ENGINE
    return ErrorSeverity.ERROR, ErrorSource.UNKNOWN
