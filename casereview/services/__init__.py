# casereview/services/__init__.py
from .cache import CacheEntry, FingerprintCache
from .notifications import LoggingNotificationSink, NotificationSink
from .orchestrator import AnalysisRecord, OrchestrationController, make_fingerprint

__all__ = [
    "CacheEntry",
    "FingerprintCache",
    "LoggingNotificationSink",
    "NotificationSink",
    "AnalysisRecord",
    "OrchestrationController",
    "make_fingerprint",
]
