"""Work order backend access."""

from .client import WorkOrderBackend, BackendError
from .schemas import WorkOrderStartResponse, FeedbackResponse, StepInfo, Progress, CompletionSummary

__all__ = [
    "WorkOrderBackend",
    "BackendError",
    "WorkOrderStartResponse",
    "FeedbackResponse",
    "StepInfo",
    "Progress",
    "CompletionSummary",
]
