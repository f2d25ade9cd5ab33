"""Work order workflow and the conversation surfaces built on it."""

from .work_order import (
    WorkOrderWorkflow, WorkOrderSession, WorkflowState, WorkflowError,
    SessionOrigin, WorkOrderAction, OutcomeKind, StepOutcome
)
from .orchestrator import VoiceOrchestrator
from .surfaces import ChatWidget, WorkOrderModal

__all__ = [
    "WorkOrderWorkflow",
    "WorkOrderSession",
    "WorkflowState",
    "WorkflowError",
    "SessionOrigin",
    "WorkOrderAction",
    "OutcomeKind",
    "StepOutcome",
    "VoiceOrchestrator",
    "ChatWidget",
    "WorkOrderModal",
]
