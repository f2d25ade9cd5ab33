"""
Work Order Workflow - Step-by-step progression through a work order

States:

    NO_SESSION -> STARTING -> STEP_ACTIVE -> SUBMITTING -> STEP_ACTIVE | COMPLETE
                     |                          |
                     +-> ERRORED                +-> STEP_ACTIVE (backend error)

Every backend call goes through the single-flight registry, and the
transition for a response is applied inside the shared call, so callers
that coalesce onto it observe one transition. A response is applied only
if the session and step it was submitted for are still current; anything
else is stale and dropped.
"""

import dataclasses
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from ..api.client import BackendError, WorkOrderBackend
from ..api.schemas import FeedbackResponse, WorkOrderStartResponse
from ..core.events import (
    EventBus, SessionStarted, StepAdvanced, WorkflowCompleted,
    SessionCleared, WorkflowFailed
)
from ..core.single_flight import SingleFlightRegistry, feedback_key, work_order_key
from ..outputs.timeline import FeedbackPolarity, Message, Timeline
from . import formatting

logger = logging.getLogger(__name__)

_generations = itertools.count(1)


class WorkflowError(Exception):
    """Workflow used in a way its state does not allow"""
    pass


class WorkflowState(Enum):
    NO_SESSION = "no_session"
    STARTING = "starting"
    STEP_ACTIVE = "step_active"
    SUBMITTING = "submitting"
    COMPLETE = "complete"
    ERRORED = "errored"


class SessionOrigin(Enum):
    FRESH = "fresh"
    RESUMED = "resumed"


class WorkOrderAction(Enum):
    START = "start"
    RESUME = "resume"
    RESTART = "restart"

    @property
    def gerund(self) -> str:
        return {"start": "starting", "resume": "resuming", "restart": "restarting"}[self.value]


class OutcomeKind(Enum):
    STARTED = "started"
    NEXT_STEP = "next_step"
    COMPLETE = "complete"
    ACKNOWLEDGED = "acknowledged"   # feedback accepted, no step change
    ERROR = "error"
    REJECTED = "rejected"           # refused locally, nothing was sent
    DISCARDED = "discarded"         # response arrived for a stale session or step


@dataclass
class WorkOrderSession:
    """Server-tracked engagement with one work order"""
    session_id: str
    work_order_id: str
    origin: SessionOrigin
    current_step_number: int = 1
    current_step_id: Optional[int] = None
    backend_work_order_id: Optional[int] = None
    step_addressed: bool = False
    generation: int = field(default_factory=lambda: next(_generations))
    completed: bool = False
    step_ids: Dict[int, int] = field(default_factory=dict)

    def remember_step_id(self, step_number: int, step_id: Optional[int]) -> None:
        if step_id is not None:
            self.step_ids[step_number] = step_id
            if step_number == self.current_step_number:
                self.current_step_id = step_id


@dataclass(frozen=True)
class StepOutcome:
    """What a workflow operation did"""
    kind: OutcomeKind
    message: Optional[Message] = None
    speech_text: Optional[str] = None
    error: Optional[str] = None
    coalesced: bool = False

    @property
    def applied(self) -> bool:
        return self.kind in (OutcomeKind.STARTED, OutcomeKind.NEXT_STEP, OutcomeKind.COMPLETE)


class WorkOrderWorkflow:
    """
    Session and step state machine for one surface.

    Features:
    - start, resume and restart of a work order
    - proceed (positive step feedback) and per-message feedback
    - coalescing of identical calls through the shared registry
    - stale response guard keyed on session generation and step
    """

    def __init__(
        self,
        backend: WorkOrderBackend,
        timeline: Timeline,
        registry: SingleFlightRegistry,
        events: EventBus,
        user_id: int = 1,
        time_spent_hours: float = 0.5
    ):
        self.backend = backend
        self.timeline = timeline
        self.registry = registry
        self.events = events
        self.user_id = user_id
        self.time_spent_hours = time_spent_hours

        self.state = WorkflowState.NO_SESSION
        self.session: Optional[WorkOrderSession] = None
        self._epoch = 0
        self._detached = False

    @property
    def session_active(self) -> bool:
        return (
            self.session is not None
            and not self.session.completed
            and self.state in (WorkflowState.STEP_ACTIVE, WorkflowState.SUBMITTING)
        )

    @property
    def current_step_number(self) -> Optional[int]:
        return self.session.current_step_number if self.session else None

    def _set_state(self, state: WorkflowState) -> None:
        if state is not self.state:
            logger.debug(f"Workflow state {self.state.value} -> {state.value}")
            self.state = state

    # ============================================================
    # SESSION LIFECYCLE
    # ============================================================

    async def start(self, work_order_id: str, input_type: str = "text") -> StepOutcome:
        return await self.begin(work_order_id, WorkOrderAction.START, input_type)

    async def resume(self, work_order_id: str) -> StepOutcome:
        return await self.begin(work_order_id, WorkOrderAction.RESUME)

    async def restart(self, work_order_id: str) -> StepOutcome:
        return await self.begin(work_order_id, WorkOrderAction.RESTART)

    async def begin(self, work_order_id: str, action: WorkOrderAction, input_type: str = "text") -> StepOutcome:
        """
        Create a session for the work order.

        Restart discards the local session before contacting the server.
        """
        if self._detached:
            raise WorkflowError("Workflow is detached from its surface")

        key = work_order_key(work_order_id, self.user_id, action.value)
        joined = self.registry.in_flight(key)

        if not joined:
            if action is WorkOrderAction.RESTART:
                self.clear()
            self._set_state(WorkflowState.STARTING)

        epoch = self._epoch
        outcome = await self.registry.acquire(
            key, lambda: self._run_begin(work_order_id, action, input_type, epoch)
        )
        return dataclasses.replace(outcome, coalesced=True) if joined else outcome

    async def _run_begin(self, work_order_id: str, action: WorkOrderAction,
                         input_type: str, epoch: int) -> StepOutcome:
        had_session = self.session is not None and not self.session.completed
        logger.info(f"Work order {work_order_id}: {action.value}")

        try:
            if action is WorkOrderAction.START:
                response = await self.backend.start_work_order(work_order_id, self.user_id, input_type)
            elif action is WorkOrderAction.RESUME:
                response = await self.backend.resume_work_order(work_order_id, self.user_id)
            else:
                response = await self.backend.restart_work_order(work_order_id, self.user_id)
        except BackendError as e:
            logger.error(f"Failed to {action.value} work order {work_order_id}: {e}")
            return self._begin_failed(work_order_id, action, epoch, had_session, str(e),
                                      f"Failed to {action.value} work order. Please try again.")

        if self._detached or epoch != self._epoch:
            logger.info(f"Discarding {action.value} response for {work_order_id}, session changed meanwhile")
            return StepOutcome(OutcomeKind.DISCARDED)

        if response.is_error or not response.session_id:
            reason = response.message or "no session was created"
            logger.warning(f"Backend refused to {action.value} {work_order_id}: {reason}")
            return self._begin_failed(work_order_id, action, epoch, had_session, reason,
                                      f"Error {action.gerund} work order: {reason}")

        return self._apply_begin(work_order_id, action, response)

    def _begin_failed(self, work_order_id: str, action: WorkOrderAction, epoch: int,
                      had_session: bool, error: str, text: str) -> StepOutcome:
        if self._detached or epoch != self._epoch:
            return StepOutcome(OutcomeKind.DISCARDED, error=error)

        self._set_state(WorkflowState.STEP_ACTIVE if had_session else WorkflowState.ERRORED)
        message = self.timeline.add_bot(text)
        self.events.publish(WorkflowFailed(work_order_id=work_order_id, action=action.value, error=error))
        return StepOutcome(OutcomeKind.ERROR, message=message, error=error)

    def _apply_begin(self, work_order_id: str, action: WorkOrderAction,
                     response: WorkOrderStartResponse) -> StepOutcome:
        step = response.current_step
        if action is WorkOrderAction.RESTART:
            step_number = 1
        else:
            step_number = (step.step_number if step and step.step_number else None) or 1

        origin = SessionOrigin.RESUMED if action is WorkOrderAction.RESUME else SessionOrigin.FRESH
        backend_id = response.work_order.id if response.work_order else None
        step_id = step.id if step else None

        previous = self.session
        if previous is not None:
            self.events.publish(SessionCleared(session_id=previous.session_id,
                                               work_order_id=previous.work_order_id))

        session = WorkOrderSession(
            session_id=response.session_id,
            work_order_id=work_order_id,
            origin=origin,
            current_step_number=step_number,
            backend_work_order_id=backend_id,
            step_addressed=origin is SessionOrigin.RESUMED and backend_id is not None and step_id is not None,
        )
        session.remember_step_id(step_number, step_id)
        self.session = session
        self._epoch += 1

        if action is WorkOrderAction.START:
            text = formatting.format_start(work_order_id, response)
        elif action is WorkOrderAction.RESUME:
            text = formatting.format_resume(work_order_id, response)
        else:
            text = formatting.format_restart(work_order_id, response)

        message = self.timeline.add_bot(text, session_id=session.session_id, step_number=step_number)
        self._set_state(WorkflowState.STEP_ACTIVE)
        self.events.publish(SessionStarted(
            session_id=session.session_id,
            work_order_id=work_order_id,
            origin=origin.value,
            step_number=step_number,
        ))
        logger.info(f"Work order {work_order_id} session {session.session_id} at step {step_number} ({origin.value})")
        return StepOutcome(OutcomeKind.STARTED, message=message, speech_text=text)

    def clear(self) -> None:
        """Forget the current session"""
        session = self.session
        self.session = None
        self._epoch += 1
        self._set_state(WorkflowState.NO_SESSION)
        if session is not None:
            logger.info(f"Cleared session {session.session_id} for {session.work_order_id}")
            self.events.publish(SessionCleared(session_id=session.session_id,
                                               work_order_id=session.work_order_id))

    def detach(self) -> None:
        """The owning surface is gone; results that arrive later are dropped"""
        self._detached = True

    # ============================================================
    # FEEDBACK
    # ============================================================

    async def proceed(self, notes: str = "",
                      polarity: FeedbackPolarity = FeedbackPolarity.POSITIVE) -> StepOutcome:
        """Report the current step as done and move on"""
        session = self.session
        if not self.session_active:
            reason = "Work order is already complete" if session and session.completed else "No active work order"
            logger.info(f"Proceed rejected: {reason}")
            return StepOutcome(OutcomeKind.REJECTED, error=reason)

        step_number = session.current_step_number
        key = feedback_key(session.session_id, session.generation, step_number)
        return await self._submit(key, session, step_number, polarity, notes, None,
                                  "Failed to proceed. Please try again.")

    async def submit_message_feedback(self, message: Message, polarity: FeedbackPolarity,
                                      notes: str = "") -> StepOutcome:
        """Rate a step message; on next_step/complete this advances like proceed"""
        if message.session_id is None or message.step_number is None:
            logger.warning(f"Feedback rejected, message {message.id} has no session or step")
            return StepOutcome(OutcomeKind.REJECTED, error="Message is not a work order step")

        if message.feedback is not None:
            logger.warning(f"Feedback already given for message {message.id}: {message.feedback.value}")
            return StepOutcome(OutcomeKind.REJECTED, error="Feedback already submitted")

        # The same rating joins the call in flight; the opposite one is refused
        if message.pending_feedback is not None and message.pending_feedback is not polarity:
            logger.warning(f"Feedback for message {message.id} is already being submitted")
            return StepOutcome(OutcomeKind.REJECTED, error="Feedback already in progress")

        session = self.session
        if session is None or session.session_id != message.session_id or session.completed:
            logger.warning(f"Feedback rejected, session {message.session_id} is no longer active")
            return StepOutcome(OutcomeKind.REJECTED, error="Session is no longer active")

        if session.step_addressed and message.step_number not in session.step_ids:
            return StepOutcome(OutcomeKind.REJECTED, error="Step id unknown for this message")

        key = feedback_key(session.session_id, session.generation, message.step_number, polarity.value)
        message.pending_feedback = polarity
        try:
            return await self._submit(key, session, message.step_number, polarity, notes, message,
                                      "Failed to submit feedback. Please try again.")
        finally:
            message.pending_feedback = None

    async def _submit(self, key: str, session: WorkOrderSession, step_number: int,
                      polarity: FeedbackPolarity, notes: str, message: Optional[Message],
                      failure_text: str) -> StepOutcome:
        if self._detached:
            raise WorkflowError("Workflow is detached from its surface")

        joined = self.registry.in_flight(key)
        outcome = await self.registry.acquire(
            key, lambda: self._run_feedback(session, step_number, polarity, notes, message, failure_text)
        )
        return dataclasses.replace(outcome, coalesced=True) if joined else outcome

    def _is_current(self, session: WorkOrderSession, step_number: int) -> bool:
        return (
            not self._detached
            and self.session is session
            and not session.completed
            and session.current_step_number == step_number
        )

    async def _run_feedback(self, session: WorkOrderSession, step_number: int,
                            polarity: FeedbackPolarity, notes: str, message: Optional[Message],
                            failure_text: str) -> StepOutcome:
        if self._is_current(session, step_number):
            self._set_state(WorkflowState.SUBMITTING)

        try:
            response = await self._send_feedback(session, step_number, polarity, notes)
        except BackendError as e:
            logger.error(f"Feedback for {session.session_id} step {step_number} failed: {e}")
            if self._is_current(session, step_number):
                self._set_state(WorkflowState.STEP_ACTIVE)
            if self._detached or self.session is not session:
                return StepOutcome(OutcomeKind.DISCARDED, error=str(e))
            error_message = self.timeline.add_bot(failure_text)
            self.events.publish(WorkflowFailed(work_order_id=session.work_order_id,
                                               action="feedback", error=str(e)))
            return StepOutcome(OutcomeKind.ERROR, message=error_message, error=str(e))

        if self._detached or self.session is not session:
            logger.info(f"Discarding feedback response for {session.session_id}, session changed meanwhile")
            return StepOutcome(OutcomeKind.DISCARDED)

        if message is not None and message.feedback is None:
            message.feedback = polarity

        if not self._is_current(session, step_number):
            # Another submission for this step already advanced the session
            logger.info(f"Stale feedback response for step {step_number}, "
                        f"session is at step {session.current_step_number}")
            return StepOutcome(OutcomeKind.DISCARDED)

        if response.is_complete:
            return self._apply_complete(session, step_number, response)
        if response.is_next_step:
            return self._apply_next_step(session, step_number, response)

        self._set_state(WorkflowState.STEP_ACTIVE)
        return StepOutcome(OutcomeKind.ACKNOWLEDGED)

    async def _send_feedback(self, session: WorkOrderSession, step_number: int,
                             polarity: FeedbackPolarity, notes: str) -> FeedbackResponse:
        if session.step_addressed:
            step_id = session.step_ids.get(step_number, session.current_step_id)
            return await self.backend.submit_work_order_feedback(
                session.backend_work_order_id,
                step_id,
                f"{polarity.value} - {notes}",
                self.time_spent_hours,
            )
        return await self.backend.submit_feedback(
            session.session_id, step_number, polarity.value, notes, self.user_id
        )

    def _apply_next_step(self, session: WorkOrderSession, step_number: int,
                         response: FeedbackResponse) -> StepOutcome:
        new_step = step_number + 1
        session.current_step_number = new_step

        step_info = response.next_step if session.step_addressed and response.next_step else response.current_step
        session.remember_step_id(new_step, step_info.id if step_info else None)

        text = formatting.format_next_step(response, step_addressed=session.step_addressed)
        speech = formatting.speech_for_next_step(response, text, step_addressed=session.step_addressed)
        message = self.timeline.add_bot(text, session_id=session.session_id, step_number=new_step)

        self._set_state(WorkflowState.STEP_ACTIVE)
        self.events.publish(StepAdvanced(
            session_id=session.session_id,
            work_order_id=session.work_order_id,
            completed_step=step_number,
            step_number=new_step,
        ))
        logger.info(f"Session {session.session_id} advanced to step {new_step}")
        return StepOutcome(OutcomeKind.NEXT_STEP, message=message, speech_text=speech)

    def _apply_complete(self, session: WorkOrderSession, step_number: int,
                        response: FeedbackResponse) -> StepOutcome:
        session.completed = True
        text = formatting.format_completion(response)
        message = self.timeline.add_bot(text)

        self._set_state(WorkflowState.COMPLETE)
        self.events.publish(WorkflowCompleted(
            session_id=session.session_id,
            work_order_id=session.work_order_id,
            completed_step=step_number,
        ))
        logger.info(f"Work order {session.work_order_id} completed")
        return StepOutcome(OutcomeKind.COMPLETE, message=message,
                           speech_text=formatting.speech_for_completion(response))

    async def feedback_history(self):
        """Feedback recorded by the backend for the current resumed work order"""
        session = self.session
        if session is None or session.backend_work_order_id is None:
            raise WorkflowError("No work order with a backend id is active")
        return await self.backend.get_feedback_history(session.backend_work_order_id)
