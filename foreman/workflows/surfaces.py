"""
Conversation Surfaces - Chat widget and work order modal

ChatWidget is the global assistant. It answers questions and hands work
order commands over to the modal. WorkOrderModal runs one work order in
place and speaks every answer.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from ..api.client import BackendError
from ..core.events import SurfaceClosed, WorkOrderActionRequested
from ..intents.models import ClassifiedTranscript, IntentKind
from ..outputs.timeline import Message
from . import formatting
from .orchestrator import VoiceOrchestrator
from .work_order import StepOutcome, WorkflowError

logger = logging.getLogger(__name__)

Navigator = Callable[[str, str], Union[None, Awaitable[Any]]]

HISTORY_UNAVAILABLE_TEXT = "Feedback history is available for resumed work orders only."
HISTORY_FAILED_TEXT = "Failed to load feedback history. Please try again."


class ChatWidget(VoiceOrchestrator):
    """
    Global assistant surface.

    Keeps listening for the wake phrase while closed; hearing it opens the
    widget and starts voice input. Answers are spoken only for voice input.
    """

    surface_name = "chat_widget"
    speaks_typed_input = False
    auto_close = True

    def __init__(self, *args, navigator: Optional[Navigator] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.navigator = navigator
        self.suspended = False
        self._greeted = False
        self._subscriptions.add(self.events.subscribe(self._on_surface_closed, SurfaceClosed))

    def can_listen_passively(self) -> bool:
        return (not self.is_destroyed and not self.suspended and not self._voice_blocked
                and self.config.wake_word.enabled)

    async def open(self) -> None:
        await super().open()
        if self.is_open and not self._greeted:
            self.timeline.add_bot(self.config.greeting)
            self._greeted = True

    async def close(self) -> None:
        was_open = self.is_open
        await super().close()
        if was_open:
            # The wake phrase can still reopen the widget
            await self.resume_passive_listening()

    async def _on_wake(self) -> None:
        if not self.is_open:
            await self.open()
        await super()._on_wake()

    async def handle_work_order_action(self, classified: ClassifiedTranscript, is_voice: bool) -> None:
        work_order_id = classified.work_order_id
        action = classified.kind.value
        self.logger.info(f"Handing {action} {work_order_id} over to the work order view")

        self.suspended = True
        await self.close()

        self.events.publish(WorkOrderActionRequested(
            work_order_id=work_order_id, action=action, is_voice=is_voice
        ))
        self._tasks.call(self.navigator, work_order_id, action)

    async def _on_surface_closed(self, event: SurfaceClosed) -> None:
        if event.surface == self.surface_name or self.is_destroyed:
            return
        await asyncio.sleep(self.config.recognition.resume_delay_seconds)
        self.suspended = False
        if not self.controller.is_recognizing:
            await self.resume_passive_listening()


class WorkOrderModal(VoiceOrchestrator):
    """
    Work order surface opened for one work order and action.

    Closing it clears the session and lets the widget resume listening.
    """

    surface_name = "work_order_modal"
    speaks_typed_input = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.work_order_id: Optional[str] = None

    async def open_for(self, work_order_id: str, action: IntentKind = IntentKind.START,
                       is_voice: bool = False) -> Optional[StepOutcome]:
        """Open the modal and run the action for the work order"""
        if self.is_destroyed:
            return None
        if self.is_open:
            await self.close()

        self.work_order_id = work_order_id
        self.timeline.clear()
        self.workflow.clear()
        await self.controller.stop_all()
        await super().open()

        self.is_processing = True
        try:
            outcome = await self.run_workflow_action(work_order_id, action, is_voice)
        finally:
            self.is_processing = False
        await self._after_turn()
        return outcome

    async def handle_work_order_action(self, classified: ClassifiedTranscript, is_voice: bool) -> None:
        self.work_order_id = classified.work_order_id
        await self.run_workflow_action(classified.work_order_id, classified.kind, is_voice)

    async def show_feedback_history(self) -> Optional[Message]:
        """Add the backend's feedback record for the resumed work order to the timeline"""
        if self.is_destroyed:
            return None
        self.reset_activity()
        try:
            history = await self.workflow.feedback_history()
        except WorkflowError:
            return self.timeline.add_bot(HISTORY_UNAVAILABLE_TEXT)
        except BackendError as e:
            self.logger.error(f"Feedback history failed: {e}")
            return self.timeline.add_bot(HISTORY_FAILED_TEXT)
        if self.is_destroyed:
            return None
        return self.timeline.add_bot(formatting.format_feedback_history(self.work_order_id, history))

    async def close(self) -> None:
        if not self.is_open:
            return
        await super().close()
        self.workflow.clear()
        self.events.publish(SurfaceClosed(surface=self.surface_name))
