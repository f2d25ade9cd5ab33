"""
Voice Orchestrator - One conversation surface driven by voice and text

Takes a final transcript from any source (wake word command, active
recognition, typed input) through one pipeline:

1. duplicate suppression
2. classification
3. work order action, proceed, or general question
4. timeline update and spoken answer
5. passive listening resumes unless the surface is closed or recognition runs
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..api.client import BackendError, WorkOrderBackend
from ..config.models import CoreConfig
from ..core.events import EventBus, SubscriptionGroup
from ..core.single_flight import SingleFlightRegistry, query_key
from ..core.tasks import BackgroundTasks
from ..core.timers import ActivityTimer
from ..intents.classifier import TranscriptClassifier
from ..intents.models import ClassifiedTranscript, IntentKind
from ..outputs.speech import SpeechOutput
from ..outputs.timeline import FeedbackPolarity, Message, Timeline
from ..voice.controller import VoiceInputController
from ..voice.recognition import ErrorAction, RecognitionFailure
from .work_order import OutcomeKind, StepOutcome, WorkOrderWorkflow

logger = logging.getLogger(__name__)

QUERY_FAILED_TEXT = "Failed to get response. Please try again."


class VoiceOrchestrator(ABC):
    """
    Base class for the chat widget and the work order modal.

    Subclasses decide what a work order command does on their surface and
    when answers are spoken.
    """

    surface_name = "surface"
    speaks_typed_input = True
    auto_close = False

    def __init__(
        self,
        config: CoreConfig,
        controller: VoiceInputController,
        backend: WorkOrderBackend,
        registry: SingleFlightRegistry,
        events: EventBus,
        speech: SpeechOutput,
        classifier: Optional[TranscriptClassifier] = None
    ):
        self.config = config
        self.controller = controller
        self.backend = backend
        self.registry = registry
        self.events = events
        self.speech = speech
        self.classifier = classifier or TranscriptClassifier()

        self.timeline = Timeline()
        self.workflow = WorkOrderWorkflow(
            backend, self.timeline, registry, events,
            user_id=config.backend.user_id,
            time_spent_hours=config.backend.resumed_time_spent_hours,
        )

        self.is_open = False
        self.is_destroyed = False
        self.is_recording = False
        self.is_processing = False
        self.is_user_typing = False
        self.is_voice_playing = False
        self.is_feedback_in_progress = False
        self.interim_transcript = ""
        self._voice_blocked = False

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._subscriptions = SubscriptionGroup()
        self._tasks = BackgroundTasks(self.surface_name)
        self.activity_timer = ActivityTimer(
            config.activity.auto_close_delay_seconds,
            on_expire=self._on_inactive,
            is_busy=self.is_busy,
            name=f"{self.surface_name}_inactivity",
        )

    # ============================================================
    # STATE
    # ============================================================

    def is_busy(self) -> bool:
        return (
            self.is_recording
            or self.is_processing
            or self.is_user_typing
            or self.is_voice_playing
            or self.is_feedback_in_progress
            or self.speech.is_speaking
        )

    def reset_activity(self) -> None:
        if self.is_open and self.auto_close and self.config.activity.auto_close_enabled:
            self.activity_timer.reset()

    def on_input_focus(self) -> None:
        self.is_user_typing = True
        self.reset_activity()

    def on_input_blur(self) -> None:
        self.is_user_typing = False
        self.reset_activity()

    async def _on_inactive(self) -> None:
        self.logger.info(f"Closing {self.surface_name} after inactivity")
        await self.close()

    # ============================================================
    # LIFECYCLE
    # ============================================================

    async def open(self) -> None:
        if self.is_destroyed:
            return
        self.is_open = True
        self.reset_activity()
        self.logger.info(f"{self.surface_name} opened")

    async def close(self) -> None:
        if not self.is_open:
            return
        self.is_open = False
        self.activity_timer.clear()
        await self.speech.cancel()
        self.is_voice_playing = False
        await self.controller.stop_all()
        self.is_recording = False
        self.logger.info(f"{self.surface_name} closed")

    async def destroy(self) -> None:
        """Tear down; calls still in flight finish but their results are dropped"""
        if self.is_destroyed:
            return
        self.is_destroyed = True
        self.is_open = False
        self.workflow.detach()
        self._subscriptions.close()
        await self.activity_timer.stop()
        await self._tasks.cancel_all()
        self.logger.info(f"{self.surface_name} destroyed")

    async def drain(self) -> None:
        """Wait for background work started by this surface"""
        await self._tasks.drain()

    # ============================================================
    # PASSIVE LISTENING
    # ============================================================

    def can_listen_passively(self) -> bool:
        return (not self.is_destroyed and self.is_open and not self._voice_blocked
                and self.config.wake_word.enabled)

    async def resume_passive_listening(self) -> bool:
        if not self.can_listen_passively():
            return False
        return await self.controller.start_wake_listening(self._on_wake, self._on_wake_command)

    async def _on_wake(self) -> None:
        self.logger.info("Wake phrase heard, starting voice input")
        await self.start_voice_input()

    async def _on_wake_command(self, transcript: str) -> None:
        await self.handle_transcript(transcript, is_voice=True)

    async def _after_turn(self) -> None:
        if self.controller.is_recognizing:
            return
        await self.resume_passive_listening()

    # ============================================================
    # ACTIVE RECOGNITION
    # ============================================================

    async def start_voice_input(self) -> bool:
        """Explicit user action (button or wake phrase) to start dictation"""
        if self.is_destroyed or not self.is_open:
            return False
        self._voice_blocked = False
        self.reset_activity()
        await self.speech.cancel()

        started = await self.controller.start_recognition(
            on_transcript=self._on_voice_transcript,
            on_failure=self._on_recognition_failure,
            on_stopped=self._on_recognition_stopped,
            on_interim=self._on_interim,
        )
        self.is_recording = started
        if not started and not self.controller.recognition.provider.is_available():
            self.timeline.add_bot("Voice input is not available on this device.")
        return started

    async def stop_voice_input(self) -> None:
        await self.controller.stop_recognition()
        self.is_recording = False
        self.interim_transcript = ""

    async def toggle_voice_input(self) -> bool:
        if self.is_recording or self.controller.is_recognizing:
            await self.stop_voice_input()
            await self._after_turn()
            return False
        return await self.start_voice_input()

    def _on_interim(self, transcript: str) -> None:
        self.interim_transcript = transcript

    async def _on_voice_transcript(self, transcript: str) -> None:
        self.is_recording = False
        self.interim_transcript = ""
        await self.controller.stop_recognition()
        await self.handle_transcript(transcript, is_voice=True)

    async def _on_recognition_failure(self, failure: RecognitionFailure) -> None:
        self.is_recording = False
        if self.is_destroyed:
            return
        if failure.action is ErrorAction.FATAL:
            # Stays off until the user starts voice input again
            self._voice_blocked = True
        self.logger.warning(f"Recognition failed: {failure.kind.value}")
        self.timeline.add_bot(failure.user_message)

    async def _on_recognition_stopped(self, reason: str) -> None:
        self.is_recording = False
        self.interim_transcript = ""
        if not self.is_processing:
            await self._after_turn()

    # ============================================================
    # TURN PIPELINE
    # ============================================================

    async def submit_text(self, text: str) -> None:
        """Typed input"""
        self.is_user_typing = False
        await self.handle_transcript(text, is_voice=False)

    async def handle_transcript(self, text: str, is_voice: bool = False,
                                user_message_added: bool = False) -> None:
        """Run one turn for a final transcript or typed message"""
        text = text.strip()
        if self.is_destroyed or not text:
            return
        self.reset_activity()

        if not self.registry.suppressor.should_process(text):
            self.logger.info(f"Dropped duplicate input: '{text}'")
            await self._after_turn()
            return

        if not user_message_added:
            self.timeline.add_user(text, is_voice=is_voice)

        classified = self.classifier.classify(text, session_active=self.workflow.session_active)
        self.logger.info(f"Input classified as {classified.kind.value}"
                         + (f" {classified.work_order_id}" if classified.work_order_id else ""))

        self.is_processing = True
        try:
            if classified.kind.is_work_order_action:
                await self.handle_work_order_action(classified, is_voice)
            elif classified.kind is IntentKind.PROCEED:
                await self._proceed(text, is_voice)
            else:
                await self._answer_query(text, is_voice)
        finally:
            self.is_processing = False
            self.reset_activity()

        await self._after_turn()

    @abstractmethod
    async def handle_work_order_action(self, classified: ClassifiedTranscript, is_voice: bool) -> None:
        """Start, resume or restart requested on this surface"""
        pass

    async def run_workflow_action(self, work_order_id: str, action: IntentKind,
                                  is_voice: bool = False) -> StepOutcome:
        """Run start, resume or restart on this surface's workflow"""
        if action is IntentKind.RESUME:
            outcome = await self.workflow.resume(work_order_id)
        elif action is IntentKind.RESTART:
            outcome = await self.workflow.restart(work_order_id)
        else:
            outcome = await self.workflow.start(work_order_id, "voice" if is_voice else "text")
        await self._speak_outcome(outcome, is_voice)
        return outcome

    async def _proceed(self, text: str, is_voice: bool) -> StepOutcome:
        self.is_feedback_in_progress = True
        try:
            outcome = await self.workflow.proceed(notes=text)
        finally:
            self.is_feedback_in_progress = False
        await self._speak_outcome(outcome, is_voice)
        return outcome

    async def _answer_query(self, text: str, is_voice: bool) -> None:
        placeholder = self.timeline.add_placeholder()
        try:
            answer = await self.registry.acquire(query_key(text), lambda: self.backend.query_general(text))
        except BackendError as e:
            self.logger.error(f"General query failed: {e}")
            if not self.is_destroyed:
                self.timeline.replace(placeholder.id, QUERY_FAILED_TEXT)
            return

        if self.is_destroyed:
            return
        self.timeline.replace(placeholder.id, answer)
        await self._speak(answer, is_voice)

    async def submit_feedback(self, message: Message, positive: bool, notes: str = "") -> StepOutcome:
        """Thumbs up or down on a timeline message"""
        if self.is_destroyed:
            return StepOutcome(OutcomeKind.REJECTED, error="Surface destroyed")
        polarity = FeedbackPolarity.POSITIVE if positive else FeedbackPolarity.NEGATIVE
        self.reset_activity()
        self.is_feedback_in_progress = True
        try:
            outcome = await self.workflow.submit_message_feedback(message, polarity, notes)
        finally:
            self.is_feedback_in_progress = False
        await self._speak_outcome(outcome, is_voice=False)
        self.reset_activity()
        return outcome

    # ============================================================
    # SPEECH
    # ============================================================

    def should_speak(self, is_voice: bool) -> bool:
        return is_voice or self.speaks_typed_input

    async def _speak_outcome(self, outcome: StepOutcome, is_voice: bool) -> None:
        if outcome.applied and not outcome.coalesced and outcome.speech_text:
            await self._speak(outcome.speech_text, is_voice)

    async def _speak(self, text: str, is_voice: bool) -> None:
        if self.is_destroyed or not self.should_speak(is_voice):
            return
        self.is_voice_playing = True
        try:
            await self.speech.speak(text)
        finally:
            self.is_voice_playing = False
