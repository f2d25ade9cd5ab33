"""
End-to-end tests of the conversation surfaces

The whole application is wired with scripted recognizers, a recording TTS
provider and an AsyncMock backend.
"""

import asyncio
import logging

import pytest

from foreman.api.client import BackendError
from foreman.core.app import ForemanApp
from foreman.core.single_flight import get_call_registry, reset_call_registry
from foreman.intents.models import IntentKind
from foreman.outputs.timeline import Message, Sender
from foreman.providers.base import ProviderStatus
from foreman.providers.speech.base import RecognitionErrorKind
from foreman.workflows.orchestrator import QUERY_FAILED_TEXT, VoiceOrchestrator
from foreman.workflows.surfaces import HISTORY_FAILED_TEXT, HISTORY_UNAVAILABLE_TEXT
from foreman.workflows.work_order import OutcomeKind, WorkflowState
from .conftest import start_response, next_step_response


def bot_messages(surface):
    return [m for m in surface.timeline if m.sender is Sender.BOT]


class TestWorkOrderScenarios:
    """Typed work order interaction in the work order view"""

    @pytest.mark.asyncio
    async def test_help_me_fix_starts_work_order(self, app, backend, tts):
        modal = app.modal
        await modal.open()

        await modal.submit_text("help me fix work order 20241008")
        await app.drain()

        backend.start_work_order.assert_awaited_once_with("WO-20241008", 1, "text")
        bots = bot_messages(modal)
        assert len(bots) == 1
        assert bots[0].step_number == 1
        assert bots[0].session_id == "sess-1"
        assert modal.workflow.state is WorkflowState.STEP_ACTIVE
        assert len(tts.spoken) == 1

    @pytest.mark.asyncio
    async def test_proceed_advances_one_step(self, app, backend):
        modal = app.modal
        backend.start_work_order.return_value = start_response(step_number=2)
        await modal.open_for("WO-5")
        assert modal.workflow.current_step_number == 2
        backend.submit_feedback.return_value = next_step_response(3)
        before = len(bot_messages(modal))

        await modal.submit_text("proceed")
        await app.drain()

        assert modal.workflow.current_step_number == 3
        assert len(bot_messages(modal)) == before + 1
        assert bot_messages(modal)[-1].step_number == 3
        backend.query_general.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_command_is_dropped(self, app, backend):
        modal = app.modal
        await modal.open()

        await modal.submit_text("start work order 5")
        messages_after_first = len(modal.timeline)
        await modal.submit_text("start work order 5")
        await app.drain()

        assert len(modal.timeline) == messages_after_first
        assert backend.start_work_order.await_count == 1

    @pytest.mark.asyncio
    async def test_feedback_on_untracked_message_is_rejected(self, app, backend):
        modal = app.modal
        await modal.open_for("WO-5")
        message = Message(text="Hello! How can I help you today?", sender=Sender.BOT)

        outcome = await modal.submit_feedback(message, positive=True)

        assert outcome.kind is OutcomeKind.REJECTED
        backend.submit_feedback.assert_not_awaited()
        backend.submit_work_order_feedback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_feedback_on_step_message(self, app, backend):
        modal = app.modal
        await modal.open_for("WO-5")
        step_message = modal.timeline.trackable()[-1]

        outcome = await modal.submit_feedback(step_message, positive=False, notes="missing part")

        assert outcome.kind is OutcomeKind.NEXT_STEP
        backend.submit_feedback.assert_awaited_once_with("sess-1", 1, "negative", "missing part", 1)
        assert modal.workflow.current_step_number == 2

    @pytest.mark.asyncio
    async def test_proceed_without_session_is_a_question(self, app, backend):
        modal = app.modal
        await modal.open()

        await modal.submit_text("what comes next")
        await app.drain()

        backend.submit_feedback.assert_not_awaited()
        backend.query_general.assert_awaited_once_with("what comes next")

    @pytest.mark.asyncio
    async def test_close_clears_session(self, app):
        modal = app.modal
        await modal.open_for("WO-5")
        await modal.close()
        await app.drain()

        assert modal.workflow.session is None
        assert not modal.is_open

    @pytest.mark.asyncio
    async def test_destroy_discards_in_flight_result(self, app, backend):
        modal = app.modal
        release = asyncio.Event()

        async def slow_start(*args):
            await release.wait()
            return start_response()

        backend.start_work_order.side_effect = slow_start
        await modal.open()
        pending = asyncio.ensure_future(modal.submit_text("start work order 5"))
        await asyncio.sleep(0.01)

        await modal.destroy()
        release.set()
        await pending

        assert bot_messages(modal) == []
        assert modal.workflow.session is None

    @pytest.mark.asyncio
    async def test_history_needs_resumed_work_order(self, app, backend):
        modal = app.modal
        await modal.open_for("WO-5")

        message = await modal.show_feedback_history()

        assert message.text == HISTORY_UNAVAILABLE_TEXT
        backend.get_feedback_history.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_failure_shows_apology(self, app, backend):
        modal = app.modal
        await modal.open_for("WO-5", IntentKind.RESUME)
        backend.get_feedback_history.side_effect = BackendError("HTTP 500", status_code=500)

        message = await modal.show_feedback_history()

        assert message.text == HISTORY_FAILED_TEXT
        assert modal.workflow.session is not None


class TestChatWidget:
    """Global assistant surface"""

    @pytest.mark.asyncio
    async def test_open_greets_once(self, app, config):
        widget = app.widget
        await widget.open()
        await widget.close()
        await widget.open()
        assert [m.text for m in widget.timeline] == [config.greeting]

    @pytest.mark.asyncio
    async def test_typed_question_is_answered_but_not_spoken(self, app, backend, tts):
        widget = app.widget
        await widget.open()

        await widget.submit_text("How do I reset the breaker?")
        await app.drain()

        assert widget.timeline.last.text == "The answer"
        assert not widget.timeline.last.is_processing
        assert tts.spoken == []

    @pytest.mark.asyncio
    async def test_query_failure_shows_apology_and_keeps_listening(self, app, backend):
        await app.start()
        widget = app.widget
        await widget.open()
        backend.query_general.side_effect = BackendError("HTTP 502", status_code=502)

        await widget.submit_text("How do I reset the breaker?")
        await app.drain()

        assert widget.timeline.last.text == QUERY_FAILED_TEXT
        assert app.wake_provider.is_active()

    @pytest.mark.asyncio
    async def test_work_order_command_hands_off(self, app, backend, tts):
        await app.start()
        widget = app.widget
        await widget.open()

        await widget.submit_text("start work order 5")
        await app.drain()

        assert not widget.is_open
        assert widget.suspended
        assert app.navigations == [("WO-5", "start")]
        assert app.modal.is_open
        backend.start_work_order.assert_awaited_once_with("WO-5", 1, "text")
        assert bot_messages(app.modal)[0].step_number == 1
        assert len(tts.spoken) == 1

    @pytest.mark.asyncio
    async def test_widget_resumes_after_modal_closes(self, app):
        await app.start()
        widget = app.widget
        await widget.open()
        await widget.submit_text("start work order 5")
        await app.drain()

        await app.modal.close()
        await app.drain()

        assert not widget.suspended
        assert app.wake_provider.is_active()
        assert not app.recognition_provider.is_active()


class TestVoiceInput:
    """Wake phrase, dictation and recognition failures"""

    @pytest.mark.asyncio
    async def test_wake_phrase_opens_widget_and_dictation_starts_work_order(self, app, backend):
        await app.start()
        assert app.wake_provider.is_active()

        app.wake_provider.feed("hey buddy")
        await app.drain()

        assert app.widget.is_open
        assert app.recognition_provider.is_active()
        assert not app.wake_provider.is_active()

        app.recognition_provider.feed("start work order 5")
        await app.drain()

        assert app.navigations == [("WO-5", "start")]
        backend.start_work_order.assert_awaited_once_with("WO-5", 1, "voice")
        assert app.modal.is_open

    @pytest.mark.asyncio
    async def test_spoken_question_is_answered_aloud(self, app, tts):
        await app.start()
        widget = app.widget
        await widget.open()
        assert await widget.start_voice_input()

        app.recognition_provider.feed("what torque for the bolts", is_final=False)
        await app.drain()
        assert widget.interim_transcript == "what torque for the bolts"

        app.recognition_provider.feed("what torque for the bolts")
        await app.drain()

        user_message = [m for m in widget.timeline if m.sender is Sender.USER][-1]
        assert user_message.is_voice
        assert tts.spoken == ["The answer"]
        assert not app.recognition_provider.is_active()
        assert app.wake_provider.is_active()

    @pytest.mark.asyncio
    async def test_command_without_wake_phrase(self, app, backend):
        await app.start()

        app.wake_provider.feed("resume work order 12")
        await app.drain()

        backend.resume_work_order.assert_awaited_once_with("WO-12", 1)
        assert app.modal.is_open
        assert app.modal.workflow.session.step_addressed

    @pytest.mark.asyncio
    async def test_voice_proceed_in_work_order_view(self, app, backend, tts):
        await app.modal.open_for("WO-5")
        assert app.wake_provider.is_active()

        app.wake_provider.feed("hey buddy")
        await app.drain()
        app.recognition_provider.feed("next please")
        await app.drain()

        assert app.modal.workflow.current_step_number == 2
        assert len(tts.spoken) == 2

    @pytest.mark.asyncio
    async def test_permission_error_blocks_passive_listening(self, app):
        await app.start()
        widget = app.widget
        await widget.open()
        await widget.start_voice_input()

        app.recognition_provider.fail(RecognitionErrorKind.NOT_ALLOWED)
        await app.drain()

        assert widget.timeline.last.text.startswith("Microphone access was denied")
        assert not app.wake_provider.is_active()
        assert not app.recognition_provider.is_active()

        assert await widget.start_voice_input()

    @pytest.mark.asyncio
    async def test_no_speech_shows_no_message(self, app):
        widget = app.widget
        await widget.open()
        await widget.start_voice_input()

        app.recognition_provider.fail(RecognitionErrorKind.NO_SPEECH)
        await app.drain()

        assert [m.text for m in widget.timeline] == [app.config.greeting]

    @pytest.mark.asyncio
    async def test_unavailable_recognizer(self, app):
        app.recognition_provider.available = False
        widget = app.widget
        await widget.open()

        assert not await widget.start_voice_input()
        assert widget.timeline.last.text == "Voice input is not available on this device."

    @pytest.mark.asyncio
    async def test_toggle_voice_input(self, app):
        widget = app.widget
        await widget.open()

        assert await widget.toggle_voice_input()
        assert app.recognition_provider.is_active()
        assert not await widget.toggle_voice_input()
        assert not app.recognition_provider.is_active()


class TestInactivity:
    """Auto-close of the chat widget"""

    @pytest.mark.asyncio
    async def test_idle_widget_closes(self, app, config):
        config.activity.auto_close_enabled = True
        widget = app.widget
        widget.activity_timer.delay_seconds = 0.01

        await widget.open()
        await asyncio.sleep(0.05)
        assert not widget.is_open

    @pytest.mark.asyncio
    async def test_typing_keeps_widget_open(self, app, config):
        config.activity.auto_close_enabled = True
        widget = app.widget
        widget.activity_timer.delay_seconds = 0.01

        await widget.open()
        widget.on_input_focus()
        await asyncio.sleep(0.05)
        assert widget.is_open

        widget.on_input_blur()
        await asyncio.sleep(0.05)
        assert not widget.is_open

    @pytest.mark.asyncio
    async def test_work_order_view_does_not_auto_close(self, app, config):
        config.activity.auto_close_enabled = True
        app.modal.activity_timer.delay_seconds = 0.01

        await app.modal.open_for("WO-5")
        await asyncio.sleep(0.05)
        assert app.modal.is_open


class TestApplicationLifecycle:
    """Provider set-up, shutdown and shared registry"""

    @pytest.mark.asyncio
    async def test_start_initializes_providers(self, app):
        await app.start()
        assert [p.status for p in app.providers] == [ProviderStatus.AVAILABLE] * 3

        await app.stop()
        assert all(p.status is ProviderStatus.UNKNOWN for p in app.providers)
        assert not app.recognition_provider.is_active()

    @pytest.mark.asyncio
    async def test_unavailable_recognizer_is_reported_at_start(self, app, caplog):
        app.recognition_provider.available = False

        with caplog.at_level(logging.WARNING):
            await app.start()

        assert app.is_running
        assert app.recognition_provider.status is ProviderStatus.UNAVAILABLE
        assert "recognition is not available" in caplog.text
        # Passive listening does not need the dictation recognizer
        assert app.wake_provider.is_active()

    @pytest.mark.asyncio
    async def test_unavailable_tts_turns_speech_off(self, app, tts):
        tts.is_available = lambda: False
        await app.start()

        assert tts.status is ProviderStatus.UNAVAILABLE
        assert not app.speech.enabled

    @pytest.mark.asyncio
    async def test_supplied_registry_keeps_its_suppressor(self, config, backend, tts, registry):
        suppressor = registry.suppressor
        config.deduplication.window_seconds = 9.0
        app = ForemanApp(config, backend=backend, tts_provider=tts, registry=registry)

        assert app.registry is registry
        assert registry.suppressor is suppressor

    @pytest.mark.asyncio
    async def test_process_wide_registry_gets_configured_window(self, config, backend, tts):
        reset_call_registry()
        try:
            config.deduplication.window_seconds = 4.0
            first = ForemanApp(config, backend=backend, tts_provider=tts)
            assert first.registry is get_call_registry()
            assert first.registry.suppressor.window_seconds == 4.0

            suppressor = first.registry.suppressor
            ForemanApp(config, backend=backend, tts_provider=tts)
            assert first.registry.suppressor is suppressor
        finally:
            reset_call_registry()

    def test_orchestrator_base_is_abstract(self, config):
        with pytest.raises(TypeError):
            VoiceOrchestrator(config, None, None, None, None, None)
