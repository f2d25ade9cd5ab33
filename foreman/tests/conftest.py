"""
Shared fixtures for Foreman tests

Configuration with zero delays, an AsyncMock backend, a recording TTS
provider and scripted recognizers.
"""

from typing import List
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from foreman.api.client import WorkOrderBackend
from foreman.api.schemas import FeedbackResponse, WorkOrderStartResponse
from foreman.config.models import CoreConfig
from foreman.core.app import ForemanApp
from foreman.core.single_flight import SingleFlightRegistry
from foreman.providers.speech.scripted import ScriptedSpeechProvider
from foreman.providers.tts.base import TTSProvider


class RecordingTTSProvider(TTSProvider):
    """TTS provider that records what it was asked to say"""

    def __init__(self):
        super().__init__({})
        self.spoken: List[str] = []

    def is_available(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "recording"

    async def speak(self, text: str) -> None:
        self.spoken.append(text)


def make_config() -> CoreConfig:
    config = CoreConfig()
    config.recognition.handover_delay_seconds = 0
    config.recognition.resume_delay_seconds = 0
    config.recognition.restart_delay_seconds = 0
    config.wake_word.restart_delay_seconds = 0
    config.activity.auto_close_enabled = False
    return config


def start_response(session_id: str = "sess-1", step_number: int = 1, **extra) -> WorkOrderStartResponse:
    data = {
        "type": "work_order_start",
        "session_id": session_id,
        "message": "Work order started",
        "tts_text": f"Step {step_number}: check the breaker",
        "current_step": {"id": 100 + step_number, "step_number": step_number,
                         "description": "Check the breaker"},
        "work_order": {"id": 7, "number": "WO-5"},
    }
    data.update(extra)
    return WorkOrderStartResponse.model_validate(data)


def next_step_response(step_number: int, **extra) -> FeedbackResponse:
    data = {
        "type": "next_step",
        "message": "Proceeding to next step.",
        "tts_text": f"Step {step_number}",
        "current_step": {"id": 100 + step_number, "step_number": step_number},
        "next_step": {"id": 100 + step_number, "step_number": step_number,
                      "description": f"Do step {step_number}"},
    }
    data.update(extra)
    return FeedbackResponse.model_validate(data)


def complete_response(**extra) -> FeedbackResponse:
    data = {"type": "work_order_complete", "message": "All done", "total_steps": 3, "total_time": 1.5}
    data.update(extra)
    return FeedbackResponse.model_validate(data)


@pytest.fixture
def config() -> CoreConfig:
    return make_config()


@pytest.fixture
def backend() -> AsyncMock:
    backend = AsyncMock(spec=WorkOrderBackend)
    backend.start_work_order.return_value = start_response()
    backend.resume_work_order.return_value = start_response(session_id="sess-resumed", step_number=2)
    backend.restart_work_order.return_value = start_response(session_id="sess-restart", step_number=4)
    backend.submit_feedback.return_value = next_step_response(2)
    backend.submit_work_order_feedback.return_value = next_step_response(3)
    backend.query_general.return_value = "The answer"
    return backend


@pytest.fixture
def tts() -> RecordingTTSProvider:
    return RecordingTTSProvider()


@pytest.fixture
def registry() -> SingleFlightRegistry:
    return SingleFlightRegistry()


@pytest_asyncio.fixture
async def app(config, backend, tts, registry):
    navigations = []
    app = ForemanApp(
        config,
        backend=backend,
        wake_provider=ScriptedSpeechProvider({"name": "wake_word"}),
        recognition_provider=ScriptedSpeechProvider({"name": "recognition"}),
        tts_provider=tts,
        registry=registry,
        navigator=lambda work_order_id, action: navigations.append((work_order_id, action)),
    )
    app.navigations = navigations
    yield app
    await app.stop()
