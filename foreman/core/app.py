"""
Foreman Application - Wiring of the voice front end

Builds the shared pieces (backend client, call registry, event bus,
speech output, microphone controller) once and connects both surfaces to
them. The modal opens when the widget hands a work order command over.
"""

import logging
from typing import List, Optional

from ..api.client import WorkOrderBackend
from ..config.models import CoreConfig
from ..intents.classifier import TranscriptClassifier
from ..intents.models import IntentKind
from ..outputs.speech import SpeechOutput
from ..providers.base import ComponentNotAvailable, ProviderBase
from ..providers.speech.base import SpeechRecognitionProvider
from ..providers.speech.scripted import ScriptedSpeechProvider
from ..providers.tts import create_tts_provider
from ..providers.tts.base import TTSProvider
from ..voice.controller import VoiceInputController
from ..voice.recognition import SpeechRecognitionSession
from ..voice.wake_word import WakeWordListener
from ..workflows.surfaces import ChatWidget, Navigator, WorkOrderModal
from .events import EventBus, SubscriptionGroup, WorkOrderActionRequested
from .single_flight import SingleFlightRegistry, get_call_registry

logger = logging.getLogger(__name__)


class ForemanApp:
    """
    Application container.

    Features:
    - One backend client, call registry and event bus for every surface
    - One microphone controller shared by the widget and the modal
    - Work order hand-off from the widget to the modal through events
    """

    def __init__(
        self,
        config: CoreConfig,
        backend: Optional[WorkOrderBackend] = None,
        wake_provider: Optional[SpeechRecognitionProvider] = None,
        recognition_provider: Optional[SpeechRecognitionProvider] = None,
        tts_provider: Optional[TTSProvider] = None,
        registry: Optional[SingleFlightRegistry] = None,
        navigator: Optional[Navigator] = None
    ):
        self.config = config
        self.backend = backend or WorkOrderBackend(config.backend)
        self.registry = registry or get_call_registry(config.deduplication.window_seconds)
        self.events = EventBus("app")
        self.classifier = TranscriptClassifier()

        self.wake_provider = wake_provider or ScriptedSpeechProvider(
            {"name": "wake_word", "language": config.wake_word.language}
        )
        self.recognition_provider = recognition_provider or ScriptedSpeechProvider(
            {"name": "recognition", "language": config.recognition.language,
             "interim_results": config.recognition.interim_results}
        )
        if tts_provider is None and config.tts.enabled:
            tts_provider = create_tts_provider(config.tts.provider, config.tts.model_dump())
        self.tts_provider = tts_provider
        self.speech = SpeechOutput(tts_provider, enabled=config.tts.enabled)

        wake_listener = None
        if config.wake_word.enabled:
            wake_listener = WakeWordListener(
                self.wake_provider,
                classifier=self.classifier,
                phrase=config.wake_word.phrase,
                fuzzy_threshold=config.wake_word.fuzzy_threshold,
                restart_delay=config.wake_word.restart_delay_seconds,
            )
        recognition = SpeechRecognitionSession(
            self.recognition_provider,
            auto_restart=config.recognition.auto_restart,
            restart_delay=config.recognition.restart_delay_seconds,
        )
        self.controller = VoiceInputController(
            recognition, wake_listener, handover_delay=config.recognition.handover_delay_seconds
        )

        shared = dict(
            config=config,
            controller=self.controller,
            backend=self.backend,
            registry=self.registry,
            events=self.events,
            speech=self.speech,
            classifier=self.classifier,
        )
        self.widget = ChatWidget(navigator=navigator, **shared)
        self.modal = WorkOrderModal(**shared)

        self._subscriptions = SubscriptionGroup()
        self._subscriptions.add(self.events.subscribe(self._on_action_requested, WorkOrderActionRequested))
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def providers(self) -> List[ProviderBase]:
        providers: List[ProviderBase] = [self.wake_provider, self.recognition_provider]
        if self.tts_provider is not None:
            providers.append(self.tts_provider)
        return providers

    async def start(self) -> None:
        """Initialize providers and begin passive listening on the widget"""
        for provider in self.providers:
            try:
                await provider.initialize()
            except ComponentNotAvailable as e:
                # Surfaces report an unusable recognizer when voice input is requested
                logger.warning(f"{e}, continuing without it")
                if provider is self.tts_provider:
                    self.speech.enabled = False

        self._running = True
        await self.widget.resume_passive_listening()
        logger.info(f"{self.config.name} started")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._subscriptions.close()
        await self.modal.destroy()
        await self.widget.destroy()
        await self.controller.close()
        await self.speech.cancel()
        for provider in self.providers:
            await provider.cleanup()
        await self.events.close()
        await self.registry.drain()
        await self.backend.aclose()
        logger.info(f"{self.config.name} stopped")

    async def drain(self) -> None:
        """Let every queued callback and handler finish"""
        for _ in range(5):
            await self.controller.drain()
            await self.events.drain()
            await self.widget.drain()
            await self.modal.drain()

    async def _on_action_requested(self, event: WorkOrderActionRequested) -> None:
        logger.info(f"Opening work order view: {event.action} {event.work_order_id}")
        await self.modal.open_for(event.work_order_id, IntentKind(event.action), is_voice=event.is_voice)
