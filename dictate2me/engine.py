"""Dictation engine: one instance per host document."""

import asyncio
import logging
import time
from typing import Callable, Optional

from pubsub import pub

from .config import SettingsStore
from .models.events import TOPIC_SETTINGS_CHANGED, SettingsChangedEvent
from .models.ui import IndicatorState
from .recognition.base import RecognitionProvider
from .rules import RuleBook
from .services.indicator import IndicatorStateMachine
from .services.interim_echo import InterimEcho
from .services.session_controller import SessionController
from .services.transcript_pipeline import TranscriptPipeline
from .surface.base import TextSurface
from .surface.document import HostDocument
from .translation.base import TranslationClient

logger = logging.getLogger(__name__)

RULE_SETTINGS = ("auto_replace_rules", "formatting_commands")


class DictationEngine:
    """Owns every piece of dictation state for a single document.

    Wires document focus, layout and unload events and settings changes to
    the session controller, transcript pipeline, interim echo and indicator.
    """

    def __init__(self,
                 document: HostDocument,
                 settings_store: SettingsStore,
                 recognition_provider: RecognitionProvider,
                 translation_client: Optional[TranslationClient] = None,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize dictation engine.

        Args:
            document: Document to dictate into
            settings_store: Dictation settings
            recognition_provider: Opens recognition streams
            translation_client: Optional translation collaborator
            clock: Monotonic time source, in seconds
        """
        self.document = document
        self.settings_store = settings_store
        settings = settings_store.settings

        self.indicator = IndicatorStateMachine(document, sticky_seconds=settings.indicator_sticky_seconds)
        self.interim_echo = InterimEcho(enabled=settings.interim_results_enabled)
        self.pipeline = TranscriptPipeline(
            settings_store,
            self.indicator,
            translation_client=translation_client,
            rules=RuleBook.from_settings(settings),
            is_session_active_for=self._is_session_active_for,
            interim_span_for=self.interim_echo.open_span_for,
            document_id=document.document_id,
        )
        self.controller = SessionController(
            document,
            recognition_provider,
            self.pipeline,
            self.interim_echo,
            self.indicator,
            settings_store,
            clock=clock,
        )

        self._started = False
        self._focus_timer: Optional[asyncio.TimerHandle] = None
        self._layout_timer: Optional[asyncio.TimerHandle] = None
        self._language_timer: Optional[asyncio.TimerHandle] = None

    @property
    def session(self):
        return self.controller.session

    def start(self) -> None:
        """Start listening to the document and bind the focused surface, if any."""
        if self._started:
            return
        self._started = True
        self.document.add_focus_listener(self._on_focus)
        self.document.add_layout_listener(self._on_layout)
        self.document.add_unload_listener(self._on_unload)
        pub.subscribe(self._on_settings_changed, TOPIC_SETTINGS_CHANGED)
        self._sync_settings()
        logger.info(f"Dictation engine started for document {self.document.document_id} ({self.document.location})")

        if self.document.active_surface is not None:
            self._apply_focus(self.document.active_surface)

    async def close(self) -> None:
        """Stop dictation, let queued jobs drain and release listeners."""
        if self._started:
            self._started = False
            self.document.remove_focus_listener(self._on_focus)
            self.document.remove_layout_listener(self._on_layout)
            self.document.remove_unload_listener(self._on_unload)
            pub.unsubscribe(self._on_settings_changed, TOPIC_SETTINGS_CHANGED)
        for timer in (self._focus_timer, self._layout_timer, self._language_timer):
            if timer is not None:
                timer.cancel()
        self._focus_timer = self._layout_timer = self._language_timer = None

        self.controller.unbind("engine closed")
        await self.pipeline.join()
        await self.pipeline.close()
        self.indicator.close()
        logger.info(f"Dictation engine closed for document {self.document.document_id}")

    def _sync_settings(self) -> None:
        """Copy settings the engine derives state from into its components."""
        settings = self.settings_store.settings
        self.indicator.sticky_seconds = settings.indicator_sticky_seconds
        self.indicator.translation_target = settings.translation_lang if settings.translation_configured else None
        self.interim_echo.enabled = settings.interim_results_enabled
        self.pipeline.rules = RuleBook.from_settings(settings)

    def _is_session_active_for(self, target: TextSurface) -> bool:
        return self.controller.is_active_for(target)

    def _on_focus(self, surface: Optional[TextSurface]) -> None:
        session = self.controller.session
        if session is not None and session.target is not surface:
            self.controller.unbind("focus lost")
        if surface is not None and surface.secret:
            self._apply_focus(surface)
            return

        if self._focus_timer is not None:
            self._focus_timer.cancel()
        delay = self.settings_store.settings.focus_debounce_ms / 1000.0
        self._focus_timer = asyncio.get_running_loop().call_later(delay, self._apply_focus, surface)

    def _apply_focus(self, surface: Optional[TextSurface]) -> None:
        self._focus_timer = None
        if surface is None or surface is not self.document.active_surface:
            self.indicator.reposition(check_focus=True)
            return
        self.controller.bind(surface)
        self.indicator.reposition(check_focus=True)

    def _on_layout(self) -> None:
        if self._layout_timer is not None:
            self._layout_timer.cancel()
        delay = self.settings_store.settings.reposition_debounce_ms / 1000.0
        self._layout_timer = asyncio.get_running_loop().call_later(delay, self._reposition)

    def _reposition(self) -> None:
        self._layout_timer = None
        self.indicator.reposition(check_focus=True)

    def _on_unload(self) -> None:
        logger.info(f"Document {self.document.document_id} unloading")
        self.controller.unbind("document unloaded")

    def _on_settings_changed(self, event: SettingsChangedEvent) -> None:
        changes = event.changes
        settings = self.settings_store.settings
        logger.debug(f"Engine applying settings changes: {sorted(changes)}")

        if "interim_results_enabled" in changes:
            self.interim_echo.enabled = settings.interim_results_enabled
            if not settings.interim_results_enabled:
                self.interim_echo.retract()

        if any(key in changes for key in RULE_SETTINGS):
            self.pipeline.rules = RuleBook.from_settings(settings)

        if "indicator_sticky_seconds" in changes:
            self.indicator.sticky_seconds = settings.indicator_sticky_seconds

        if {"translation_active", "translation_lang", "gemini_api_key"} & changes.keys():
            self.indicator.translation_target = settings.translation_lang if settings.translation_configured else None
            self.indicator.refresh()

        if "dictation_active" in changes:
            if settings.dictation_active:
                self.controller.mic_access_denied = False
                self.indicator.clear_sticky()
                self._bind_focused()
            else:
                self.controller.unbind("dictation disabled")

        if "blacklist_sites" in changes:
            if self.controller.is_blacklisted():
                if self.controller.session is not None:
                    self.controller.unbind("site blacklisted")
                    self.indicator.set_state(IndicatorState.BLACKLISTED, self.document.active_surface)
            else:
                if self.indicator.sticky_state is IndicatorState.BLACKLISTED:
                    self.indicator.clear_sticky()
                self._bind_focused()

        if "dictation_lang" in changes:
            self._schedule_language_restart()

    def _bind_focused(self) -> None:
        surface = self.document.active_surface
        if surface is not None:
            self.controller.bind(surface)

    def _schedule_language_restart(self) -> None:
        session = self.controller.session
        if session is None:
            return
        target = session.target
        self.controller.unbind("dictation language changed")
        if self._language_timer is not None:
            self._language_timer.cancel()
        delay = self.settings_store.settings.restart_delay_ms / 2000.0
        self._language_timer = asyncio.get_running_loop().call_later(delay, self._restart_for_language, target)

    def _restart_for_language(self, target: TextSurface) -> None:
        self._language_timer = None
        if target is self.document.active_surface and target.is_live():
            logger.info(f"Restarting dictation in {self.settings_store.settings.dictation_lang}")
            self.controller.bind(target)
