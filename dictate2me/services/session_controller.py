"""Session controller: recognition stream lifecycle for one focused surface."""

import asyncio
import logging
import time
from typing import Callable, List, Optional
from urllib.parse import urlparse

from pubsub import pub

from ..config import SettingsStore, DictationSettings
from ..models.events import TOPIC_MIC_ACCESS_DENIED, MicAccessDeniedEvent
from ..models.session import Session, SessionState
from ..models.transcription import TranscriptChunk
from ..models.ui import IndicatorState
from ..recognition.base import RecognitionProvider, RecognitionStreamHandle, StreamErrorKind
from ..rules import parse_blacklist_sites, is_blacklisted
from ..surface.base import TextSurface
from ..surface.document import HostDocument
from .indicator import IndicatorStateMachine
from .interim_echo import InterimEcho
from .transcript_pipeline import TranscriptPipeline

logger = logging.getLogger(__name__)


class SessionController:
    """Binds a recognition stream to a target surface and keeps it alive.

    State machine: IDLE -> STARTING -> LISTENING -> (ENDING) -> IDLE, with
    ERROR_RECOVERABLE and ERROR_FATAL as side exits. Every stream callback is
    tagged with the handle and generation it was issued for; callbacks from a
    handle the session no longer owns are ignored.
    """

    def __init__(self,
                 document: HostDocument,
                 provider: RecognitionProvider,
                 pipeline: TranscriptPipeline,
                 interim_echo: InterimEcho,
                 indicator: IndicatorStateMachine,
                 settings_store: SettingsStore,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize session controller.

        Args:
            document: Document providing focus and location
            provider: Recognition stream collaborator
            pipeline: Receives final transcripts
            interim_echo: Receives interim transcripts
            indicator: Status indicator to drive
            settings_store: Dictation settings and the dictation_active write path
            clock: Monotonic time source, in seconds
        """
        self.document = document
        self.provider = provider
        self.pipeline = pipeline
        self.interim_echo = interim_echo
        self.indicator = indicator
        self.settings_store = settings_store
        self.clock = clock

        self.session: Optional[Session] = None
        self.mic_access_denied = False
        self._restart_timer: Optional[asyncio.TimerHandle] = None

    @property
    def settings(self) -> DictationSettings:
        return self.settings_store.settings

    @property
    def restart_pending(self) -> bool:
        return self._restart_timer is not None

    def is_blacklisted(self) -> bool:
        return is_blacklisted(self.document.location, parse_blacklist_sites(self.settings.blacklist_sites))

    def is_active_for(self, target: TextSurface) -> bool:
        session = self.session
        return session is not None and session.target is target and session.state is not SessionState.IDLE

    def bind(self, target: TextSurface) -> bool:
        """Start dictation into target.

        Returns:
            True if a new stream was started, False if the call was a no-op
        """
        if self.is_blacklisted():
            if target.is_eligible():
                self.indicator.set_state(IndicatorState.BLACKLISTED, target)
            logger.debug(f"Not binding {target!r}: site is blacklisted")
            return False
        if not self.settings.dictation_active:
            if self.mic_access_denied and target.is_eligible():
                self.indicator.set_state(IndicatorState.NO_MIC_ACCESS, target)
            logger.debug(f"Not binding {target!r}: dictation is disabled")
            return False
        if target.secret:
            if self.session is not None and self.session.target is target:
                self.unbind("secret surface")
            self.indicator.set_state(IndicatorState.PASSWORD_FIELD, target)
            return False
        if not target.is_eligible() or not target.is_attached():
            logger.debug(f"Not binding {target!r}: surface is not eligible")
            return False

        session = self.session
        if session is not None and session.target is target and \
                (session.handle is not None or self.restart_pending):
            return False
        if session is not None and session.target is not target:
            self.unbind("focus moved to another surface")

        if self.session is None:
            self.session = Session(target=target, language=self.settings.dictation_lang)
            logger.info(f"Created session {self.session.session_id} for {target!r}")
        return self._open_stream(self.session)

    def unbind(self, reason: str) -> None:
        """Stop dictation, abort the stream and discard interim state."""
        self._cancel_restart()
        session = self.session
        if session is None:
            return
        logger.info(f"Stopping session {session.session_id} on {session.target!r}: {reason}")
        self._release_handle(session, abort=True)
        self.interim_echo.retract()
        session.state = SessionState.IDLE
        session.running = False
        self.session = None
        self.indicator.set_state(IndicatorState.IDLE)

    def _open_stream(self, session: Session) -> bool:
        self._cancel_restart()
        settings = self.settings
        session.language = settings.dictation_lang
        session.generation += 1
        generation = session.generation

        try:
            handle = self.provider.open(session.language,
                                        continuous=session.continuous,
                                        interim_results=settings.interim_results_enabled)
        except Exception as e:
            logger.error(f"Failed to open recognition stream: {e}", exc_info=True)
            self._finish(session)
            return False

        handle.on_start = lambda: self._on_start(handle, generation)
        handle.on_chunk = lambda chunks: self._on_chunk(handle, generation, chunks)
        handle.on_error = lambda kind: self._on_error(handle, generation, kind)
        handle.on_end = lambda: self._on_end(handle, generation)

        session.handle = handle
        session.state = SessionState.STARTING
        session.running = False
        session.last_error = None
        session.last_activity = self.clock()
        logger.debug(f"Session {session.session_id}: starting stream #{generation} ({session.language})")

        try:
            handle.start()
        except Exception as e:
            logger.error(f"Failed to start recognition stream: {e}", exc_info=True)
            if session.owns(handle, generation):
                self._release_handle(session, abort=False)
                self._finish(session)
            return False
        return True

    def _current(self, handle: RecognitionStreamHandle, generation: int) -> Optional[Session]:
        session = self.session
        if session is None or not session.owns(handle, generation):
            logger.debug(f"Ignoring callback from stale recognition stream #{generation}")
            return None
        return session

    def _on_start(self, handle: RecognitionStreamHandle, generation: int) -> None:
        session = self._current(handle, generation)
        if session is None:
            return
        session.state = SessionState.LISTENING
        session.running = True
        session.last_activity = self.clock()
        self.indicator.set_state(IndicatorState.LISTENING, session.target)

    def _on_chunk(self, handle: RecognitionStreamHandle, generation: int,
                  chunks: List[TranscriptChunk]) -> None:
        session = self._current(handle, generation)
        if session is None:
            return
        session.last_activity = self.clock()

        finals = [chunk for chunk in chunks if chunk.is_final]
        if finals:
            # A final in this batch supersedes the batch's interim results
            self._enqueue_final(session, "".join(chunk.text for chunk in finals).strip())
            return
        if self.interim_echo.enabled and self.settings.interim_results_enabled:
            self.interim_echo.show(session.target, "".join(chunk.text for chunk in chunks))

    def _enqueue_final(self, session: Session, text: str) -> None:
        if not text:
            self.interim_echo.retract()
            return
        span = self.interim_echo.take_for_commit()
        self.pipeline.submit(self.pipeline.create_job(text, session.target, span))

    def _promote_interim(self, session: Session) -> None:
        """Queue an untouched open interim span as a final transcript."""
        span = self.interim_echo.take_for_commit()
        if span is None or span.target is not session.target or not span.text.strip():
            return
        logger.info(f"Session {session.session_id}: stream ended mid-phrase, promoting interim text")
        self.pipeline.submit(self.pipeline.create_job(span.text.strip(), session.target, span))

    def _on_error(self, handle: RecognitionStreamHandle, generation: int,
                  kind: StreamErrorKind) -> None:
        session = self._current(handle, generation)
        if session is None:
            return
        session.last_error = kind

        if kind is StreamErrorKind.NO_SPEECH:
            logger.debug(f"Session {session.session_id}: no speech detected")
            return

        if kind.is_fatal:
            logger.error(f"Session {session.session_id}: fatal recognition error '{kind.value}', disabling dictation")
            session.state = SessionState.ERROR_FATAL
            target = session.target
            self.mic_access_denied = True
            self.unbind(f"fatal recognition error: {kind.value}")
            self.indicator.set_state(IndicatorState.NO_MIC_ACCESS, target)
            pub.sendMessage(TOPIC_MIC_ACCESS_DENIED, event=MicAccessDeniedEvent(
                site=self._site(),
                document_id=self.document.document_id,
            ))
            self.settings_store.set_dictation_active(False)
            return

        logger.warning(f"Session {session.session_id}: recognition error '{kind.value}'")
        session.state = SessionState.ERROR_RECOVERABLE
        self.indicator.set_state(IndicatorState.RECOGNITION_ERROR, session.target)

    def _on_end(self, handle: RecognitionStreamHandle, generation: int) -> None:
        session = self._current(handle, generation)
        if session is None:
            return
        was_running = session.running
        elapsed = self.clock() - session.last_activity
        session.running = False
        session.state = SessionState.ENDING
        self._release_handle(session, abort=False)

        self._promote_interim(session)

        reason = self._restart_blocker(session, was_running, elapsed)
        if reason is None:
            delay = self.settings.restart_delay_ms / 1000.0
            logger.debug(f"Session {session.session_id}: stream ended after {elapsed:.1f}s idle, restarting in {delay:.3f}s")
            self._restart_timer = asyncio.get_running_loop().call_later(delay, self._restart, session)
        else:
            logger.info(f"Session {session.session_id}: stream ended, not restarting ({reason})")
            self._finish(session)

    def _restart_blocker(self, session: Session, was_running: bool, elapsed: float) -> Optional[str]:
        """Return why the session must not restart, or None if it may."""
        if not self.settings.dictation_active:
            return "dictation disabled"
        if not was_running:
            return "stream never started"
        if session.last_error is not None and session.last_error.is_fatal:
            return f"fatal error {session.last_error.value}"
        if not session.target.is_live():
            return "target no longer focused or editable"
        if elapsed >= self.settings.recognition_timeout_seconds:
            return f"inactive for {elapsed:.1f}s"
        return None

    def _restart(self, session: Session) -> None:
        self._restart_timer = None
        if self.session is not session:
            return
        if self.settings.dictation_active and session.handle is None and session.target.is_live():
            self._open_stream(session)
        else:
            logger.info(f"Session {session.session_id}: restart cancelled, target or settings changed")
            self._finish(session)

    def _finish(self, session: Session) -> None:
        session.state = SessionState.IDLE
        session.running = False
        if self.session is session:
            self.session = None
        self.indicator.set_state(IndicatorState.IDLE)

    def _release_handle(self, session: Session, abort: bool) -> None:
        handle = session.handle
        session.handle = None
        if handle is None:
            return
        handle.detach()
        if abort:
            try:
                handle.abort()
            except Exception as e:
                logger.warning(f"Error aborting recognition stream: {e}")

    def _cancel_restart(self) -> None:
        if self._restart_timer is not None:
            self._restart_timer.cancel()
            self._restart_timer = None

    def _site(self) -> str:
        return urlparse(self.document.location).netloc or self.document.location
