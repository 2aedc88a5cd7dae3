"""Pytest configuration and fixtures for Dictate2Me tests."""

import asyncio
import logging
from typing import List, Optional
from unittest.mock import Mock, patch

import pytest
from pubsub import pub

from dictate2me.config import DictationSettings, SettingsStore
from dictate2me.models.transcription import TranscriptChunk
from dictate2me.recognition.base import RecognitionProvider, RecognitionStreamHandle, StreamErrorKind
from dictate2me.surface import HostDocument, PlainTextSurface
from dictate2me.translation.base import TranslationRequest, TranslationResponse


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "integration: tests wiring the whole engine together")


@pytest.fixture(autouse=True)
def reset_pubsub():
    """Drop every pypubsub listener registered by a test."""
    yield
    pub.unsubAll()


class FakeStreamHandle(RecognitionStreamHandle):
    """Recognition stream driven by the test."""

    def __init__(self, language: str, continuous: bool = True, interim_results: bool = True,
                 fail_start: bool = False):
        super().__init__(language, continuous, interim_results)
        self.fail_start = fail_start
        self.started = False
        self.aborted = False

    def start(self) -> None:
        if self.fail_start:
            raise OSError("microphone unavailable")
        self.started = True

    def abort(self) -> None:
        self.aborted = True

    def emit_start(self) -> None:
        self._emit_start()

    def emit_interim(self, text: str, index: int = 0) -> None:
        self._emit_chunks([TranscriptChunk(index=index, text=text, is_final=False)])

    def emit_final(self, text: str, index: int = 0) -> None:
        self._emit_chunks([TranscriptChunk(index=index, text=text, is_final=True)])

    def emit_chunks(self, chunks: List[TranscriptChunk]) -> None:
        self._emit_chunks(chunks)

    def emit_error(self, kind: StreamErrorKind) -> None:
        self._emit_error(kind)

    def emit_end(self) -> None:
        self._emit_end()


class FakeProvider(RecognitionProvider):
    """Hands out FakeStreamHandles and remembers them."""

    def __init__(self):
        self.handles: List[FakeStreamHandle] = []
        self.fail_open = False
        self.fail_start = False

    def open(self, language: str, continuous: bool = True,
             interim_results: bool = True) -> FakeStreamHandle:
        if self.fail_open:
            raise RuntimeError("recognition service unavailable")
        handle = FakeStreamHandle(language, continuous, interim_results, fail_start=self.fail_start)
        self.handles.append(handle)
        return handle

    @property
    def latest(self) -> Optional[FakeStreamHandle]:
        return self.handles[-1] if self.handles else None


class FakeTranslationClient:
    """Translation client with scripted responses and an optional gate."""

    def __init__(self, translations: Optional[dict] = None):
        self.translations = translations or {}
        self.requests: List[TranslationRequest] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail = False
        self.raise_error = False
        self.active = 0
        self.max_active = 0

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        self.requests.append(request)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.raise_error:
                raise RuntimeError("client exploded")
            if self.fail:
                return TranslationResponse(success=False, error="quota exceeded")
            return TranslationResponse(success=True,
                                       translated_text=self.translations.get(request.text, request.text))
        finally:
            self.active -= 1


class FakeClock:
    """Monotonic clock controlled by the test."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def fake_translator():
    return FakeTranslationClient()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def settings_store():
    """Settings with short timers so tests do not wait long."""
    return SettingsStore(DictationSettings(
        restart_delay_ms=10,
        focus_debounce_ms=0,
        reposition_debounce_ms=0,
        indicator_sticky_seconds=0.2,
    ))


@pytest.fixture
def document():
    return HostDocument(location="https://docs.example.com/edit", document_id="doc-1")


@pytest.fixture
def surface(document):
    """Focused, empty plain text surface."""
    surface = document.attach(PlainTextSurface("input-1"))
    document.focus(surface)
    return surface


@pytest.fixture
def published():
    """Collect events published on the dictation topics."""
    from dictate2me.models.events import (
        TOPIC_INDICATOR,
        TOPIC_MIC_ACCESS_DENIED,
        TOPIC_SURFACE_MUTATED,
    )

    events = {"indicator": [], "mutations": [], "mic_denied": []}

    # pypubsub keeps weak references, so the listeners live on the fixture
    def on_indicator(event):
        events["indicator"].append(event)

    def on_mutation(event):
        events["mutations"].append(event)

    def on_mic_denied(event):
        events["mic_denied"].append(event)

    pub.subscribe(on_indicator, TOPIC_INDICATOR)
    pub.subscribe(on_mutation, TOPIC_SURFACE_MUTATED)
    pub.subscribe(on_mic_denied, TOPIC_MIC_ACCESS_DENIED)
    events["_listeners"] = (on_indicator, on_mutation, on_mic_denied)
    yield events


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.read.return_value = b'\x00' * 3200  # Silent audio
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
