"""Recognition stream collaborator interface."""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

from ..models.transcription import TranscriptChunk

logger = logging.getLogger(__name__)


class StreamErrorKind(Enum):
    """Error kinds reported by a recognition stream."""
    NO_SPEECH = "no-speech"
    PERMISSION_DENIED = "permission-denied"
    SERVICE_UNAVAILABLE = "service-unavailable"
    AUDIO_CAPTURE = "audio-capture"
    NETWORK = "network"
    OTHER = "other"

    @property
    def is_fatal(self) -> bool:
        return self in FATAL_STREAM_ERRORS


FATAL_STREAM_ERRORS = frozenset({
    StreamErrorKind.PERMISSION_DENIED,
    StreamErrorKind.SERVICE_UNAVAILABLE,
})


class RecognitionStreamHandle(ABC):
    """Live connection to a recognition stream.

    The owner assigns the on_* callbacks before calling start(). Once
    detach() has been called no callback fires again, whatever the
    underlying stream still delivers.
    """

    def __init__(self, language: str, continuous: bool = True, interim_results: bool = True):
        self.language = language
        self.continuous = continuous
        self.interim_results = interim_results
        self.on_start: Optional[Callable[[], None]] = None
        self.on_chunk: Optional[Callable[[List[TranscriptChunk]], None]] = None
        self.on_error: Optional[Callable[[StreamErrorKind], None]] = None
        self.on_end: Optional[Callable[[], None]] = None

    @abstractmethod
    def start(self) -> None:
        """Begin recognition. May raise if the stream cannot start."""
        pass

    @abstractmethod
    def abort(self) -> None:
        """Stop recognition immediately, discarding pending results."""
        pass

    def detach(self) -> None:
        self.on_start = None
        self.on_chunk = None
        self.on_error = None
        self.on_end = None

    def _emit_start(self) -> None:
        if self.on_start:
            self.on_start()

    def _emit_chunks(self, chunks: List[TranscriptChunk]) -> None:
        if self.on_chunk:
            self.on_chunk(chunks)

    def _emit_error(self, kind: StreamErrorKind) -> None:
        if self.on_error:
            self.on_error(kind)

    def _emit_end(self) -> None:
        if self.on_end:
            self.on_end()


class RecognitionProvider(ABC):
    """Factory for recognition stream handles."""

    @abstractmethod
    def open(self, language: str, continuous: bool = True,
             interim_results: bool = True) -> RecognitionStreamHandle:
        """Create a new, not yet started, stream handle."""
        pass
