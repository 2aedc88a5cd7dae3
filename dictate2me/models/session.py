"""Session-related data models."""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..surface.base import TextSurface
    from ..recognition.base import RecognitionStreamHandle, StreamErrorKind

_session_ids = itertools.count(1)


class SessionState(Enum):
    """Lifecycle states of a recognition session."""
    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    ENDING = "ending"
    ERROR_RECOVERABLE = "error_recoverable"
    ERROR_FATAL = "error_fatal"


@dataclass
class Session:
    """Binding between one recognition stream and one target surface."""
    target: 'TextSurface'
    language: str
    continuous: bool = True
    state: SessionState = SessionState.IDLE
    running: bool = False  # True once the current stream reported on_start
    last_activity: float = 0.0
    handle: Optional['RecognitionStreamHandle'] = None
    generation: int = 0  # bumped for every stream handle issued
    last_error: Optional['StreamErrorKind'] = None
    session_id: int = field(default_factory=lambda: next(_session_ids))

    def owns(self, handle: 'RecognitionStreamHandle', generation: int) -> bool:
        """Check that a callback comes from the handle this session holds."""
        return self.handle is handle and self.generation == generation
