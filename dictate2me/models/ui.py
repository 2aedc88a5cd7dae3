"""UI-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class IndicatorState(Enum):
    """User-visible dictation status."""
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    PROCESSING = "PROCESSING"
    TRANSLATING = "TRANSLATING"
    BLACKLISTED = "BLACKLISTED"
    NO_MIC_ACCESS = "NO_MIC_ACCESS"
    PASSWORD_FIELD = "PASSWORD_FIELD"
    RECOGNITION_ERROR = "RECOGNITION_ERROR"


STICKY_STATES = frozenset({
    IndicatorState.BLACKLISTED,
    IndicatorState.NO_MIC_ACCESS,
    IndicatorState.PASSWORD_FIELD,
    IndicatorState.RECOGNITION_ERROR,
})

INDICATOR_LABELS = {
    IndicatorState.IDLE: "",
    IndicatorState.LISTENING: "Listening",
    IndicatorState.PROCESSING: "Processing",
    IndicatorState.TRANSLATING: "Translating",
    IndicatorState.BLACKLISTED: "Dictation disabled on this site",
    IndicatorState.NO_MIC_ACCESS: "Microphone access denied",
    IndicatorState.PASSWORD_FIELD: "Dictation unavailable in password fields",
    IndicatorState.RECOGNITION_ERROR: "Recognition error",
}


@dataclass(frozen=True)
class Rect:
    """Viewport-relative rectangle."""
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.left + self.width


@dataclass(frozen=True)
class IndicatorPosition:
    """Where the indicator is drawn relative to the viewport."""
    top: int
    left: int


@dataclass(frozen=True)
class IndicatorView:
    """Snapshot of what the indicator currently shows."""
    state: IndicatorState
    label: str = ""
    target_id: Optional[str] = None
    position: Optional[IndicatorPosition] = None

    @property
    def visible(self) -> bool:
        return self.state is not IndicatorState.IDLE
