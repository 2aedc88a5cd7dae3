"""Data models for the Dictate2Me engine."""

from .transcription import TranscriptChunk, InterimSpan, PendingJob
from .session import Session, SessionState
from .ui import IndicatorState, IndicatorView, IndicatorPosition, Rect, STICKY_STATES
from .events import (
    TOPIC_MIC_ACCESS_DENIED,
    TOPIC_SURFACE_MUTATED,
    TOPIC_INDICATOR,
    TOPIC_SETTINGS_CHANGED,
    MicAccessDeniedEvent,
    SurfaceMutationEvent,
    IndicatorEvent,
    SettingsChangedEvent,
)

__all__ = [
    "TranscriptChunk",
    "InterimSpan",
    "PendingJob",
    "Session",
    "SessionState",
    "IndicatorState",
    "IndicatorView",
    "IndicatorPosition",
    "Rect",
    "STICKY_STATES",
    # Pub/sub
    "TOPIC_MIC_ACCESS_DENIED",
    "TOPIC_SURFACE_MUTATED",
    "TOPIC_INDICATOR",
    "TOPIC_SETTINGS_CHANGED",
    "MicAccessDeniedEvent",
    "SurfaceMutationEvent",
    "IndicatorEvent",
    "SettingsChangedEvent",
]
