"""Services layer for the dictation session engine."""

from .indicator import IndicatorStateMachine
from .interim_echo import InterimEcho
from .transcript_pipeline import TranscriptPipeline
from .session_controller import SessionController

__all__ = [
    "IndicatorStateMachine",
    "InterimEcho",
    "TranscriptPipeline",
    "SessionController",
]
