"""Event models and pub/sub topics for outbound notifications."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .ui import IndicatorState, IndicatorPosition

TOPIC_MIC_ACCESS_DENIED = "dictation_mic_access_denied"
TOPIC_SURFACE_MUTATED = "dictation_surface_mutated"
TOPIC_INDICATOR = "dictation_indicator"
TOPIC_SETTINGS_CHANGED = "settings_changed"


@dataclass
class MicAccessDeniedEvent:
    """Microphone permission was refused for a site."""
    site: str
    document_id: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SurfaceMutationEvent:
    """The engine changed a surface's text."""
    document_id: str
    surface_id: str
    action: str  # "insert", "replace", "delete_last_word", "clear_all", "insert_literal"
    text: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class IndicatorEvent:
    """Indicator display changed."""
    document_id: str
    state: IndicatorState
    label: str = ""
    target_id: Optional[str] = None
    position: Optional[IndicatorPosition] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SettingsChangedEvent:
    """Dictation settings were updated."""
    changes: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)
