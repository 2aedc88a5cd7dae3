"""Terminal dictation pad rendered with rich."""

import logging
from typing import Optional

from pubsub import pub
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models.events import (
    TOPIC_INDICATOR,
    TOPIC_SURFACE_MUTATED,
    TOPIC_MIC_ACCESS_DENIED,
    IndicatorEvent,
    SurfaceMutationEvent,
    MicAccessDeniedEvent,
)
from ..models.ui import IndicatorState
from ..surface.base import TextSurface

logger = logging.getLogger(__name__)

STATE_STYLES = {
    IndicatorState.IDLE: "dim white",
    IndicatorState.LISTENING: "bold green",
    IndicatorState.PROCESSING: "bold yellow",
    IndicatorState.TRANSLATING: "bold cyan",
    IndicatorState.BLACKLISTED: "bold magenta",
    IndicatorState.NO_MIC_ACCESS: "bold red",
    IndicatorState.PASSWORD_FIELD: "bold magenta",
    IndicatorState.RECOGNITION_ERROR: "bold red",
}


class ConsolePad:
    """Shows a surface's text and the dictation indicator in the terminal."""

    def __init__(self, surface: TextSurface, console: Optional[Console] = None):
        """Initialize console pad.

        Args:
            surface: Surface whose text is displayed
            console: Console to render to (new one if None)
        """
        self.surface = surface
        self.console = console or Console()
        self.indicator: Optional[IndicatorEvent] = None
        self.commits = 0
        self.notice = ""
        self._live: Optional[Live] = None

    def start(self) -> None:
        pub.subscribe(self.on_indicator, TOPIC_INDICATOR)
        pub.subscribe(self.on_surface_mutated, TOPIC_SURFACE_MUTATED)
        pub.subscribe(self.on_mic_access_denied, TOPIC_MIC_ACCESS_DENIED)
        self._live = Live(self.render(), console=self.console, refresh_per_second=8)
        self._live.start()

    def stop(self) -> None:
        pub.unsubscribe(self.on_indicator, TOPIC_INDICATOR)
        pub.unsubscribe(self.on_surface_mutated, TOPIC_SURFACE_MUTATED)
        pub.unsubscribe(self.on_mic_access_denied, TOPIC_MIC_ACCESS_DENIED)
        if self._live is not None:
            self._live.update(self.render())
            self._live.stop()
            self._live = None

    def on_indicator(self, event: IndicatorEvent) -> None:
        self.indicator = event
        self.update()

    def on_surface_mutated(self, event: SurfaceMutationEvent) -> None:
        if event.surface_id == self.surface.surface_id:
            self.commits += 1
        self.update()

    def on_mic_access_denied(self, event: MicAccessDeniedEvent) -> None:
        self.notice = f"Microphone access denied for {event.site or 'this document'}, dictation disabled"
        self.update()

    def update(self) -> None:
        """Redraw; called from events and periodically for interim text."""
        if self._live is not None:
            self._live.update(self.render())

    def render(self) -> Panel:
        state = self.indicator.state if self.indicator else IndicatorState.IDLE
        label = self.indicator.label if self.indicator and self.indicator.label else "Idle"

        status = Table.grid(padding=(0, 2))
        status.add_column(style="cyan")
        status.add_column()
        status.add_row("Status", Text(label, style=STATE_STYLES[state]))
        status.add_row("Commits", str(self.commits))
        if self.notice:
            status.add_row("Notice", Text(self.notice, style="red"))

        body = self.surface.get_text()
        text = Text(body, style="white") if body else Text("Start speaking...", style="dim white italic")
        return Panel(Group(status, Text(""), text),
                     title="Dictate2Me",
                     border_style=STATE_STYLES[state].replace("bold ", ""))
