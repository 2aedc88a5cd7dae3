"""Indicator state machine: user-visible dictation status."""

import asyncio
import logging
from typing import Optional

from pubsub import pub

from ..models.events import TOPIC_INDICATOR, IndicatorEvent
from ..models.ui import (
    IndicatorState,
    IndicatorView,
    IndicatorPosition,
    STICKY_STATES,
    INDICATOR_LABELS,
)
from ..surface.base import TextSurface
from ..surface.document import HostDocument

logger = logging.getLogger(__name__)

INDICATOR_HEIGHT = 18
INDICATOR_CHAR_WIDTH = 7
INDICATOR_PADDING = 12
EDGE_MARGIN = 5


class IndicatorStateMachine:
    """Derives the displayed indicator from session and pipeline events.

    Normal states (IDLE, LISTENING, PROCESSING, TRANSLATING) are recorded as
    the underlying state. Sticky states (BLACKLISTED, NO_MIC_ACCESS,
    PASSWORD_FIELD, RECOGNITION_ERROR) override the display for a fixed
    window, then the underlying state is shown again. Every change of the
    displayed view is published on the indicator topic.
    """

    def __init__(self, document: HostDocument, sticky_seconds: float = 3.0):
        """Initialize indicator.

        Args:
            document: Document whose viewport the indicator is placed in
            sticky_seconds: How long informational states stay on screen
        """
        self.document = document
        self.sticky_seconds = sticky_seconds
        self.translation_target: Optional[str] = None

        self._state = IndicatorState.IDLE
        self._target: Optional[TextSurface] = None
        self._sticky: Optional[IndicatorState] = None
        self._sticky_target: Optional[TextSurface] = None
        self._sticky_timer: Optional[asyncio.TimerHandle] = None
        self._view = IndicatorView(state=IndicatorState.IDLE)

    @property
    def view(self) -> IndicatorView:
        return self._view

    @property
    def state(self) -> IndicatorState:
        """Currently displayed state."""
        return self._view.state

    @property
    def underlying_state(self) -> IndicatorState:
        return self._state

    @property
    def sticky_state(self) -> Optional[IndicatorState]:
        return self._sticky

    def set_state(self, state: IndicatorState, target: Optional[TextSurface] = None) -> None:
        if state in STICKY_STATES:
            self._cancel_sticky_timer()
            self._sticky = state
            self._sticky_target = target
            self._sticky_timer = asyncio.get_running_loop().call_later(
                self.sticky_seconds, self._expire_sticky)
        else:
            self._state = state
            self._target = target if state is not IndicatorState.IDLE else None
            if self._sticky is not None:
                logger.debug(f"{state.value} held back while {self._sticky.value} is shown")
                return
        self._render()

    def clear_sticky(self) -> None:
        if self._sticky is None:
            return
        self._cancel_sticky_timer()
        self._sticky = None
        self._sticky_target = None
        self._render()

    def refresh(self) -> None:
        self._render()

    def reposition(self, check_focus: bool = False) -> None:
        """Recompute placement after scroll, resize or focus changes.

        Hides the indicator if its surface is gone, or, with check_focus,
        no longer focused or visible.
        """
        if self.state is IndicatorState.IDLE:
            return
        target = self._displayed_target()
        if target is None or not target.is_attached() or \
                (check_focus and (not target.is_focused() or not target.visible)):
            logger.debug("Indicator target gone, hiding indicator")
            self._hide()
            return
        self._render()

    def close(self) -> None:
        self._cancel_sticky_timer()

    def _hide(self) -> None:
        self._cancel_sticky_timer()
        self._sticky = None
        self._sticky_target = None
        self._state = IndicatorState.IDLE
        self._target = None
        self._render()

    def _expire_sticky(self) -> None:
        self._sticky_timer = None
        logger.debug(f"Indicator state {self._sticky.value if self._sticky else None} expired")
        self._sticky = None
        self._sticky_target = None
        self._render()

    def _cancel_sticky_timer(self) -> None:
        if self._sticky_timer is not None:
            self._sticky_timer.cancel()
            self._sticky_timer = None

    def _displayed_target(self) -> Optional[TextSurface]:
        return self._sticky_target if self._sticky is not None else self._target

    def _label(self, state: IndicatorState) -> str:
        label = INDICATOR_LABELS[state]
        if state is IndicatorState.LISTENING and self.translation_target:
            label = f"{label} → {self.translation_target.upper()}"
        return label

    def _render(self) -> None:
        state = self._sticky if self._sticky is not None else self._state
        target = self._displayed_target()

        if state is not IndicatorState.IDLE and target is not None and not target.is_attached():
            state, target = IndicatorState.IDLE, None

        label = self._label(state)
        position = self.compute_position(target, label) if state is not IndicatorState.IDLE and target else None
        view = IndicatorView(
            state=state,
            label=label,
            target_id=target.surface_id if target is not None else None,
            position=position,
        )
        if view == self._view:
            return
        self._view = view
        logger.debug(f"Indicator -> {state.value} ({view.target_id})")
        pub.sendMessage(TOPIC_INDICATOR, event=IndicatorEvent(
            document_id=self.document.document_id,
            state=view.state,
            label=view.label,
            target_id=view.target_id,
            position=view.position,
        ))

    def compute_position(self, target: TextSurface, label: str) -> IndicatorPosition:
        """Place the indicator inside the left edge of the target, clamped to the viewport."""
        rect = target.rect
        width = len(label) * INDICATOR_CHAR_WIDTH + INDICATOR_PADDING
        viewport_width, viewport_height = self.document.viewport

        top = rect.top + rect.height / 2 - INDICATOR_HEIGHT / 2
        left = rect.left + EDGE_MARGIN

        if rect.width < width + 15:
            # Narrow field: try the outside left, then the right side
            left = rect.left - width - EDGE_MARGIN
            if left < EDGE_MARGIN:
                left = rect.right + EDGE_MARGIN

        left = max(left, EDGE_MARGIN)
        top = max(top, EDGE_MARGIN)
        if left + width > viewport_width - EDGE_MARGIN:
            left = viewport_width - width - EDGE_MARGIN
        if top + INDICATOR_HEIGHT > viewport_height - EDGE_MARGIN:
            top = viewport_height - INDICATOR_HEIGHT - EDGE_MARGIN

        return IndicatorPosition(top=round(top), left=round(left))
