"""Host document: focus, attachment and viewport of editable surfaces."""

import logging
import uuid
from typing import Callable, List, Optional, Tuple

from .base import TextSurface

logger = logging.getLogger(__name__)

FocusListener = Callable[[Optional[TextSurface]], None]
Listener = Callable[[], None]


class HostDocument:
    """The page-like context that owns surfaces and decides focus."""

    def __init__(self, location: str = "about:blank",
                 viewport: Tuple[int, int] = (1280, 800),
                 document_id: Optional[str] = None):
        """Initialize host document.

        Args:
            location: Current location, matched against the blacklist
            viewport: (width, height) of the visible area
            document_id: Identifier used in notifications
        """
        self.location = location
        self.viewport = viewport
        self.document_id = document_id or uuid.uuid4().hex[:8]
        self.active_surface: Optional[TextSurface] = None
        self._surfaces: List[TextSurface] = []
        self._focus_listeners: List[FocusListener] = []
        self._layout_listeners: List[Listener] = []
        self._unload_listeners: List[Listener] = []

    def attach(self, surface: TextSurface) -> TextSurface:
        if surface not in self._surfaces:
            self._surfaces.append(surface)
        surface.document = self
        return surface

    def detach(self, surface: TextSurface) -> None:
        if surface in self._surfaces:
            self._surfaces.remove(surface)
        if self.active_surface is surface:
            self.active_surface = None
        surface.document = None
        logger.debug(f"Detached {surface!r} from document {self.document_id}")

    def contains(self, surface: TextSurface) -> bool:
        return surface in self._surfaces

    def focus(self, surface: Optional[TextSurface]) -> None:
        """Move focus to surface (None blurs) and notify listeners."""
        if surface is not None and not self.contains(surface):
            raise ValueError(f"{surface!r} is not attached to document {self.document_id}")
        self.active_surface = surface
        for listener in list(self._focus_listeners):
            listener(surface)

    def blur(self) -> None:
        self.focus(None)

    def scroll(self) -> None:
        self._fire(self._layout_listeners)

    def resize(self, width: int, height: int) -> None:
        self.viewport = (width, height)
        self._fire(self._layout_listeners)

    def unload(self) -> None:
        self._fire(self._unload_listeners)

    def add_focus_listener(self, listener: FocusListener) -> None:
        self._focus_listeners.append(listener)

    def remove_focus_listener(self, listener: FocusListener) -> None:
        if listener in self._focus_listeners:
            self._focus_listeners.remove(listener)

    def add_layout_listener(self, listener: Listener) -> None:
        self._layout_listeners.append(listener)

    def remove_layout_listener(self, listener: Listener) -> None:
        if listener in self._layout_listeners:
            self._layout_listeners.remove(listener)

    def add_unload_listener(self, listener: Listener) -> None:
        self._unload_listeners.append(listener)

    def remove_unload_listener(self, listener: Listener) -> None:
        if listener in self._unload_listeners:
            self._unload_listeners.remove(listener)

    @staticmethod
    def _fire(listeners: List[Listener]) -> None:
        for listener in list(listeners):
            listener()
