"""Text surface adapter interface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from ..models.ui import Rect

if TYPE_CHECKING:
    from .document import HostDocument

logger = logging.getLogger(__name__)

# Input types that never accept dictated text
NON_TEXT_INPUT_TYPES = frozenset({
    "button", "checkbox", "color", "file", "hidden", "image",
    "radio", "range", "reset", "submit",
})


class SurfaceKind(Enum):
    """Backing representation of an editable surface."""
    PLAIN = "plain"
    RICH = "rich"


class EditOrigin(Enum):
    """Who made an edit."""
    USER = "user"
    ENGINE = "engine"


@dataclass(frozen=True)
class SurfaceEdit:
    """A single range replacement, in pre-edit offsets."""
    start: int
    end: int
    text: str
    origin: EditOrigin

    @property
    def delta(self) -> int:
        return len(self.text) - (self.end - self.start)


EditListener = Callable[['TextSurface', SurfaceEdit], None]


class TextSurface(ABC):
    """Cursor-addressable editable text region.

    Offsets are character offsets into the normalized text projection
    returned by get_text(). All mutations go through replace_range(), which
    moves the cursor to the end of the inserted text and notifies edit
    listeners.
    """

    kind: SurfaceKind

    def __init__(self,
                 surface_id: str,
                 input_type: str = "text",
                 disabled: bool = False,
                 read_only: bool = False,
                 secret: bool = False):
        """Initialize surface.

        Args:
            surface_id: Identifier used in notifications and logs
            input_type: Host input type (e.g. "text", "search", "password")
            disabled: Surface does not accept input
            read_only: Surface content cannot be edited
            secret: Surface holds secret text (password fields)
        """
        self.surface_id = surface_id
        self.input_type = input_type.lower()
        self.disabled = disabled
        self.read_only = read_only
        self.secret = secret or self.input_type == "password"
        self.visible = True
        self.rect = Rect()
        self.document: Optional['HostDocument'] = None
        self._selection: Tuple[int, int] = (0, 0)
        self._edit_listeners: List[EditListener] = []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.surface_id}>"

    @abstractmethod
    def get_text(self) -> str:
        """Return the normalized text projection."""
        pass

    @abstractmethod
    def _write(self, start: int, end: int, text: str) -> None:
        """Replace [start, end) of the projection in the backing store."""
        pass

    def get_length(self) -> int:
        return len(self.get_text())

    def get_selection(self) -> Tuple[int, int]:
        start, end = self._selection
        length = self.get_length()
        return min(start, length), min(end, length)

    def set_selection(self, start: int, end: Optional[int] = None) -> None:
        if end is None:
            end = start
        length = self.get_length()
        start = max(0, min(start, length))
        end = max(start, min(end, length))
        self._selection = (start, end)

    def replace_range(self, start: int, end: int, text: str,
                      origin: EditOrigin = EditOrigin.ENGINE) -> SurfaceEdit:
        """Replace [start, end) with text and place the cursor after it.

        Returns:
            The applied edit, with offsets clamped to the current text
        """
        length = self.get_length()
        start = max(0, min(start, length))
        end = max(start, min(end, length))
        self._write(start, end, text)
        cursor = start + len(text)
        self._selection = (cursor, cursor)
        edit = SurfaceEdit(start=start, end=end, text=text, origin=origin)
        self._notify(edit)
        return edit

    def insert_at_cursor(self, text: str,
                         origin: EditOrigin = EditOrigin.ENGINE) -> SurfaceEdit:
        start, end = self.get_selection()
        return self.replace_range(start, end, text, origin)

    def clear(self, origin: EditOrigin = EditOrigin.ENGINE) -> SurfaceEdit:
        return self.replace_range(0, self.get_length(), "", origin)

    def delete_last_word(self, origin: EditOrigin = EditOrigin.ENGINE) -> SurfaceEdit:
        """Delete the selection, or the word before the cursor."""
        start, end = self.get_selection()
        if start != end:
            return self.replace_range(start, end, "", origin)
        before = self.get_text()[:start].rstrip()
        last_space = before.rfind(" ")
        keep = before[:last_space + 1] if last_space != -1 else ""
        return self.replace_range(len(keep), start, "", origin)

    def user_edit(self, start: int, end: int, text: str) -> SurfaceEdit:
        """Entry point for edits typed by the user in the host."""
        return self.replace_range(start, end, text, origin=EditOrigin.USER)

    def add_edit_listener(self, listener: EditListener) -> None:
        if listener not in self._edit_listeners:
            self._edit_listeners.append(listener)

    def remove_edit_listener(self, listener: EditListener) -> None:
        if listener in self._edit_listeners:
            self._edit_listeners.remove(listener)

    def _notify(self, edit: SurfaceEdit) -> None:
        for listener in list(self._edit_listeners):
            listener(self, edit)

    def is_editable_kind(self) -> bool:
        return self.input_type not in NON_TEXT_INPUT_TYPES

    def is_eligible(self) -> bool:
        """Whether dictation may target this surface at all."""
        return (self.is_editable_kind() and not self.secret
                and not self.disabled and not self.read_only)

    def is_attached(self) -> bool:
        return self.document is not None and self.document.contains(self)

    def is_focused(self) -> bool:
        return self.document is not None and self.document.active_surface is self

    def is_live(self) -> bool:
        """Attached, focused and still accepting dictation."""
        return self.is_attached() and self.is_focused() and self.is_eligible()
