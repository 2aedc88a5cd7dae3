"""Interim echo: speculative display of unconfirmed recognition text."""

import logging
from typing import Optional

from ..models.transcription import InterimSpan
from ..surface.base import TextSurface, SurfaceEdit, EditOrigin

logger = logging.getLogger(__name__)


class InterimEcho:
    """Writes interim text into the target and hands it over on finalization.

    At most one span is open. The span's start offset is captured at the
    first interim chunk of a phrase and each later chunk replaces the span's
    previous text. A user edit on the surface freezes the span: nothing more
    is echoed and the text is left where it is.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.span: Optional[InterimSpan] = None
        self._writing = False

    def show(self, target: TextSurface, text: str) -> bool:
        """Echo the cumulative interim text of the current phrase.

        Returns:
            True if the surface was updated
        """
        if not self.enabled:
            return False
        if self.span is not None and self.span.target is not target:
            logger.debug(f"Interim target changed to {target!r}, abandoning old span")
            self.abandon()

        if self.span is None:
            if not text or not target.is_live():
                return False
            # A selection is left alone; the echo goes in front of it
            start, _ = target.get_selection()
            self.span = InterimSpan(target=target, start=start)
            target.add_edit_listener(self._on_surface_edit)

        span = self.span
        if span.edited_since_echo or text == span.text:
            return False
        if not target.is_live():
            logger.debug(f"{target!r} is no longer live, not echoing interim text")
            return False

        self._writing = True
        try:
            target.replace_range(span.start, span.end, text)
        finally:
            self._writing = False
        span.text = text
        return True

    def open_span_for(self, target: TextSurface) -> Optional[InterimSpan]:
        """Return the span still showing interim text on target, if any."""
        span = self.span
        if span is None or span.target is not target or span.edited_since_echo or not span.text:
            return None
        if target.get_text()[span.start:span.end] != span.text:
            return None
        return span

    def take_for_commit(self) -> Optional[InterimSpan]:
        """Close the phrase and return its span if the final text may replace it."""
        span = self.span
        self._release()
        if span is None or span.edited_since_echo or not span.text:
            return None
        return span

    def retract(self) -> None:
        """Remove unconfirmed text from the surface and close the span."""
        span = self.span
        self._release()
        if span is None or span.edited_since_echo or not span.text:
            return
        target = span.target
        if not target.is_live() or target.get_text()[span.start:span.end] != span.text:
            logger.debug(f"Leaving interim text on {target!r}, surface no longer matches")
            return
        target.replace_range(span.start, span.end, "")
        logger.debug(f"Retracted interim text ({len(span.text)} chars) from {target!r}")

    def abandon(self) -> None:
        """Close the span, leaving its text on the surface."""
        self._release()

    def _release(self) -> None:
        if self.span is not None:
            self.span.target.remove_edit_listener(self._on_surface_edit)
        self.span = None

    def _on_surface_edit(self, surface: TextSurface, edit: SurfaceEdit) -> None:
        span = self.span
        if span is None or surface is not span.target or self._writing:
            return
        if edit.origin is EditOrigin.USER:
            if not span.edited_since_echo:
                logger.info(f"User edited {surface!r} during interim echo, abandoning span")
            span.edited_since_echo = True
        elif not span.rebase(edit):
            span.edited_since_echo = True
