"""Transcription-related data models."""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..surface.base import TextSurface, SurfaceEdit


@dataclass(frozen=True)
class TranscriptChunk:
    """A single result delivered by the recognition stream."""
    index: int
    text: str
    is_final: bool = False


@dataclass
class InterimSpan:
    """Speculative text currently echoed into the target surface."""
    target: 'TextSurface'
    start: int
    text: str = ""
    edited_since_echo: bool = False

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    def rebase(self, edit: 'SurfaceEdit') -> bool:
        """Shift the span for an edit made elsewhere on the surface.

        Returns:
            False if the edit overlapped the span, True otherwise
        """
        if edit.end <= self.start:
            self.start += edit.delta
            return True
        if edit.start >= self.end:
            return True
        return False


@dataclass
class PendingJob:
    """A final transcript queued for the transcript pipeline."""
    job_id: int
    text: str
    target: 'TextSurface'
    supersedes_interim: bool = False
    span_start: Optional[int] = None
    span_text: str = ""

    @property
    def span_length(self) -> int:
        return len(self.span_text)

    def rebase(self, edit: 'SurfaceEdit') -> None:
        """Keep the captured interim span aligned with earlier edits."""
        if not self.supersedes_interim or self.span_start is None:
            return
        span_end = self.span_start + self.span_length
        if edit.end <= self.span_start:
            self.span_start += edit.delta
        elif edit.start < span_end:
            # Overlapping edit, the span no longer holds our text
            self.supersedes_interim = False
            self.span_start = None
