"""Rich/structured surface made of text blocks."""

from typing import List, Optional

from .base import TextSurface, SurfaceKind

BLOCK_SEPARATOR = "\n"


class RichTextSurface(TextSurface):
    """Surface backed by a list of blocks (paragraphs).

    The normalized projection joins blocks with a newline, so a newline
    inserted through replace_range() splits a block and deleting one merges
    the neighbouring blocks.
    """

    kind = SurfaceKind.RICH

    def __init__(self, surface_id: str, blocks: Optional[List[str]] = None, **kwargs):
        super().__init__(surface_id, **kwargs)
        self.blocks: List[str] = list(blocks) if blocks else [""]
        self.set_selection(self.get_length())

    def get_text(self) -> str:
        return BLOCK_SEPARATOR.join(self.blocks)

    def _write(self, start: int, end: int, text: str) -> None:
        projection = self.get_text()
        updated = projection[:start] + text + projection[end:]
        self.blocks = updated.split(BLOCK_SEPARATOR)
