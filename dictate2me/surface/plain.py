"""Plain-value surface (single string value, like an input or textarea)."""

from .base import TextSurface, SurfaceKind


class PlainTextSurface(TextSurface):
    """Surface backed by a single string value."""

    kind = SurfaceKind.PLAIN

    def __init__(self, surface_id: str, value: str = "", **kwargs):
        super().__init__(surface_id, **kwargs)
        self.value = value
        self.set_selection(len(value))

    def get_text(self) -> str:
        return self.value

    def _write(self, start: int, end: int, text: str) -> None:
        self.value = self.value[:start] + text + self.value[end:]
