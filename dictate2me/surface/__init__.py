"""Text surface adapters."""

from .base import TextSurface, SurfaceKind, SurfaceEdit, EditOrigin
from .plain import PlainTextSurface
from .rich_text import RichTextSurface
from .document import HostDocument

__all__ = [
    "TextSurface",
    "SurfaceKind",
    "SurfaceEdit",
    "EditOrigin",
    "PlainTextSurface",
    "RichTextSurface",
    "HostDocument",
]
