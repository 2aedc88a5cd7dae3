"""Recognition stream collaborators."""

from .base import (
    StreamErrorKind,
    FATAL_STREAM_ERRORS,
    RecognitionStreamHandle,
    RecognitionProvider,
)

__all__ = [
    "StreamErrorKind",
    "FATAL_STREAM_ERRORS",
    "RecognitionStreamHandle",
    "RecognitionProvider",
]
