"""Dictate2Me - speech dictation engine for editable text surfaces."""

__version__ = "0.1.0"
