"""Formatting commands: spoken phrases that edit the surface instead of being typed."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Any

from ..surface.base import TextSurface, SurfaceEdit, EditOrigin

logger = logging.getLogger(__name__)


class CommandAction(Enum):
    """Surface mutation performed by a formatting command."""
    DELETE_LAST_WORD = "delete_last_word"
    CLEAR_ALL = "clear_all"
    INSERT_LITERAL = "insert_literal"


@dataclass(frozen=True)
class FormattingCommand:
    """A phrase bound to a surface mutation."""
    phrase: str
    action: CommandAction
    literal: str = ""

    def execute(self, surface: TextSurface) -> SurfaceEdit:
        if self.action is CommandAction.DELETE_LAST_WORD:
            return surface.delete_last_word(EditOrigin.ENGINE)
        if self.action is CommandAction.CLEAR_ALL:
            return surface.clear(EditOrigin.ENGINE)
        return surface.insert_at_cursor(self.literal, EditOrigin.ENGINE)


DEFAULT_FORMATTING_COMMANDS = [
    {"phrase": "delete word", "action": "delete_last_word"},
    {"phrase": "clear all", "action": "clear_all"},
    {"phrase": "erase all", "action": "clear_all"},
    {"phrase": "new line", "action": "insert_literal", "literal": "\n"},
    {"phrase": "new paragraph", "action": "insert_literal", "literal": "\n\n"},
    {"phrase": "paragraph", "action": "insert_literal", "literal": "\n\n"},
]


def normalize_phrase(text: str) -> str:
    return text.strip().lower()


def build_command_table(entries: Iterable[Any]) -> Dict[str, FormattingCommand]:
    """Build the phrase lookup table from configured entries.

    Args:
        entries: Mappings or objects with phrase, action and optional literal

    Returns:
        Dictionary keyed by normalized phrase
    """
    table = {}
    for entry in entries:
        if isinstance(entry, dict):
            phrase, action, literal = entry.get("phrase"), entry.get("action"), entry.get("literal", "")
        else:
            phrase, action, literal = entry.phrase, entry.action, entry.literal
        try:
            command = FormattingCommand(
                phrase=normalize_phrase(phrase or ""),
                action=CommandAction(action),
                literal=(literal or "").replace("\\n", "\n"),
            )
        except ValueError:
            logger.warning(f"Skipping formatting command with unknown action: {entry!r}")
            continue
        if not command.phrase:
            logger.warning(f"Skipping formatting command without a phrase: {entry!r}")
            continue
        table[command.phrase] = command
    return table


def match_command(text: str, table: Dict[str, FormattingCommand]) -> Optional[FormattingCommand]:
    """Exact-phrase match of a whole transcript against the command table."""
    return table.get(normalize_phrase(text))
