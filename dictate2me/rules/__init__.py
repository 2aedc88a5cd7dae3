"""Rule engine: formatting commands, auto-replace and blacklist."""

from dataclasses import dataclass, field
from typing import Dict, List

from .auto_replace import AutoReplaceRule, parse_auto_replace_rules, apply_auto_replace
from .commands import (
    CommandAction,
    FormattingCommand,
    DEFAULT_FORMATTING_COMMANDS,
    build_command_table,
    match_command,
)
from .blacklist import parse_blacklist_sites, is_blacklisted


@dataclass
class RuleBook:
    """Parsed rules used by the transcript pipeline."""
    commands: Dict[str, FormattingCommand] = field(default_factory=dict)
    replacements: List[AutoReplaceRule] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings) -> 'RuleBook':
        return cls(
            commands=build_command_table(settings.formatting_commands),
            replacements=parse_auto_replace_rules(settings.auto_replace_rules),
        )


__all__ = [
    "RuleBook",
    "AutoReplaceRule",
    "parse_auto_replace_rules",
    "apply_auto_replace",
    "CommandAction",
    "FormattingCommand",
    "DEFAULT_FORMATTING_COMMANDS",
    "build_command_table",
    "match_command",
    "parse_blacklist_sites",
    "is_blacklisted",
]
