"""Auto-replace rules: spoken phrase -> literal substitution."""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoReplaceRule:
    """A single case-insensitive phrase substitution."""
    key: str
    value: str
    pattern: Pattern

    @classmethod
    def create(cls, key: str, value: str) -> 'AutoReplaceRule':
        return cls(key=key, value=value, pattern=re.compile(re.escape(key), re.IGNORECASE))

    def apply(self, text: str) -> str:
        # Callable replacement so backslashes in the value stay literal
        return self.pattern.sub(lambda match: self.value, text)


def parse_auto_replace_rule(line: str) -> Optional[AutoReplaceRule]:
    """Parse one "key : value" line.

    Returns:
        The rule, or None if the line is blank or malformed
    """
    if not line.strip():
        return None
    key, separator, value = line.partition(":")
    key = key.strip()
    if not separator or not key:
        logger.warning(f"Skipping malformed auto-replace rule: {line!r}")
        return None
    value = value.strip().replace("\\n", "\n")
    return AutoReplaceRule.create(key, value)


def parse_auto_replace_rules(raw: Optional[str]) -> List[AutoReplaceRule]:
    """Parse the raw rules text, one rule per line, keeping order."""
    rules = []
    if not raw:
        return rules
    for line in raw.split("\n"):
        rule = parse_auto_replace_rule(line)
        if rule:
            rules.append(rule)
    logger.debug(f"Parsed {len(rules)} auto-replace rules")
    return rules


def apply_auto_replace(text: str, rules: Sequence[AutoReplaceRule]) -> str:
    """Apply rules in order; later rules see earlier rules' output."""
    for rule in rules:
        text = rule.apply(text)
    return text
