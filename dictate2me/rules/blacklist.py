"""Site blacklist matching."""

from typing import List, Optional, Sequence


def parse_blacklist_sites(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [site.strip() for site in raw.split("\n") if site.strip()]


def is_blacklisted(location: str, patterns: Sequence[str]) -> bool:
    return any(pattern in location for pattern in patterns)
