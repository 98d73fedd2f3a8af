"""
Routing filters applied before any parsing.

The lane guard keeps replies to campaign mail (handled by the webhook lane)
out of this pipeline; the junk and allow-list filters drop unwanted senders.
"""

import re
from typing import Iterable

from lead_intake.config import settings

JUNK_PATTERNS = (
    re.compile(r"viagra|casino|lottery|winner|congratulations", re.IGNORECASE),
    re.compile(r"\$\$\$|\[SPAM\]|FREE MONEY", re.IGNORECASE),
)


class LaneGuard:
    """Decides whether a message belongs to the webhook (campaign reply) lane."""

    def __init__(self, patterns: Iterable[str] | None = None):
        source = settings.reserved_recipient_patterns if patterns is None else patterns
        self.patterns = tuple(p.lower() for p in source if p)

    def matching_recipient(self, recipients: Iterable[str]) -> str | None:
        """Return the first recipient that hits a reserved pattern."""
        for address in recipients:
            address_lower = (address or "").lower()
            if any(pattern in address_lower for pattern in self.patterns):
                return address
        return None

    def is_other_lane(self, recipients: Iterable[str]) -> bool:
        return self.matching_recipient(recipients) is not None


def is_junk(subject: str, sender: str) -> bool:
    """Match subject + sender against the spam pattern set."""
    content = f"{subject or ''} {sender or ''}"
    return any(pattern.search(content) for pattern in JUNK_PATTERNS)


def parse_allowed_senders(value: Iterable[str] | None) -> tuple[str, ...]:
    """Normalize an allow-list; "*" or an empty list disables it."""
    domains = tuple(d.strip().lower() for d in (value or ()) if d and d.strip())
    if "*" in domains:
        return ()
    return domains


def is_sender_allowed(sender_domain: str, allowed: tuple[str, ...]) -> bool:
    if not allowed:
        return True
    domain = (sender_domain or "").lower()
    return bool(domain) and any(entry in domain for entry in allowed)
