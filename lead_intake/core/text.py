"""
Text helpers shared by the mail parser and the lead field extractor.
"""

import html
import re

# Markup tags and comments. Angle-bracketed addresses such as "<jane@x.com>"
# are not tags and survive, so "Display Name <email>" stays matchable.
_TAG_RE = re.compile(r"<!--.*?-->|</?[A-Za-z][A-Za-z0-9-]*(?:\s[^<>]*)?/?>", re.DOTALL)
_BLOCK_TAG_RE = re.compile(r"<\s*(?:br|/p|/div|/tr|/li|/h[1-6])\b[^>]*>", re.IGNORECASE)
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_INLINE_SPACE_RE = re.compile(r"[ \t\f\v\xa0]+")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_tags(markup: str) -> str:
    """Remove markup tags and decode entities, keeping line structure."""
    if not markup:
        return ""
    text = _SCRIPT_STYLE_RE.sub(" ", markup)
    text = _BLOCK_TAG_RE.sub("\n", text)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    lines = (_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run (newlines included) into one space."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def clamp(value: str | None, limit: int) -> str | None:
    """Trim a value and cap its length; empty values become None."""
    if value is None:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    return trimmed[:limit]
