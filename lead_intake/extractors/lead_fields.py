"""
Heuristic lead field extraction from free-text email content.

Handles OEM forms, Cars.com/Autotrader leads and website contact forms. Each
field is resolved by an ordered list of (pattern, extractor) rules and the
first rule that yields a value wins, so rule order decides ambiguous input.
"""

import re
from datetime import datetime, timezone
from email.utils import parseaddr
from typing import Callable

from lead_intake.config import settings
from lead_intake.core.models import ParsedLeadCandidate
from lead_intake.core.text import clamp, collapse_whitespace, strip_tags

Rule = tuple[re.Pattern, Callable[[re.Match], str | None]]

# Multi-word form labels that can follow a value on the same line
_COMPOUND_LABEL = r"(?:first|last|full|customer)\s+name|phone\s+number|e-?mail\s+address"
# A label value ends at a separator, end of text, or the next "Label:".
_VALUE_END = rf"(?=\s*(?:[,;|]|$)|\s+(?:{_COMPOUND_LABEL}|[A-Za-z][\w-]*)\s*:)"
_NAME_WORD = r"[A-Za-z][A-Za-z'-]*"

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")

LABELED_PHONE_RE = re.compile(
    r"\b(?:phone|tel|telephone|mobile|cell)(?:\s*(?:number|no\.?|#))?\s*[:\-]?\s*(\+?\(?\d[\d\s().-]{4,}\d)",
    re.IGNORECASE,
)
BARE_PHONE_RE = re.compile(r"(?<![\d-])(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?![\d-])")

LABELED_NAME_RE = re.compile(
    rf"\b(?:customer\s+name|full\s+name|name|customer)\s*[:\-]\s*({_NAME_WORD}(?:\s+{_NAME_WORD}){{0,3}}?){_VALUE_END}",
    re.IGNORECASE,
)
FIRST_NAME_RE = re.compile(
    rf"\bfirst\s*name\s*[:\-]\s*({_NAME_WORD}(?:\s+{_NAME_WORD})??){_VALUE_END}",
    re.IGNORECASE,
)
LAST_NAME_RE = re.compile(
    rf"\b(?:last\s*name|surname)\s*[:\-]\s*({_NAME_WORD}(?:\s+{_NAME_WORD})??){_VALUE_END}",
    re.IGNORECASE,
)
DISPLAY_NAME_RE = re.compile(rf"({_NAME_WORD}(?:\s+{_NAME_WORD})?)\s*<[^<>\s]+@[^<>\s]+>")
FROM_NAME_RE = re.compile(rf"\bfrom\s*:\s*({_NAME_WORD}(?:\s+{_NAME_WORD})?)", re.IGNORECASE)

LABELED_VEHICLE_RE = re.compile(
    rf"\b(?:vehicle(?:\s+of\s+interest)?|model|interested\s+in)\s*[:\-]\s*([^,;|]{{2,50}}?){_VALUE_END}",
    re.IGNORECASE,
)
VEHICLE_MODEL_RE = re.compile(
    r"\b(F-?150|Silverado|RAM\s+1500|Tacoma|Tundra|RAV4|Highlander|Camry|Accord|Civic|CR-V|"
    r"Corolla|Prius|Mustang|Explorer|Wrangler|Outback|Model\s+[YSX3])\b",
    re.IGNORECASE,
)
VEHICLE_BRAND_RE = re.compile(
    r"\b(Toyota|Honda|Chevrolet|Chevy|Nissan|Tesla|Jeep|Hyundai|Kia|Subaru|Volkswagen|Mazda|Lexus)\b",
    re.IGNORECASE,
)

FORM_FIELD_RE = re.compile(r"^([A-Za-z][A-Za-z0-9_ ]{1,24}?)\s*:\s*(.+)$")
MAX_FORM_FIELDS = 10

# Sender domain fragment -> lead source
KNOWN_VENDORS: tuple[tuple[str, str], ...] = (
    ("cars.com", "cars_com"),
    ("autotrader", "autotrader"),
    ("kbb.com", "kbb"),
    ("cargurus", "cargurus"),
)
DEFAULT_LEAD_SOURCE = "email_inbound"

PROVENANCE_KEYS = {"original_subject", "sender_domain", "parsed_at", "content_length"}


def _group(index: int = 1) -> Callable[[re.Match], str | None]:
    return lambda match: match.group(index)


def _trim_value(match: re.Match) -> str | None:
    value = re.sub(r"[\s,.;:]+$", "", match.group(1))
    return value.strip() or None


EMAIL_RULES: list[Rule] = [
    (EMAIL_RE, _group(0)),
]

PHONE_RULES: list[Rule] = [
    (LABELED_PHONE_RE, _group(1)),
    (BARE_PHONE_RE, _group(0)),
]

FIRST_NAME_RULES: list[Rule] = [
    (FIRST_NAME_RE, _group(1)),
]

LAST_NAME_RULES: list[Rule] = [
    (LAST_NAME_RE, _group(1)),
]

NAME_RULES: list[Rule] = [
    (LABELED_NAME_RE, _group(1)),
    (DISPLAY_NAME_RE, _group(1)),
    (FROM_NAME_RE, _group(1)),
]

VEHICLE_RULES: list[Rule] = [
    (LABELED_VEHICLE_RE, _trim_value),
    (VEHICLE_MODEL_RE, _group(1)),
    (VEHICLE_BRAND_RE, _group(1)),
]


def first_match(rules: list[Rule], text: str) -> str | None:
    """Run rules in order and return the first non-empty extracted value."""
    for pattern, extract in rules:
        match = pattern.search(text)
        if match:
            value = extract(match)
            if value:
                return value.strip()
    return None


def extract_email(text: str) -> str | None:
    return first_match(EMAIL_RULES, text)


def normalize_phone(raw: str | None) -> str | None:
    """Keep digits only and drop a redundant leading US country code."""
    if not raw:
        return None
    digits = re.sub(r"\D", "", raw)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) < 7:
        return None
    return digits


def extract_phone(text: str) -> str | None:
    return normalize_phone(first_match(PHONE_RULES, text))


def _title_case(token: str) -> str:
    # Mixed case ("McDonald") is left as written
    if token.islower() or token.isupper():
        return token.capitalize()
    return token


def split_name(full_name: str | None) -> tuple[str | None, str | None]:
    """Split a full name into (first, last) on whitespace."""
    if not full_name:
        return None, None
    parts = [_title_case(part) for part in full_name.split()]
    if not parts:
        return None, None
    first = parts[0]
    last = " ".join(parts[1:]) or None
    return first, last


def extract_name(text: str) -> str | None:
    return first_match(NAME_RULES, text)


def extract_name_parts(text: str) -> tuple[str | None, str | None]:
    """
    Resolve (first, last) name.

    Separate "First Name:" / "Last Name:" fields win over any full-name rule.
    """
    first = first_match(FIRST_NAME_RULES, text)
    last = first_match(LAST_NAME_RULES, text)
    if first or last:
        return (
            " ".join(_title_case(part) for part in first.split()) if first else None,
            " ".join(_title_case(part) for part in last.split()) if last else None,
        )
    return split_name(extract_name(text))


def extract_vehicle_interest(text: str) -> str | None:
    value = first_match(VEHICLE_RULES, text)
    return collapse_whitespace(value) if value else None


def classify_lead_source(sender: str, subject: str = "") -> str:
    """Derive the lead source from the sender domain, then the subject."""
    _, address = parseaddr(sender or "")
    domain = address.rpartition("@")[2].lower()
    for fragment, source in KNOWN_VENDORS:
        if domain and fragment in domain:
            return source

    subject_lower = (subject or "").lower()
    if "website" in subject_lower or "contact" in subject_lower:
        return "website_form"
    return DEFAULT_LEAD_SOURCE


def extract_form_fields(text: str, limit: int = MAX_FORM_FIELDS, max_field: int = 200) -> dict[str, str]:
    """Capture up to `limit` "key: value" lines verbatim."""
    captured: dict[str, str] = {}
    for line in text.splitlines():
        if len(captured) >= limit:
            break
        match = FORM_FIELD_RE.match(line.strip())
        if not match:
            continue
        key = re.sub(r"\s+", "_", match.group(1).strip().lower())
        value = clamp(match.group(2), max_field)
        if key in PROVENANCE_KEYS or not value or key in captured:
            continue
        captured[key] = value
    return captured


class LeadFieldExtractor:
    """Turns (subject, body, sender) into a ParsedLeadCandidate."""

    def __init__(self, max_content: int | None = None, max_field: int | None = None):
        self.max_content = max_content or settings.lead_parse_max_content
        self.max_field = max_field or settings.lead_parse_max_field

    def extract(self, subject: str, body: str, sender: str) -> ParsedLeadCandidate:
        clipped = (body or "")[: self.max_content]
        text = strip_tags(clipped)
        content = collapse_whitespace(text)
        subject = subject or ""

        first_name, last_name = extract_name_parts(content)
        _, sender_address = parseaddr(sender or "")

        metadata: dict[str, object] = {
            "original_subject": clamp(subject, self.max_field),
            "sender_domain": sender_address.rpartition("@")[2].lower(),
            "parsed_at": datetime.now(timezone.utc).isoformat(),
            "content_length": len(content),
        }
        metadata.update(extract_form_fields(text, max_field=self.max_field))

        return ParsedLeadCandidate(
            first_name=clamp(first_name, self.max_field),
            last_name=clamp(last_name, self.max_field),
            email=clamp(extract_email(content), self.max_field),
            phone=extract_phone(content),
            vehicle_interest=clamp(extract_vehicle_interest(content), self.max_field),
            lead_source=classify_lead_source(sender, subject),
            notes=clamp(subject, self.max_field) if len(subject.strip()) > 5 else None,
            metadata=metadata,
        )
