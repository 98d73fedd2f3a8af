"""
Data models for lead intake.

Uses dataclasses for clean, typed data structures.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from email.utils import parseaddr
from enum import Enum
from typing import Any

from lead_intake.core.text import strip_tags


class LeadStatus(str, Enum):
    """Lifecycle status of a stored lead."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    LOST = "lost"


class ProcessingOutcome(str, Enum):
    """What happened to one inbound message."""

    PROCESSED = "processed"
    SKIPPED_ALREADY_SEEN = "skipped_already_seen"
    SKIPPED_OTHER_LANE = "skipped_other_lane"
    SKIPPED_JUNK = "skipped_junk"
    SKIPPED_SENDER = "skipped_sender"
    VALIDATION_FAILED = "validation_failed"
    ERROR = "error"

    @property
    def is_failure(self) -> bool:
        return self in (ProcessingOutcome.VALIDATION_FAILED, ProcessingOutcome.ERROR)


@dataclass
class RawMessage:
    """One message fetched from the mailbox. Consumed once, never stored."""

    uid: int
    message_id: str = ""
    subject: str = ""
    sender: str = ""
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    body_plain: str = ""
    body_html: str = ""
    email_date: datetime | None = None
    size_bytes: int = 0

    @property
    def recipients(self) -> list[str]:
        """All To and Cc addresses."""
        return [*self.to, *self.cc]

    @property
    def body(self) -> str:
        """Get message body, preferring plain text."""
        return self.body_plain or strip_tags(self.body_html)

    @property
    def sender_email(self) -> str:
        """Extract email address from sender header like 'Name <email@example.com>'."""
        if not self.sender:
            return ""
        _, address = parseaddr(self.sender)
        return address.lower() if address else ""

    @property
    def sender_domain(self) -> str:
        _, _, domain = self.sender_email.partition("@")
        return domain


@dataclass
class ParsedLeadCandidate:
    """Lead fields extracted from free text. Every field is optional."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    vehicle_interest: str | None = None
    lead_source: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def has_name(self) -> bool:
        return bool(self.first_name or self.last_name)


# Candidate fields copied onto a LeadRecord when present
MERGEABLE_FIELDS = ("first_name", "last_name", "phone", "vehicle_interest", "lead_source")


@dataclass
class LeadRecord:
    """Persisted lead, keyed by case-insensitive email."""

    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    vehicle_interest: str | None = None
    lead_source: str | None = None
    status: LeadStatus = LeadStatus.NEW
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["status"] = self.status.value
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data


@dataclass
class Conversation:
    """Conversation opened for a lead by an inbound message."""

    id: int
    subject: str
    status: str = "active"
    lead_id: int | None = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class ConversationMessage:
    """A single message inside a conversation."""

    id: int
    conversation_id: int
    sender_id: int | None
    content: str
    message_type: str = "email"
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class ProcessingResult:
    """Result from processing one inbound message."""

    uid: int
    outcome: ProcessingOutcome
    lead_id: int | None = None
    created: bool = False
    issues: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class ValidationStats:
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    duplicate_emails: int = 0


@dataclass
class ValidationOutcome:
    """Result of validating one CSV upload."""

    valid: bool
    data: list[Any] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: ValidationStats = field(default_factory=ValidationStats)
    # Stage that rejected the whole batch; None once rows were validated
    failure: str | None = None


@dataclass(frozen=True)
class HealthError:
    timestamp: datetime
    message: str


@dataclass(frozen=True)
class HealthStatus:
    """Read-only view of the mail lane's health."""

    connected: bool = False
    last_message_timestamp: datetime | None = None
    last_processed_uid: int | None = None
    messages_processed: int = 0
    errors: tuple[HealthError, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "connected": self.connected,
            "lastMessageTimestamp": (
                self.last_message_timestamp.isoformat() if self.last_message_timestamp else None
            ),
            "lastProcessedUid": self.last_processed_uid,
            "messagesProcessed": self.messages_processed,
            "errors": [
                {"timestamp": e.timestamp.isoformat(), "message": e.message} for e in self.errors
            ],
        }
