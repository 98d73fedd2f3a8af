"""
Shared pytest fixtures for lead_intake tests.
"""

import pytest
from datetime import datetime
from unittest.mock import MagicMock

from lead_intake.core.health import HealthState
from lead_intake.core.models import RawMessage
from lead_intake.core.store import InMemoryLeadStore
from lead_intake.processors.filters import LaneGuard
from lead_intake.processors.intake import MessageIntakeProcessor
from lead_intake.services.reconciler import LeadRecordReconciler


@pytest.fixture
def store() -> InMemoryLeadStore:
    """Empty in-memory lead store."""
    return InMemoryLeadStore()


@pytest.fixture
def health() -> HealthState:
    return HealthState()


@pytest.fixture
def reconciler(store) -> LeadRecordReconciler:
    return LeadRecordReconciler(store)


@pytest.fixture
def lane_guard() -> LaneGuard:
    """Lane guard with the default patterns plus one campaign domain."""
    return LaneGuard(["reply@", "noreply@", "no-reply@", "@campaign-domain.com"])


@pytest.fixture
def mock_mailbox():
    """Mailbox that records mark_processed calls."""
    return MagicMock()


@pytest.fixture
def processor(store, health, reconciler, lane_guard, mock_mailbox) -> MessageIntakeProcessor:
    """Intake processor wired to the in-memory store, no allow-list."""
    return MessageIntakeProcessor(
        store=store,
        health=health,
        reconciler=reconciler,
        lane_guard=lane_guard,
        allowed_senders=[],
        mailbox=mock_mailbox,
    )


@pytest.fixture
def lead_message() -> RawMessage:
    """Inbound website lead addressed to the sales inbox."""
    return RawMessage(
        uid=101,
        message_id="<lead-101@dealer-site.com>",
        subject="New website inquiry",
        sender="Website Forms <forms@dealer-site.com>",
        to=["sales@dealership.com"],
        body_plain="Name: Jane Doe, Email: jane@x.com, Phone: 555-1234, Interested in: Tacoma",
        email_date=datetime(2026, 3, 2, 9, 15, 0),
    )


@pytest.fixture
def make_message():
    """Factory for RawMessage with sensible defaults."""

    def _make(uid: int = 1, **overrides) -> RawMessage:
        values = {
            "uid": uid,
            "subject": "Vehicle inquiry",
            "sender": "Leads <leads@dealer-site.com>",
            "to": ["sales@dealership.com"],
            "body_plain": f"Name: Alex Rivera, Email: lead{uid}@example.com, Phone: 555-123-4567",
        }
        values.update(overrides)
        return RawMessage(**values)

    return _make


@pytest.fixture
def well_formed_csv() -> bytes:
    """Two valid rows with camelCase headers."""
    return (
        b"firstName,lastName,email,phone\n"
        b"John,Smith,john@example.com,555-111-2222\n"
        b"Mary,Jones,mary@example.com,555-333-4444\n"
    )
