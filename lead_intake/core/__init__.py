"""Core modules for lead intake."""

from lead_intake.core.health import HealthState
from lead_intake.core.models import (
    LeadRecord,
    LeadStatus,
    ParsedLeadCandidate,
    ProcessingOutcome,
    ProcessingResult,
    RawMessage,
    ValidationOutcome,
)
from lead_intake.core.store import InMemoryLeadStore, LeadStore

__all__ = [
    "HealthState",
    "InMemoryLeadStore",
    "LeadRecord",
    "LeadStatus",
    "LeadStore",
    "ParsedLeadCandidate",
    "ProcessingOutcome",
    "ProcessingResult",
    "RawMessage",
    "ValidationOutcome",
]
