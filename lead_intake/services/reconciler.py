"""
Create-or-merge of parsed lead candidates into the lead store.
"""

from dataclasses import dataclass

from lead_intake.core.logging import get_logger
from lead_intake.core.models import (
    LeadRecord,
    LeadStatus,
    MERGEABLE_FIELDS,
    ParsedLeadCandidate,
)
from lead_intake.core.store import LeadStore
from lead_intake.extractors.lead_fields import DEFAULT_LEAD_SOURCE

log = get_logger(__name__)


@dataclass
class ReconcileResult:
    record: LeadRecord
    created: bool


class LeadRecordReconciler:
    """Looks leads up by email (ignoring case) and creates or merges them."""

    def __init__(self, store: LeadStore):
        self.store = store

    def reconcile(self, candidate: ParsedLeadCandidate) -> ReconcileResult:
        """
        Create a lead on first sighting of an email, merge on every later one.

        Non-empty incoming fields overwrite stored values; empty or missing
        ones leave the stored value untouched. Nothing is ever deleted.
        """
        email = (candidate.email or "").strip()
        if not email:
            raise ValueError("Cannot reconcile a lead candidate without an email")

        existing = self.store.get_by_email(email)
        incoming = self._non_empty_fields(candidate)

        if existing is None:
            data = {
                "email": email,
                "status": LeadStatus.NEW,
                **incoming,
            }
            data.setdefault("lead_source", DEFAULT_LEAD_SOURCE)
            record = self.store.create(data)
            log.info("lead_created", lead_id=record.id, email=email)
            return ReconcileResult(record=record, created=True)

        if not incoming:
            log.info("lead_unchanged", lead_id=existing.id, email=existing.email)
            return ReconcileResult(record=existing, created=False)

        record = self.store.update(existing.id, incoming)
        log.info("lead_merged", lead_id=record.id, email=record.email, fields=sorted(incoming))
        return ReconcileResult(record=record, created=False)

    @staticmethod
    def _non_empty_fields(candidate: ParsedLeadCandidate) -> dict[str, str]:
        changes = {}
        for name in MERGEABLE_FIELDS:
            value = getattr(candidate, name)
            if isinstance(value, str):
                value = value.strip()
            if value:
                changes[name] = value
        return changes
