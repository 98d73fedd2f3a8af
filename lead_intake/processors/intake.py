"""
Per-message intake: lane guard -> filters -> extract -> validate -> reconcile.

Messages are processed one at a time in ascending UID order. A failure in one
message is recorded and never stops the batch.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from lead_intake.config import settings
from lead_intake.core.health import HealthState
from lead_intake.core.logging import bind_context, clear_context, get_logger
from lead_intake.core.models import (
    LeadRecord,
    ParsedLeadCandidate,
    ProcessingOutcome,
    ProcessingResult,
    RawMessage,
)
from lead_intake.core.store import LeadStore
from lead_intake.extractors.lead_fields import LeadFieldExtractor
from lead_intake.processors.base import Mailbox
from lead_intake.processors.filters import (
    LaneGuard,
    is_junk,
    is_sender_allowed,
    parse_allowed_senders,
)
from lead_intake.services.memory import LeadMemorySink, NullMemorySink
from lead_intake.services.reconciler import LeadRecordReconciler

log = get_logger(__name__)

EMAIL_FORMAT_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class QualityCheck:
    """Lead quality verdict. A missing or malformed email is a hard failure."""

    valid: bool
    issues: list[str] = field(default_factory=list)
    hard_failure: bool = False


def check_lead_quality(candidate: ParsedLeadCandidate) -> QualityCheck:
    if not candidate.email:
        return QualityCheck(valid=False, issues=["No email address found"], hard_failure=True)
    if not EMAIL_FORMAT_RE.match(candidate.email):
        return QualityCheck(valid=False, issues=["Invalid email format"], hard_failure=True)
    if not (candidate.has_name or candidate.phone or candidate.vehicle_interest):
        return QualityCheck(
            valid=False,
            issues=["No name, phone or vehicle interest - limited lead quality"],
        )
    return QualityCheck(valid=True)


class MessageIntakeProcessor:
    """Turns inbound mailbox messages into lead records."""

    def __init__(
        self,
        store: LeadStore,
        health: HealthState | None = None,
        reconciler: LeadRecordReconciler | None = None,
        extractor: LeadFieldExtractor | None = None,
        memory_sink: LeadMemorySink | None = None,
        lane_guard: LaneGuard | None = None,
        allowed_senders: Iterable[str] | None = None,
        mailbox: Mailbox | None = None,
    ):
        self.store = store
        self.health = health or HealthState()
        self.reconciler = reconciler or LeadRecordReconciler(store)
        self.extractor = extractor or LeadFieldExtractor()
        self.memory_sink = memory_sink or NullMemorySink()
        self.lane_guard = lane_guard or LaneGuard()
        self.allowed_senders = parse_allowed_senders(
            settings.lead_ingest_allowed_senders if allowed_senders is None else allowed_senders
        )
        self.mailbox = mailbox
        self._watermark = 0

    @property
    def watermark(self) -> int:
        """Highest UID already processed."""
        return self._watermark

    def process_batch(self, messages: Iterable[RawMessage]) -> dict[str, int]:
        """Process messages sequentially and return counts per outcome."""
        stats: Counter[str] = Counter()
        for message in sorted(messages, key=lambda m: m.uid):
            result = self.process(message)
            stats[result.outcome.value] += 1
        return dict(stats)

    def process(self, message: RawMessage) -> ProcessingResult:
        if message.uid <= self._watermark:
            return ProcessingResult(uid=message.uid, outcome=ProcessingOutcome.SKIPPED_ALREADY_SEEN)

        bind_context(uid=message.uid)
        try:
            try:
                result = self._run(message)
            except Exception as e:
                log.error("message_processing_failed", error=str(e))
                self.health.record_error(f"Message processing failed: {e}")
                result = ProcessingResult(uid=message.uid, outcome=ProcessingOutcome.ERROR, error=str(e))

            self._finalize(message, result)
            return result
        finally:
            clear_context()

    def _run(self, message: RawMessage) -> ProcessingResult:
        log.info("message_processing", subject=message.subject, sender=message.sender)

        recipient = self.lane_guard.matching_recipient(message.recipients)
        if recipient:
            log.info("message_skipped_other_lane", recipient=recipient)
            return ProcessingResult(uid=message.uid, outcome=ProcessingOutcome.SKIPPED_OTHER_LANE)

        if is_junk(message.subject, message.sender):
            log.info("message_skipped_junk")
            return ProcessingResult(uid=message.uid, outcome=ProcessingOutcome.SKIPPED_JUNK)

        if not is_sender_allowed(message.sender_domain, self.allowed_senders):
            log.info("message_skipped_sender", sender_domain=message.sender_domain)
            return ProcessingResult(uid=message.uid, outcome=ProcessingOutcome.SKIPPED_SENDER)

        candidate = self.extractor.extract(message.subject, message.body, message.sender)

        quality = check_lead_quality(candidate)
        if not quality.valid:
            log.warning(
                "lead_validation_failed",
                issues=quality.issues,
                hard_failure=quality.hard_failure,
            )
            return ProcessingResult(
                uid=message.uid,
                outcome=ProcessingOutcome.VALIDATION_FAILED,
                issues=quality.issues,
            )

        reconciled = self.reconciler.reconcile(candidate)
        lead = reconciled.record

        conversation = self.store.create_conversation(
            subject=message.subject or "Email Inquiry",
            status="active",
            lead_id=lead.id,
        )
        self.store.create_conversation_message(
            conversation_id=conversation.id,
            sender_id=lead.id,
            content=message.body_plain or message.body_html,
            message_type="email",
        )

        self._write_memory(lead, candidate, message)

        log.info(
            "inbound_lead_processed",
            lead_id=lead.id,
            created=reconciled.created,
            conversation_id=conversation.id,
        )
        return ProcessingResult(
            uid=message.uid,
            outcome=ProcessingOutcome.PROCESSED,
            lead_id=lead.id,
            created=reconciled.created,
        )

    def _write_memory(self, lead: LeadRecord, candidate: ParsedLeadCandidate, message: RawMessage) -> None:
        try:
            self.memory_sink.add_lead_memory(lead, candidate, message)
        except Exception as e:
            # Optional context only, never fails the message
            log.warning("lead_memory_failed", lead_id=lead.id, error=str(e))

    def _finalize(self, message: RawMessage, result: ProcessingResult) -> None:
        # Errored messages are flagged and moved but stay below the watermark
        if result.outcome is not ProcessingOutcome.ERROR:
            self._watermark = max(self._watermark, message.uid)

        if self.mailbox is not None:
            try:
                self.mailbox.mark_processed(message.uid, result.outcome)
            except Exception as e:
                log.error("mark_processed_failed", outcome=result.outcome.value, error=str(e))
                self.health.record_error(f"Mark processed failed for UID {message.uid}: {e}")

        if result.outcome is ProcessingOutcome.PROCESSED:
            self.health.record_message(message.uid)
