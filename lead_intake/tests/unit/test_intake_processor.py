"""Unit tests for the per-message intake processor."""

from unittest.mock import MagicMock, call

import pytest

from lead_intake.core.models import ParsedLeadCandidate, ProcessingOutcome
from lead_intake.processors.filters import LaneGuard, is_junk, is_sender_allowed, parse_allowed_senders
from lead_intake.processors.intake import MessageIntakeProcessor, check_lead_quality


class TestProcess:
    """Tests for the happy path."""

    def test_creates_lead_and_conversation(self, processor, store, health, lead_message, mock_mailbox):
        """Test a valid lead email creates a lead, conversation and message."""
        result = processor.process(lead_message)

        assert result.outcome == ProcessingOutcome.PROCESSED
        assert result.created is True

        lead = store.leads[result.lead_id]
        assert lead.email == "jane@x.com"
        assert lead.first_name == "Jane"
        assert lead.vehicle_interest == "Tacoma"

        conversation = next(iter(store.conversations.values()))
        assert conversation.subject == "New website inquiry"
        assert conversation.lead_id == lead.id
        assert store.messages[0].sender_id == lead.id
        assert store.messages[0].content == lead_message.body_plain

        mock_mailbox.mark_processed.assert_called_once_with(101, ProcessingOutcome.PROCESSED)
        status = health.snapshot()
        assert status.messages_processed == 1
        assert status.last_processed_uid == 101

    def test_default_subject(self, processor, store, make_message):
        processor.process(make_message(uid=1, subject=""))
        conversation = next(iter(store.conversations.values()))
        assert conversation.subject == "Email Inquiry"

    def test_repeat_sender_merges(self, processor, store, make_message):
        """Test a second email from the same address updates the same lead."""
        first = processor.process(make_message(uid=1))
        second = processor.process(
            make_message(uid=2, body_plain="Email: LEAD1@example.com, Interested in: Civic")
        )

        assert second.created is False
        assert second.lead_id == first.lead_id
        assert store.leads[first.lead_id].vehicle_interest == "Civic"
        assert len(store.conversations) == 2

    def test_batch_in_uid_order(self, processor, make_message):
        """Test a batch is processed in ascending UID order."""
        seen = []
        original = processor.process

        def record(message):
            seen.append(message.uid)
            return original(message)

        processor.process = record
        stats = processor.process_batch([make_message(uid=5), make_message(uid=3), make_message(uid=4)])

        assert seen == [3, 4, 5]
        assert stats == {"processed": 3}


class TestLaneGuard:
    """Tests for keeping campaign replies out of the intake lane."""

    def test_reply_address_skipped(self, processor, store, health, make_message):
        """Test a message to the campaign reply address creates nothing."""
        message = make_message(uid=9, to=["reply@campaign-domain.com"])
        result = processor.process(message)

        assert result.outcome == ProcessingOutcome.SKIPPED_OTHER_LANE
        assert store.leads == {}
        assert store.conversations == {}
        status = health.snapshot()
        assert status.messages_processed == 0
        assert status.last_processed_uid is None

    def test_cc_checked(self, processor, make_message):
        message = make_message(uid=2, to=["sales@dealership.com"], cc=["noreply@somewhere.com"])
        assert processor.process(message).outcome == ProcessingOutcome.SKIPPED_OTHER_LANE

    def test_campaign_domain(self, lane_guard):
        assert lane_guard.is_other_lane(["Sales <offers@Campaign-Domain.com>"]) is True
        assert lane_guard.is_other_lane(["sales@dealership.com"]) is False

    def test_idempotent(self, lane_guard):
        """Test the same recipients always give the same answer."""
        recipients = ["a@x.com", "reply@campaign-domain.com"]
        answers = {lane_guard.matching_recipient(recipients) for _ in range(3)}
        assert answers == {"reply@campaign-domain.com"}

    def test_empty_patterns(self):
        assert LaneGuard([]).is_other_lane(["reply@anything.com"]) is False


class TestFilters:
    """Tests for junk and sender filters."""

    def test_junk_skipped(self, processor, store, make_message):
        result = processor.process(make_message(uid=1, subject="Congratulations, you are a WINNER"))
        assert result.outcome == ProcessingOutcome.SKIPPED_JUNK
        assert store.leads == {}

    def test_is_junk(self):
        assert is_junk("[SPAM] offer", "") is True
        assert is_junk("Test drive request", "jane@x.com") is False

    def test_sender_not_allowed(self, store, health, make_message):
        processor = MessageIntakeProcessor(store=store, health=health, allowed_senders=["cars.com"])
        result = processor.process(make_message(uid=1, sender="someone@gmail.com"))
        assert result.outcome == ProcessingOutcome.SKIPPED_SENDER

    def test_sender_allowed(self, store, health, make_message):
        processor = MessageIntakeProcessor(store=store, health=health, allowed_senders=["cars.com"])
        result = processor.process(make_message(uid=1, sender="Leads <leads@cars.com>"))
        assert result.outcome == ProcessingOutcome.PROCESSED

    @pytest.mark.parametrize("value", [[], ["*"], None])
    def test_allow_list_disabled(self, value):
        assert parse_allowed_senders(value) == ()
        assert is_sender_allowed("anything.com", parse_allowed_senders(value)) is True


class TestValidation:
    """Tests for the lead quality gate."""

    def test_no_email(self, processor, store, mock_mailbox, make_message):
        """Test a message without an email is a hard validation failure."""
        result = processor.process(make_message(uid=4, body_plain="Name: Jane Doe, Phone: 555-123-4567"))

        assert result.outcome == ProcessingOutcome.VALIDATION_FAILED
        assert result.issues == ["No email address found"]
        assert store.leads == {}
        mock_mailbox.mark_processed.assert_called_once_with(4, ProcessingOutcome.VALIDATION_FAILED)

    def test_email_only(self, processor, store, make_message):
        """Test an email without name, phone or vehicle is rejected."""
        result = processor.process(make_message(uid=4, body_plain="Reach me at solo@example.com"))
        assert result.outcome == ProcessingOutcome.VALIDATION_FAILED
        assert store.leads == {}

    def test_quality_rules(self):
        assert check_lead_quality(ParsedLeadCandidate(email="a@b.com", phone="5551234")).valid is True
        assert check_lead_quality(ParsedLeadCandidate(email="a@b.com", last_name="Doe")).valid is True

        malformed = check_lead_quality(ParsedLeadCandidate(email="not-an-email", phone="5551234"))
        assert malformed.valid is False
        assert malformed.hard_failure is True

        soft = check_lead_quality(ParsedLeadCandidate(email="a@b.com"))
        assert soft.valid is False
        assert soft.hard_failure is False


class TestWatermark:
    """Tests for UID watermark handling."""

    def test_advances(self, processor, make_message):
        processor.process(make_message(uid=10))
        assert processor.watermark == 10

    def test_old_uid_skipped(self, processor, store, make_message):
        """Test UIDs at or below the watermark are not processed again."""
        processor.process(make_message(uid=10))
        result = processor.process(make_message(uid=10, body_plain="Email: other@example.com, Phone: 555-999-0000"))

        assert result.outcome == ProcessingOutcome.SKIPPED_ALREADY_SEEN
        assert len(store.leads) == 1

    def test_monotonic(self, processor, make_message):
        processor.process(make_message(uid=20))
        processor.process(make_message(uid=15))
        assert processor.watermark == 20

    def test_skips_advance_watermark(self, processor, make_message):
        processor.process(make_message(uid=7, to=["reply@campaign-domain.com"]))
        assert processor.watermark == 7


class TestFailureIsolation:
    """Tests that one bad message never stops the batch."""

    def test_exception_recorded(self, store, health, make_message):
        """Test an unexpected error is recorded and the next message still runs."""
        extractor = MagicMock()
        extractor.extract.side_effect = [
            RuntimeError("parser exploded"),
            ParsedLeadCandidate(email="ok@example.com", phone="5551234"),
        ]
        processor = MessageIntakeProcessor(store=store, health=health, extractor=extractor, allowed_senders=[])

        stats = processor.process_batch([make_message(uid=1), make_message(uid=2)])

        assert stats == {"error": 1, "processed": 1}
        assert health.snapshot().errors[0].message == "Message processing failed: parser exploded"
        assert len(store.leads) == 1

    def test_error_does_not_advance_watermark(self, store, health, make_message):
        extractor = MagicMock()
        extractor.extract.side_effect = RuntimeError("boom")
        processor = MessageIntakeProcessor(store=store, health=health, extractor=extractor, allowed_senders=[])

        result = processor.process(make_message(uid=3))

        assert result.outcome == ProcessingOutcome.ERROR
        assert processor.watermark == 0

    def test_memory_failure_ignored(self, store, health, make_message):
        """Test a failing memory sink does not fail the message."""
        sink = MagicMock()
        sink.add_lead_memory.side_effect = RuntimeError("memory service down")
        processor = MessageIntakeProcessor(store=store, health=health, memory_sink=sink, allowed_senders=[])

        result = processor.process(make_message(uid=1))

        assert result.outcome == ProcessingOutcome.PROCESSED
        sink.add_lead_memory.assert_called_once()
        assert health.snapshot().errors == ()

    def test_mark_failure_recorded(self, processor, health, mock_mailbox, make_message):
        mock_mailbox.mark_processed.side_effect = OSError("connection reset")

        result = processor.process(make_message(uid=8))

        assert result.outcome == ProcessingOutcome.PROCESSED
        assert health.snapshot().errors[0].message == "Mark processed failed for UID 8: connection reset"
        assert processor.watermark == 8

    def test_error_flagged_and_not_redelivered(self, store, health, mock_mailbox, make_message):
        """Test an errored message is finalized so later polls never fetch it again."""
        extractor = MagicMock()
        extractor.extract.side_effect = [
            RuntimeError("parser exploded"),
            ParsedLeadCandidate(email="ok@example.com", phone="5551234"),
        ]
        processor = MessageIntakeProcessor(
            store=store, health=health, extractor=extractor, allowed_senders=[], mailbox=mock_mailbox
        )

        stats = processor.process_batch([make_message(uid=1), make_message(uid=2)])

        assert stats == {"error": 1, "processed": 1}
        assert mock_mailbox.mark_processed.call_args_list == [
            call(1, ProcessingOutcome.ERROR),
            call(2, ProcessingOutcome.PROCESSED),
        ]
        assert health.snapshot().messages_processed == 1
