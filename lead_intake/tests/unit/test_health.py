"""Unit tests for the mailbox health state."""

import dataclasses

import pytest

from lead_intake.core.health import HealthState


class TestHealthState:
    """Tests for HealthState hooks and snapshots."""

    def test_initial_snapshot(self, health):
        status = health.snapshot()
        assert status.connected is False
        assert status.messages_processed == 0
        assert status.last_processed_uid is None
        assert status.errors == ()

    def test_record_message(self, health):
        health.record_message(7)
        health.record_message(9)

        status = health.snapshot()
        assert status.messages_processed == 2
        assert status.last_processed_uid == 9
        assert status.last_message_timestamp is not None

    def test_error_ring_keeps_last_five(self, health):
        """Test the oldest errors are evicted past five."""
        for i in range(7):
            health.record_error(f"error {i}")

        messages = [e.message for e in health.snapshot().errors]
        assert messages == ["error 2", "error 3", "error 4", "error 5", "error 6"]

    def test_custom_ring_size(self):
        health = HealthState(max_errors=2)
        for i in range(3):
            health.record_error(f"error {i}")
        assert len(health.snapshot().errors) == 2

    def test_snapshot_is_immutable_copy(self, health):
        """Test later writes do not leak into an earlier snapshot."""
        health.set_connected(True)
        before = health.snapshot()
        health.set_connected(False)
        health.record_error("boom")

        assert before.connected is True
        assert before.errors == ()
        with pytest.raises(dataclasses.FrozenInstanceError):
            before.connected = False

    def test_to_dict(self, health):
        health.set_connected(True)
        health.record_message(3)
        health.record_error("Check failed: timeout")

        data = health.snapshot().to_dict()
        assert data["connected"] is True
        assert data["lastProcessedUid"] == 3
        assert data["messagesProcessed"] == 1
        assert data["errors"][0]["message"] == "Check failed: timeout"
