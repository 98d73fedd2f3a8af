"""Unit tests for lead reconciliation."""

import pytest

from lead_intake.core.models import LeadStatus, ParsedLeadCandidate


class TestCreate:
    """Tests for first sighting of an email."""

    def test_creates_new_lead(self, reconciler, store):
        """Test a new email creates a lead with status new."""
        result = reconciler.reconcile(
            ParsedLeadCandidate(first_name="Jane", last_name="Doe", email="jane@x.com", phone="5551234")
        )

        assert result.created is True
        assert result.record.status == LeadStatus.NEW
        assert result.record.lead_source == "email_inbound"
        assert list(store.leads) == [result.record.id]

    def test_keeps_given_source(self, reconciler):
        result = reconciler.reconcile(ParsedLeadCandidate(email="a@b.com", lead_source="cars_com"))
        assert result.record.lead_source == "cars_com"

    def test_requires_email(self, reconciler):
        with pytest.raises(ValueError):
            reconciler.reconcile(ParsedLeadCandidate(first_name="Jane"))


class TestMerge:
    """Tests for merging into an existing lead."""

    def test_lookup_ignores_case(self, reconciler, store):
        """Test emails differing only in case resolve to one lead."""
        first = reconciler.reconcile(ParsedLeadCandidate(email="Jane@X.com", first_name="Jane"))
        second = reconciler.reconcile(ParsedLeadCandidate(email="jane@x.com", phone="5551234"))

        assert second.created is False
        assert second.record.id == first.record.id
        assert len(store.leads) == 1

    def test_non_empty_fields_overwrite(self, reconciler):
        reconciler.reconcile(ParsedLeadCandidate(email="a@b.com", vehicle_interest="Camry"))
        result = reconciler.reconcile(ParsedLeadCandidate(email="a@b.com", vehicle_interest="Tacoma"))
        assert result.record.vehicle_interest == "Tacoma"

    def test_empty_fields_never_overwrite(self, reconciler):
        """Test None and blank values leave stored fields untouched."""
        reconciler.reconcile(
            ParsedLeadCandidate(email="a@b.com", first_name="Jane", last_name="Doe", phone="5551234")
        )
        result = reconciler.reconcile(
            ParsedLeadCandidate(email="a@b.com", first_name="  ", last_name=None, vehicle_interest="RAV4")
        )

        record = result.record
        assert record.first_name == "Jane"
        assert record.last_name == "Doe"
        assert record.phone == "5551234"
        assert record.vehicle_interest == "RAV4"

    def test_nothing_to_merge(self, reconciler, store):
        """Test a candidate with no non-empty fields does not touch the record."""
        created = reconciler.reconcile(ParsedLeadCandidate(email="a@b.com", first_name="Jane"))
        result = reconciler.reconcile(ParsedLeadCandidate(email="a@b.com"))

        assert result.created is False
        assert result.record.updated_at == created.record.updated_at

    def test_status_preserved(self, reconciler, store):
        """Test merging never resets the lead status."""
        created = reconciler.reconcile(ParsedLeadCandidate(email="a@b.com"))
        store.update(created.record.id, {"status": LeadStatus.CONTACTED})

        result = reconciler.reconcile(ParsedLeadCandidate(email="a@b.com", phone="5551234"))
        assert result.record.status == LeadStatus.CONTACTED
