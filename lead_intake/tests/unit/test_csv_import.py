"""Unit tests for bulk CSV import."""

from lead_intake.services.csv_import import import_csv


class TestImportCSV:
    """Tests for import_csv."""

    def test_creates_leads(self, well_formed_csv, reconciler, store):
        summary = import_csv(well_formed_csv, reconciler)

        assert summary.outcome.valid is True
        assert summary.created == 2
        assert summary.updated == 0
        emails = sorted(lead.email for lead in store.leads.values())
        assert emails == ["john@example.com", "mary@example.com"]

    def test_default_source(self, well_formed_csv, reconciler, store):
        """Test rows without a source column are tagged csv_import."""
        import_csv(well_formed_csv, reconciler)
        assert {lead.lead_source for lead in store.leads.values()} == {"csv_import"}

    def test_source_column(self, reconciler, store):
        data = b"first_name,last_name,email,lead source\nAnn,Lee,ann@example.com,Trade Show\n"
        import_csv(data, reconciler)
        assert next(iter(store.leads.values())).lead_source == "Trade Show"

    def test_merges_existing(self, well_formed_csv, reconciler, store):
        """Test importing the same file twice merges instead of duplicating."""
        import_csv(well_formed_csv, reconciler)
        summary = import_csv(well_formed_csv, reconciler)

        assert summary.created == 0
        assert summary.updated == 2
        assert len(store.leads) == 2

    def test_invalid_batch_imports_nothing(self, reconciler, store):
        """Test one bad row blocks the whole batch."""
        data = b"first_name,last_name,email\nJohn,Smith,john@example.com\nBad,Row,not-an-email\n"
        summary = import_csv(data, reconciler)

        assert summary.outcome.valid is False
        assert summary.imported == 0
        assert store.leads == {}

    def test_rejected_batch(self, reconciler, store):
        summary = import_csv(b"", reconciler)
        assert summary.outcome.failure == "empty"
        assert store.leads == {}

    def test_store_failure_isolated(self, well_formed_csv, reconciler, store, monkeypatch):
        """Test a row the store rejects is reported and the other rows still import."""
        original_create = store.create

        def create(data):
            if data["email"] == "john@example.com":
                raise ValueError("value too long for column")
            return original_create(data)

        monkeypatch.setattr(store, "create", create)

        summary = import_csv(well_formed_csv, reconciler)

        assert summary.created == 1
        assert summary.failed == ["john@example.com: value too long for column"]
        assert [lead.email for lead in store.leads.values()] == ["mary@example.com"]
