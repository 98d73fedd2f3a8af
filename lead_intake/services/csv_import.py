"""
Bulk lead import: validate a CSV upload, then reconcile every accepted row.
"""

from dataclasses import dataclass, field

from lead_intake.core.logging import get_logger
from lead_intake.core.models import ParsedLeadCandidate, ValidationOutcome
from lead_intake.services.reconciler import LeadRecordReconciler
from lead_intake.validation.csv import CSVValidationOptions, validate_csv
from lead_intake.validation.schema import LeadRow

log = get_logger(__name__)

CSV_LEAD_SOURCE = "csv_import"


@dataclass
class ImportSummary:
    outcome: ValidationOutcome
    created: int = 0
    updated: int = 0
    lead_ids: list[int] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return self.created + self.updated


def row_to_candidate(row: LeadRow) -> ParsedLeadCandidate:
    metadata = {
        key: value
        for key, value in (("budget", row.budget), ("timeframe", row.timeframe))
        if value
    }
    return ParsedLeadCandidate(
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        phone=row.phone,
        vehicle_interest=row.vehicle_interest,
        lead_source=row.source or CSV_LEAD_SOURCE,
        notes=row.notes,
        metadata=metadata,
    )


def import_csv(
    data: bytes,
    reconciler: LeadRecordReconciler,
    options: CSVValidationOptions | None = None,
) -> ImportSummary:
    """
    Validate an upload and create or merge a lead per accepted row.

    An invalid batch imports nothing, even when some rows passed. A row the
    store rejects is reported in `failed` and the remaining rows still import.
    """
    outcome = validate_csv(data, options)
    summary = ImportSummary(outcome=outcome)
    if not outcome.valid:
        log.warning("csv_import_skipped", errors=len(outcome.errors), failure=outcome.failure)
        return summary

    for row in outcome.data:
        try:
            result = reconciler.reconcile(row_to_candidate(row))
        except Exception as e:
            log.error("csv_import_row_failed", email=row.email, error=str(e))
            summary.failed.append(f"{row.email}: {e}")
            continue
        summary.lead_ids.append(result.record.id)
        if result.created:
            summary.created += 1
        else:
            summary.updated += 1

    log.info(
        "csv_import_complete",
        created=summary.created,
        updated=summary.updated,
        failed=len(summary.failed),
    )
    return summary
