"""
Bulk lead import endpoint.

POST /leads/import - raw CSV body; validates, then creates or merges leads
"""

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from lead_intake.core.logging import get_logger
from lead_intake.services.csv_import import import_csv
from lead_intake.validation.csv import generate_validation_report

log = get_logger(__name__)
router = APIRouter(prefix="/leads", tags=["leads"])


@router.post("/import")
async def import_leads(request: Request):
    """
    Import leads from a CSV upload.

    Returns 422 with the validation report when the batch is rejected.
    """
    data = await request.body()
    pipeline = request.app.state.pipeline

    # Parsing and store writes block, keep them off the event loop
    summary = await run_in_threadpool(import_csv, data, pipeline.reconciler)
    outcome = summary.outcome
    report = generate_validation_report(outcome)

    if not outcome.valid:
        raise HTTPException(
            status_code=422,
            detail={
                "failure": outcome.failure,
                "errors": outcome.errors,
                "warnings": outcome.warnings,
                "report": report,
            },
        )

    return {
        "status": "imported",
        "created": summary.created,
        "updated": summary.updated,
        "leadIds": summary.lead_ids,
        "failed": summary.failed,
        "warnings": outcome.warnings,
        "report": report,
    }
