"""
Bulk lead upload validation.

An upload goes through ordered stages and stops at the first one that rejects
the whole batch: size, threat scan, structural parse, row limit, emptiness,
headers. Surviving batches are validated row by row; bad rows are reported,
never raised, and in-batch duplicate emails are dropped with a warning.
"""

import io
import re
from dataclasses import dataclass
from typing import Iterable

import pandas as pd
from pydantic import ValidationError

from lead_intake.config import settings
from lead_intake.core.exceptions import (
    BatchRejected,
    CSVParseError,
    EmptyBatchError,
    FileTooLargeError,
    HeaderValidationError,
    RowLimitExceeded,
    SecurityRejection,
)
from lead_intake.core.logging import get_logger
from lead_intake.core.models import ValidationOutcome, ValidationStats
from lead_intake.validation.schema import LeadRow, format_row_errors

log = get_logger(__name__)

DEFAULT_REQUIRED_COLUMNS = ("first_name", "last_name", "email")
MAX_CELL_LENGTH = 1000

# Matched against the raw decoded upload before parsing
THREAT_PATTERNS = [
    re.compile(r"<script\b", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"on(?:load|error)\s*=", re.IGNORECASE),
    re.compile(r"\.(?:exe|bat|cmd)\b", re.IGNORECASE),
]

# Lowercased header -> canonical column
COLUMN_ALIASES = {
    "first_name": "first_name",
    "firstname": "first_name",
    "first name": "first_name",
    "fname": "first_name",
    "last_name": "last_name",
    "lastname": "last_name",
    "last name": "last_name",
    "lname": "last_name",
    "email": "email",
    "e-mail": "email",
    "email address": "email",
    "email_address": "email",
    "emailaddress": "email",
    "phone": "phone",
    "phone number": "phone",
    "phone_number": "phone",
    "phonenumber": "phone",
    "mobile": "phone",
    "vehicle_interest": "vehicle_interest",
    "vehicleinterest": "vehicle_interest",
    "vehicle interest": "vehicle_interest",
    "vehicle": "vehicle_interest",
    "make model": "vehicle_interest",
    "car interest": "vehicle_interest",
    "budget": "budget",
    "timeframe": "timeframe",
    "time frame": "timeframe",
    "source": "source",
    "lead source": "source",
    "lead_source": "source",
    "leadsource": "source",
    "notes": "notes",
    "comments": "notes",
}

_NEWLINE_RE = re.compile(r"\r\n|\r|\n")
_UNSAFE_CHARS_RE = re.compile(r"[<>\"'&]")


@dataclass
class CSVValidationOptions:
    max_file_size: int = settings.csv_max_file_size
    max_rows: int = settings.csv_max_rows
    required_columns: tuple[str, ...] = DEFAULT_REQUIRED_COLUMNS
    allowed_columns: tuple[str, ...] | None = None
    sanitize: bool = True


def canonical_column(header: str) -> str:
    """Map a header to its canonical column name; unknown headers pass through trimmed."""
    cleaned = str(header).strip()
    return COLUMN_ALIASES.get(cleaned.lower(), cleaned)


def sanitize_value(value: str) -> str:
    value = _UNSAFE_CHARS_RE.sub("", value)
    value = _NEWLINE_RE.sub(" ", value)
    return value.strip()[:MAX_CELL_LENGTH]


def sanitize_record(record: dict) -> dict:
    return {
        key: sanitize_value(value) if isinstance(value, str) else value
        for key, value in record.items()
    }


def contains_threat(text: str) -> bool:
    return any(pattern.search(text) for pattern in THREAT_PATTERNS)


def _check_size(data: bytes, options: CSVValidationOptions) -> None:
    if len(data) > options.max_file_size:
        raise FileTooLargeError(
            f"File size {len(data)} bytes exceeds maximum allowed {options.max_file_size} bytes"
        )


def _parse(text: str) -> pd.DataFrame:
    """
    Parse CSV text into a frame of trimmed strings.

    Fields past the header width are dropped; short rows are padded with
    empty strings.
    """
    read_options = dict(
        dtype=str,
        keep_default_na=False,
        na_filter=False,
        skipinitialspace=True,
        skip_blank_lines=True,
        index_col=False,
    )
    try:
        width = len(pd.read_csv(io.StringIO(text), nrows=0, **read_options).columns)
        frame = pd.read_csv(
            io.StringIO(text),
            engine="python",
            usecols=list(range(width)),
            **read_options,
        )
    except pd.errors.EmptyDataError as e:
        raise EmptyBatchError("CSV file is empty or contains no valid data rows") from e
    except ValueError as e:
        raise CSVParseError(f"CSV parsing failed: {e}") from e

    frame = frame.fillna("")
    frame.columns = [str(column).strip() for column in frame.columns]
    for column in frame.columns:
        frame[column] = frame[column].map(lambda value: str(value).strip())
    return frame


def _canonical_headers(headers: Iterable[str], options: CSVValidationOptions) -> list[str]:
    canonical = [canonical_column(header) for header in headers]
    errors = []

    duplicates = sorted({name for name in canonical if canonical.count(name) > 1})
    if duplicates:
        errors.append(f"Duplicate columns after normalization: {', '.join(duplicates)}")

    required = [canonical_column(column) for column in options.required_columns]
    missing = [column for column in required if column not in canonical]
    if missing:
        errors.append(f"Missing required columns: {', '.join(missing)}")

    if options.allowed_columns is not None:
        allowed = {canonical_column(column) for column in options.allowed_columns}
        invalid = [header for header, name in zip(headers, canonical) if name not in allowed]
        if invalid:
            errors.append(f"Invalid columns found: {', '.join(invalid)}")

    if errors:
        raise HeaderValidationError(errors)
    return canonical


def _validate_rows(records: list[dict], options: CSVValidationOptions) -> ValidationOutcome:
    accepted: list[LeadRow] = []
    errors: list[str] = []
    warnings: list[str] = []
    seen_emails: set[str] = set()
    duplicates = 0

    for index, record in enumerate(records):
        # Header is line 1
        row_number = index + 2
        if options.sanitize:
            record = sanitize_record(record)

        try:
            row = LeadRow.model_validate(record)
        except ValidationError as e:
            errors.append(format_row_errors(row_number, e))
            continue

        email_key = row.email.lower()
        if email_key in seen_emails:
            duplicates += 1
            warnings.append(f"Row {row_number}: Duplicate email address {row.email}")
            continue

        seen_emails.add(email_key)
        accepted.append(row)

    stats = ValidationStats(
        total_rows=len(records),
        valid_rows=len(accepted),
        invalid_rows=len(errors),
        duplicate_emails=duplicates,
    )
    return ValidationOutcome(
        valid=bool(accepted) and not errors,
        data=accepted,
        errors=errors,
        warnings=warnings,
        stats=stats,
    )


def validate_csv(data: bytes, options: CSVValidationOptions | None = None) -> ValidationOutcome:
    """
    Validate a CSV upload.

    Never raises for bad input: whole-batch rejections come back as an
    invalid outcome with `failure` naming the stage.

    Args:
        data: Raw upload bytes
        options: Limits and column rules, defaults from settings

    Returns:
        ValidationOutcome with accepted rows, errors, warnings and stats
    """
    options = options or CSVValidationOptions()
    total_rows = 0

    try:
        _check_size(data, options)

        text = data.decode("utf-8-sig", errors="replace")
        if contains_threat(text):
            raise SecurityRejection("File contains potentially malicious content")

        frame = _parse(text)
        total_rows = len(frame)

        if total_rows > options.max_rows:
            raise RowLimitExceeded(
                f"CSV contains {total_rows} rows, exceeding maximum allowed {options.max_rows} rows"
            )
        if total_rows == 0:
            raise EmptyBatchError("CSV file is empty or contains no valid data rows")

        frame.columns = _canonical_headers(list(frame.columns), options)
    except BatchRejected as e:
        log.warning("csv_rejected", stage=e.stage.value, errors=e.errors, size=len(data))
        return ValidationOutcome(
            valid=False,
            errors=e.errors,
            stats=ValidationStats(total_rows=total_rows, invalid_rows=total_rows),
            failure=e.stage.value,
        )

    outcome = _validate_rows(frame.to_dict("records"), options)
    log.info(
        "csv_validated",
        valid=outcome.valid,
        total_rows=outcome.stats.total_rows,
        valid_rows=outcome.stats.valid_rows,
        invalid_rows=outcome.stats.invalid_rows,
        duplicate_emails=outcome.stats.duplicate_emails,
    )
    return outcome


def generate_validation_report(outcome: ValidationOutcome) -> str:
    """Human-readable summary: status, stats, then every error and warning."""
    stats = outcome.stats
    lines = [
        "CSV Validation Report",
        f"Status: {'PASSED' if outcome.valid else 'FAILED'}",
        "",
        "Statistics:",
        f"  Total rows processed: {stats.total_rows}",
        f"  Valid rows: {stats.valid_rows}",
        f"  Invalid rows: {stats.invalid_rows}",
        f"  Duplicate emails: {stats.duplicate_emails}",
    ]

    if outcome.errors:
        lines += ["", "Errors:"]
        lines += [f"  - {error}" for error in outcome.errors]

    if outcome.warnings:
        lines += ["", "Warnings:"]
        lines += [f"  - {warning}" for warning in outcome.warnings]

    return "\n".join(lines)
