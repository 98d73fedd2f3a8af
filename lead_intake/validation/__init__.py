"""CSV upload validation."""

from lead_intake.validation.csv import (
    CSVValidationOptions,
    generate_validation_report,
    validate_csv,
)
from lead_intake.validation.schema import LeadRow

__all__ = [
    "CSVValidationOptions",
    "LeadRow",
    "generate_validation_report",
    "validate_csv",
]
