"""
Row schema for bulk lead uploads.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class LeadRow(BaseModel):
    """One accepted CSV row, keyed by canonical column names."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str
    phone: str | None = None
    vehicle_interest: str | None = None
    budget: str | None = None
    timeframe: str | None = None
    source: str | None = None
    notes: str | None = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not EMAIL_RE.match(value):
            raise ValueError("Invalid email format")
        return value

    @field_validator("phone", "vehicle_interest", "budget", "timeframe", "source", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


def format_row_errors(row_number: int, error: ValidationError) -> str:
    """Render every field error of one row as 'Row N: field: message, ...'."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "row"
        message = item["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{location}: {message}")
    return f"Row {row_number}: {', '.join(parts)}"
