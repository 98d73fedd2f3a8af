"""Lead field extraction."""

from lead_intake.core.text import strip_tags

from .lead_fields import (
    LeadFieldExtractor,
    classify_lead_source,
    extract_email,
    extract_form_fields,
    extract_name,
    extract_name_parts,
    extract_phone,
    extract_vehicle_interest,
    normalize_phone,
    split_name,
)

__all__ = [
    "LeadFieldExtractor",
    "classify_lead_source",
    "extract_email",
    "extract_form_fields",
    "extract_name",
    "extract_name_parts",
    "extract_phone",
    "extract_vehicle_interest",
    "normalize_phone",
    "split_name",
    "strip_tags",
]
