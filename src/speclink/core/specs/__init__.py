"""
Spec documents: models, header parsing, validation and normalization.
"""

from speclink.core.specs.models import Phase, Spec, SpecMetadata, utc_now
from speclink.core.specs.normalizer import NormalizeResult, normalize_file, normalize_text
from speclink.core.specs.parser import (
    HeaderFields,
    extract_fields,
    format_timestamp,
    parse,
    parse_file,
    parse_timestamp,
    read_document,
    render,
    update_header,
    write_document,
)
from speclink.core.specs.validator import ValidationReport, validate_file, validate_text

__all__ = [
    "HeaderFields",
    "NormalizeResult",
    "Phase",
    "Spec",
    "SpecMetadata",
    "ValidationReport",
    "extract_fields",
    "format_timestamp",
    "normalize_file",
    "normalize_text",
    "parse",
    "parse_file",
    "parse_timestamp",
    "read_document",
    "render",
    "update_header",
    "utc_now",
    "validate_file",
    "validate_text",
    "write_document",
]
