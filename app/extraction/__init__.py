"""
Canonical field extraction.

Turns per-source nested payloads into canonical logical fields:
- Dispatch table keyed by payload shape and field name
- Strict numeric validation for string-typed numbers
- Absent (None) instead of errors on any shape mismatch
"""

from .coercion import parse_strict_decimal, parse_strict_non_negative_int, scalar_text
from .fields import (
    CanonicalField,
    PayloadShape,
    FIELD_PATHS,
    payload_shape,
    dig,
    extract,
    extract_raw,
    resolve_country,
    event_field,
    event_has_field,
)

__all__ = [
    "parse_strict_decimal",
    "parse_strict_non_negative_int",
    "scalar_text",
    "CanonicalField",
    "PayloadShape",
    "FIELD_PATHS",
    "payload_shape",
    "dig",
    "extract",
    "extract_raw",
    "resolve_country",
    "event_field",
    "event_has_field",
]
