"""
Strict coercion of payload leaves.

Platforms transport numbers inside payloads as strings. A value is numeric
only when its text matches the strict pattern; anything else is treated as
absent (``None``), never as zero and never as an error. JSON numbers are
judged by their textual form under the same pattern, so ``-5`` and ``1e3``
are absent as well.
"""
import re
from decimal import Decimal
from typing import Any

STRICT_DECIMAL = re.compile(r"[0-9]+(?:\.[0-9]+)?")
STRICT_INTEGER = re.compile(r"[0-9]+")


def scalar_text(value: Any) -> str | None:
    """Render a scalar leaf as text; mappings, lists, booleans and null are absent."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def parse_strict_decimal(value: Any) -> Decimal | None:
    """Parse ``^[0-9]+(\\.[0-9]+)?$`` into a Decimal, or return None."""
    text = scalar_text(value)
    if text is None or STRICT_DECIMAL.fullmatch(text) is None:
        return None
    return Decimal(text)


def parse_strict_non_negative_int(value: Any) -> int | None:
    """Parse ``^[0-9]+$`` into an int, or return None."""
    text = scalar_text(value)
    if text is None or STRICT_INTEGER.fullmatch(text) is None:
        return None
    return int(text)
