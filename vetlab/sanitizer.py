"""Numeric input sanitizing for VetLab.

Free-text fields (typed at a prompt or passed on the command line) are
normalized here before they are parsed:
- Only digits and decimal points survive
- Extra decimal points collapse into the fractional part
- A leading point gets a leading zero
"""

import math
import re
from typing import Optional

_NON_NUMERIC = re.compile(r"[^\d.]")


def filter_numeric(text: str) -> str:
    """Reduce arbitrary text to a non-negative decimal string.

    Never fails. The worst case is an empty string or "0.".

    Args:
        text: Raw user input.

    Returns:
        Sanitized decimal string.
    """
    s = _NON_NUMERIC.sub("", text or "")

    parts = s.split(".")
    if len(parts) > 2:
        s = parts[0] + "." + "".join(parts[1:])

    if s.startswith("."):
        s = "0" + s
    return s


def safe_parse(text: Optional[str]) -> Optional[float]:
    """Parse a string to a finite float.

    Empty input counts as missing, not as zero.

    Returns:
        The number, or None if the text is empty, unparseable or not finite.
    """
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_field(text: Optional[str]) -> Optional[float]:
    """Sanitize then parse a raw input field."""
    if text is None:
        return None
    return safe_parse(filter_numeric(str(text)))
