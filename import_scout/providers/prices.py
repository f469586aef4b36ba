from __future__ import annotations

import math
import re
from typing import Any, Optional, Tuple

_NUMERIC_RUN = re.compile(r"[\d,.]+")


def parse_price(raw: Any) -> Tuple[Optional[float], str]:
    """Parse a third-party price into ``(usd_value, formatted)``.

    Numbers are formatted as ``$x.xx``; strings keep their original text and
    take the first numeric run with thousands separators removed. Anything
    unparseable yields ``None`` rather than raising.
    """
    if raw is None:
        return None, "N/A"
    if isinstance(raw, bool):
        return None, str(raw)
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            return None, "N/A"
        return float(raw), f"${raw:.2f}"

    text = str(raw)
    match = _NUMERIC_RUN.search(text)
    if not match:
        return None, text or "N/A"
    try:
        value = float(match.group(0).replace(",", ""))
    except ValueError:
        return None, text
    return value, text


def to_float(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def to_count(raw: Any) -> Optional[int]:
    """Digits-only integer, e.g. ``"1,234 ratings"`` -> 1234; zero counts as unknown."""
    if raw is None:
        return None
    digits = re.sub(r"\D", "", str(raw))
    return int(digits) or None if digits else None


__all__ = ["parse_price", "to_count", "to_float"]
