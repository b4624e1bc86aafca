"""Timestamp helpers for broker RFC 3339 strings."""

import re
from datetime import datetime, timezone
from typing import Optional

# OANDA reports nanoseconds; datetime only holds microseconds.
_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_time(value: Optional[str]) -> Optional[datetime]:
    """Parse a broker timestamp into an aware UTC ``datetime``.

    Accepts a trailing ``Z``, any number of fractional digits, and naive
    strings (assumed UTC).  Returns ``None`` for empty or unparseable input.
    """
    if not value:
        return None
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
