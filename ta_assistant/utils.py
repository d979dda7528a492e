"""Utility functions for the Crypto TA Assistant."""

import datetime as dt
import re
from typing import Optional

from ta_assistant.config import Config


# Opening fence line: ``` optionally followed by a language tag
_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*$")
_FENCE_CLOSE = re.compile(r"^```[ \t]*$")


def now_utc() -> dt.datetime:
    """Get current time as an aware UTC datetime."""
    return dt.datetime.now(Config.UTC)


def utc_now() -> str:
    """Get current UTC time as ISO string."""
    return now_utc().isoformat()


def parse_iso_utc(value: str) -> Optional[dt.datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into aware UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return Config.UTC.localize(parsed)
    return parsed.astimezone(Config.UTC)


def strip_code_fence(text: str) -> str:
    """
    Remove a markdown code fence wrapping the whole text.

    Only a leading fence line (``` or ```json) and a trailing ``` line are
    removed; interior content is never touched. Text without both fences is
    returned trimmed but otherwise unchanged.
    """
    s = (text or "").strip()
    lines = s.splitlines()
    if len(lines) >= 2 and _FENCE_OPEN.match(lines[0].strip()) and _FENCE_CLOSE.match(lines[-1].strip()):
        return "\n".join(lines[1:-1]).strip()
    # Single-line form: ```json {...} ```
    if len(lines) == 1 and s.startswith("```") and s.endswith("```") and len(s) > 6:
        inner = s[3:-3]
        m = re.match(r"^[A-Za-z0-9_+-]*\s", inner)
        if m and not inner.lstrip().startswith("{"):
            inner = inner[m.end():]
        return inner.strip()
    return s


def parse_price_text(value: str) -> Optional[float]:
    """Parse a display price such as ``$65,123.45`` into a float."""
    cleaned = re.sub(r"[^0-9.\-]+", "", value or "")
    if not cleaned:
        return None
    # Leading number only: "65000-65200" reads as 65000
    m = re.match(r"^-?\d*\.?\d+", cleaned)
    if not m:
        return None
    try:
        return float(m.group(0))
    except ValueError:
        return None


def fmt_locale_number(x: float) -> str:
    """Thousands separators and at most 3 decimals, trailing zeros dropped."""
    text = f"{x:,.3f}".rstrip("0").rstrip(".")
    return text or "0"
