"""Timestamp helpers.

Trace stores record ``lastGenerated`` as ISO-8601 UTC strings with
millisecond precision. Staleness checks compare those against file
modification times, so both sides are truncated to the same precision.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Format an aware datetime as ISO-8601 UTC with milliseconds."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_iso(value: str) -> datetime | None:
    """Parse an ISO-8601 string; naive values are assumed to be UTC.

    Returns:
        Aware datetime, or None if the value is empty or malformed.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def from_mtime(mtime: float) -> datetime:
    """Convert a file mtime to an aware UTC datetime truncated to milliseconds."""
    moment = datetime.fromtimestamp(mtime, tz=timezone.utc)
    return moment.replace(microsecond=(moment.microsecond // 1000) * 1000)
