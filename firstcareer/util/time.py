from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def days_ago_iso(days: int) -> str:
    dt = datetime.now(timezone.utc) - timedelta(days=int(days))
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def ts_to_iso(ts: int | float | None) -> str:
    """Unix seconds (Stripe `created`) as ISO-8601 with Z; missing -> epoch."""
    dt = datetime.fromtimestamp(float(ts or 0), tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")
