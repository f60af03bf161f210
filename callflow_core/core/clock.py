"""Timestamp helpers for values persisted in session state."""

from datetime import datetime

import pytz


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 with a Z suffix for UTC, e.g. 2024-03-01T09:30:00Z."""
    if moment.tzinfo is None:
        moment = pytz.utc.localize(moment)
    moment = moment.astimezone(pytz.utc).replace(microsecond=0)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed
