"""UTC timestamp helpers shared by both stores.

Format:
    ISO-8601 with millisecond precision and a `Z` suffix, for example
    `2026-10-18T19:18:00.123Z`. Both the credential record and artifact
    filenames use this representation, so lexicographic order equals
    chronological order.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Render an aware or naive-UTC datetime as `YYYY-MM-DDTHH:MM:SS.mmmZ`."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.isoformat(timespec="milliseconds") + "Z"


def parse_timestamp(value: str) -> datetime:
    """Inverse of `format_timestamp`; returns an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment
