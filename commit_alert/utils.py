from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 / W3C timestamp into an aware datetime (UTC if no offset)."""
    normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid datetime format: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_w3c(dt: datetime) -> str:
    """Format as W3C datetime in UTC, e.g. 2016-08-01T00:00:00+00:00."""
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def is_valid_repo_name(value: str) -> bool:
    """True when value has the form owner/name with both parts non-empty and unpadded."""
    parts = value.split("/")
    return len(parts) == 2 and all(part and part == part.strip() for part in parts)


def dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    unique: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        unique.append(value)
    return unique
