"""Utility helpers for visibility rollups."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from urllib.parse import urlparse

DateLike = Union[date, datetime, str, None]


@dataclass(frozen=True)
class DateWindow:
    """Inclusive [start, end] window in UTC"""

    start: datetime
    end: datetime


def _parse_date(value: DateLike) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_window(
    start_date: DateLike = None,
    end_date: DateLike = None,
    window_days: int = 7,
    now: Optional[datetime] = None,
) -> DateWindow:
    """
    Build the query window.

    A supplied end date is extended to 23:59:59.999 UTC of that day so every
    run from it is included. Without a start date the window reaches back
    ``window_days`` from the end.

    Raises:
        ValueError: Unparsable date or start after end
    """
    end = _parse_date(end_date)
    if end is None:
        end = now or datetime.now(timezone.utc)
    else:
        end = end.replace(hour=23, minute=59, second=59, microsecond=999000)

    start = _parse_date(start_date)
    if start is None:
        start = end - timedelta(days=window_days)

    if start > end:
        raise ValueError("start_date must not be after end_date")
    return DateWindow(start=start, end=end)


def extract_hostname(url: Optional[str]) -> Optional[str]:
    """Lower-cased hostname without a leading 'www.', or None when unresolvable."""
    if not url or not isinstance(url, str):
        return None
    try:
        hostname = urlparse(url.strip()).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname or None


def normalize_url(url: str) -> str:
    return url.strip().lower()


def is_domain_hostname(hostname: Optional[str], tracked_domain: str) -> bool:
    """True when hostname is the tracked domain or one of its subdomains."""
    if not hostname:
        return False
    bare = (tracked_domain or "").strip().lower()
    if bare.startswith("www."):
        bare = bare[4:]
    return bool(bare) and (hostname == bare or hostname.endswith("." + bare))


def safe_ratio(numerator: float, denominator: float) -> Optional[float]:
    """Return numerator / denominator guarding against division by zero."""
    if denominator == 0:
        return None
    return numerator / denominator


def percent(count: int, total: int) -> float:
    """count / total as a percentage with one decimal; 0 for an empty total."""
    ratio = safe_ratio(count, total)
    if ratio is None:
        return 0.0
    return round(ratio * 1000) / 10


def visibility_score(mentioned_runs: int, total_runs: int) -> float:
    """Share of runs that mentioned the tracked brand, in [0, 100]."""
    return percent(mentioned_runs, total_runs)


def average_position(positions: list) -> Optional[float]:
    values = [p for p in positions if p]
    if not values:
        return None
    return round(sum(values) / len(values) * 10) / 10


def parse_score(value: Optional[str]) -> Optional[float]:
    """Decimal-text score back to float; None when absent or unparsable."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
