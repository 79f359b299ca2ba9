"""Room constants and pure display helpers shared by services and responses."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

LOCK_DURATION_HOURS = 48
CHECKOUT_SESSION_MINUTES = 15
CHECKOUT_WARNING_THRESHOLD_SECONDS = 120


@dataclass(slots=True, frozen=True)
class TimeRemaining:
    """Countdown state for a hold or checkout window."""

    minutes: int
    seconds: int
    total_seconds: int
    is_expired: bool
    is_warning: bool


def format_progress(filled: int, total: int) -> str:
    """Spots left over capacity, e.g. ``3/4``."""

    return f"{total - filled}/{total}"


def format_spots_left(filled: int, total: int) -> str:
    left = total - filled
    return "1 spot left" if left == 1 else f"{left} spots left"


def format_spots_left_full(filled: int, total: int) -> str:
    return f"{total - filled}/{total} left"


def time_remaining(
    expires_at: datetime,
    now: datetime | None = None,
    *,
    warning_seconds: int = CHECKOUT_WARNING_THRESHOLD_SECONDS,
) -> TimeRemaining:
    """Return the countdown until ``expires_at``.

    Pure function; callers re-evaluate it on whatever tick or push they have.
    """

    current = _ensure_tz(now or datetime.now(timezone.utc))
    diff = (_ensure_tz(expires_at) - current).total_seconds()
    if diff <= 0:
        return TimeRemaining(minutes=0, seconds=0, total_seconds=0, is_expired=True, is_warning=True)

    total_seconds = int(diff)
    return TimeRemaining(
        minutes=total_seconds // 60,
        seconds=total_seconds % 60,
        total_seconds=total_seconds,
        is_expired=False,
        is_warning=total_seconds <= warning_seconds,
    )


def format_time_remaining(expires_at: datetime, now: datetime | None = None) -> str:
    """Render a hold countdown as ``5h 3m left`` / ``12m left`` / ``Expired``."""

    remaining = time_remaining(expires_at, now)
    if remaining.is_expired:
        return "Expired"

    hours, minutes = divmod(remaining.minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m left"
    return f"{minutes}m left"


def _ensure_tz(value: datetime) -> datetime:
    """Ensure the provided datetime is timezone-aware in UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
