from datetime import datetime, timedelta, timezone

from subletto.core import room

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def test_progress_and_spots_left_labels() -> None:
    assert room.format_progress(1, 4) == "3/4"
    assert room.format_spots_left(3, 4) == "1 spot left"
    assert room.format_spots_left(1, 4) == "3 spots left"
    assert room.format_spots_left_full(1, 4) == "3/4 left"


def test_time_remaining_counts_down_and_warns() -> None:
    remaining = room.time_remaining(NOW + timedelta(minutes=5, seconds=30), NOW)
    assert (remaining.minutes, remaining.seconds, remaining.total_seconds) == (5, 30, 330)
    assert remaining.is_warning is False

    closing = room.time_remaining(NOW + timedelta(seconds=90), NOW)
    assert closing.is_warning is True
    assert closing.is_expired is False


def test_time_remaining_after_deadline() -> None:
    remaining = room.time_remaining(NOW - timedelta(seconds=1), NOW)
    assert remaining.is_expired is True
    assert remaining.total_seconds == 0


def test_time_remaining_accepts_naive_values_as_utc() -> None:
    naive_expiry = (NOW + timedelta(minutes=2)).replace(tzinfo=None)
    assert room.time_remaining(naive_expiry, NOW).total_seconds == 120


def test_format_time_remaining() -> None:
    assert room.format_time_remaining(NOW + timedelta(hours=5, minutes=3), NOW) == "5h 3m left"
    assert room.format_time_remaining(NOW + timedelta(minutes=12, seconds=10), NOW) == "12m left"
    assert room.format_time_remaining(NOW, NOW) == "Expired"
