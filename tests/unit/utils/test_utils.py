"""Tests for time helpers."""

from datetime import UTC, datetime, timedelta

from swiftqueue.utils import day_bounds, minutes_between, now, round_half_up


def test_now_has_millisecond_precision():
    assert now().microsecond % 1000 == 0
    assert now().tzinfo is UTC


def test_day_bounds_utc():
    start, end = day_bounds("UTC", datetime(2024, 3, 5, 17, 45, tzinfo=UTC))

    assert start == datetime(2024, 3, 5, tzinfo=UTC)
    assert end == datetime(2024, 3, 6, tzinfo=UTC)


def test_day_bounds_follow_local_midnight():
    # 20:00 UTC is already the next day in Kolkata (UTC+05:30)
    start, end = day_bounds("Asia/Kolkata", datetime(2024, 3, 5, 20, 0, tzinfo=UTC))

    assert start == datetime(2024, 3, 5, 18, 30, tzinfo=UTC)
    assert end - start == timedelta(days=1)


def test_day_bounds_across_dst_change():
    start, end = day_bounds("Europe/Berlin", datetime(2024, 3, 31, 12, 0, tzinfo=UTC))

    assert end - start == timedelta(hours=23)


def test_minutes_between():
    start = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
    assert minutes_between(start, start + timedelta(minutes=7, seconds=30)) == 7.5


def test_round_half_up():
    assert round_half_up(6.5) == 7
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2
    assert round_half_up(0.0) == 0
