from datetime import datetime, timedelta, timezone

import pytest

from core.time_utils import align_tz, parse_duration, parse_time, parse_timestamp, start_of_century


def test_parse_time_uses_reference_day():
    now = datetime(2024, 3, 10, 15, 42, 7, 1234, tzinfo=timezone.utc)
    parsed = parse_time("07:05", now)
    assert parsed == datetime(2024, 3, 10, 7, 5, 0, tzinfo=timezone.utc)
    assert parse_time("23:59:30", now).second == 30


@pytest.mark.parametrize("value", ["", "7", "24:00", "12:60", "noon", "12:00:61"])
def test_parse_time_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_time(value, datetime(2024, 1, 1))


def test_parse_duration_forms():
    assert parse_duration("1h30m") == timedelta(hours=1, minutes=30)
    assert parse_duration("250ms") == timedelta(milliseconds=250)
    assert parse_duration("1.5s") == timedelta(seconds=1.5)
    assert parse_duration(10) == timedelta(seconds=10)
    assert parse_duration(timedelta(minutes=2)) == timedelta(minutes=2)
    assert parse_duration("") == timedelta(0)
    assert parse_duration(None) == timedelta(0)


@pytest.mark.parametrize("value", ["5x", "m5", "1h 30", "-5s", -1, True])
def test_parse_duration_invalid(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_parse_timestamp():
    ts = parse_timestamp("2024-06-01T12:00:00Z")
    assert ts == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_start_of_century_is_far_in_past():
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    soc = start_of_century(now)
    assert soc == datetime(2000, 1, 1, tzinfo=timezone.utc)


def test_align_tz_naive_and_aware():
    aware = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    naive = datetime(2024, 6, 1, 12, 0)
    assert align_tz(naive, aware).tzinfo is not None
    assert align_tz(aware, naive).tzinfo is None
    assert align_tz(aware, aware) is aware
