from datetime import datetime, timedelta, timezone

from chefsync.sync.conflict import effective_incoming_time, resolve_write, next_stamp, STALE_UPDATE

T0 = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
NOW = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_declared_time_wins_over_client_timestamp():
    assert effective_incoming_time(T0, T0 + timedelta(hours=1), NOW) == T0


def test_client_timestamp_used_when_no_declared_time():
    assert effective_incoming_time(None, T0, NOW) == T0


def test_falls_back_to_now():
    assert effective_incoming_time(None, None, NOW) == NOW


def test_naive_timestamps_are_utc():
    naive = datetime(2026, 5, 1, 9, 0)
    assert effective_incoming_time(naive, None, NOW) == T0


def test_older_or_equal_incoming_is_stale():
    older = resolve_write(T0, T0 - timedelta(seconds=1))
    equal = resolve_write(T0, T0)
    assert not older.accepted and older.reason == STALE_UPDATE
    assert not equal.accepted


def test_newer_incoming_is_accepted():
    assert resolve_write(T0, T0 + timedelta(seconds=1)).accepted
    assert resolve_write(None, T0).accepted


def test_stamp_is_server_now():
    assert next_stamp(T0, NOW) == NOW


def test_stamp_strictly_increases_when_clock_is_behind():
    stamp = next_stamp(NOW, T0)
    assert stamp > NOW
    assert stamp - NOW == timedelta(microseconds=1)
