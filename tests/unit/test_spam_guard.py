"""Spam guard counting, blocking and window reset."""

import pytest

from support_relay.triage.application import SpamGuard


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def guard(clock):
    return SpamGuard(max_messages=5, window_seconds=300, clock=clock)


def test_counter_increments_by_one_until_threshold(guard):
    counts = [guard.check_and_record("12345").count for _ in range(5)]
    assert counts == [1, 2, 3, 4, 5]
    assert guard.count("12345") == 5


def test_message_after_threshold_is_blocked_and_not_counted(guard):
    for _ in range(5):
        assert not guard.check_and_record("12345").blocked

    first_block = guard.check_and_record("12345")
    second_block = guard.check_and_record("12345")

    assert first_block.blocked and second_block.blocked
    assert guard.count("12345") == 5


def test_users_are_counted_independently(guard):
    for _ in range(5):
        guard.check_and_record("alice")

    assert guard.check_and_record("alice").blocked
    result = guard.check_and_record("bob")
    assert not result.blocked
    assert result.count == 1


def test_quiet_period_releases_blocked_user(guard, clock):
    for _ in range(6):
        guard.check_and_record("12345")
    assert guard.check_and_record("12345").blocked

    clock.now += 301
    result = guard.check_and_record("12345")

    assert not result.blocked
    assert result.count == 1


def test_window_is_measured_from_first_message(guard, clock):
    guard.check_and_record("12345")
    clock.now += 200
    guard.check_and_record("12345")
    clock.now += 100
    # exactly window_seconds after the first message: still the same window
    assert guard.check_and_record("12345").count == 3

    clock.now += 1
    assert guard.check_and_record("12345").count == 1


def test_explicit_now_overrides_clock(guard):
    guard.check_and_record("12345", now=0.0)
    assert guard.check_and_record("12345", now=10.0).count == 2
    assert guard.check_and_record("12345", now=400.0).count == 1


def test_reset_forgets_user(guard):
    for _ in range(5):
        guard.check_and_record("12345")
    guard.reset("12345")
    assert guard.count("12345") == 0
    assert not guard.check_and_record("12345").blocked


def test_from_config_uses_relay_limits(make_config):
    guard = SpamGuard.from_config(make_config(spam_max_messages=1, spam_window_seconds=60))
    assert not guard.check_and_record("u").blocked
    assert guard.check_and_record("u").blocked


@pytest.mark.parametrize("max_messages, window", [(0, 10), (1, 0)])
def test_rejects_invalid_limits(max_messages, window):
    with pytest.raises(ValueError):
        SpamGuard(max_messages=max_messages, window_seconds=window)


def test_expired_windows_are_evicted(guard, clock):
    for user_id in ("alice", "bob", "carol"):
        guard.check_and_record(user_id)
    assert guard.tracked_users == 3

    clock.now += 301
    guard.check_and_record("dave")

    assert guard.tracked_users == 1
    assert guard.count("alice") == 0
    assert guard.count("dave") == 1


def test_live_windows_survive_sweep(guard, clock):
    guard.check_and_record("alice")
    clock.now += 200
    guard.check_and_record("bob")

    clock.now += 101
    guard.check_and_record("carol")

    # alice's window expired, bob's is 101s old
    assert guard.tracked_users == 2
    assert guard.count("alice") == 0
    assert guard.count("bob") == 1
