import asyncio

import pytest

from mutual_aid.core.login_throttle import LoginThrottle, ThrottleDecision, ThrottleSweeper


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def throttle(clock):
    return LoginThrottle(max_attempts=5, window_seconds=900, clock=clock)


def test_unknown_client_allowed(throttle):
    assert throttle.check("10.0.0.1") == ThrottleDecision.ALLOWED


def test_blocks_after_max_failures(throttle):
    for expected in range(1, 6):
        assert throttle.check("10.0.0.1") == ThrottleDecision.ALLOWED
        assert throttle.record_failure("10.0.0.1") == expected

    assert throttle.check("10.0.0.1") == ThrottleDecision.BLOCKED


def test_clients_tracked_independently(throttle):
    for _ in range(5):
        throttle.record_failure("10.0.0.1")

    assert throttle.check("10.0.0.1") == ThrottleDecision.BLOCKED
    assert throttle.check("10.0.0.2") == ThrottleDecision.ALLOWED


def test_success_clears_record(throttle):
    for _ in range(4):
        throttle.record_failure("10.0.0.1")

    throttle.record_success("10.0.0.1")

    assert throttle.attempts("10.0.0.1") == 0
    assert len(throttle) == 0


def test_window_resets_wholesale(throttle, clock):
    for _ in range(5):
        throttle.record_failure("10.0.0.1")
    assert throttle.check("10.0.0.1") == ThrottleDecision.BLOCKED

    clock.advance(901)

    assert throttle.check("10.0.0.1") == ThrottleDecision.ALLOWED
    assert len(throttle) == 0


def test_window_anchored_to_first_failure(throttle, clock):
    throttle.record_failure("10.0.0.1")
    clock.advance(800)
    for _ in range(4):
        throttle.record_failure("10.0.0.1")
    assert throttle.check("10.0.0.1") == ThrottleDecision.BLOCKED

    # 901s after the first failure, even though later failures are recent
    clock.advance(101)

    assert throttle.check("10.0.0.1") == ThrottleDecision.ALLOWED


def test_failure_after_expiry_starts_new_window(throttle, clock):
    for _ in range(5):
        throttle.record_failure("10.0.0.1")
    clock.advance(1000)

    assert throttle.record_failure("10.0.0.1") == 1
    assert throttle.check("10.0.0.1") == ThrottleDecision.ALLOWED


def test_sweep_removes_only_expired(throttle, clock):
    throttle.record_failure("old")
    clock.advance(600)
    throttle.record_failure("recent")
    clock.advance(301)

    assert throttle.sweep_expired() == 1
    assert throttle.attempts("old") == 0
    assert throttle.attempts("recent") == 1
    assert len(throttle) == 1


@pytest.mark.asyncio
async def test_sweeper_runs_periodically(clock):
    throttle = LoginThrottle(max_attempts=5, window_seconds=10, clock=clock)
    throttle.record_failure("10.0.0.1")
    clock.advance(11)
    sweeper = ThrottleSweeper(throttle, interval_seconds=0.01)

    sweeper.start()
    assert sweeper.running
    for _ in range(100):
        if len(throttle) == 0:
            break
        await asyncio.sleep(0.01)
    await sweeper.stop()

    assert len(throttle) == 0
    assert not sweeper.running


@pytest.mark.asyncio
async def test_sweeper_stop_without_start_is_noop(throttle):
    sweeper = ThrottleSweeper(throttle)
    await sweeper.stop()
    assert not sweeper.running
