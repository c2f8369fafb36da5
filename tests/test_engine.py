import time

import pytest

from autoclick_core import Action, ActionType, ClickPosition, Point, RepeatCounter
from autoclick_engine import (
    EventChannel,
    FireClick,
    PlaybackEngine,
    PlaybackFinished,
    PlaybackState,
    PlaybackStep,
    steps_from_actions,
    steps_from_positions,
)


def make_engine():
    channel = EventChannel()
    return PlaybackEngine(PlaybackState(), channel), channel


def collect(channel, timeout=5.0):
    """Read messages until PlaybackFinished; returns (clicks, finished)."""
    clicks = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        msg = channel.get(timeout=0.05)
        if isinstance(msg, FireClick):
            clicks.append(msg)
        elif isinstance(msg, PlaybackFinished):
            return clicks, msg
    raise AssertionError("playback did not finish")


def steps(n, delay=0.0):
    return [PlaybackStep(Point(i, i * 10), delay) for i in range(n)]


@pytest.mark.parametrize("n_steps,repeats", [(1, 1), (3, 1), (3, 4), (5, 2)])
def test_finite_repeats_issue_n_times_len_clicks_in_order(n_steps, repeats):
    engine, channel = make_engine()
    seq = steps(n_steps)
    assert engine.start(seq, repeats) is not None

    clicks, fin = collect(channel)
    assert len(clicks) == n_steps * repeats
    assert [c.point for c in clicks] == [s.point for s in seq] * repeats
    assert [c.pass_no for c in clicks] == [p for p in range(repeats) for _ in range(n_steps)]
    assert fin.reason == "completed"
    assert fin.passes == repeats
    assert fin.clicks == n_steps * repeats
    assert not engine.is_running


def test_clicks_are_separated_by_delay():
    engine, channel = make_engine()
    engine.start([PlaybackStep(Point(1, 1), 0.05), PlaybackStep(Point(2, 2), 0.08)], 2)

    clicks, _ = collect(channel)
    gaps = [b.issued_at - a.issued_at for a, b in zip(clicks, clicks[1:])]
    expected = [0.05, 0.08, 0.05]
    for gap, delay in zip(gaps, expected):
        assert gap >= delay * 0.95


def test_infinite_runs_until_stopped():
    engine, channel = make_engine()
    handle = engine.start(steps(2, delay=0.01), RepeatCounter.infinite())

    clicks = []
    while len(clicks) < 12:
        msg = channel.get(timeout=1.0)
        assert not isinstance(msg, PlaybackFinished)
        if isinstance(msg, FireClick):
            clicks.append(msg)

    t_stop = time.monotonic()
    engine.stop()
    assert handle.wait(2.0)
    late, fin = collect(channel)
    # a click already past the flag check may still land; nothing after it
    assert sum(1 for c in late if c.issued_at > t_stop) <= 1
    assert fin.reason == "stopped"
    assert fin.clicks >= 12

    time.sleep(0.05)
    assert channel.empty()


def test_stop_interrupts_long_delay():
    engine, channel = make_engine()
    handle = engine.start([PlaybackStep(Point(1, 1), 30.0)], 1)
    assert isinstance(channel.get(timeout=1.0), FireClick)

    t0 = time.monotonic()
    engine.stop()
    assert handle.wait(2.0)
    assert time.monotonic() - t0 < 1.0
    _, fin = collect(channel)
    assert fin.reason == "stopped"
    assert fin.passes == 0


def test_empty_sequence_terminates_immediately():
    engine, channel = make_engine()
    handle = engine.start([], 5)
    assert handle.wait(2.0)
    clicks, fin = collect(channel)
    assert clicks == []
    assert fin.reason == "empty"
    assert not engine.is_running


def test_zero_repeats_issue_no_clicks():
    engine, channel = make_engine()
    engine.start(steps(3), 0)
    clicks, fin = collect(channel)
    assert clicks == []
    assert fin.reason == "completed"


def test_start_while_running_is_a_noop():
    engine, channel = make_engine()
    first = engine.start(steps(2, delay=0.01), None)
    assert first is not None

    for _ in range(20):
        assert engine.start(steps(2, delay=0.01), None) is None

    engine.stop()
    assert first.wait(2.0)
    collect(channel)
    assert engine.state.max_live_loops == 1
    assert engine.state.live_loops == 0


def test_restart_after_stop_still_single_loop():
    engine, channel = make_engine()
    for _ in range(5):
        h = engine.start(steps(1, delay=0.01), None)
        assert h is not None
        engine.stop()
        assert h.wait(2.0)
        collect(channel)
    assert engine.state.max_live_loops == 1


def test_wait_only_steps_inject_nothing():
    engine, channel = make_engine()
    engine.start([PlaybackStep(None, 0.0), PlaybackStep(Point(5, 5), 0.0)], 3)
    clicks, fin = collect(channel)
    assert [c.point for c in clicks] == [Point(5, 5)] * 3
    assert fin.clicks == 3


def test_negative_step_delay_rejected():
    with pytest.raises(ValueError):
        PlaybackStep(Point(0, 0), -1.0)


def test_steps_from_positions_follow_order():
    a = ClickPosition(point=Point(1, 1), delay=0.5, order=1)
    b = ClickPosition(point=Point(2, 2), delay=1.5, order=0)
    assert steps_from_positions([a, b]) == [PlaybackStep(Point(2, 2), 1.5), PlaybackStep(Point(1, 1), 0.5)]


def test_steps_from_actions_uses_gaps_and_duration():
    actions = [
        Action(ActionType.CLICK, Point(1, 1), 0.5),
        Action(ActionType.CLICK, Point(2, 2), 1.0),
        Action(ActionType.SWIPE, Point(3, 3), 2.0),
    ]
    got = steps_from_actions(actions, duration=3.0)
    assert [s.point for s in got] == [None, Point(1, 1), Point(2, 2), None]
    assert [s.delay for s in got] == pytest.approx([0.5, 0.5, 1.0, 1.0])
    assert sum(s.delay for s in got) == pytest.approx(3.0)


def test_steps_from_actions_speed():
    actions = [Action(ActionType.CLICK, Point(1, 1), 0.0), Action(ActionType.CLICK, Point(2, 2), 1.0)]
    got = steps_from_actions(actions, duration=2.0, speed=2.0)
    assert [s.delay for s in got] == pytest.approx([0.5, 0.5])
    with pytest.raises(ValueError):
        steps_from_actions(actions, duration=2.0, speed=0)


def test_steps_from_actions_empty():
    assert steps_from_actions([], duration=4.0) == []
