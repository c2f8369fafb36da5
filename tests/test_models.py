import pytest

from autoclick_core import (
    Action,
    ActionType,
    AppConfig,
    ClickPosition,
    ConfigFormatError,
    Point,
    RecordedSequence,
    RecordingResult,
    RepeatCounter,
    playback_order,
)


def test_finite_counter_reaches_zero():
    c = RepeatCounter(2)
    assert not c.exhausted
    c.tick()
    c.tick()
    assert c.exhausted
    c.tick()
    assert c.remaining == 0


def test_infinite_counter_never_exhausts():
    c = RepeatCounter.infinite()
    for _ in range(10_000):
        c.tick()
    assert c.is_infinite
    assert not c.exhausted


def test_zero_repeats_is_exhausted_immediately():
    assert RepeatCounter(0).exhausted


def test_negative_repeats_rejected():
    with pytest.raises(ValueError):
        RepeatCounter(-1)


def test_counter_from_settings():
    assert RepeatCounter.from_settings(5, infinite=True).is_infinite
    assert RepeatCounter.from_settings(5, infinite=False).remaining == 5


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        ClickPosition(point=Point(1, 1), delay=-0.1)
    with pytest.raises(ValueError):
        ClickPosition(point=Point(1, 1), delay=float("nan"))
    with pytest.raises(ValueError):
        ClickPosition(point=Point(1, 1), delay=float("inf"))


def test_playback_order_is_stable_on_equal_orders():
    a = ClickPosition(point=Point(1, 1), order=2)
    b = ClickPosition(point=Point(2, 2), order=0)
    c = ClickPosition(point=Point(3, 3), order=2)
    assert playback_order([a, b, c]) == [b, a, c]


def test_config_round_trip():
    cfg = AppConfig(
        click_positions=[
            ClickPosition(point=Point(10, 20), delay=0.5, order=0),
            ClickPosition(point=Point(30, 40), delay=2.0, order=1, is_visible=False),
        ],
        hotkey="Cmd+K",
        global_repeat_count=3,
        is_infinite_loop=True,
        show_markers=False,
    )
    back = AppConfig.from_dict(cfg.to_dict())
    assert back == cfg


def test_config_defaults_from_empty_mapping():
    cfg = AppConfig.from_dict({})
    assert cfg == AppConfig()


def test_config_hotkey_is_normalized_on_load():
    cfg = AppConfig.from_dict({"hotkey": "shift+cmd+k"})
    assert cfg.hotkey == "Cmd+Shift+K"


@pytest.mark.parametrize(
    "doc,field",
    [
        ({"click_positions": [{"x": 1}]}, "click_positions[0].y"),
        ({"click_positions": [{"x": 1, "y": 2, "delay": "soon"}]}, "click_positions[0].delay"),
        ({"click_positions": [{"x": 1, "y": 2, "delay": -1}]}, "click_positions[0].delay"),
        ({"click_positions": [{"x": float("inf"), "y": 2}]}, "click_positions[0].x"),
        ({"click_positions": [{"x": 1, "y": 2, "delay": float("nan")}]}, "click_positions[0].delay"),
        ({"click_positions": "nope"}, "click_positions"),
        ({"global_repeat_count": -2}, "global_repeat_count"),
        ({"hotkey": "cmd+shift"}, "hotkey"),
        ({"version": 99}, "version"),
    ],
)
def test_config_format_errors_name_the_field(doc, field):
    with pytest.raises(ConfigFormatError) as ei:
        AppConfig.from_dict(doc)
    assert field in str(ei.value)


def test_sequence_round_trip():
    result = RecordingResult(
        actions=(
            Action(ActionType.CLICK, Point(1, 2), 0.25),
            Action(ActionType.SWIPE, Point(3, 4), 1.5),
        ),
        duration=2.0,
    )
    seq = RecordedSequence.from_recording("demo", result)
    back = RecordedSequence.from_dict(seq.to_dict())
    assert back == seq
    assert back.actions[1].type is ActionType.SWIPE


def test_sequence_unknown_action_type():
    doc = {"name": "x", "duration": 1.0, "actions": [{"type": "drag", "x": 0, "y": 0, "timestamp": 0}]}
    with pytest.raises(ConfigFormatError):
        RecordedSequence.from_dict(doc)
