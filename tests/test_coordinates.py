import pytest

from autoclick_core import (
    MARKER_SIZE,
    Point,
    ScreenGeometry,
    pointer_to_internal,
    to_injection_space,
    to_marker_space,
)


TOP_LEFT = ScreenGeometry(1440, 900)
BOTTOM_LEFT = ScreenGeometry(1440, 900, bottom_left_origin=True)


@pytest.mark.parametrize("screen", [TOP_LEFT, BOTTOM_LEFT])
@pytest.mark.parametrize(
    "x,y",
    [
        (0, 0),
        (10, 10),
        (720, 450),
        (1439, 899),
        (0, 899),
        (1439, 0),
        (25, 874),
    ],
)
def test_marker_round_trip(screen, x, y):
    p = Point(x, y)
    assert screen.contains(p)
    assert to_injection_space(to_marker_space(p, screen), screen) == p


@pytest.mark.parametrize("screen", [TOP_LEFT, BOTTOM_LEFT])
def test_marker_drag_is_inverse(screen):
    # a marker dragged to any origin maps back to the same origin
    for origin in (Point(-25, -25), Point(100, 200), Point(1400, 860)):
        click = to_injection_space(origin, screen)
        assert to_marker_space(click, screen) == origin


def test_marker_centered_on_click_top_left():
    origin = to_marker_space(Point(100, 100), TOP_LEFT)
    assert origin == Point(100 - MARKER_SIZE // 2, 100 - MARKER_SIZE // 2)


def test_marker_flipped_on_bottom_left_screen():
    origin = to_marker_space(Point(100, 100), BOTTOM_LEFT)
    # window frame origin is the bottom-left corner of the circle
    assert origin == Point(75, 900 - 125)


def test_pointer_flip_bottom_left():
    assert pointer_to_internal(10, 800, BOTTOM_LEFT) == Point(10, 100)
    assert pointer_to_internal(10, 800, TOP_LEFT) == Point(10, 800)


def test_pointer_rounds_fractional_coordinates():
    assert pointer_to_internal(10.6, 20.4, TOP_LEFT) == Point(11, 20)
    assert pointer_to_internal(10.6, 20.4) == Point(11, 20)
    assert pointer_to_internal(99.5, 0.49, None) == Point(100, 0)


def test_screen_contains_and_clamp():
    s = ScreenGeometry(100, 50)
    assert s.contains(Point(99, 49))
    assert not s.contains(Point(100, 0))
    assert not s.contains(Point(-1, 0))
    assert s.clamp(Point(150, -3)) == Point(99, 0)
