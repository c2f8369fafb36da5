import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

QtWidgets = pytest.importorskip("PySide6.QtWidgets")

from autoclick_app import AutoClickWindow, MarkerWindow  # noqa: E402
from autoclick_core import Point  # noqa: E402
from autoclick_engine import PositionMoved  # noqa: E402
from autoclick_input import InputBackend  # noqa: E402
from autoclick_state import AppController  # noqa: E402
from autoclick_store import ConfigStore  # noqa: E402


class FakeGui:
    def __init__(self, pointer=(100, 120)):
        self.pointer = pointer
        self.events = []

    def size(self):
        return (800, 600)

    def position(self):
        return self.pointer

    def mouseDown(self, x, y, button):
        self.events.append(("down", x, y))

    def mouseUp(self, x, y, button):
        self.events.append(("up", x, y))


@pytest.fixture(scope="module")
def qapp():
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app


@pytest.fixture
def window(qapp, tmp_path):
    controller = AppController(backend=InputBackend(FakeGui()), store=ConfigStore(tmp_path))
    w = AutoClickWindow(controller)
    yield w
    w.close()


def test_add_position_shows_marker_at_click_point(window):
    window.on_add_position()
    c = window.controller
    assert len(c.config.click_positions) == 1
    pos = c.config.click_positions[0]
    assert pos.point == Point(100, 120)
    assert window.positions_table.rowCount() == 1

    marker = c.state.markers.get(pos.id)
    assert isinstance(marker, MarkerWindow)
    assert marker.click_point() == pos.point


def test_delete_closes_marker_once(window):
    window.on_add_position()
    c = window.controller
    pos = c.config.click_positions[0]
    marker = c.state.markers.get(pos.id)

    window.positions_table.setCurrentCell(0, 0)
    window.on_delete_position()
    assert c.config.click_positions == []
    assert window.positions_table.rowCount() == 0
    assert marker.closed_count == 1
    assert pos.id not in c.state.markers


def test_marker_move_message_updates_table(window):
    window.on_add_position()
    pos = window.controller.config.click_positions[0]
    window.controller.channel.put(PositionMoved(pos.id, Point(300, 200)))
    window._pump()
    assert pos.point == Point(300, 200)
    assert window.positions_table.item(0, 1).text() == "300"
    assert window.positions_table.item(0, 2).text() == "200"


def test_invalid_hotkey_is_reported_not_saved(window):
    window.txt_hotkey.setText("cmd+shift")
    window.on_save_hotkey()
    assert window.controller.config.hotkey == ""

    window.txt_hotkey.setText("shift+cmd+k")
    window.on_save_hotkey()
    assert window.controller.config.hotkey == "Cmd+Shift+K"
    assert window.txt_hotkey.text() == "Cmd+Shift+K"


def test_run_button_state_follows_positions(window):
    assert not window.btn_run.isEnabled()
    window.on_add_position()
    assert window.btn_run.isEnabled()
    assert not window.btn_stop.isEnabled()


def test_window_starts_with_corrupt_settings(qapp, tmp_path):
    store = ConfigStore(tmp_path)
    store.config_path.write_bytes(b"hotkey: \xff\xfe\n")
    store.sequences_path.write_bytes(b"sequences: \xff\n")
    w = AutoClickWindow(AppController(backend=InputBackend(FakeGui()), store=store))
    try:
        assert w.controller.config.click_positions == []
        assert w.controller.state.sequences == []
        assert "could not be loaded" in w.statusBar().currentMessage()
    finally:
        w.close()
