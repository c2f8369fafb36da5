#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""autoclick: desktop auto clicker (PySide6).

Features
- click positions: add at the pointer, drag the on-screen circle marker to
  move, per-position delay, delete
- playback: run / stop, global repeat count or infinite loop, global hotkey
  toggle (e.g. Cmd+Shift+K / Ctrl+Option+F9)
- recordings: record primary clicks with their timing, replay, delete

Dependencies (pip install)
- PySide6
- pyyaml
- pyautogui
- pynput

Threads
- Qt main thread owns the window, the markers and the AppController.
- The playback loop and the pynput listeners post messages to the
  EventChannel; a QTimer drains it on the main thread, where clicks are
  injected.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from PySide6.QtCore import QPoint, Qt, QTimer
from PySide6.QtGui import QColor, QGuiApplication, QPainter, QPen
from PySide6.QtWidgets import (
    QApplication,
    QCheckBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QPushButton,
    QSpinBox,
    QTableWidget,
    QTableWidgetItem,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from autoclick_core import (
    MARKER_SIZE,
    ClickPosition,
    HotkeyError,
    Point,
    ScreenGeometry,
    to_injection_space,
    to_marker_space,
)
from autoclick_engine import EventChannel, FireClick, PointerPressed, PositionMoved
from autoclick_input import GlobalListeners, InputBackend
from autoclick_state import AppController
from autoclick_store import ConfigStore

logger = logging.getLogger(__name__)

PUMP_INTERVAL_MS = 15


def primary_screen_geometry() -> Optional[ScreenGeometry]:
    s = QGuiApplication.primaryScreen()
    if s is None:
        return None
    g = s.geometry()
    if g.width() <= 0 or g.height() <= 0:
        return None
    return ScreenGeometry(g.width(), g.height())


class MarkerWindow(QWidget):
    """Frameless circle shown at a click position; drag to move it."""

    def __init__(self, position: ClickPosition, screen: ScreenGeometry, channel: EventChannel):
        super().__init__()
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint | Qt.WindowType.WindowStaysOnTopHint | Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setFixedSize(MARKER_SIZE, MARKER_SIZE)

        self.position_id = position.id
        self.order = position.order
        self.screen_geometry = screen
        self.channel = channel
        self.closed_count = 0
        self._grab: Optional[QPoint] = None

        origin = to_marker_space(position.point, screen)
        self.move(origin.x, origin.y)

    def click_point(self) -> Point:
        return to_injection_space(Point(self.x(), self.y()), self.screen_geometry)

    def close(self) -> bool:
        self.closed_count += 1
        return super().close()

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            self._grab = event.globalPosition().toPoint() - self.pos()

    def mouseMoveEvent(self, event):
        if self._grab is None:
            return
        self.move(event.globalPosition().toPoint() - self._grab)
        self.channel.put(PositionMoved(self.position_id, self.click_point()))

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton and self._grab is not None:
            self._grab = None
            self.channel.put(PositionMoved(self.position_id, self.click_point()))

    def paintEvent(self, event):
        p = QPainter(self)
        p.setRenderHint(QPainter.RenderHint.Antialiasing)
        p.setBrush(QColor(0, 120, 255, 60))
        pen = QPen(QColor(0, 120, 255, 220))
        pen.setWidth(2)
        p.setPen(pen)
        p.drawEllipse(1, 1, MARKER_SIZE - 2, MARKER_SIZE - 2)
        p.setPen(QColor(255, 255, 255))
        p.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, str(self.order))


class AutoClickWindow(QMainWindow):
    def __init__(
        self,
        controller: Optional[AppController] = None,
        listeners: Optional[GlobalListeners] = None,
    ):
        super().__init__()
        self.setWindowTitle("Auto Clicker")

        if controller is None:
            controller = AppController(backend=InputBackend(), store=ConfigStore())
        self.controller = controller
        self.controller.marker_factory = self._make_marker
        self.controller.subscribe(self._show_message)
        self.listeners = listeners

        self._build_ui()

        self._timer = QTimer(self)
        self._timer.setInterval(PUMP_INTERVAL_MS)
        self._timer.timeout.connect(self._pump)
        self._timer.start()

        self.controller.load()
        self._refresh_all()

    # ----------------------- ui -----------------------

    def _build_ui(self):
        tabs = QTabWidget()
        self.setCentralWidget(tabs)
        tabs.addTab(self._build_home_tab(), "Home")
        tabs.addTab(self._build_clicks_tab(), "Clicks")
        tabs.addTab(self._build_recordings_tab(), "Recordings")
        self.tabs = tabs

    def _build_home_tab(self) -> QWidget:
        w = QWidget()
        layout = QVBoxLayout(w)
        title = QLabel("Auto Clicker")
        title.setStyleSheet("font-size: 20px; font-weight: bold;")
        layout.addWidget(title)
        layout.addWidget(QLabel("Clicks the mouse automatically at the positions you choose."))
        layout.addWidget(QLabel("• Add and manage several click positions."))
        layout.addWidget(QLabel("• A blue circle marks each click position."))
        layout.addWidget(QLabel("• Drag a circle to move its click position."))
        layout.addWidget(QLabel("• Set a delay per position and a repeat count."))
        layout.addStretch(1)
        return w

    def _build_clicks_tab(self) -> QWidget:
        w = QWidget()
        layout = QVBoxLayout(w)

        row1 = QHBoxLayout()
        self.chk_markers = QCheckBox("Show markers")
        self.chk_markers.toggled.connect(self.on_show_markers)
        self.txt_hotkey = QLineEdit()
        self.txt_hotkey.setPlaceholderText("e.g. Cmd+Shift+K")
        self.btn_save_hotkey = QPushButton("Save hotkey")
        self.btn_save_hotkey.clicked.connect(self.on_save_hotkey)
        row1.addWidget(self.chk_markers)
        row1.addStretch(1)
        row1.addWidget(QLabel("Hotkey:"))
        row1.addWidget(self.txt_hotkey)
        row1.addWidget(self.btn_save_hotkey)
        layout.addLayout(row1)

        row2 = QHBoxLayout()
        self.btn_add = QPushButton("Add click position")
        self.btn_add.clicked.connect(self.on_add_position)
        self.spin_repeat = QSpinBox()
        self.spin_repeat.setRange(0, 1_000_000)
        self.spin_repeat.valueChanged.connect(self.on_repeat_changed)
        self.chk_infinite = QCheckBox("Infinite")
        self.chk_infinite.toggled.connect(self.on_infinite)
        row2.addWidget(self.btn_add)
        row2.addStretch(1)
        row2.addWidget(QLabel("Repeat:"))
        row2.addWidget(self.spin_repeat)
        row2.addWidget(self.chk_infinite)
        layout.addLayout(row2)

        self.positions_table = QTableWidget(0, 4)
        self.positions_table.setHorizontalHeaderLabels(["#", "x", "y", "delay_s"])
        self.positions_table.itemChanged.connect(self.on_position_item_changed)
        layout.addWidget(self.positions_table)

        row3 = QHBoxLayout()
        self.btn_delete = QPushButton("Delete selected")
        self.btn_delete.clicked.connect(self.on_delete_position)
        self.btn_run = QPushButton("Run")
        self.btn_run.clicked.connect(self.on_run)
        self.btn_stop = QPushButton("Stop")
        self.btn_stop.clicked.connect(self.on_stop)
        row3.addWidget(self.btn_delete)
        row3.addStretch(1)
        row3.addWidget(self.btn_run)
        row3.addWidget(self.btn_stop)
        layout.addLayout(row3)

        self.lbl_status = QLabel("Status: idle")
        self.lbl_status.setStyleSheet("font-weight: bold;")
        layout.addWidget(self.lbl_status)
        return w

    def _build_recordings_tab(self) -> QWidget:
        w = QWidget()
        layout = QVBoxLayout(w)

        row1 = QHBoxLayout()
        self.txt_record_name = QLineEdit()
        self.txt_record_name.setPlaceholderText("Recording name")
        self.btn_record = QPushButton("Start recording")
        self.btn_record.clicked.connect(self.on_record)
        row1.addWidget(self.txt_record_name)
        row1.addWidget(self.btn_record)
        layout.addLayout(row1)

        self.sequence_list = QListWidget()
        layout.addWidget(self.sequence_list)

        row2 = QHBoxLayout()
        self.btn_play = QPushButton("Play")
        self.btn_play.clicked.connect(self.on_play_sequence)
        self.btn_delete_sequence = QPushButton("Delete")
        self.btn_delete_sequence.clicked.connect(self.on_delete_sequence)
        row2.addWidget(self.btn_play)
        row2.addWidget(self.btn_delete_sequence)
        row2.addStretch(1)
        layout.addLayout(row2)
        return w

    # ----------------------- markers / messages -----------------------

    def _make_marker(self, pos: ClickPosition) -> Optional[MarkerWindow]:
        screen = primary_screen_geometry()
        if screen is None:
            return None
        m = MarkerWindow(pos, screen, self.controller.channel)
        m.show()
        return m

    def _pump(self):
        self._dirty = False
        if not self.controller.channel.drain(self._handle):
            return
        if self._dirty:
            self._refresh_all()
        else:
            self._update_ui_state()

    def _handle(self, msg: object):
        if not isinstance(msg, FireClick):
            self._dirty = True
        # our own button clicks are not part of a recording
        if isinstance(msg, PointerPressed) and self.frameGeometry().contains(QPoint(msg.point.x, msg.point.y)):
            return
        self.controller.handle(msg)

    # ----------------------- handlers -----------------------

    def on_show_markers(self, checked: bool):
        self.controller.set_show_markers(checked)

    def on_save_hotkey(self):
        try:
            hk = self.controller.set_hotkey(self.txt_hotkey.text())
        except HotkeyError as e:
            self._show_message(f"Invalid hotkey: {e}")
            return
        self.txt_hotkey.setText(hk)
        self._show_message(f"Hotkey saved: {hk or '(none)'}")
        self.controller.save()

    def on_add_position(self):
        if self.controller.add_position_at_pointer() is None:
            self._show_message("No screen available")
        self._refresh_all()

    def on_repeat_changed(self, value: int):
        self.controller.set_repeat_count(value)

    def on_infinite(self, checked: bool):
        self.controller.set_infinite(checked)
        self._update_ui_state()

    def on_position_item_changed(self, item: QTableWidgetItem):
        if item.column() != 3:
            return
        pid = item.data(Qt.ItemDataRole.UserRole)
        try:
            delay = float(item.text())
            self.controller.set_delay(pid, delay)
        except ValueError:
            self._show_message("Delay must be a number >= 0")
            self._refresh_positions_table()

    def on_delete_position(self):
        row = self.positions_table.currentRow()
        positions = self.controller.config.click_positions
        if row < 0 or row >= len(positions):
            return
        self.controller.remove_position(positions[row].id)
        self._refresh_all()

    def on_run(self):
        self.controller.run()
        self._update_ui_state()

    def on_stop(self):
        self.controller.stop()
        self._update_ui_state()

    def on_record(self):
        if self.controller.is_recording:
            name = self.txt_record_name.text().strip() or "Recording"
            self.controller.stop_recording(name)
            self.txt_record_name.clear()
        else:
            if self.listeners is None or not self.listeners.available:
                self._show_message("Global mouse listener is not available (pynput)")
                return
            self.controller.start_recording()
        self._refresh_all()

    def _selected_sequence_id(self) -> Optional[str]:
        item = self.sequence_list.currentItem()
        if item is None:
            return None
        return item.data(Qt.ItemDataRole.UserRole)

    def on_play_sequence(self):
        if self.controller.is_running:
            self.controller.stop()
        else:
            sid = self._selected_sequence_id()
            if sid is not None:
                self.controller.play_sequence(sid)
        self._update_ui_state()

    def on_delete_sequence(self):
        sid = self._selected_sequence_id()
        if sid is None:
            return
        self.controller.delete_sequence(sid)
        self._refresh_all()

    # ----------------------- refresh -----------------------

    def _refresh_all(self):
        cfg = self.controller.config
        for widget, value in (
            (self.chk_markers, cfg.show_markers),
            (self.chk_infinite, cfg.is_infinite_loop),
        ):
            widget.blockSignals(True)
            widget.setChecked(value)
            widget.blockSignals(False)
        self.spin_repeat.blockSignals(True)
        self.spin_repeat.setValue(cfg.global_repeat_count)
        self.spin_repeat.blockSignals(False)
        if not self.txt_hotkey.hasFocus():
            self.txt_hotkey.setText(cfg.hotkey)
        self._refresh_positions_table()
        self._refresh_sequence_list()
        self._update_ui_state()

    def _refresh_positions_table(self):
        t = self.positions_table
        t.blockSignals(True)
        t.setRowCount(0)
        for i, pos in enumerate(self.controller.config.click_positions):
            t.insertRow(i)
            cells = [str(pos.order), str(pos.point.x), str(pos.point.y), f"{pos.delay:g}"]
            for col, text in enumerate(cells):
                item = QTableWidgetItem(text)
                item.setData(Qt.ItemDataRole.UserRole, pos.id)
                if col != 3:
                    item.setFlags(item.flags() & ~Qt.ItemFlag.ItemIsEditable)
                t.setItem(i, col, item)
        t.resizeColumnsToContents()
        t.blockSignals(False)

    def _refresh_sequence_list(self):
        current = self._selected_sequence_id()
        self.sequence_list.clear()
        for seq in self.controller.state.sequences:
            label = f"{seq.name}  ({len(seq.actions)} clicks, {seq.duration:.2f}s, {seq.created_at})"
            item = QListWidgetItem(label)
            item.setData(Qt.ItemDataRole.UserRole, seq.id)
            self.sequence_list.addItem(item)
            if seq.id == current:
                self.sequence_list.setCurrentItem(item)

    def _update_ui_state(self):
        running = self.controller.is_running
        recording = self.controller.is_recording
        if running:
            self.lbl_status.setText("Status: running")
            self.lbl_status.setStyleSheet("font-weight: bold; color: #00AA00;")
        elif recording:
            self.lbl_status.setText("Status: recording")
            self.lbl_status.setStyleSheet("font-weight: bold; color: #FF4444;")
        else:
            self.lbl_status.setText("Status: idle")
            self.lbl_status.setStyleSheet("font-weight: bold;")

        has_positions = bool(self.controller.config.click_positions)
        self.btn_run.setEnabled(has_positions and not running)
        self.btn_stop.setEnabled(running)
        self.spin_repeat.setEnabled(not self.controller.config.is_infinite_loop)
        self.btn_record.setText("Stop recording" if recording else "Start recording")
        self.btn_record.setEnabled(not running)
        self.btn_play.setText("Stop" if running else "Play")

    def _show_message(self, text: str):
        self.statusBar().showMessage(text, 8000)

    def closeEvent(self, event):
        self._timer.stop()
        self.controller.stop()
        self.controller.engine.wait(1.0)
        if self.listeners is not None:
            self.listeners.stop()
        self.controller.state.markers.clear()
        self.controller.save()
        super().closeEvent(event)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)

    backend = InputBackend()
    controller = AppController(backend=backend, store=ConfigStore())
    listeners = GlobalListeners(controller.channel, screen=backend.screen_geometry())
    listeners.start()

    w = AutoClickWindow(controller, listeners)
    w.resize(720, 560)
    w.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
