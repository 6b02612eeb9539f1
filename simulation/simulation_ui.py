"""
Simulation Monitor -- segment occupancy and train state, driven in real time.
"""
import logging
import time

from PyQt6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
    QTableWidget, QTableWidgetItem, QHeaderView
)
from PyQt6.QtCore import Qt, QTimer, QPointF
from PyQt6.QtGui import QFont, QColor, QPainter, QPen, QBrush

from simulation.simulation_backend import Simulation
from universal.universal import ConversionFunctions

logger = logging.getLogger(__name__)

OCCUPIED_COLOR = QColor.fromHslF(0.0, 1.0, 0.57)
FREE_COLOR = QColor.fromHslF(30.0 / 360.0, 1.0, 0.57)
TRAIN_COLOR = QColor(40, 40, 40)
FAULT_COLOR = QColor(200, 0, 200)

FRAME_MS = 16


class TrackView(QWidget):
    """Draws the segments, colored by occupancy, and the trains on them."""

    def __init__(self, sim: Simulation, parent=None):
        super().__init__(parent)
        self.sim = sim
        self.setMinimumHeight(220)
        points = [p for seg in sim.network.segments for p in seg.path]
        xs = [x for x, _ in points] or [0.0]
        ys = [y for _, y in points] or [0.0]
        self._bounds = (min(xs), min(ys), max(xs), max(ys))

    def _to_widget(self, point):
        min_x, min_y, max_x, max_y = self._bounds
        pad = 20.0
        span = max(max_x - min_x, max_y - min_y, 1e-6)
        scale = min((self.width() - 2 * pad) / span,
                    (self.height() - 2 * pad) / span)
        cx = (min_x + max_x) / 2.0
        cy = (min_y + max_y) / 2.0
        # y grows upwards on the track, downwards on screen
        return QPointF(self.width() / 2.0 + (point[0] - cx) * scale,
                       self.height() / 2.0 - (point[1] - cy) * scale)

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        occupancy = self.sim.network.occupancy()
        for segment in self.sim.network.segments:
            color = FREE_COLOR if occupancy[segment.handle] is None else OCCUPIED_COLOR
            painter.setPen(QPen(color, 6))
            pts = [self._to_widget(p) for p in segment.path]
            for a, b in zip(pts, pts[1:]):
                painter.drawLine(a, b)

        painter.setPen(QPen(Qt.GlobalColor.white, 1))
        for train in self.sim.trains:
            painter.setBrush(QBrush(FAULT_COLOR if train.faulted else TRAIN_COLOR))
            painter.drawEllipse(
                self._to_widget(self.sim.interpolated_point(train.handle)), 7, 7)
        painter.end()


class SimulationMonitorUI(QWidget):
    """Monitor window with a start/pause gate.

    A QTimer feeds wall-clock time to the simulation, which runs the ticks
    that fall due; tables and the track view are redrawn every frame.
    """

    SEGMENT_HEADERS = ["Segment", "Length", "Occupied", "Occupant"]
    TRAIN_HEADERS = ["Train", "Segment", "Position", "Speed (km/h)",
                     "Command", "Remaining", "Status"]

    def __init__(self, sim: Simulation):
        super().__init__()
        self.sim = sim
        self._last_frame = time.monotonic()
        self.init_ui()
        self.refresh_status()

        self.timer = QTimer(self)
        self.timer.timeout.connect(self.on_frame)
        self.timer.start(FRAME_MS)

    def init_ui(self):
        self.setWindowTitle("Block Signaling Simulator")
        self.setGeometry(100, 100, 1100, 750)
        layout = QVBoxLayout()

        top_section = QHBoxLayout()
        title = QLabel(f"Line {self.sim.network.line_name or '-'}")
        title.setFont(QFont("Arial", 16, QFont.Weight.Bold))
        top_section.addWidget(title, 1)

        self.time_label = QLabel()
        self.time_label.setFont(QFont("Arial", 12))
        top_section.addWidget(self.time_label)

        self.start_button = QPushButton()
        self.start_button.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        self.start_button.clicked.connect(self.toggle_gate)
        top_section.addWidget(self.start_button)
        layout.addLayout(top_section)

        self.track_view = TrackView(self.sim)
        layout.addWidget(self.track_view, 2)

        self.segments_table = self._make_table(self.SEGMENT_HEADERS)
        self.trains_table = self._make_table(self.TRAIN_HEADERS)
        tables = QHBoxLayout()
        tables.addWidget(self.segments_table, 1)
        tables.addWidget(self.trains_table, 2)
        layout.addLayout(tables, 1)

        hint = QLabel("Space: start / pause")
        hint.setAlignment(Qt.AlignmentFlag.AlignRight)
        layout.addWidget(hint)
        self.setLayout(layout)

    @staticmethod
    def _make_table(headers):
        table = QTableWidget(0, len(headers))
        table.setHorizontalHeaderLabels(headers)
        table.horizontalHeader().setSectionResizeMode(
            QHeaderView.ResizeMode.Stretch)
        table.verticalHeader().setVisible(False)
        table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        return table

    # ---- gate ----
    def toggle_gate(self):
        self.sim.clock.toggle()
        self.refresh_status()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key.Key_Space and not event.isAutoRepeat():
            self.toggle_gate()
        else:
            super().keyPressEvent(event)

    # ---- frame loop ----
    def on_frame(self):
        now = time.monotonic()
        real_dt = now - self._last_frame
        self._last_frame = now
        try:
            ran = self.sim.advance(real_dt)
        except Exception:
            logger.exception("Simulation tick failed, pausing")
            self.sim.clock.pause()
            ran = 0
        if ran:
            self.refresh_status()
        self.track_view.update()

    def refresh_status(self):
        self.start_button.setText("Pause" if self.sim.clock.started else "Start")
        self.time_label.setText(f"T+ {self.sim.clock.get_time_string()}")
        self.populate_segments_table(self.sim.segment_states())
        self.populate_trains_table(self.sim.train_states())

    def populate_segments_table(self, segments_data):
        names = {t.handle: t.name for t in self.sim.trains}
        self.segments_table.setRowCount(len(segments_data))
        for row, seg in enumerate(segments_data):
            color = OCCUPIED_COLOR if seg["occupied"] else FREE_COLOR
            values = [seg["name"], f"{seg['length']:.1f}",
                      "Yes" if seg["occupied"] else "No",
                      names.get(seg["occupant"], "")]
            for col, value in enumerate(values):
                item = QTableWidgetItem(value)
                if col == 2:
                    item.setBackground(color)
                self.segments_table.setItem(row, col, item)

    def populate_trains_table(self, trains_data):
        self.trains_table.setRowCount(len(trains_data))
        for row, state in enumerate(trains_data):
            segment = self.sim.network.segment(state["segment"])
            remaining = state["remaining_distance"]
            values = [
                state["name"],
                segment.name,
                f"{state['position']:.1f}",
                f"{ConversionFunctions.mps_to_kmh(state['velocity']):.1f}",
                str(state["command"]),
                "-" if remaining is None else f"{remaining:.1f}",
                state["fault"] if state["faulted"] else "OK",
            ]
            for col, value in enumerate(values):
                item = QTableWidgetItem(value)
                if col == 6 and state["faulted"]:
                    item.setBackground(QColor(255, 200, 200))
                self.trains_table.setItem(row, col, item)
