import sys

from PySide6.QtCore import Qt, QTimer, Slot
from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QSizePolicy,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from dictaphone.transport.session import CommandResult, Transport
from dictaphone.ui.styles import TAPE_STYLE
from dictaphone.ui.timeline_widget import TimelineWidget


class TransportWindow(QMainWindow):
    """
    Push-button front end for a Transport.

    The GUI thread owns the transport: player continuation events are pumped
    from its queue by a QTimer instead of being applied by the player threads.
    """

    def __init__(self, transport: Transport):
        super().__init__()
        self.transport = transport

        self.setWindowTitle("Dictaphone")
        self.setMinimumSize(760, 220)
        self.setStyleSheet(TAPE_STYLE)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        root_layout = QVBoxLayout()
        root_layout.setContentsMargins(10, 10, 10, 10)
        root_layout.setSpacing(10)
        central_widget.setLayout(root_layout)

        # ===== Action Strip =====
        self.action_strip = QWidget()
        self.action_strip.setObjectName("actionStrip")
        self.action_strip.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)
        strip_layout = QHBoxLayout()
        strip_layout.setContentsMargins(12, 10, 12, 10)
        strip_layout.setSpacing(6)
        self.action_strip.setLayout(strip_layout)
        root_layout.addWidget(self.action_strip)

        def add_divider():
            divider = QFrame()
            divider.setFrameShape(QFrame.VLine)
            divider.setFrameShadow(QFrame.Plain)
            strip_layout.addWidget(divider)

        def add_button(text, object_name, tooltip, handler):
            button = QPushButton(text)
            button.setObjectName(object_name)
            button.setToolTip(tooltip)
            button.clicked.connect(handler)
            strip_layout.addWidget(button)
            return button

        self.load_button = add_button("Load", "actionButton", "Load an audio file", self.handle_load)
        self.open_button = add_button("Open", "actionButton", "Open a session script", self.handle_open)
        add_divider()
        self.record_button = add_button("●", "recordButton", "Record", lambda: self.run("record"))
        self.play_button = add_button("▶", "transportButton", "Play", lambda: self.run("play"))
        self.pause_button = add_button("❚❚", "transportButton", "Pause", lambda: self.run("pause"))
        self.stop_button = add_button("■", "transportButton", "Stop", lambda: self.run("stop"))
        add_divider()
        self.prev_marker_button = add_button("|◀", "transportButton", "Previous marker", lambda: self.run("seek_marker", -1))
        self.set_marker_button = add_button("Mark", "actionButton", "Set marker", lambda: self.run("set_marker", None))
        self.next_marker_button = add_button("▶|", "transportButton", "Next marker", lambda: self.run("seek_marker", 1))
        self.remove_marker_button = add_button("Unmark", "actionButton", "Remove marker", lambda: self.run("remove_marker"))
        self.delete_button = add_button("Delete", "actionButton", "Delete between markers", lambda: self.run("delete", None, None))
        add_divider()

        speed_label = QLabel("Speed")
        speed_label.setObjectName("actionLabel")
        strip_layout.addWidget(speed_label)

        # -100% .. +100% of normal speed, like a jog stick
        self.speed_slider = QSlider(Qt.Horizontal)
        self.speed_slider.setObjectName("speedSlider")
        self.speed_slider.setRange(-100, 100)
        self.speed_slider.setValue(int(round(transport.context.speed * 100)))
        self.speed_slider.setMinimumWidth(140)
        self.speed_slider.valueChanged.connect(self.handle_speed_changed)
        strip_layout.addWidget(self.speed_slider)
        strip_layout.addStretch(1)

        # ===== Timeline =====
        self.timeline_widget = TimelineWidget()
        self.timeline_widget.positionClicked.connect(self.handle_position_clicked)
        root_layout.addWidget(self.timeline_widget, 1)

        self.status_label = QLabel("")
        self.status_label.setObjectName("statusLabel")
        root_layout.addWidget(self.status_label)

        self.event_timer = QTimer(self)
        self.event_timer.setInterval(50)
        self.event_timer.timeout.connect(self.pump_events)
        self.event_timer.start()
        self.refresh()

    def run(self, operation: str, *args) -> CommandResult:
        result = self.transport.dispatch(operation, *args)
        if not result.ok:
            self.status_label.setText(result.message)
        self.refresh(keep_message=not result.ok)
        return result

    def refresh(self, keep_message: bool = False) -> None:
        status = self.transport.status()
        self.timeline_widget.set_timeline(self.transport.context.timeline, status["timecode"])
        if not keep_message:
            self.status_label.setText(
                f"{status['state']}  {status['timecode'] / 1000.0:.2f}s / "
                f"{status['duration'] / 1000.0:.2f}s  x{status['speed']:g}"
            )

    @Slot()
    def pump_events(self):
        if self.transport.process_events():
            self.refresh()

    @Slot(int)
    def handle_speed_changed(self, value: int):
        self.run("speed", value / 100.0, "absolute")

    @Slot(float)
    def handle_position_clicked(self, timecode: float):
        self.run("seek", timecode, "absolute")

    @Slot()
    def handle_load(self):
        path, _ = QFileDialog.getOpenFileName(self, "Load Audio", "", "Audio Files (*.wav *.flac *.ogg)")
        if path:
            self.run("load", path)

    @Slot()
    def handle_open(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open Session Script", "", "Session Scripts (*.txt *.log);;All Files (*)")
        if path:
            self.run("open", path)

    def closeEvent(self, event):  # noqa: N802 (Qt API)
        self.event_timer.stop()
        self.transport.reset()
        super().closeEvent(event)


def run_window(transport: Transport) -> int:
    app = QApplication.instance() or QApplication(sys.argv)
    window = TransportWindow(transport)
    window.show()
    return app.exec()
