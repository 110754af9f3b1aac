TAPE_STYLE = """
QMainWindow, QWidget {
    background-color: #15130F;
    color: #F1E9D8;
    font-family: "DejaVu Sans", "Segoe UI", "Verdana";
    font-size: 13px;
}

QPushButton {
    background-color: #2A251C;
    border: 1px solid #4D4331;
    border-radius: 6px;
    padding: 6px 12px;
    color: #F1E9D8;
}

QPushButton:hover {
    background-color: #3A3224;
    border-color: #D9A441;
}

QPushButton:pressed {
    background-color: #1E1A13;
}

QWidget#actionStrip {
    background-color: #1D1A14;
    border: 1px solid #3B3426;
    border-radius: 10px;
}

QPushButton#actionButton {
    min-height: 28px;
}

QPushButton#transportButton, QPushButton#recordButton {
    min-width: 40px;
    max-width: 40px;
    min-height: 32px;
    padding: 2px 0;
    font-size: 16px;
    font-weight: 700;
}

QPushButton#recordButton {
    color: #FFE2D6;
    background-color: #6A2216;
    border-color: #C2543A;
}

QPushButton#recordButton:hover {
    background-color: #86301F;
    border-color: #F07A5A;
}

QLabel#actionLabel {
    color: #D9C8A4;
    font-weight: 600;
}

QLabel#statusLabel {
    font-family: "DejaVu Sans Mono", "Consolas", monospace;
    color: #B5A27C;
}

QSlider#speedSlider::groove:horizontal {
    height: 4px;
    background: #3B3426;
    border-radius: 2px;
}

QSlider#speedSlider::handle:horizontal {
    background: #D9A441;
    width: 10px;
    margin: -4px 0;
    border-radius: 5px;
}
"""
