"""
FPS readout of the design view: current value plus a short rolling graph.
"""
from collections import deque
from typing import Deque, Optional

import numpy as np
import pyqtgraph as pg
from PySide6.QtCore import Qt
from PySide6.QtWidgets import QLabel, QVBoxLayout, QWidget

HISTORY = 120
ACCENT = "#39f5e6"


class FpsGraph(QWidget):
    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setAttribute(Qt.WA_TransparentForMouseEvents)
        self.setFixedSize(160, 80)
        self.setStyleSheet("background: rgba(0, 0, 0, 180);")

        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 2, 4, 4)
        layout.setSpacing(0)

        self.lbl_value = QLabel("-- FPS")
        self.lbl_value.setStyleSheet(f"color: {ACCENT}; font-weight: bold;")
        layout.addWidget(self.lbl_value)

        self.plot_widget = pg.PlotWidget(background=None)
        self.plot_widget.hideAxis('bottom')
        self.plot_widget.hideAxis('left')
        self.plot_widget.setMouseEnabled(x=False, y=False)
        self.plot_widget.setMenuEnabled(False)
        self.plot_widget.setYRange(0, 70)
        layout.addWidget(self.plot_widget)

        self._samples: Deque[float] = deque(maxlen=HISTORY)
        self._curve = self.plot_widget.plot([], [], pen=pg.mkPen(color=ACCENT, width=1))

    def push(self, fps: float) -> None:
        self._samples.append(fps)
        self.lbl_value.setText(f"{fps:.0f} FPS")
        y = np.fromiter(self._samples, dtype=float)
        self._curve.setData(np.arange(len(y)), y)
        # Keep 60 FPS in view, grow with faster displays
        self.plot_widget.setYRange(0, max(70.0, float(y.max()) * 1.1))

    def reset(self) -> None:
        self._samples.clear()
        self._curve.setData([], [])
        self.lbl_value.setText("-- FPS")
