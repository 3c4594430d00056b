"""
Studio Viewport (PyVista Wrapper)
=================================
The 3D area of the main window.

Landscape frames are rendered off-screen, post-processed in NumPy and shown
in a QLabel. The design view is a regular QtInteractor with orbit controls.
A QStackedWidget switches between the two when the mode changes.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

import numpy as np
import numpy.typing as npt
import pyvista as pv
from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QCloseEvent, QImage, QPixmap, QResizeEvent
from PySide6.QtWidgets import QLabel, QStackedWidget, QVBoxLayout, QWidget
from pyvistaqt import QtInteractor

from lightingstudio.config import LOGO_PATH, RenderConfig
from lightingstudio.controller.assets import AssetLoader
from lightingstudio.controller.composer import SceneComposer
from lightingstudio.model.dataset import PanelDataset
from lightingstudio.model.state import Mode, Store
from lightingstudio.view.widgets.fps_graph import FpsGraph

logger = logging.getLogger(__name__)


class StudioView(QWidget):
    def __init__(
        self,
        store: Store,
        dataset: PanelDataset,
        config: RenderConfig = RenderConfig(),
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.store = store
        self.config = config

        self.layout_box: QVBoxLayout = QVBoxLayout(self)
        self.layout_box.setContentsMargins(0, 0, 0, 0)

        self.stack = QStackedWidget()
        self.layout_box.addWidget(self.stack)

        # --- Landscape: off-screen render shown as an image ---
        self.frame_label = QLabel()
        self.frame_label.setAlignment(Qt.AlignCenter)
        self.frame_label.setStyleSheet(f"background-color: {config.background};")
        self.frame_label.setMinimumSize(1, 1)
        self.stack.addWidget(self.frame_label)  # Index 0 = Mode.LANDSCAPE

        self.offscreen: pv.Plotter = pv.Plotter(off_screen=True, window_size=[640, 480])
        self.offscreen.enable_anti_aliasing("ssaa")

        # --- Design: interactive plotter ---
        self.plotter: QtInteractor = QtInteractor(self)
        self.plotter.enable_anti_aliasing("ssaa")
        self.stack.addWidget(self.plotter)  # Index 1 = Mode.DESIGN

        # --- Overlays ---
        self.logo_label = QLabel(self)
        self.logo_label.setAttribute(Qt.WA_TransparentForMouseEvents)
        self.logo_label.setStyleSheet("background: transparent;")
        self._logo: Optional[QPixmap] = QPixmap(LOGO_PATH) if os.path.exists(LOGO_PATH) else None
        if self._logo is None:
            logger.info("Logo image not found, the hero logo is hidden.")

        self.fps_graph = FpsGraph(self)

        # --- Controller ---
        self.loader = AssetLoader(self)
        self.composer = SceneComposer(
            store,
            dataset,
            landscape_surface=self.offscreen,
            design_surface=self.plotter,
            config=config,
            loader=self.loader,
            frame_sink=self.show_frame,
        )

        self.store.mode_changed.connect(self.on_mode_changed)
        self.on_mode_changed(self.store.mode)

        self.timer = QTimer(self)
        self.timer.setInterval(config.frame_interval_ms)
        self.timer.timeout.connect(self.on_tick)
        self.timer.start()

    # ------------------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------------------

    def on_tick(self) -> None:
        try:
            self.composer.tick()
        except Exception:
            # Keep the timer alive, the next frame may succeed
            logger.exception("Frame update failed.")
            return

        if self.store.mode == Mode.DESIGN:
            self.fps_graph.push(self.composer.fps)

    def show_frame(self, frame: npt.NDArray[np.uint8]) -> None:
        h, w = frame.shape[:2]
        image = QImage(frame.data, w, h, 3 * w, QImage.Format_RGB888).copy()
        pixmap = QPixmap.fromImage(image)
        pixmap.setDevicePixelRatio(w / max(1, self.frame_label.width()))
        self.frame_label.setPixmap(pixmap)

    # ------------------------------------------------------------------------------
    # Slots & events
    # ------------------------------------------------------------------------------

    def on_mode_changed(self, mode: Mode) -> None:
        self.stack.setCurrentIndex(int(mode))
        self.logo_label.setVisible(mode == Mode.LANDSCAPE and self._logo is not None)
        self.fps_graph.setVisible(mode == Mode.DESIGN)
        self.fps_graph.reset()
        self._place_overlays()

    def resizeEvent(self, event: QResizeEvent) -> None:
        super().resizeEvent(event)
        size = event.size()
        self.composer.resize(size.width(), size.height(), self.devicePixelRatioF())
        self._place_overlays()

    def _place_overlays(self) -> None:
        self.fps_graph.move(8, 8)
        self.fps_graph.raise_()
        if self._logo is None:
            return
        target_w = max(1, int(self.width() * 0.5))
        scaled = self._logo.scaledToWidth(target_w, Qt.SmoothTransformation)
        self.logo_label.setPixmap(scaled)
        self.logo_label.resize(scaled.size())
        self.logo_label.move((self.width() - scaled.width()) // 2, int(self.height() * 0.08))
        self.logo_label.raise_()

    def closeEvent(self, event: QCloseEvent) -> None:
        self.timer.stop()
        self.composer.shutdown()
        self.loader.wait_all()
        self.plotter.close()
        self.offscreen.close()
        event.accept()
