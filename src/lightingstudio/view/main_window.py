"""
Main Application Window
=======================
The primary GUI container: control panel on the left, 3D viewport on the right.

Why is this file needed?
------------------------
1. Layout: It organizes the high-level visual structure of the application.
2. Routing: It connects global actions (mode toggle, clear, quit) to the Store.
"""
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QCloseEvent
from PySide6.QtWidgets import QMainWindow, QSplitter

from lightingstudio.config import RenderConfig
from lightingstudio.model.dataset import PanelDataset
from lightingstudio.model.state import Store
from lightingstudio.view.panels.design_panel import DesignControlPanel
from lightingstudio.view.widgets.studio_view import StudioView

VISIBLE_APP_NAME = "Titanic's End Lighting Studio"


class MainWindow(QMainWindow):
    def __init__(self, store: Store, dataset: PanelDataset, config: Optional[RenderConfig] = None) -> None:
        super().__init__()
        self.store = store
        self.dataset = dataset

        self.setWindowTitle(VISIBLE_APP_NAME)
        self.resize(1400, 900)

        # --- SPLITTER (CONTENT AREA) ---
        splitter = QSplitter(Qt.Horizontal)
        self.setCentralWidget(splitter)

        # --- LEFT SIDE: Controls ---
        self.design_panel = DesignControlPanel(store, dataset.panel_ids)
        splitter.addWidget(self.design_panel)

        # --- RIGHT SIDE: 3D Viewport ---
        self.visualizer = StudioView(store, dataset, config or RenderConfig())
        splitter.addWidget(self.visualizer)

        # 1 part sidebar : 4 parts 3D view
        splitter.setSizes([280, 1120])

        self._create_actions()
        self._create_menus()

    def _create_actions(self) -> None:
        self.act_edit = QAction("Edit", self)
        self.act_edit.setShortcut("Ctrl+E")
        self.act_edit.triggered.connect(self.store.toggle_mode)

        self.act_clear = QAction("Clear Selection", self)
        self.act_clear.triggered.connect(self.store.clear_selection)

        self.act_exit = QAction("Quit", self)
        self.act_exit.setShortcut("Ctrl+Q")
        self.act_exit.triggered.connect(self.close)

    def _create_menus(self) -> None:
        menu_bar = self.menuBar()

        file_menu = menu_bar.addMenu("&File")
        file_menu.addAction(self.act_exit)

        view_menu = menu_bar.addMenu("&View")
        view_menu.addAction(self.act_edit)
        view_menu.addAction(self.act_clear)

    def closeEvent(self, event: QCloseEvent) -> None:
        # Stop the frame timer and background loads before Qt tears down
        self.visualizer.close()
        event.accept()
