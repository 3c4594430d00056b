"""
Design Control Panel
====================
The "Edit" toggle plus the selection controls of the design view: one
checkbox per panel, a "Clear" button and the two color fields.

All edits go through the Store; the panel re-syncs itself from the
``selection_changed`` signal.
"""
from typing import Dict, List

from PySide6.QtWidgets import (
    QCheckBox, QFormLayout, QGroupBox, QLabel, QLineEdit, QPushButton, QScrollArea, QVBoxLayout, QWidget
)

from lightingstudio.model.selection import ColorRole, Selection
from lightingstudio.model.state import Mode, Store

COLOR_HINT = '(ex. "#e84971" or "rgb(30%, 50%, 8%)" or "rgb(255, 50, 80)")'


class DesignControlPanel(QWidget):
    def __init__(self, store: Store, panel_ids: List[str]) -> None:
        super().__init__()
        self.store = store

        layout = QVBoxLayout(self)

        # --- Mode Toggle ---
        self.btn_edit = QPushButton("Edit")
        self.btn_edit.setCheckable(True)
        self.btn_edit.setChecked(store.mode == Mode.DESIGN)
        self.btn_edit.setMinimumHeight(40)
        self.btn_edit.toggled.connect(self.on_edit_toggled)
        layout.addWidget(self.btn_edit)

        # --- Everything below is only shown while editing ---
        self.controls = QWidget()
        controls_layout = QVBoxLayout(self.controls)
        controls_layout.setContentsMargins(0, 0, 0, 0)

        self.btn_clear = QPushButton("Clear")
        self.btn_clear.clicked.connect(self.store.clear_selection)
        controls_layout.addWidget(self.btn_clear)

        # 1. Panels
        grp_panels = QGroupBox("Panels")
        grp_layout = QVBoxLayout(grp_panels)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        inner = QWidget()
        inner_layout = QVBoxLayout(inner)
        inner_layout.setContentsMargins(4, 4, 4, 4)

        self.checkboxes: Dict[str, QCheckBox] = {}
        for panel_id in panel_ids:
            chk = QCheckBox(panel_id)
            chk.toggled.connect(lambda _checked, pid=panel_id: self.store.toggle_panel(pid))
            inner_layout.addWidget(chk)
            self.checkboxes[panel_id] = chk
        inner_layout.addStretch()
        scroll.setWidget(inner)
        grp_layout.addWidget(scroll)
        controls_layout.addWidget(grp_panels, 1)

        # 2. Colors
        grp_colors = QGroupBox("Colors")
        form = QFormLayout(grp_colors)
        self.edit_primary = QLineEdit()
        self.edit_primary.textEdited.connect(lambda text: self.store.set_color(ColorRole.PRIMARY, text))
        form.addRow("Primary Color:", self.edit_primary)

        self.edit_edge = QLineEdit()
        self.edit_edge.textEdited.connect(lambda text: self.store.set_color(ColorRole.EDGE, text))
        form.addRow("Edge Color:", self.edit_edge)

        hint = QLabel(COLOR_HINT)
        hint.setWordWrap(True)
        hint.setStyleSheet("color: gray;")
        form.addRow(hint)
        controls_layout.addWidget(grp_colors)

        layout.addWidget(self.controls, 1)
        layout.addStretch()

        # --- Sync ---
        self.store.mode_changed.connect(self.on_mode_changed)
        self.store.selection_changed.connect(self.sync_from_selection)
        self.on_mode_changed(store.mode)
        self.sync_from_selection(store.selection)

    def on_edit_toggled(self, checked: bool) -> None:
        self.store.set_mode(Mode.DESIGN if checked else Mode.LANDSCAPE)

    def on_mode_changed(self, mode: Mode) -> None:
        editing = mode == Mode.DESIGN
        self.controls.setVisible(editing)
        if self.btn_edit.isChecked() != editing:
            self.btn_edit.blockSignals(True)
            self.btn_edit.setChecked(editing)
            self.btn_edit.blockSignals(False)

    def sync_from_selection(self, selection: Selection) -> None:
        """Mirrors the selection without emitting edits back to the store."""
        for panel_id, chk in self.checkboxes.items():
            checked = bool(selection.enabled.get(panel_id, False))
            if chk.isChecked() != checked:
                chk.blockSignals(True)
                chk.setChecked(checked)
                chk.blockSignals(False)

        # Don't fight the cursor of the field being typed in
        for edit, value in ((self.edit_primary, selection.colors.primary), (self.edit_edge, selection.colors.edge)):
            if edit.text() != value:
                edit.setText(value)
