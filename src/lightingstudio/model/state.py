"""
Studio State (Data Model)
=========================
This module defines the central state of the running application.

Why is this file needed?
------------------------
1. State Management: It holds the current mode and the panel selection in one
   place. The selection survives mode switches for the whole session.
2. Decoupling: Views read from this object and listen to its signals; the
   panels write to it through the methods below, never by poking fields.
3. Serialization: Every edit arrives on the GUI thread and is applied before
   the next render tick reads the state.

Classes:
    Mode: Landscape (animated scene) or Design (fixture layout).
    Store: The Qt-aware container with change signals.
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Mapping, Optional, Union

from PySide6.QtCore import QObject, Signal

from lightingstudio.model.selection import ColorRole, Selection

logger = logging.getLogger(__name__)


class Mode(IntEnum):
    """Which branch of the scene is active."""
    LANDSCAPE = 0
    DESIGN = 1


class Store(QObject):
    """Central state store with signals for panel/view sync."""
    mode_changed = Signal(object)
    selection_changed = Signal(object)

    def __init__(self, mode: Mode = Mode.LANDSCAPE, selection: Optional[Selection] = None) -> None:
        super().__init__()
        self._mode: Mode = Mode(mode)
        self.selection: Selection = selection if selection is not None else Selection()

    @property
    def mode(self) -> Mode:
        return self._mode

    # --- Mode ---

    def set_mode(self, mode: Mode) -> None:
        mode = Mode(mode)
        if mode == self._mode:
            return
        self._mode = mode
        logger.info(f"Mode switched to {mode.name}.")
        self.mode_changed.emit(self._mode)

    def toggle_mode(self) -> Mode:
        self.set_mode(Mode.LANDSCAPE if self._mode == Mode.DESIGN else Mode.DESIGN)
        return self._mode

    # --- Selection ---

    def toggle_panel(self, panel_id: str) -> bool:
        value = self.selection.toggle(panel_id)
        logger.debug(f"Panel {panel_id} -> {value}")
        self.selection_changed.emit(self.selection)
        return value

    def set_color(self, role: Union[ColorRole, str], value: str) -> None:
        self.selection.set_color(role, value)
        self.selection_changed.emit(self.selection)

    def clear_selection(self) -> None:
        self.selection.clear()
        logger.debug("Panel selection cleared.")
        self.selection_changed.emit(self.selection)

    def merge_selection(
        self,
        enabled: Optional[Mapping[str, bool]] = None,
        colors: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.selection.merge(enabled=enabled, colors=colors)
        self.selection_changed.emit(self.selection)
