"""
Panel Selection (UI State)
==========================
Mutable session state for the design view: which panels are enabled and the
two user colors.

Rules:
1. An empty ``enabled`` mapping means "no filter": every panel is visible.
2. As soon as one entry exists, only panels with a truthy entry are visible.
3. Colors never influence visibility. ``clear()`` never touches colors and
   ``set_color()`` never touches ``enabled``.
4. ``merge()`` is shallow per key: unrelated panel entries and colors survive.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_COLOR = "#e84971"
DEFAULT_EDGE_COLOR = "#39f5e6"


class ColorRole(str, Enum):
    PRIMARY = "primary"
    EDGE = "edge"


@dataclass
class SelectionColors:
    primary: str = DEFAULT_PRIMARY_COLOR
    edge: str = DEFAULT_EDGE_COLOR

    def get(self, role: Union[ColorRole, str]) -> str:
        return getattr(self, ColorRole(role).value)


@dataclass
class Selection:
    enabled: Dict[str, bool] = field(default_factory=dict)
    colors: SelectionColors = field(default_factory=SelectionColors)

    @property
    def has_filter(self) -> bool:
        return bool(self.enabled)

    def is_visible(self, panel_id: Optional[str]) -> bool:
        if not self.enabled:
            return True
        if panel_id is None:
            return False
        return bool(self.enabled.get(panel_id, False))

    def toggle(self, panel_id: str) -> bool:
        """Flips the entry (absent counts as False). Returns the new value."""
        value = not self.enabled.get(panel_id, False)
        self.enabled[panel_id] = value
        return value

    def set_enabled(self, panel_id: str, value: bool) -> None:
        self.enabled[panel_id] = bool(value)

    def set_color(self, role: Union[ColorRole, str], value: str) -> None:
        """Stores the color string verbatim. Parsing happens at render time."""
        setattr(self.colors, ColorRole(role).value, value)

    def clear(self) -> None:
        """Drops every panel entry (back to 'all visible'), keeps the colors."""
        self.enabled = {}

    def merge(
        self,
        enabled: Optional[Mapping[str, bool]] = None,
        colors: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Shallow-merges a partial update.

        Args:
            enabled: Panel entries to add or overwrite. Others are kept.
            colors: Color roles to overwrite, e.g. {"edge": "#ffffff"}.

        Raises:
            ValueError: On an unknown color role (nothing is modified then).
        """
        roles = {ColorRole(k): v for k, v in (colors or {}).items()}
        if enabled:
            self.enabled.update({str(k): bool(v) for k, v in enabled.items()})
        for role, value in roles.items():
            self.set_color(role, value)

    def snapshot(self) -> Selection:
        return copy.deepcopy(self)
