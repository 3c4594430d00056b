"""Color string parsing for the user-editable LED colors."""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional, Tuple

import pyvista as pv

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]

_RGB_FUNC = re.compile(r"^rgba?\((.*)\)$", re.IGNORECASE)
_SHORT_HEX = re.compile(r"^#?([0-9a-f])([0-9a-f])([0-9a-f])$", re.IGNORECASE)


def parse_color(value: str) -> RGB:
    """Convert a CSS-like color string to normalized RGB (0.0-1.0 range).

    Accepted forms: '#e84971', '#f0a', 'rgb(255, 50, 80)',
    'rgb(30%, 50%, 8%)' and any named color known to pyvista ('red', ...).

    Raises:
        ValueError: if the string cannot be parsed
    """
    text = value.strip()
    if not text:
        raise ValueError("Empty color string")

    match = _RGB_FUNC.match(text)
    if match:
        return _parse_rgb_function(match.group(1), text)

    short = _SHORT_HEX.match(text)
    if short:
        text = "#" + "".join(c * 2 for c in short.groups())

    try:
        color = pv.Color(text)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid color: {value!r}") from e
    return tuple(float(c) for c in color.float_rgb)


def _parse_rgb_function(args: str, original: str) -> RGB:
    parts = [p.strip() for p in args.split(",")]
    if len(parts) not in (3, 4):
        raise ValueError(f"Invalid color: {original!r}")

    channels = []
    for part in parts[:3]:
        try:
            if part.endswith("%"):
                channel = float(part[:-1]) / 100.0
            else:
                channel = float(part) / 255.0
        except ValueError as e:
            raise ValueError(f"Invalid color: {original!r}") from e
        channels.append(min(max(channel, 0.0), 1.0))
    return channels[0], channels[1], channels[2]


class ColorResolver:
    """
    Resolves user color strings per role.

    An unparseable string keeps the last valid color of that role (initially
    the role default). A bad string is reported once while it stays the
    current value of its role; only the last one per role is remembered.
    """

    def __init__(self, defaults: Dict[str, str]) -> None:
        self._last_valid: Dict[str, RGB] = {role: parse_color(c) for role, c in defaults.items()}
        self._reported: Dict[str, str] = {}

    def resolve(self, role: str, value: Optional[str]) -> RGB:
        if role not in self._last_valid:
            raise KeyError(f"Unknown color role: {role}")
        if value is None:
            return self._last_valid[role]
        try:
            rgb = parse_color(value)
        except ValueError:
            if self._reported.get(role) != value:
                self._reported[role] = value
                logger.warning(f"Cannot parse {role} color {value!r}; keeping previous color.")
            return self._last_valid[role]
        self._reported.pop(role, None)
        self._last_valid[role] = rgb
        return rgb
