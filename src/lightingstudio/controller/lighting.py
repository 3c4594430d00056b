"""
Spotlight rig of the landscape scene: two red spots behind the camera aimed
across each other at the terrain.

VTK lights have no physical falloff, so the distance/decay falloff is
approximated by a linear attenuation term with the same slope at the light.
"""
from __future__ import annotations

import logging
from typing import Any, List, Sequence

import pyvista as pv

from lightingstudio.config import SpotLightConfig
from lightingstudio.model.colors import parse_color

logger = logging.getLogger(__name__)

# Configured intensity that maps to a full-strength VTK light
INTENSITY_UNIT = 40.0


def spot_falloff(distance: float, config: SpotLightConfig) -> float:
    """Physical falloff ``saturate(1 - d/range) ** decay``; 1.0 without a range."""
    if config.distance <= 0:
        return 1.0
    return max(0.0, 1.0 - distance / config.distance) ** config.decay


def attenuation_values(config: SpotLightConfig) -> tuple[float, float, float]:
    """(constant, linear, quadratic) with the falloff's slope at d = 0."""
    if config.distance <= 0:
        return 1.0, 0.0, 0.0
    return 1.0, config.decay / config.distance, 0.0


def make_spotlight(config: SpotLightConfig) -> pv.Light:
    light = pv.Light(
        position=config.position,
        focal_point=config.target,
        color=parse_color(config.color),
        light_type="scene light",
        intensity=min(1.0, config.intensity / INTENSITY_UNIT),
        positional=True,
        cone_angle=config.angle,
        attenuation_values=attenuation_values(config),
    )
    # Penumbra: the wider the soft edge, the stronger the angular falloff
    light.exponent = 1.0 + config.penumbra * 10.0
    return light


class LightingRig:
    def __init__(self, configs: Sequence[SpotLightConfig]) -> None:
        self.configs = tuple(configs)
        self.lights: List[pv.Light] = []

    def mount(self, surface: Any) -> None:
        # Drop the default light kit, the spots are the only light sources
        surface.remove_all_lights()
        self.lights = [make_spotlight(c) for c in self.configs]
        for light in self.lights:
            surface.add_light(light)
        logger.debug(f"Mounted {len(self.lights)} spotlights.")

    def unmount(self, surface: Any) -> None:
        surface.remove_all_lights()
        self.lights = []
