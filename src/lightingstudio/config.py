"""
Configuration & Path Management
===============================
This module serves as the central registry for file paths and render constants.

Why is this file needed?
------------------------
1. Abstraction: It prevents hardcoded paths and magic numbers (caps, scales,
   speeds, light positions) scattered throughout the scene code.
2. Deployment: It handles the logic required by PyInstaller (sys._MEIPASS) to
   find assets (textures, datasets) when the app is frozen into an .exe.
3. Injection: The render constants are grouped into frozen dataclasses which
   are passed into the SceneComposer at construction time.

Exports:
    ASSETS_PATH (str): Absolute path to the assets directory.
    DEFAULT_DATASET_PATH (str): Absolute path to the default LED dataset.
    SUN_SVG_URL (str): Remote vector asset used for the sun silhouette.
    RenderConfig: Container of all render constants.
"""
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to resource, works for dev and for PyInstaller.
    """
    if hasattr(sys, '_MEIPASS'):
        # PyInstaller temp folder
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # Development mode: resolve relative to this file
    # config.py is in src/lightingstudio/
    current_file_path: Path = Path(__file__)
    project_root: Path = current_file_path.parent.parent.parent
    return os.path.join(str(project_root), relative_path)


# Global Constants
ASSETS_PATH: str = get_resource_path("assets")
TEXTURES_PATH: str = os.path.join(ASSETS_PATH, "textures")
DEFAULT_DATASET_PATH: str = os.path.join(ASSETS_PATH, "leds.json")
LOGO_PATH: str = os.path.join(ASSETS_PATH, "full-logo.png")
SUN_SVG_URL: str = "https://raw.githubusercontent.com/willgriffiths/storage/master/vaporwave/onisun-1x1.svg"

if not os.path.exists(ASSETS_PATH):
    logger.warning(f"Assets path not found at {ASSETS_PATH}")


# ------------------------------------------------------------------------------
# Render constants
# ------------------------------------------------------------------------------

@dataclass(frozen=True)
class SamplerCaps:
    """Performance budget of the LED geometry sampler."""
    max_panels: int = 200
    max_per_panel: int = 3000
    # Keep every Nth LED. None (or 0/1) keeps all of them.
    skip_interval: Optional[int] = 10

    def __post_init__(self) -> None:
        if self.max_panels < 0:
            raise ValueError(f"max_panels must be >= 0, got {self.max_panels}")
        if self.max_per_panel < 0:
            raise ValueError(f"max_per_panel must be >= 0, got {self.max_per_panel}")
        if self.skip_interval is not None and self.skip_interval < 0:
            raise ValueError(f"skip_interval must be >= 0 or None, got {self.skip_interval}")


@dataclass(frozen=True)
class LayoutTransform:
    """Maps dataset coordinates to the camera-facing render frame."""
    normal_scale: float = 1.5
    offset_x: float = 0.7
    offset_z: float = 5.0
    # Scale of the whole panels group in the design view
    group_scale: Vec3 = (0.15, 0.15, 0.08)
    led_size: float = 0.004
    edge_led_size: float = 0.009


@dataclass(frozen=True)
class CameraConfig:
    position: Vec3 = (0.0, 0.06, 1.1)
    focal_point: Vec3 = (0.0, 0.06, 0.0)
    fov: float = 75.0
    near: float = 0.01
    far: float = 20.0


@dataclass(frozen=True)
class FogConfig:
    """Linear fog, hides the recycled terrain mesh behind the visible one."""
    color: str = "#000000"
    near: float = 1.0
    far: float = 2.5

    def __post_init__(self) -> None:
        if self.far <= self.near:
            raise ValueError(f"Fog far ({self.far}) must be greater than near ({self.near}).")


@dataclass(frozen=True)
class TerrainConfig:
    width: float = 1.0
    depth: float = 2.0
    segments: int = 24
    scroll_speed: float = 0.15
    # Scroll period; the two meshes are placed exactly one period apart
    period: float = 2.0
    displacement_scale: float = 0.4
    metalness: float = 0.9
    roughness: float = 0.5
    displacement_map: str = "displacement-7.png"
    metalness_map: str = "metalness-2.png"

    def __post_init__(self) -> None:
        if self.period <= 0:
            raise ValueError(f"Terrain period must be positive, got {self.period}")
        if self.segments < 1:
            raise ValueError(f"Terrain segments must be >= 1, got {self.segments}")


@dataclass(frozen=True)
class SpotLightConfig:
    position: Vec3
    target: Vec3
    color: str = "#d53c3d"
    intensity: float = 40.0
    distance: float = 25.0
    # Cone half angle in degrees (PI * 0.1 rad)
    angle: float = 18.0
    penumbra: float = 0.25
    decay: float = 10.0


def _default_spotlights() -> Tuple[SpotLightConfig, ...]:
    # Both lights sit right behind the camera and cross-aim at opposite sides
    return (
        SpotLightConfig(position=(0.5, 0.75, 2.1), target=(-0.25, 0.25, 0.25)),
        SpotLightConfig(position=(-0.5, 0.75, 2.1), target=(0.25, 0.25, 0.25)),
    )


@dataclass(frozen=True)
class SunConfig:
    position: Vec3 = (0.0, 4.5, 0.0)
    scale: Vec3 = (1.15, 1.15, 1.0)
    halo_color: str = "#e84971"
    halo_inner_radius: float = 0.1
    halo_outer_radius: float = 3.8
    halo_segments: int = 36
    halo_texture_size: int = 256
    silhouette_color: str = "#ffd8bb"
    svg_url: str = SUN_SVG_URL
    fetch_timeout: float = 10.0


@dataclass(frozen=True)
class PostFxConfig:
    rgb_shift_amount: float = 0.0012
    rgb_shift_angle: float = 0.0
    gamma: float = 1.0
    bloom_strength: float = 0.2
    bloom_radius: float = 0.8
    bloom_threshold: float = 0.0
    bloom_levels: int = 5

    def __post_init__(self) -> None:
        if self.gamma <= 0:
            raise ValueError(f"Gamma must be positive, got {self.gamma}")
        if self.bloom_levels < 1:
            raise ValueError(f"bloom_levels must be >= 1, got {self.bloom_levels}")


@dataclass(frozen=True)
class RenderConfig:
    """All render constants, passed into the SceneComposer."""
    caps: SamplerCaps = field(default_factory=SamplerCaps)
    layout: LayoutTransform = field(default_factory=LayoutTransform)
    camera: CameraConfig = field(default_factory=CameraConfig)
    fog: FogConfig = field(default_factory=FogConfig)
    terrain: TerrainConfig = field(default_factory=TerrainConfig)
    spotlights: Tuple[SpotLightConfig, ...] = field(default_factory=_default_spotlights)
    sun: SunConfig = field(default_factory=SunConfig)
    postfx: PostFxConfig = field(default_factory=PostFxConfig)
    background: str = "#000000"
    max_pixel_ratio: float = 2.0
    frame_interval_ms: int = 16
    textures_path: str = TEXTURES_PATH


def effective_pixel_ratio(device_ratio: float, cap: float = 2.0) -> float:
    """Clamp the device pixel ratio to bound the GPU cost."""
    if device_ratio <= 0:
        return 1.0
    return min(float(device_ratio), cap)
