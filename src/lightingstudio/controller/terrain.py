"""
Endless Terrain
===============
Two identical terrain tiles scrolling towards the camera.

Each frame the near tile sits at ``z = (t*v) mod period`` and the far tile
exactly one period behind it. When the near tile leaves the view the far one
has taken its place, and the far tile recycles behind the fog, so the scroll
looks endless with no seam or pop.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np
import numpy.typing as npt
import pyvista as pv
from scipy import ndimage
# OpenGL2 registers the factory overrides behind vtkPolyDataMapper
import vtkmodules.vtkRenderingOpenGL2  # noqa: F401
from vtkmodules.vtkRenderingCore import vtkPolyDataMapper

from lightingstudio.config import TerrainConfig
from lightingstudio.controller.shaders import GridProgram, ShaderMaterial

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerrainState:
    """Positions of the two tiles along the scroll axis (world z)."""
    phase: float
    near_z: float
    far_z: float
    period: float = 2.0

    @property
    def offsets(self) -> tuple[float, float]:
        return self.near_z, self.far_z

    def wrapped(self, z: float) -> float:
        """Reduces a tile position modulo the period into [-period, 0)."""
        w = math.fmod(z, self.period)
        if w >= 0.0:
            w -= self.period
        return w


def terrain_state_at(elapsed: float, config: TerrainConfig = TerrainConfig()) -> TerrainState:
    phase = math.fmod(elapsed * config.scroll_speed, config.period)
    if phase < 0.0:
        phase += config.period
    return TerrainState(phase=phase, near_z=phase, far_z=phase - config.period, period=config.period)


# ------------------------------------------------------------------------------
# Geometry
# ------------------------------------------------------------------------------

def sample_map(image: npt.NDArray[np.float64], uv: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Bilinear lookup of a (H, W) map at (N, 2) UVs. Row 0 of the map is v = 0.
    """
    h, w = image.shape
    cols = np.clip(uv[:, 0], 0.0, 1.0) * (w - 1)
    rows = np.clip(uv[:, 1], 0.0, 1.0) * (h - 1)
    return ndimage.map_coordinates(image, [rows, cols], order=1, mode="nearest")


def build_terrain_mesh(
    config: TerrainConfig = TerrainConfig(),
    height_map: Optional[npt.NDArray[np.float64]] = None,
    metalness_map: Optional[npt.NDArray[np.float64]] = None,
) -> pv.PolyData:
    """
    Subdivided plane lying on the ground (XZ), displaced upwards.

    Args:
        config: Size, resolution and material factors.
        height_map: (H, W) values in [0, 1]. None leaves the tile flat.
        metalness_map: (H, W) values in [0, 1]. None means uniform metalness.

    Returns:
        PolyData with point arrays 'grid_uv' (N, 2) and 'metalness' (N,).
    """
    n = config.segments + 1
    uu, vv = np.meshgrid(np.linspace(0.0, 1.0, n), np.linspace(0.0, 1.0, n))
    uv = np.column_stack([uu.ravel(), vv.ravel()])

    # Quads counter-clockwise seen from the plane normal
    col, row = np.meshgrid(np.arange(config.segments), np.arange(config.segments))
    a = (row * n + col).ravel()
    faces = np.column_stack([np.full_like(a, 4), a, a + 1, a + n + 1, a + n]).ravel()

    height = np.zeros(len(uv)) if height_map is None else sample_map(height_map, uv)
    metal = np.ones(len(uv)) if metalness_map is None else sample_map(metalness_map, uv)

    # Lay the plane on the ground: v = 1 (far edge) goes to world -Z,
    # the plane normal becomes world +Y and carries the displacement.
    world = np.column_stack([
        (uv[:, 0] - 0.5) * config.width,
        height * config.displacement_scale,
        -(uv[:, 1] - 0.5) * config.depth,
    ])

    mesh = pv.PolyData(world, faces=faces).compute_normals(
        point_normals=True, cell_normals=False, split_vertices=False, auto_orient_normals=False
    )
    # set_array keeps them out of the active scalars, the grid shader reads them
    mesh.point_data.set_array(uv, GridProgram.UV_ARRAY)
    mesh.point_data.set_array(metal * config.metalness, GridProgram.METAL_ARRAY)
    return mesh


def make_terrain_actor(mesh: pv.PolyData, config: TerrainConfig) -> pv.Actor:
    """
    One terrain tile on an explicit vtkPolyDataMapper, the mapper type the
    grid shader can bind its vertex attributes to.
    """
    mapper = vtkPolyDataMapper()
    mapper.SetInputData(mesh)
    mapper.ScalarVisibilityOff()

    actor = pv.Actor(mapper=mapper)
    prop = actor.GetProperty()
    prop.SetColor(1.0, 1.0, 1.0)
    prop.SetSpecular(config.metalness)
    prop.SetSpecularPower(max(1.0, (1.0 - config.roughness) * 40.0))
    # The mesh carries its own normals; avoid a smoothed copy
    prop.SetInterpolationToPhong()
    return actor


class TerrainLoop:
    """Owns the two terrain tiles of the landscape scene."""

    def __init__(self, config: TerrainConfig, material: ShaderMaterial) -> None:
        self.config = config
        self.material = material
        self.height_map: Optional[npt.NDArray[np.float64]] = None
        self.metalness_map: Optional[npt.NDArray[np.float64]] = None
        self.mesh: pv.PolyData = build_terrain_mesh(config)
        self.actors: List[Any] = []
        self.state: TerrainState = terrain_state_at(0.0, config)

    def mount(self, surface: Any) -> None:
        self.actors = []
        for z in self.state.offsets:
            actor = make_terrain_actor(self.mesh, self.config)
            actor.position = (0.0, 0.0, z)
            surface.add_actor(actor, name=f"terrain-{len(self.actors)}", reset_camera=False)
            # Tracked before the shader goes in, so unmount also removes a half-built tile
            self.actors.append(actor)
            self.material.program.install(actor, self.material.uniforms)
        self.material.consume_dirty()

    def unmount(self, surface: Any) -> None:
        for actor in self.actors:
            surface.remove_actor(actor)
        self.actors = []

    def set_maps(
        self,
        height_map: Optional[npt.NDArray[np.float64]] = None,
        metalness_map: Optional[npt.NDArray[np.float64]] = None,
    ) -> None:
        """Rebuilds the shared tile geometry once a texture has arrived."""
        if height_map is not None:
            self.height_map = height_map
        if metalness_map is not None:
            self.metalness_map = metalness_map
        rebuilt = build_terrain_mesh(self.config, self.height_map, self.metalness_map)
        # Both actors share this dataset, update it in place
        self.mesh.points = rebuilt.points
        for key in ("Normals", GridProgram.UV_ARRAY, GridProgram.METAL_ARRAY):
            self.mesh.point_data.set_array(rebuilt.point_data[key], key)
        logger.debug("Terrain geometry rebuilt from texture maps.")

    def update(self, elapsed: float) -> TerrainState:
        self.state = terrain_state_at(elapsed, self.config)
        for actor, z in zip(self.actors, self.state.offsets):
            actor.position = (0.0, 0.0, z)
        if self.material.consume_dirty():
            for actor in self.actors:
                self.material.program.install(actor, self.material.uniforms)
        return self.state
