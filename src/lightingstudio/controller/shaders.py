"""
Shader Materials
================
The two custom shading programs of the landscape scene.

1. GridProgram: procedural antialiased grid overlay of the terrain. The GLSL
   version is injected into the VTK terrain shader through shader
   replacements; the NumPy version evaluates the same math for a raster of
   surface coordinates (derivatives taken between neighbouring pixels, like
   dFdx/dFdy do on the GPU).
2. HaloProgram: soft radial ring gradient of the sun. It is baked into an
   RGBA texture (NumPy) whenever its color uniform changes.

Both programs are pure functions of their inputs and the uniforms of the
ShaderMaterial that owns them. A uniform update only marks the material dirty;
the composer applies it on the next rendered frame.
"""
from __future__ import annotations

import copy
import logging
import math
from typing import Any, Dict, Optional, Tuple

import numpy as np
import numpy.typing as npt

logger = logging.getLogger(__name__)

FloatArray = npt.NDArray[np.float64]

# 1/sqrt(2), the same constant as the GLSL aastep
AA_FACTOR = 0.70710678118654757


# ------------------------------------------------------------------------------
# GLSL helpers, NumPy flavour
# ------------------------------------------------------------------------------

def smoothstep(edge0: float, edge1: Any, x: Any) -> Any:
    """GLSL smoothstep. Also used with edge0 > edge1 (inverted band)."""
    edge0 = np.asarray(edge0, dtype=np.float64)
    span = np.asarray(edge1, dtype=np.float64) - edge0
    # Zero-width band degrades to a hard step at edge0
    span = np.where(span == 0.0, np.finfo(np.float64).tiny, span)
    with np.errstate(over="ignore"):
        t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / span, 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def aastep(threshold: Any, value: FloatArray, d_dx: FloatArray, d_dy: FloatArray) -> FloatArray:
    """
    Antialiased step: 1 below the threshold, 0 above, with a transition band
    as wide as the local screen-space rate of change of ``value``.

    Args:
        threshold: Step position.
        value: Values to threshold.
        d_dx: Screen-space derivative of ``value`` along x (dFdx).
        d_dy: Screen-space derivative of ``value`` along y (dFdy).
    """
    afwidth = np.hypot(d_dx, d_dy) * AA_FACTOR
    return 1.0 - smoothstep(threshold - afwidth, threshold + afwidth, value)


def screen_derivatives(field: FloatArray) -> Tuple[FloatArray, FloatArray]:
    """dFdx / dFdy of a per-pixel field, rows are screen y."""
    field = np.asarray(field, dtype=np.float64)
    if field.ndim != 2 or min(field.shape) < 2:
        raise ValueError(f"Expected a 2D raster of at least 2x2 pixels, got shape {field.shape}.")
    d_dy, d_dx = np.gradient(field)
    return d_dx, d_dy


def fwidth(field: FloatArray) -> FloatArray:
    d_dx, d_dy = screen_derivatives(field)
    return np.abs(d_dx) + np.abs(d_dy)


# ------------------------------------------------------------------------------
# Programs
# ------------------------------------------------------------------------------

class ShaderProgram:
    """Base: a named program with default uniforms."""
    name: str = "program"
    default_uniforms: Dict[str, Any] = {}


class GridProgram(ShaderProgram):
    """Cosine grid, 24 cells per UV axis, tinted magenta."""
    name = "grid"
    default_uniforms: Dict[str, Any] = {"cycles": 24.0, "line_width": 1.0}

    UV_ATTRIBUTE = "gridUV"
    UV_ARRAY = "grid_uv"
    METAL_ATTRIBUTE = "gridMetal"
    METAL_ARRAY = "metalness"

    VERTEX_DEC = (
        "//VTK::PositionVC::Dec\n"
        "in vec2 gridUV;\n"
        "in float gridMetal;\n"
        "out vec2 gridUVVSOutput;\n"
        "out float gridMetalVSOutput;\n"
    )
    VERTEX_IMPL = (
        "//VTK::PositionVC::Impl\n"
        "  gridUVVSOutput = gridUV;\n"
        "  gridMetalVSOutput = gridMetal;\n"
    )
    FRAGMENT_DEC = (
        "//VTK::PositionVC::Dec\n"
        "in vec2 gridUVVSOutput;\n"
        "in float gridMetalVSOutput;\n"
        "const float GRID_PI = 3.141592653589793;\n"
        "float aastep(in float threshold, in float value) {\n"
        "  float afwidth = length(vec2(dFdx(value), dFdy(value))) * 0.70710678118654757;\n"
        "  return 1.0 - smoothstep(threshold - afwidth, threshold + afwidth, value);\n"
        "}\n"
    )
    FRAGMENT_IMPL = (
        "//VTK::Color::Impl\n"
        "  float lw = {line_width:.6f};\n"
        "  float gx = 1.0 + cos(gridUVVSOutput.x * {cycles:.6f} * 2.0 * GRID_PI - GRID_PI);\n"
        "  gx = aastep(fwidth(gridUVVSOutput.x) * lw, gx);\n"
        "  float gy = 1.0 + cos(gridUVVSOutput.y * {cycles:.6f} * 2.0 * GRID_PI - GRID_PI);\n"
        "  gy = aastep(fwidth(gridUVVSOutput.y) * lw, gy);\n"
        "  float grid = gx + gy;\n"
        "  diffuseColor = vec3(grid, grid * 0.3, grid * 0.5);\n"
        "  specularColor *= gridMetalVSOutput;\n"
    )

    @staticmethod
    def tint(grid: FloatArray) -> FloatArray:
        return np.stack([grid, grid * 0.3, grid * 0.5], axis=-1)

    def evaluate(self, u: FloatArray, v: FloatArray, uniforms: Optional[Dict[str, Any]] = None) -> FloatArray:
        """
        Grid color for a raster of surface coordinates.

        Args:
            u, v: (H, W) per-pixel surface coordinates.
            uniforms: Defaults to ``default_uniforms``.

        Returns:
            (H, W, 3) RGB. Line pixels carry the tint, the rest is black.
        """
        uniforms = uniforms or self.default_uniforms
        cycles = float(uniforms["cycles"])
        lw = float(uniforms["line_width"])

        grid = np.zeros(np.shape(u), dtype=np.float64)
        for coord in (np.asarray(u, dtype=np.float64), np.asarray(v, dtype=np.float64)):
            g = 1.0 + np.cos(coord * cycles * 2.0 * math.pi - math.pi)
            g_dx, g_dy = screen_derivatives(g)
            grid += aastep(fwidth(coord) * lw, g, g_dx, g_dy)
        return self.tint(grid)

    def fragment_source(self, uniforms: Dict[str, Any]) -> str:
        return self.FRAGMENT_IMPL.format(cycles=float(uniforms["cycles"]), line_width=float(uniforms["line_width"]))

    def install(self, actor: Any, uniforms: Dict[str, Any]) -> None:
        """
        Injects the grid into a VTK actor (non-PBR lighting).

        The actor must be driven by a vtkPolyDataMapper: pyvista's
        ``add_mesh`` builds a vtkDataSetMapper, which cannot bind custom
        vertex attributes.
        """
        mapper = actor.GetMapper()
        if not hasattr(mapper, "MapDataArrayToVertexAttribute"):
            raise TypeError(
                f"Grid shader needs a vtkPolyDataMapper, got {type(mapper).__name__}."
            )
        mapper.MapDataArrayToVertexAttribute(self.UV_ATTRIBUTE, self.UV_ARRAY, 0, -1)
        mapper.MapDataArrayToVertexAttribute(self.METAL_ATTRIBUTE, self.METAL_ARRAY, 0, -1)

        sp = actor.GetShaderProperty()
        sp.ClearAllShaderReplacements()
        sp.AddVertexShaderReplacement("//VTK::PositionVC::Dec", True, self.VERTEX_DEC, False)
        sp.AddVertexShaderReplacement("//VTK::PositionVC::Impl", True, self.VERTEX_IMPL, False)
        sp.AddFragmentShaderReplacement("//VTK::PositionVC::Dec", True, self.FRAGMENT_DEC, False)
        sp.AddFragmentShaderReplacement("//VTK::Color::Impl", True, self.fragment_source(uniforms), False)


class HaloProgram(ShaderProgram):
    """Soft ring gradient around the sun."""
    name = "halo"
    default_uniforms: Dict[str, Any] = {"color": (0.909, 0.286, 0.443), "opacity": 0.75}

    def evaluate(self, u: FloatArray, v: FloatArray, uniforms: Optional[Dict[str, Any]] = None) -> FloatArray:
        """
        Returns (..., 4) RGBA in the 0-1 range for UVs in [0, 1]².
        """
        uniforms = uniforms or self.default_uniforms
        color = np.asarray(uniforms["color"], dtype=np.float64)
        opacity = float(uniforms["opacity"])

        d = np.hypot(np.abs(u) - 0.5, np.abs(v) - 0.5)
        alpha = smoothstep(0.1, 0.5, d) * smoothstep(0.5, 0.3, d)

        rgba = np.empty(np.shape(d) + (4,), dtype=np.float64)
        rgba[..., :3] = color * opacity
        rgba[..., 3] = alpha * opacity
        return rgba

    def bake(self, size: int, uniforms: Optional[Dict[str, Any]] = None) -> npt.NDArray[np.uint8]:
        """(size, size, 4) uint8 texture, row 0 is v = 0."""
        t = (np.arange(size, dtype=np.float64) + 0.5) / size
        u, v = np.meshgrid(t, t)
        rgba = self.evaluate(u, v, uniforms)
        return np.clip(np.round(rgba * 255.0), 0, 255).astype(np.uint8)


# ------------------------------------------------------------------------------
# Material
# ------------------------------------------------------------------------------

class ShaderMaterial:
    """
    Owns the uniforms of one program instance. Uniforms are never shared
    between materials; updates are picked up by the next frame.
    """

    def __init__(self, program: ShaderProgram, **uniforms: Any) -> None:
        self.program = program
        self.uniforms: Dict[str, Any] = copy.deepcopy(program.default_uniforms)
        self._dirty = True
        for key, value in uniforms.items():
            self.set_uniform(key, value)

    def set_uniform(self, name: str, value: Any) -> None:
        if name not in self.uniforms:
            raise KeyError(f"Program '{self.program.name}' has no uniform '{name}'")
        self.uniforms[name] = value
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def consume_dirty(self) -> bool:
        """True once after each batch of uniform updates."""
        dirty, self._dirty = self._dirty, False
        return dirty
