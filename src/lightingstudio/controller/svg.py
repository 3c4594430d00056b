"""
Sun Silhouette (SVG)
====================
Fetches the vector sun artwork and turns it into flat triangulated geometry.

Why is this file needed?
------------------------
1. Parsing: Only the path ``d`` attributes are used. Every subpath is
   linearized into a closed (N, 2) loop (curves are sampled).
2. Triangulation: The loops of one path (outline + holes) are filled with
   vtkContourTriangulator, like the cross-section loops elsewhere in VTK land.
3. Placement: The artwork lives in a 1x1 box with y pointing down; it is
   flipped, scaled by 5 and centered on the sun group origin.

Networking is limited to one GET of the asset URL.
"""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

import numpy as np
import numpy.typing as npt
import pyvista as pv
import requests
from vtkmodules.vtkFiltersGeneral import vtkContourTriangulator

logger = logging.getLogger(__name__)

Loop = npt.NDArray[np.float64]

COMMAND_PATTERN = re.compile(r"([MCmcLlHhVvZzSsQqTtAa])([^MCmcLlHhVvZzSsQqTtAa]*)")
NUMBER_PATTERN = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")

# Points per linearized curve segment (endpoints included)
CURVE_SAMPLES = 8

# Artwork box -> sun group: scale (5, -5), then shift by (-2.5, 2.5)
SILHOUETTE_SCALE = (5.0, -5.0)
SILHOUETTE_OFFSET = (-2.5, 2.5)


# ------------------------------------------------------------------------------
# Fetch & extract
# ------------------------------------------------------------------------------

def fetch_svg(url: str, timeout: float = 10.0, session: Optional[requests.Session] = None) -> str:
    """
    Downloads the SVG document.

    Raises:
        requests.RequestException: on network errors or a non-2xx status.
    """
    logger.info(f"Fetching sun artwork from {url}")
    getter = session.get if session is not None else requests.get
    response = getter(url, timeout=timeout)
    response.raise_for_status()
    return response.text


def extract_path_data(svg_text: str) -> List[str]:
    """Returns the ``d`` attribute of every <path>, in document order."""
    try:
        root = ET.fromstring(svg_text)
    except ET.ParseError as e:
        raise ValueError(f"Invalid SVG document: {e}") from e

    paths = []
    for element in root.iter():
        # Tags come namespaced: '{http://www.w3.org/2000/svg}path'
        if element.tag == "path" or element.tag.endswith("}path"):
            d = element.get("d")
            if d:
                paths.append(d)
    return paths


# ------------------------------------------------------------------------------
# Path data
# ------------------------------------------------------------------------------

def parse_path_commands(d: str) -> List[Tuple[str, List[float]]]:
    """Splits path data into (command letter, numbers) tuples."""
    commands = []
    for match in COMMAND_PATTERN.finditer(d):
        numbers = [float(n) for n in NUMBER_PATTERN.findall(match.group(2))]
        commands.append((match.group(1), numbers))
    return commands


def _cubic(p0, p1, p2, p3, samples: int) -> npt.NDArray[np.float64]:
    t = np.linspace(0.0, 1.0, samples)[1:, None]
    mt = 1.0 - t
    return mt ** 3 * p0 + 3 * mt ** 2 * t * p1 + 3 * mt * t ** 2 * p2 + t ** 3 * p3


def _quadratic(p0, p1, p2, samples: int) -> npt.NDArray[np.float64]:
    t = np.linspace(0.0, 1.0, samples)[1:, None]
    mt = 1.0 - t
    return mt ** 2 * p0 + 2 * mt * t * p1 + t ** 2 * p2


def path_to_loops(d: str, samples: int = CURVE_SAMPLES) -> List[Loop]:
    """
    Linearizes path data into closed loops, one per subpath.

    Supports M, L, H, V, C, S, Q, T and Z in absolute and relative form.
    Elliptical arcs (A) are replaced by a straight segment to their end point.
    """
    loops: List[Loop] = []
    current: List[npt.NDArray[np.float64]] = []
    pos = np.zeros(2)
    start = np.zeros(2)
    # Reflected control point for S/T, reset by any other command
    last_ctrl: Optional[npt.NDArray[np.float64]] = None
    last_cmd = ""

    def absolute(xy: List[float]) -> npt.NDArray[np.float64]:
        return (pos if rel else np.zeros(2)) + np.asarray(xy, dtype=np.float64)

    def flush() -> None:
        if len(current) >= 3:
            loops.append(np.asarray(current, dtype=np.float64))
        current.clear()

    for cmd, nums in parse_path_commands(d):
        rel = cmd.islower()
        op = cmd.upper()

        if op == "Z":
            if current:
                flush()
            pos = start.copy()
            last_ctrl, last_cmd = None, op
            continue

        if op != "M" and not current:
            # Drawing right after Z continues from the subpath start
            current.append(pos.copy())

        if op == "M":
            flush()
            for i in range(0, len(nums) - 1, 2):
                pos = absolute(nums[i:i + 2])
                if i == 0:
                    start = pos.copy()
                current.append(pos.copy())
            last_ctrl, last_cmd = None, op
        elif op == "L":
            for i in range(0, len(nums) - 1, 2):
                pos = absolute(nums[i:i + 2])
                current.append(pos.copy())
            last_ctrl = None
        elif op == "H":
            for x in nums:
                pos = np.array([(pos[0] if rel else 0.0) + x, pos[1]])
                current.append(pos.copy())
            last_ctrl = None
        elif op == "V":
            for y in nums:
                pos = np.array([pos[0], (pos[1] if rel else 0.0) + y])
                current.append(pos.copy())
            last_ctrl = None
        elif op == "C":
            for i in range(0, len(nums) - 5, 6):
                p1, p2, p3 = absolute(nums[i:i + 2]), absolute(nums[i + 2:i + 4]), absolute(nums[i + 4:i + 6])
                current.extend(_cubic(pos, p1, p2, p3, samples))
                pos, last_ctrl = p3, p2
            last_cmd = op
            continue
        elif op == "S":
            for i in range(0, len(nums) - 3, 4):
                p1 = 2 * pos - last_ctrl if last_cmd in ("C", "S") and last_ctrl is not None else pos.copy()
                p2, p3 = absolute(nums[i:i + 2]), absolute(nums[i + 2:i + 4])
                current.extend(_cubic(pos, p1, p2, p3, samples))
                pos, last_ctrl, last_cmd = p3, p2, op
            continue
        elif op == "Q":
            for i in range(0, len(nums) - 3, 4):
                p1, p2 = absolute(nums[i:i + 2]), absolute(nums[i + 2:i + 4])
                current.extend(_quadratic(pos, p1, p2, samples))
                pos, last_ctrl = p2, p1
            last_cmd = op
            continue
        elif op == "T":
            for i in range(0, len(nums) - 1, 2):
                p1 = 2 * pos - last_ctrl if last_cmd in ("Q", "T") and last_ctrl is not None else pos.copy()
                p2 = absolute(nums[i:i + 2])
                current.extend(_quadratic(pos, p1, p2, samples))
                pos, last_ctrl, last_cmd = p2, p1, op
            continue
        elif op == "A":
            for i in range(0, len(nums) - 6, 7):
                pos = absolute(nums[i + 5:i + 7])
                current.append(pos.copy())
            logger.debug("Elliptical arc approximated by a straight segment.")
            last_ctrl = None

        last_cmd = op

    flush()
    return loops


# ------------------------------------------------------------------------------
# Geometry
# ------------------------------------------------------------------------------

def clean_duplicate_points(points: Loop, tol: float = 1e-7) -> Loop:
    """Drops consecutive (near) duplicates and a repeated closing point."""
    if len(points) < 2:
        return points
    dist = np.linalg.norm(points[1:] - points[:-1], axis=1)
    cleaned = points[np.concatenate(([True], dist > tol))]
    if len(cleaned) > 2 and np.linalg.norm(cleaned[-1] - cleaned[0]) < tol:
        cleaned = cleaned[:-1]
    return cleaned


def triangulate_loops_xy(loops: List[Loop]) -> pv.PolyData:
    """
    Fills closed (N, 2) loops on z = 0. Nested loops become holes.

    Degenerate loops (fewer than three distinct points) are skipped.
    """
    pts3_list = []
    cells_list = []
    offset = 0

    for ring in loops:
        ring = clean_duplicate_points(np.asarray(ring, dtype=np.float64).reshape(-1, 2))
        if len(ring) < 3:
            continue
        n = ring.shape[0]
        pts3_list.append(np.c_[ring, np.zeros(n)])
        # closed polyline cell: [n + 1, id0, ..., id(n-1), id0]
        cells_list.append(np.hstack([[n + 1], np.arange(offset, offset + n), [offset]]))
        offset += n

    if not pts3_list:
        return pv.PolyData()

    outline = pv.PolyData(np.vstack(pts3_list))
    outline.lines = np.concatenate(cells_list).astype(np.int_)

    tri = vtkContourTriangulator()
    tri.SetInputData(outline)
    tri.Update()
    return pv.wrap(tri.GetOutput())


def place_silhouette(points: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Artwork (x, y, 0) -> sun group (5x - 2.5, -5y + 2.5, 0)."""
    out = np.array(points, dtype=np.float64, copy=True)
    out[:, 0] = out[:, 0] * SILHOUETTE_SCALE[0] + SILHOUETTE_OFFSET[0]
    out[:, 1] = out[:, 1] * SILHOUETTE_SCALE[1] + SILHOUETTE_OFFSET[1]
    return out


def build_silhouette(svg_text: str, samples: int = CURVE_SAMPLES) -> pv.PolyData:
    """Triangulated, placed silhouette of every path in the document."""
    meshes = []
    for d in extract_path_data(svg_text):
        mesh = triangulate_loops_xy(path_to_loops(d, samples))
        if mesh.n_points:
            meshes.append(mesh)

    if not meshes:
        logger.warning("Sun artwork contains no fillable paths.")
        return pv.PolyData()

    merged = meshes[0] if len(meshes) == 1 else meshes[0].merge(meshes[1:])
    merged.points = place_silhouette(merged.points)
    logger.info(f"Sun silhouette built: {len(meshes)} shape(s), {merged.n_cells} triangles.")
    return merged


def load_silhouette(url: str, timeout: float = 10.0) -> pv.PolyData:
    return build_silhouette(fetch_svg(url, timeout=timeout))
