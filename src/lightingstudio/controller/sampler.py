"""
LED Geometry Sampler
====================
Turns the raw panel/edge dataset into a bounded, render-ready point set.

Why is this file needed?
------------------------
1. Budget: The full layout has far too many LEDs to draw one sphere each. The
   sampler caps the number of records and LEDs per record, and keeps only
   every Nth LED.
2. Frames: The dataset is expressed in the fixture's own frame. The sampler
   maps it into the camera-facing render frame (pure affine transform).
3. Filtering: Panels hidden by the selection are dropped; edges always stay.

Colors are NOT baked into the points; the composer resolves them from the
selection when it builds the actors.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from lightingstudio.config import LayoutTransform, SamplerCaps
from lightingstudio.model.dataset import Panel, PanelDataset
from lightingstudio.model.selection import Selection

logger = logging.getLogger(__name__)


class PointRole(str, Enum):
    PRIMARY = "primary"
    EDGE = "edge"


@dataclass(frozen=True)
class SampledPoint:
    position: Tuple[float, float, float]
    owner_id: Optional[str]
    role: PointRole
    radius: float


def transform_points(
    leds: npt.NDArray[np.float64],
    layout: LayoutTransform = LayoutTransform(),
) -> npt.NDArray[np.float64]:
    """
    Maps dataset coordinates to render space.

    dataset Z -> render X (negated, offset), dataset Y -> render Y,
    dataset X -> render Z (negated, offset). Everything is scaled uniformly.

    Args:
        leds: (N, 3) array of dataset coordinates.
        layout: Scale and offsets of the transform.

    Returns:
        (N, 3) array in render space. The input is not modified.
    """
    pts = np.asarray(leds, dtype=np.float64).reshape(-1, 3)
    s = layout.normal_scale
    out = np.empty_like(pts)
    out[:, 0] = -pts[:, 2] * s + layout.offset_x
    out[:, 1] = pts[:, 1] * s
    out[:, 2] = -pts[:, 0] * s + layout.offset_z
    return out


def led_indices(n_leds: int, caps: SamplerCaps) -> npt.NDArray[np.int_]:
    """Indices of the LEDs kept for one record, in original order."""
    n = min(n_leds, caps.max_per_panel)
    step = caps.skip_interval if caps.skip_interval and caps.skip_interval > 1 else 1
    return np.arange(0, n, step, dtype=np.int_)


class GeometrySampler:
    def __init__(self, caps: SamplerCaps = SamplerCaps(), layout: LayoutTransform = LayoutTransform()) -> None:
        self.caps = caps
        self.layout = layout

    def sample(
        self,
        dataset: PanelDataset,
        selection: Selection,
        caps: Optional[SamplerCaps] = None,
    ) -> List[SampledPoint]:
        """
        Produces the sampled LED points for the current selection.

        Args:
            dataset: The fixture layout.
            selection: Decides which named panels are visible.
            caps: Overrides the sampler's default budget for this call.

        Returns:
            Panels first (PRIMARY role), then edges (EDGE role), each in
            dataset order.
        """
        caps = caps or self.caps
        points: List[SampledPoint] = []

        for panel in self._capped(dataset.panels, caps):
            if not selection.is_visible(panel.id):
                continue
            points.extend(self._sample_record(panel, PointRole.PRIMARY, self.layout.led_size, caps))

        for edge in self._capped(dataset.edges, caps):
            points.extend(self._sample_record(edge, PointRole.EDGE, self.layout.edge_led_size, caps))

        logger.debug(f"Sampled {len(points)} LED points.")
        return points

    @staticmethod
    def _capped(records: Sequence[Panel], caps: SamplerCaps) -> Iterator[Panel]:
        """Well-formed records up to the record cap. Malformed ones use no slot."""
        kept = 0
        for record in records:
            if not record.is_valid:
                continue
            if kept >= caps.max_panels:
                return
            kept += 1
            yield record

    def _sample_record(self, record: Panel, role: PointRole, radius: float, caps: SamplerCaps) -> Iterator[SampledPoint]:
        idx = led_indices(record.n_leds, caps)
        if idx.size == 0:
            return
        positions = transform_points(record.leds[idx], self.layout)
        for pos in positions:
            yield SampledPoint(
                position=(float(pos[0]), float(pos[1]), float(pos[2])),
                owner_id=record.id,
                role=role,
                radius=radius,
            )


def to_arrays(points: Sequence[SampledPoint]) -> Dict[PointRole, npt.NDArray[np.float64]]:
    """Groups sampled points per role into (N, 3) arrays ready for a PolyData."""
    grouped: Dict[PointRole, list] = {role: [] for role in PointRole}
    for p in points:
        grouped[p.role].append(p.position)
    return {
        role: np.asarray(pos, dtype=np.float64).reshape(-1, 3)
        for role, pos in grouped.items()
    }
