"""
LED Dataset (Fixture Layout)
============================
Immutable container for the physical fixture layout: named panels and
unnamed edges, each a cluster of (x, y, z) LED coordinates.

The dataset is an external, read-only input. Records whose coordinate list is
missing or unreadable are kept with ``leds=None`` so that consumers can skip
them without failing the whole layout.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np
import numpy.typing as npt

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Panel:
    """One LED cluster. Edges share this shape but usually carry no id."""
    id: Optional[str]
    leds: Optional[npt.NDArray[np.float64]]  # (N, 3) or None if malformed

    @property
    def is_valid(self) -> bool:
        return self.leds is not None

    @property
    def n_leds(self) -> int:
        return 0 if self.leds is None else int(self.leds.shape[0])


@dataclass(frozen=True)
class PanelDataset:
    panels: Tuple[Panel, ...] = field(default_factory=tuple)
    edges: Tuple[Panel, ...] = field(default_factory=tuple)

    @property
    def panel_ids(self) -> list[str]:
        """Ids of the well-formed panels, in dataset order."""
        return [p.id for p in self.panels if p.is_valid and p.id is not None]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PanelDataset:
        """
        Builds the dataset from the raw structure
        ``{"panels": [{"id", "leds"}], "edges": [{"leds"}]}``.
        Other fields are ignored.
        """
        panels = tuple(_parse_record(r, kind="panel", index=i) for i, r in enumerate(data.get("panels") or []))
        edges = tuple(_parse_record(r, kind="edge", index=i) for i, r in enumerate(data.get("edges") or []))

        n_bad = sum(1 for p in panels + edges if not p.is_valid)
        if n_bad:
            logger.warning(f"Dataset contains {n_bad} malformed record(s); they will be skipped.")
        logger.info(f"Dataset loaded: {len(panels)} panels, {len(edges)} edges.")
        return cls(panels=panels, edges=edges)

    @classmethod
    def from_file(cls, filepath: str) -> PanelDataset:
        """Loads a JSON dataset from disk."""
        logger.info(f"Loading LED dataset from: {filepath}")
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Dataset not found: {filepath}")
        with open(filepath, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_records(cls, panels: Iterable[Dict[str, Any]], edges: Iterable[Dict[str, Any]] = ()) -> PanelDataset:
        return cls.from_dict({"panels": list(panels), "edges": list(edges)})


def _parse_record(record: Any, kind: str, index: int) -> Panel:
    if not isinstance(record, Mapping):
        logger.debug(f"{kind} #{index} is not an object, skipping its coordinates.")
        return Panel(id=None, leds=None)

    panel_id = record.get("id")
    if panel_id is not None:
        panel_id = str(panel_id)

    raw = record.get("leds")
    if raw is None:
        logger.debug(f"{kind} #{index} ({panel_id}) has no 'leds' list.")
        return Panel(id=panel_id, leds=None)

    try:
        leds = np.asarray(raw, dtype=np.float64)
        if leds.size == 0:
            leds = leds.reshape(0, 3)
        if leds.ndim != 2 or leds.shape[1] != 3:
            raise ValueError(f"expected (N, 3) coordinates, got shape {leds.shape}")
    except (TypeError, ValueError) as e:
        logger.debug(f"{kind} #{index} ({panel_id}) has invalid 'leds': {e}")
        return Panel(id=panel_id, leds=None)

    leds.setflags(write=False)
    return Panel(id=panel_id, leds=leds)
