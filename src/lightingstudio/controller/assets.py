"""
Asynchronous Assets
===================
Texture maps and the sun artwork load in the background.

Why is this file needed?
------------------------
1. Responsiveness: Reading images and fetching the SVG must not stall the
   render timer. Each load runs in an AssetWorker (QThread).
2. Hand-over: The worker reports through Qt signals, which are delivered on
   the GUI thread. The result lands in an AssetSlot; the frame tick checks
   ``slot.ready`` before using it.
3. Degradation: A failed load only logs a warning; the slot stays empty and
   the feature that needs it is simply absent.

Classes:
    AssetSlot: Single-assignment holder of one loaded value.
    AssetWorker: Runs one loader callable in a background thread.
    AssetLoader: Starts workers and keeps them alive until they finish.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Callable, Optional, Set

import numpy as np
import numpy.typing as npt
import pyvista as pv
from PySide6.QtCore import QObject, QThread, Signal, Slot

logger = logging.getLogger(__name__)


def load_texture_channel(filepath: str, channel: int = 0) -> npt.NDArray[np.float64]:
    """
    Reads one channel of an image file as a (H, W) map in [0, 1].

    Row 0 is the bottom of the image (v = 0), VTK's native image order.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the file holds no image data.
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Texture not found: {filepath}")

    image = pv.read(filepath)
    scalars = image.active_scalars
    if scalars is None:
        if not image.point_data.keys():
            raise ValueError(f"No image data in {filepath}")
        scalars = image.point_data[image.point_data.keys()[0]]

    nx, ny = image.dimensions[0], image.dimensions[1]
    data = np.asarray(scalars).reshape(ny, nx, -1)
    channel = min(channel, data.shape[2] - 1)
    values = data[:, :, channel].astype(np.float64)

    if np.issubdtype(scalars.dtype, np.integer):
        values /= float(np.iinfo(scalars.dtype).max)
    return np.clip(values, 0.0, 1.0)


class AssetSlot(QObject):
    """
    Holds the value of one asynchronously loaded asset. It lives on the GUI
    thread, so worker results are queued to it.
    """

    def __init__(self, name: str, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.name = name
        self.value: Any = None
        self.error: Optional[str] = None
        self.ready: bool = False
        self.cancelled: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None

    @Slot(object)
    def resolve(self, value: Any) -> None:
        if self.cancelled:
            logger.debug(f"Asset '{self.name}' arrived after its scene was torn down; dropped.")
            return
        self.value = value
        self.ready = True
        logger.info(f"Asset '{self.name}' loaded.")

    @Slot(str)
    def fail(self, message: str) -> None:
        if self.cancelled:
            return
        self.error = message
        logger.warning(f"Asset '{self.name}' unavailable: {message}")

    def cancel(self) -> None:
        self.cancelled = True
        self.value = None
        self.ready = False


class AssetWorker(QThread):
    loaded = Signal(object)
    failed = Signal(str)

    def __init__(self, name: str, loader: Callable[[], Any]) -> None:
        super().__init__()
        self.name = name
        self.loader = loader

    def run(self) -> None:
        try:
            logger.debug(f"Loading asset '{self.name}' in background thread...")
            self.loaded.emit(self.loader())
        except Exception as e:
            logger.error(f"Error in AssetWorker '{self.name}': {e}")
            self.failed.emit(str(e))


class AssetLoader(QObject):
    """Starts background loads and keeps their threads referenced."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._workers: Set[AssetWorker] = set()

    def load(self, name: str, loader: Callable[[], Any]) -> AssetSlot:
        slot = AssetSlot(name)
        worker = AssetWorker(name, loader)
        worker.loaded.connect(slot.resolve)
        worker.failed.connect(slot.fail)
        worker.finished.connect(self._on_finished)
        self._workers.add(worker)
        worker.start()
        return slot

    @Slot()
    def _on_finished(self) -> None:
        worker = self.sender()
        if isinstance(worker, AssetWorker):
            self._workers.discard(worker)
            worker.deleteLater()

    @property
    def pending(self) -> int:
        return len(self._workers)

    def wait_all(self, msecs: int = 5000) -> None:
        """Blocks until the running workers are done (used on shutdown)."""
        for worker in list(self._workers):
            worker.wait(msecs)
