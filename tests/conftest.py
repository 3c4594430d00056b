"""
Shared fixtures: recording stand-ins for the pyvista render surfaces so the
scene code can be exercised without an OpenGL context. Tests taking the
``offscreen_plotter`` fixture render through a real off-screen VTK window.
"""
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pytest
import pyvista as pv
from PySide6.QtCore import QCoreApplication

from lightingstudio.controller.assets import AssetSlot
from lightingstudio.controller.clock import FrameClock
from lightingstudio.model.dataset import PanelDataset


@pytest.fixture(scope="session", autouse=True)
def qt_core_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class FakeShaderProperty:
    def __init__(self) -> None:
        self.vertex: List[tuple] = []
        self.fragment: List[tuple] = []

    def ClearAllShaderReplacements(self) -> None:
        self.vertex.clear()
        self.fragment.clear()

    def AddVertexShaderReplacement(self, tag, first, code, all_) -> None:
        self.vertex.append((tag, code))

    def AddFragmentShaderReplacement(self, tag, first, code, all_) -> None:
        self.fragment.append((tag, code))


class FakeDataSetMapper:
    """What ``add_mesh`` builds: no custom vertex attributes."""


class FakePolyDataMapper:
    def __init__(self) -> None:
        self.attributes: Dict[str, str] = {}

    def MapDataArrayToVertexAttribute(self, attribute, array, field, component) -> None:
        self.attributes[attribute] = array


class FakeActor:
    def __init__(self, mesh: Any, name: Optional[str], kwargs: Dict[str, Any], mapper: Any = None) -> None:
        self.mesh = mesh
        self.name = name
        self.kwargs = kwargs
        self.position = (0.0, 0.0, 0.0)
        self.scale = (1.0, 1.0, 1.0)
        self.texture = kwargs.get("texture")
        self._mapper = mapper if mapper is not None else FakeDataSetMapper()
        self._shader = FakeShaderProperty()

    def GetMapper(self) -> Any:
        return self._mapper

    def GetShaderProperty(self) -> FakeShaderProperty:
        return self._shader


def polydata_actor() -> FakeActor:
    return FakeActor(mesh=None, name="terrain", kwargs={}, mapper=FakePolyDataMapper())


class FakeSurface:
    """Records what a pyvista Plotter would have drawn."""

    def __init__(self, depth: float = 1.5) -> None:
        self.actors: Dict[str, FakeActor] = {}
        self.lights: List[Any] = []
        self.background = None
        self.camera_position = None
        self.camera = SimpleNamespace(view_angle=30.0, clipping_range=(0.1, 100.0))
        self.window_size = [64, 48]
        self.renders = 0
        self.depth = depth

    def add_mesh(self, mesh: Any, name: Optional[str] = None, **kwargs: Any) -> FakeActor:
        actor = FakeActor(mesh, name, kwargs)
        self.actors[name or f"actor-{id(actor)}"] = actor
        return actor

    def add_actor(self, actor: Any, name: Optional[str] = None, **kwargs: Any) -> tuple:
        self.actors[name or f"actor-{id(actor)}"] = actor
        return actor, actor.GetProperty()

    def remove_actor(self, actor: Any) -> bool:
        for key, value in list(self.actors.items()):
            if value is actor:
                del self.actors[key]
                return True
        return False

    def add_light(self, light: Any) -> None:
        self.lights.append(light)

    def remove_all_lights(self) -> None:
        self.lights.clear()

    def set_background(self, color: Any) -> None:
        self.background = color

    def render(self) -> None:
        self.renders += 1

    def screenshot(self, return_img: bool = True, **kwargs: Any) -> np.ndarray:
        w, h = self.window_size
        return np.full((h, w, 3), 128, dtype=np.uint8)

    def get_image_depth(self, fill_value: float = np.nan, **kwargs: Any) -> np.ndarray:
        w, h = self.window_size
        return np.full((h, w), -self.depth, dtype=np.float32)


class ImmediateLoader:
    """Runs loaders synchronously instead of in a QThread."""

    def __init__(self, results: Optional[Dict[str, Any]] = None) -> None:
        self.results = results or {}
        self.requested: List[str] = []

    def load(self, name: str, loader: Callable[[], Any]) -> AssetSlot:
        self.requested.append(name)
        slot = AssetSlot(name)
        if name in self.results:
            slot.resolve(self.results[name])
        else:
            slot.fail("not available in tests")
        return slot


class ManualClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def frame_clock(manual_clock: ManualClock) -> FrameClock:
    return FrameClock(time_source=manual_clock)


@pytest.fixture
def landscape_surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def design_surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def offscreen_plotter():
    plotter = pv.Plotter(off_screen=True, window_size=(40, 30))
    yield plotter
    plotter.close()


@pytest.fixture
def small_dataset() -> PanelDataset:
    return PanelDataset.from_dict({
        "panels": [
            {"id": "P1", "leds": [[0, 0, 0], [1, 1, 1], [2, 2, 2]]},
            {"id": "P2", "leds": [[0.1, 0.2, 0.3]]},
            {"id": "P3", "leds": [[0.5, 0.5, 0.5], [0.6, 0.6, 0.6]]},
        ],
        "edges": [
            {"leds": [[0, 1, 0], [0, 2, 0]]},
        ],
    })
