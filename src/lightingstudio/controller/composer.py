"""
Scene Composer
==============
Owns the active sub-scene and drives it from the frame timer.

Why is this file needed?
------------------------
1. Mode switching: The Store says which mode is active. Entering a mode builds
   a fresh sub-scene from the current selection; leaving it tears everything
   down (actors, lights, buffers). Changes are queued and applied by the next
   ``tick()``, never in the middle of a frame.
2. Frame loop: In Landscape every tick advances the terrain, applies pending
   uniform updates and texture arrivals, renders the scene off-screen and
   pushes the image through the post-processing chain to the frame sink.
   In Design the tick only checks for a pending rebuild; the interactive
   surface renders itself on camera interaction.
3. Surfaces: Rendering goes through two "surfaces" (pyvista plotters): an
   off-screen one for the landscape and the interactive one for the design
   view. Any object with the plotter methods used here works, which keeps
   this module testable without an OpenGL context.

Classes:
    SceneNode: One actor owned by a sub-scene.
    LandscapeScene: Terrain, spotlights, sun and post-processing.
    DesignScene: Sampled LED points of the fixture.
    SceneComposer: The mode state machine.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np
import numpy.typing as npt
import pyvista as pv

from lightingstudio.config import RenderConfig, SunConfig, effective_pixel_ratio
from lightingstudio.controller.assets import AssetSlot, load_texture_channel
from lightingstudio.controller.clock import FrameClock
from lightingstudio.controller.lighting import LightingRig
from lightingstudio.controller.postfx import PostProcessChain, RGBShiftPass, build_default_chain, to_uint8
from lightingstudio.controller.sampler import GeometrySampler, PointRole, to_arrays
from lightingstudio.controller.shaders import GridProgram, HaloProgram, ShaderMaterial
from lightingstudio.controller.svg import load_silhouette
from lightingstudio.controller.terrain import TerrainLoop
from lightingstudio.model.colors import ColorResolver, parse_color
from lightingstudio.model.dataset import PanelDataset
from lightingstudio.model.selection import ColorRole, Selection
from lightingstudio.model.state import Mode, Store

logger = logging.getLogger(__name__)

FrameSink = Callable[[npt.NDArray[np.uint8]], None]

HEIGHT_MAP = "displacement"
METALNESS_MAP = "metalness"
SILHOUETTE = "sun-silhouette"


@dataclass
class SceneNode:
    name: str
    actor: Any


class SubScene:
    """Base of the per-mode scenes. Owns the nodes it adds to its surface."""
    mode: Mode

    def __init__(self, surface: Any, config: RenderConfig) -> None:
        self.surface = surface
        self.config = config
        self.nodes: Dict[str, SceneNode] = {}

    def add_node(self, name: str, mesh: pv.DataSet, **kwargs: Any) -> SceneNode:
        actor = self.surface.add_mesh(mesh, name=name, show_scalar_bar=False, **kwargs)
        node = SceneNode(name=name, actor=actor)
        self.nodes[name] = node
        return node

    def setup_camera(self) -> None:
        cam = self.config.camera
        self.surface.set_background(self.config.background)
        self.surface.camera_position = [cam.position, cam.focal_point, (0.0, 1.0, 0.0)]
        self.surface.camera.view_angle = cam.fov
        self.surface.camera.clipping_range = (cam.near, cam.far)

    def mount(self) -> None:
        raise NotImplementedError

    def tick(self, elapsed: float) -> None:
        pass

    def resize(self, width: int, height: int) -> None:
        pass

    def teardown(self) -> None:
        for node in self.nodes.values():
            self.surface.remove_actor(node.actor)
        self.nodes.clear()


# ------------------------------------------------------------------------------
# Landscape
# ------------------------------------------------------------------------------

def build_halo_ring(sun: SunConfig) -> pv.PolyData:
    """Flat ring with planar UVs spanning the outer radius, just behind the sun."""
    ring = pv.Disc(
        center=(0.0, 0.0, -0.001),
        inner=sun.halo_inner_radius,
        outer=sun.halo_outer_radius,
        normal=(0.0, 0.0, 1.0),
        r_res=1,
        c_res=sun.halo_segments,
    )
    xy = np.asarray(ring.points)[:, :2]
    ring.active_texture_coordinates = (xy / sun.halo_outer_radius + 1.0) / 2.0
    return ring


def halo_texture(material: ShaderMaterial, size: int) -> pv.Texture:
    # Texture arrays are top row first, the bake is v = 0 first
    return pv.Texture(np.flipud(material.program.bake(size, material.uniforms)))


class LandscapeScene(SubScene):
    mode = Mode.LANDSCAPE

    def __init__(
        self,
        surface: Any,
        config: RenderConfig,
        assets: Dict[str, AssetSlot],
        frame_sink: Optional[FrameSink] = None,
    ) -> None:
        super().__init__(surface, config)
        self.assets = assets
        self.frame_sink = frame_sink
        self.terrain = TerrainLoop(config.terrain, ShaderMaterial(GridProgram()))
        self.rig = LightingRig(config.spotlights)
        self.halo_material = ShaderMaterial(HaloProgram(), color=parse_color(config.sun.halo_color))
        self.chain: PostProcessChain = build_default_chain(self.render_scene, config.postfx, fog=config.fog)
        self._applied: set[str] = set()
        self.last_frame: Optional[npt.NDArray[np.uint8]] = None

    def mount(self) -> None:
        self.setup_camera()
        self.rig.mount(self.surface)
        self.terrain.mount(self.surface)

        sun = self.config.sun
        node = self.add_node(
            "sun-halo",
            build_halo_ring(sun),
            texture=halo_texture(self.halo_material, sun.halo_texture_size),
            lighting=False,
        )
        node.actor.position = sun.position
        node.actor.scale = sun.scale
        self.halo_material.consume_dirty()
        self.apply_assets()

    def apply_assets(self) -> None:
        """Uses every asset that arrived since the last frame (once each)."""
        maps: Dict[str, Any] = {}
        for name in (HEIGHT_MAP, METALNESS_MAP):
            slot = self.assets.get(name)
            if slot is not None and slot.ready and name not in self._applied:
                maps[name] = slot.value
                self._applied.add(name)
        if maps:
            self.terrain.set_maps(height_map=maps.get(HEIGHT_MAP), metalness_map=maps.get(METALNESS_MAP))

        slot = self.assets.get(SILHOUETTE)
        if slot is not None and slot.ready and SILHOUETTE not in self._applied:
            self._applied.add(SILHOUETTE)
            if slot.value is not None and slot.value.n_points:
                sun = self.config.sun
                node = self.add_node(SILHOUETTE, slot.value, color=sun.silhouette_color, lighting=False)
                node.actor.position = sun.position
                node.actor.scale = sun.scale

    def render_scene(self) -> Tuple[npt.NDArray[Any], Optional[npt.NDArray[Any]]]:
        self.surface.render()
        color = self.surface.screenshot(return_img=True)
        depth = self.surface.get_image_depth(fill_value=np.nan, reset_camera_clipping_range=False)
        return color, depth

    def resize(self, width: int, height: int) -> None:
        self.surface.window_size = [width, height]
        self.chain.set_size(width, height)

    def tick(self, elapsed: float) -> None:
        self.apply_assets()
        self.terrain.update(elapsed)

        if self.halo_material.consume_dirty():
            self.nodes["sun-halo"].actor.texture = halo_texture(self.halo_material, self.config.sun.halo_texture_size)

        shift = self.chain.get_pass(RGBShiftPass)
        if shift is not None:
            shift.material.set_uniform("amount", self.config.postfx.rgb_shift_amount)

        if self.chain.size == (0, 0):
            return
        frame = to_uint8(self.chain.render())
        self.last_frame = frame
        if self.frame_sink is not None:
            self.frame_sink(frame)

    def teardown(self) -> None:
        self.terrain.unmount(self.surface)
        self.rig.unmount(self.surface)
        super().teardown()
        self.last_frame = None


# ------------------------------------------------------------------------------
# Design
# ------------------------------------------------------------------------------

class DesignScene(SubScene):
    mode = Mode.DESIGN

    def __init__(
        self,
        surface: Any,
        config: RenderConfig,
        dataset: PanelDataset,
        selection: Selection,
        resolver: ColorResolver,
        sampler: GeometrySampler,
        reset_view: bool = True,
    ) -> None:
        super().__init__(surface, config)
        self.reset_view = reset_view
        self.dataset = dataset
        self.selection = selection
        self.resolver = resolver
        self.sampler = sampler
        self.point_count = 0

    def mount(self) -> None:
        # Selection edits rebuild the points but keep the orbit camera
        if self.reset_view:
            self.setup_camera()
        points = self.sampler.sample(self.dataset, self.selection, self.config.caps)
        self.point_count = len(points)
        arrays = to_arrays(points)

        layout = self.config.layout
        radii = {PointRole.PRIMARY: layout.led_size, PointRole.EDGE: layout.edge_led_size}
        roles = {PointRole.PRIMARY: ColorRole.PRIMARY, PointRole.EDGE: ColorRole.EDGE}

        for role, positions in arrays.items():
            if not len(positions):
                continue
            color = self.resolver.resolve(roles[role].value, self.selection.colors.get(roles[role]))
            sphere = pv.Sphere(radius=radii[role], theta_resolution=3, phi_resolution=2)
            leds = pv.PolyData(positions).glyph(geom=sphere, scale=False, orient=False)
            node = self.add_node(f"leds-{role.value}", leds, color=color, lighting=False)
            node.actor.scale = layout.group_scale
        logger.debug(f"Design scene mounted with {self.point_count} LEDs.")


# ------------------------------------------------------------------------------
# Composer
# ------------------------------------------------------------------------------

class SceneComposer:
    def __init__(
        self,
        store: Store,
        dataset: PanelDataset,
        landscape_surface: Any,
        design_surface: Any,
        config: RenderConfig = RenderConfig(),
        loader: Any = None,
        frame_sink: Optional[FrameSink] = None,
        clock: Optional[FrameClock] = None,
    ) -> None:
        """
        Args:
            store: Mode and selection. Its signals queue rebuilds.
            dataset: The fixture layout shown in Design mode.
            landscape_surface: Off-screen plotter of the landscape.
            design_surface: Interactive plotter of the design view.
            config: Render constants.
            loader: Object with ``load(name, callable) -> AssetSlot``. None
                disables asset loading (flat terrain, no sun silhouette).
            frame_sink: Receives every post-processed landscape frame.
            clock: Frame clock, injectable for tests.
        """
        self.store = store
        self.dataset = dataset
        self.landscape_surface = landscape_surface
        self.design_surface = design_surface
        self.config = config
        self.loader = loader
        self.frame_sink = frame_sink
        self.clock = clock or FrameClock()

        self.sampler = GeometrySampler(config.caps, config.layout)
        self.resolver = ColorResolver({
            ColorRole.PRIMARY.value: store.selection.colors.primary,
            ColorRole.EDGE.value: store.selection.colors.edge,
        })
        self.assets: Dict[str, AssetSlot] = {}
        self.scene: Optional[SubScene] = None
        self.pixel_size: Optional[Tuple[int, int]] = None
        self._rebuild_pending = True
        self._mount_failures = 0

        self.store.mode_changed.connect(self._on_mode_changed)
        self.store.selection_changed.connect(self._on_selection_changed)

    # --- Queue ---

    @property
    def rebuild_pending(self) -> bool:
        return self._rebuild_pending

    @property
    def mode(self) -> Optional[Mode]:
        return self.scene.mode if self.scene is not None else None

    @property
    def fps(self) -> float:
        return self.clock.fps

    def request_rebuild(self) -> None:
        self._rebuild_pending = True

    def _on_mode_changed(self, mode: Mode) -> None:
        self.request_rebuild()

    def _on_selection_changed(self, selection: Selection) -> None:
        # The landscape does not show the fixture
        if self.store.mode == Mode.DESIGN:
            self.request_rebuild()

    # --- Frame ---

    def tick(self) -> None:
        if self._rebuild_pending:
            self._rebuild()
        if self.scene is None:
            return
        elapsed = self.clock.tick()
        self.scene.tick(elapsed)

    def resize(self, width: int, height: int, device_ratio: float = 1.0) -> Tuple[int, int]:
        """
        Applies a viewport resize right away, before the next frame renders.

        Returns:
            The render size in device pixels.
        """
        ratio = effective_pixel_ratio(device_ratio, self.config.max_pixel_ratio)
        size = (max(1, int(round(width * ratio))), max(1, int(round(height * ratio))))
        self.pixel_size = size
        if self.scene is not None:
            self.scene.resize(*size)
        return size

    # --- Transitions ---

    def _rebuild(self) -> None:
        self._rebuild_pending = False
        previous = self.mode
        self._teardown_scene()

        mode = self.store.mode
        if mode == Mode.LANDSCAPE:
            self._ensure_assets()
            scene: SubScene = LandscapeScene(self.landscape_surface, self.config, self.assets, self.frame_sink)
        else:
            scene = DesignScene(
                self.design_surface,
                self.config,
                self.dataset,
                self.store.selection,
                self.resolver,
                self.sampler,
                reset_view=previous != Mode.DESIGN,
            )

        try:
            scene.mount()
            if self.pixel_size is not None:
                scene.resize(*self.pixel_size)
        except Exception:
            self._mount_failures += 1
            if self._mount_failures == 1:
                logger.exception(f"Could not build the {mode.name} scene; retrying on the next frame.")
            else:
                logger.debug(f"{mode.name} scene build failed again (attempt {self._mount_failures}).")
            scene.teardown()
            self._rebuild_pending = True
            return

        self._mount_failures = 0
        self.scene = scene
        # Scene time starts over on every (re)entry
        self.clock.restart()
        logger.info(f"Scene built for {mode.name} mode.")

    def _teardown_scene(self) -> None:
        if self.scene is None:
            return
        self.scene.teardown()
        logger.debug(f"{self.scene.mode.name} scene torn down.")
        self.scene = None

    def _ensure_assets(self) -> None:
        """Starts the background loads once per session."""
        if self.loader is None or self.assets:
            return
        terrain = self.config.terrain
        height_path = os.path.join(self.config.textures_path, terrain.displacement_map)
        metal_path = os.path.join(self.config.textures_path, terrain.metalness_map)
        sun = self.config.sun

        self.assets[HEIGHT_MAP] = self.loader.load(HEIGHT_MAP, lambda: load_texture_channel(height_path, 0))
        # Metalness is stored in the blue channel of the ORM map
        self.assets[METALNESS_MAP] = self.loader.load(METALNESS_MAP, lambda: load_texture_channel(metal_path, 2))
        self.assets[SILHOUETTE] = self.loader.load(SILHOUETTE, lambda: load_silhouette(sun.svg_url, sun.fetch_timeout))

    def shutdown(self) -> None:
        self._teardown_scene()
        for slot in self.assets.values():
            if not slot.ready:
                slot.cancel()
        logger.info("Scene composer shut down.")
