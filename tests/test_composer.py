import numpy as np
import pytest
import pyvista as pv

from conftest import FakeSurface, ImmediateLoader
from lightingstudio.config import RenderConfig, SunConfig
from lightingstudio.controller.composer import (
    HEIGHT_MAP,
    SILHOUETTE,
    DesignScene,
    LandscapeScene,
    SceneComposer,
    build_halo_ring,
)
from lightingstudio.controller.postfx import RGBShiftPass
from lightingstudio.model.state import Mode, Store


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def frames():
    return []


@pytest.fixture
def make_composer(store, small_dataset, landscape_surface, design_surface, frame_clock, frames):
    def factory(loader=None, config=RenderConfig()):
        return SceneComposer(
            store,
            small_dataset,
            landscape_surface,
            design_surface,
            config=config,
            loader=loader if loader is not None else ImmediateLoader(),
            frame_sink=frames.append,
            clock=frame_clock,
        )

    return factory


class TestLandscape:
    def test_first_tick_builds_landscape(self, make_composer, landscape_surface, design_surface):
        composer = make_composer()
        assert composer.rebuild_pending
        assert composer.mode is None
        composer.tick()

        assert isinstance(composer.scene, LandscapeScene)
        assert composer.mode == Mode.LANDSCAPE
        assert {"terrain-0", "terrain-1", "sun-halo"} <= set(landscape_surface.actors)
        assert len(landscape_surface.lights) == 2
        assert landscape_surface.camera_position[2] == (0.0, 1.0, 0.0)
        assert landscape_surface.camera.view_angle == 75.0
        assert design_surface.actors == {}

    def test_assets_load_once(self, make_composer, store):
        loader = ImmediateLoader()
        composer = make_composer(loader)
        composer.tick()
        store.set_mode(Mode.DESIGN)
        composer.tick()
        store.set_mode(Mode.LANDSCAPE)
        composer.tick()
        assert sorted(loader.requested) == sorted(["displacement", "metalness", "sun-silhouette"])

    def test_no_frame_before_resize(self, make_composer, frames):
        composer = make_composer()
        composer.tick()
        assert frames == []

    def test_frames_reach_the_sink(self, make_composer, frames, landscape_surface):
        composer = make_composer()
        composer.tick()
        assert composer.resize(40, 30) == (40, 30)
        assert landscape_surface.window_size == [40, 30]
        composer.tick()
        assert len(frames) == 1
        assert frames[0].shape == (30, 40, 3)
        assert frames[0].dtype == np.uint8
        assert composer.scene.last_frame is frames[0]

    def test_resize_before_first_tick_is_applied_on_build(self, make_composer, frames):
        composer = make_composer()
        composer.resize(20, 10)
        composer.tick()
        assert composer.scene.chain.size == (20, 10)
        assert len(frames) == 1

    def test_pixel_ratio_is_capped(self, make_composer):
        composer = make_composer()
        assert composer.resize(100, 50, 3.0) == (200, 100)
        assert composer.resize(100, 50, 1.5) == (150, 75)

    def test_terrain_scrolls_with_the_clock(self, make_composer, manual_clock):
        composer = make_composer()
        composer.tick()
        manual_clock.advance(10.0)
        composer.tick()
        assert composer.scene.terrain.state.phase == pytest.approx(1.5)

    def test_textures_apply_when_they_arrive(self, make_composer):
        composer = make_composer(ImmediateLoader({HEIGHT_MAP: np.ones((4, 4))}))
        composer.tick()
        np.testing.assert_allclose(composer.scene.terrain.mesh.points[:, 1], 0.4)

    def test_silhouette_is_added(self, make_composer, landscape_surface):
        square = pv.Plane(i_resolution=1, j_resolution=1)
        composer = make_composer(ImmediateLoader({SILHOUETTE: square}))
        composer.tick()
        actor = landscape_surface.actors[SILHOUETTE]
        assert actor.kwargs["lighting"] is False
        assert actor.kwargs["color"] == SunConfig().silhouette_color
        assert actor.position == SunConfig().position

    def test_missing_assets_leave_features_out(self, make_composer, landscape_surface):
        composer = make_composer(ImmediateLoader())
        composer.tick()
        assert SILHOUETTE not in landscape_surface.actors
        np.testing.assert_allclose(composer.scene.terrain.mesh.points[:, 1], 0.0)

    def test_halo_rebakes_after_uniform_change(self, make_composer, landscape_surface):
        composer = make_composer()
        composer.tick()
        before = landscape_surface.actors["sun-halo"].texture
        composer.tick()
        assert landscape_surface.actors["sun-halo"].texture is before

        composer.scene.halo_material.set_uniform("color", (0.0, 1.0, 0.0))
        composer.tick()
        assert landscape_surface.actors["sun-halo"].texture is not before

    def test_selection_edits_do_not_rebuild_the_landscape(self, make_composer, store):
        composer = make_composer()
        composer.tick()
        scene = composer.scene
        store.toggle_panel("P1")
        assert not composer.rebuild_pending
        composer.tick()
        assert composer.scene is scene


class TestDesign:
    @pytest.fixture
    def composer(self, make_composer, store):
        store.set_mode(Mode.DESIGN)
        composer = make_composer()
        composer.tick()
        return composer

    def test_design_nodes(self, composer, design_surface, landscape_surface):
        assert isinstance(composer.scene, DesignScene)
        assert set(design_surface.actors) == {"leds-primary", "leds-edge"}
        primary = design_surface.actors["leds-primary"]
        assert primary.kwargs["lighting"] is False
        assert primary.kwargs["color"] == pytest.approx((232 / 255, 73 / 255, 113 / 255))
        assert primary.scale == (0.15, 0.15, 0.08)
        assert landscape_surface.actors == {}
        # P1 keeps LED 0 only (skip 10), P2 and P3 one each, the edge one
        assert composer.scene.point_count == 4

    def test_selection_change_rebuilds_on_next_tick(self, composer, store):
        store.toggle_panel("P1")
        assert composer.rebuild_pending
        assert composer.scene.point_count == 4
        composer.tick()
        assert composer.scene.point_count == 2

    def test_selection_rebuild_keeps_the_camera(self, composer, store, design_surface):
        design_surface.camera_position = "user orbit"
        store.toggle_panel("P1")
        composer.tick()
        assert design_surface.camera_position == "user orbit"

    def test_color_change(self, composer, store, design_surface):
        store.set_color("primary", "#00ff00")
        composer.tick()
        assert design_surface.actors["leds-primary"].kwargs["color"] == pytest.approx((0.0, 1.0, 0.0))

    def test_invalid_color_keeps_previous(self, composer, store, design_surface):
        store.set_color("edge", "#ffffff")
        composer.tick()
        store.set_color("edge", "#zzzzzz")
        composer.tick()
        assert design_surface.actors["leds-edge"].kwargs["color"] == pytest.approx((1.0, 1.0, 1.0))

    def test_colors_never_hide_leds(self, composer, store):
        store.set_color("primary", "#000000")
        store.set_color("edge", "garbage")
        composer.tick()
        assert composer.scene.point_count == 4

    def test_no_frames_in_design(self, composer, frames):
        composer.resize(40, 30)
        composer.tick()
        assert frames == []


class TestTransitions:
    def test_switch_is_queued_until_tick(self, make_composer, store, landscape_surface):
        composer = make_composer()
        composer.tick()
        store.set_mode(Mode.DESIGN)
        assert composer.rebuild_pending
        assert composer.mode == Mode.LANDSCAPE
        assert "terrain-0" in landscape_surface.actors

    def test_leaving_landscape_releases_everything(self, make_composer, store, landscape_surface):
        composer = make_composer(ImmediateLoader({SILHOUETTE: pv.Plane()}))
        composer.tick()
        store.set_mode(Mode.DESIGN)
        composer.tick()
        assert landscape_surface.actors == {}
        assert landscape_surface.lights == []

    def test_leaving_design_releases_everything(self, make_composer, store, design_surface):
        store.set_mode(Mode.DESIGN)
        composer = make_composer()
        composer.tick()
        store.set_mode(Mode.LANDSCAPE)
        composer.tick()
        assert design_surface.actors == {}

    def test_round_trip_keeps_selection_and_restarts_time(self, make_composer, store, manual_clock):
        composer = make_composer()
        composer.tick()
        store.toggle_panel("P2")
        store.set_color("edge", "#ffffff")
        snapshot = store.selection.snapshot()

        manual_clock.advance(7.0)
        composer.tick()
        store.set_mode(Mode.DESIGN)
        composer.tick()
        manual_clock.advance(3.0)
        store.set_mode(Mode.LANDSCAPE)
        composer.tick()

        assert store.selection == snapshot
        assert composer.scene.terrain.state.phase == 0.0

    def test_entering_design_resets_the_camera(self, make_composer, store, design_surface):
        composer = make_composer()
        composer.tick()
        design_surface.camera_position = "stale"
        store.set_mode(Mode.DESIGN)
        composer.tick()
        assert design_surface.camera_position != "stale"

    def test_shutdown(self, make_composer, landscape_surface):
        composer = make_composer()
        composer.tick()
        composer.shutdown()
        assert composer.scene is None
        assert landscape_surface.actors == {}
        assert all(slot.cancelled or slot.ready for slot in composer.assets.values())


def test_halo_ring_uvs():
    ring = build_halo_ring(SunConfig())
    uv = ring.active_texture_coordinates
    assert uv.min() >= 0.0
    assert uv.max() <= 1.0
    assert ring.bounds[1] == pytest.approx(3.8)


def test_landscape_scene_standalone():
    surface = FakeSurface()
    scene = LandscapeScene(surface, RenderConfig(), assets={})
    scene.mount()
    scene.resize(16, 12)
    scene.tick(0.0)
    assert scene.last_frame.shape == (12, 16, 3)
    scene.teardown()
    assert surface.actors == {}
    assert scene.last_frame is None


class FlakySurface(FakeSurface):
    """Refuses the sun halo a given number of times."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    def add_mesh(self, mesh, name=None, **kwargs):
        if name == "sun-halo" and self.failures:
            self.failures -= 1
            raise RuntimeError("no more texture units")
        return super().add_mesh(mesh, name=name, **kwargs)


class TestMountFailure:
    @pytest.fixture
    def flaky(self):
        return FlakySurface()

    @pytest.fixture
    def composer(self, store, small_dataset, flaky, design_surface, frame_clock):
        return SceneComposer(store, small_dataset, flaky, design_surface, loader=ImmediateLoader(), clock=frame_clock)

    def test_failed_mount_is_cleaned_up_and_retried(self, composer, flaky, caplog):
        composer.tick()
        assert composer.scene is None
        assert composer.rebuild_pending
        assert flaky.actors == {}
        assert flaky.lights == []
        assert "Could not build the LANDSCAPE scene" in caplog.text

        composer.tick()
        assert isinstance(composer.scene, LandscapeScene)
        assert not composer.rebuild_pending
        assert {"terrain-0", "terrain-1", "sun-halo"} <= set(flaky.actors)

    def test_repeated_failures_are_logged_once(self, composer, flaky, caplog):
        flaky.failures = 3
        for _ in range(4):
            composer.tick()
        assert caplog.text.count("Could not build the LANDSCAPE scene") == 1
        assert isinstance(composer.scene, LandscapeScene)


def test_rgb_shift_amount_is_refreshed_every_frame():
    config = RenderConfig()
    scene = LandscapeScene(FakeSurface(), config, assets={})
    scene.mount()
    shift = scene.chain.get_pass(RGBShiftPass)
    shift.material.set_uniform("amount", 0.5)
    scene.tick(0.0)
    assert shift.uniforms["amount"] == config.postfx.rgb_shift_amount
    scene.teardown()


def test_landscape_on_an_offscreen_plotter(offscreen_plotter):
    scene = LandscapeScene(offscreen_plotter, RenderConfig(), assets={})
    scene.mount()
    assert {"terrain-0", "terrain-1", "sun-halo"} <= set(offscreen_plotter.actors)
    scene.resize(40, 30)
    scene.tick(0.5)
    assert scene.last_frame.shape == (30, 40, 3)
    assert scene.last_frame.dtype == np.uint8
    scene.teardown()
    assert not {"terrain-0", "terrain-1", "sun-halo"} & set(offscreen_plotter.actors)
