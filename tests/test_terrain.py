import numpy as np
import pytest

from conftest import FakeSurface
from lightingstudio.config import TerrainConfig
from lightingstudio.controller.shaders import GridProgram, ShaderMaterial
from lightingstudio.controller.terrain import (
    TerrainLoop,
    build_terrain_mesh,
    sample_map,
    terrain_state_at,
)


class TestTerrainState:
    @pytest.mark.parametrize("elapsed", [0.0, 0.5, 6.6, 13.3333, 100.0, 12345.678])
    def test_tiles_stay_one_period_apart(self, elapsed):
        state = terrain_state_at(elapsed)
        assert state.near_z - state.far_z == pytest.approx(2.0)
        assert 0.0 <= state.phase < 2.0
        for z in state.offsets:
            assert -2.0 <= state.wrapped(z) < 0.0
        assert -2.0 <= state.far_z < 0.0

    def test_phase_follows_speed(self):
        assert terrain_state_at(0.0).phase == 0.0
        assert terrain_state_at(10.0).phase == pytest.approx(1.5)
        assert terrain_state_at(20.0).phase == pytest.approx(1.0)

    def test_custom_period(self):
        config = TerrainConfig(scroll_speed=1.0, period=3.0)
        state = terrain_state_at(4.0, config)
        assert state.phase == pytest.approx(1.0)
        assert state.far_z == pytest.approx(-2.0)


class TestMesh:
    def test_flat_mesh(self):
        mesh = build_terrain_mesh()
        assert mesh.n_points == 25 * 25
        assert mesh.n_cells == 24 * 24
        np.testing.assert_allclose(mesh.points[:, 1], 0.0)
        xmin, xmax, _, _, zmin, zmax = mesh.bounds
        assert (xmin, xmax) == pytest.approx((-0.5, 0.5))
        assert (zmin, zmax) == pytest.approx((-1.0, 1.0))

    def test_point_arrays(self):
        mesh = build_terrain_mesh()
        uv = mesh.point_data[GridProgram.UV_ARRAY]
        assert uv.shape == (625, 2)
        assert uv.min() == 0.0
        assert uv.max() == 1.0
        np.testing.assert_allclose(mesh.point_data[GridProgram.METAL_ARRAY], 0.9)

    def test_normals_point_up(self):
        mesh = build_terrain_mesh()
        np.testing.assert_allclose(mesh.point_data["Normals"], [[0.0, 1.0, 0.0]] * mesh.n_points, atol=1e-6)

    def test_height_map_displaces_upwards(self):
        mesh = build_terrain_mesh(height_map=np.ones((4, 4)))
        np.testing.assert_allclose(mesh.points[:, 1], 0.4)

    def test_far_edge_reads_the_last_map_row(self):
        height = np.array([[0.0, 0.0], [1.0, 1.0]])
        pts = build_terrain_mesh(height_map=height).points
        np.testing.assert_allclose(pts[np.isclose(pts[:, 2], -1.0), 1], 0.4)
        np.testing.assert_allclose(pts[np.isclose(pts[:, 2], 1.0), 1], 0.0)

    def test_metalness_map_scales_metalness(self):
        mesh = build_terrain_mesh(metalness_map=np.full((2, 2), 0.5))
        np.testing.assert_allclose(mesh.point_data[GridProgram.METAL_ARRAY], 0.45)


def test_sample_map_is_bilinear():
    image = np.array([[0.0, 1.0], [2.0, 3.0]])
    uv = np.array([[0.0, 0.0], [1.0, 0.0], [0.5, 0.5], [0.0, 1.0], [2.0, -1.0]])
    np.testing.assert_allclose(sample_map(image, uv), [0.0, 1.0, 1.5, 2.0, 1.0])


class TestTerrainLoop:
    @pytest.fixture
    def loop(self):
        return TerrainLoop(TerrainConfig(), ShaderMaterial(GridProgram()))

    def test_mount_adds_two_tiles_sharing_one_mesh(self, loop):
        surface = FakeSurface()
        loop.mount(surface)
        assert set(surface.actors) == {"terrain-0", "terrain-1"}
        near, far = (surface.actors[f"terrain-{i}"].GetMapper() for i in range(2))
        assert near.GetInput() is far.GetInput()
        assert [a.position[2] for a in loop.actors] == [0.0, -2.0]
        assert all(a.GetProperty().GetInterpolationAsString() == "Phong" for a in loop.actors)
        assert not loop.material.dirty

    def test_update_moves_tiles(self, loop):
        surface = FakeSurface()
        loop.mount(surface)
        state = loop.update(10.0)
        assert [a.position[2] for a in loop.actors] == pytest.approx([state.near_z, state.far_z])
        assert state.near_z == pytest.approx(1.5)

    def test_uniform_change_reinstalls_shader(self, loop, monkeypatch):
        loop.mount(FakeSurface())
        installed = []
        monkeypatch.setattr(
            loop.material.program, "install", lambda actor, uniforms: installed.append(uniforms["cycles"])
        )
        loop.material.set_uniform("cycles", 12.0)
        loop.update(0.1)
        assert installed == [12.0, 12.0]
        loop.update(0.2)
        assert installed == [12.0, 12.0]

    def test_set_maps_updates_mesh_in_place(self, loop):
        mesh = loop.mesh
        loop.set_maps(height_map=np.ones((3, 3)))
        assert loop.mesh is mesh
        np.testing.assert_allclose(mesh.points[:, 1], 0.4)
        # A later metalness map keeps the height map
        loop.set_maps(metalness_map=np.zeros((3, 3)))
        np.testing.assert_allclose(mesh.points[:, 1], 0.4)
        np.testing.assert_allclose(mesh.point_data[GridProgram.METAL_ARRAY], 0.0)

    def test_unmount(self, loop):
        surface = FakeSurface()
        loop.mount(surface)
        loop.unmount(surface)
        assert surface.actors == {}
        assert loop.actors == []

    def test_mount_on_an_offscreen_plotter(self, loop, offscreen_plotter):
        loop.mount(offscreen_plotter)
        assert {"terrain-0", "terrain-1"} <= set(offscreen_plotter.actors)
        for actor in loop.actors:
            assert actor.GetMapper().IsA("vtkPolyDataMapper")
            assert actor.GetShaderProperty().GetNumberOfShaderReplacements() == 4
        loop.update(1.0)
        image = offscreen_plotter.screenshot(return_img=True)
        assert image.shape == (30, 40, 3)
        loop.unmount(offscreen_plotter)
        assert "terrain-0" not in offscreen_plotter.actors
