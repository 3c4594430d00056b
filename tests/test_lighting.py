import pytest

from conftest import FakeSurface
from lightingstudio.config import RenderConfig, SpotLightConfig
from lightingstudio.controller.lighting import (
    LightingRig,
    attenuation_values,
    make_spotlight,
    spot_falloff,
)


@pytest.fixture
def spot():
    return SpotLightConfig(position=(0.5, 0.75, 2.1), target=(-0.25, 0.25, 0.25))


def test_falloff(spot):
    assert spot_falloff(0.0, spot) == 1.0
    assert spot_falloff(12.5, spot) == pytest.approx(0.5 ** 10)
    assert spot_falloff(25.0, spot) == 0.0
    assert spot_falloff(40.0, spot) == 0.0


def test_falloff_without_range():
    config = SpotLightConfig(position=(0, 0, 0), target=(0, 0, -1), distance=0.0)
    assert spot_falloff(100.0, config) == 1.0
    assert attenuation_values(config) == (1.0, 0.0, 0.0)


def test_attenuation_matches_falloff_slope(spot):
    assert attenuation_values(spot) == pytest.approx((1.0, 0.4, 0.0))


def test_make_spotlight(spot):
    light = make_spotlight(spot)
    assert light.position == pytest.approx((0.5, 0.75, 2.1))
    assert light.focal_point == pytest.approx((-0.25, 0.25, 0.25))
    assert light.positional
    assert light.cone_angle == pytest.approx(18.0)
    assert light.intensity == pytest.approx(1.0)
    assert light.exponent == pytest.approx(3.5)
    assert light.attenuation_values == pytest.approx((1.0, 0.4, 0.0))


def test_intensity_is_scaled():
    config = SpotLightConfig(position=(0, 0, 0), target=(0, 0, -1), intensity=10.0)
    assert make_spotlight(config).intensity == pytest.approx(0.25)


def test_default_rig_is_mirrored():
    left, right = RenderConfig().spotlights
    assert left.position[0] == -right.position[0]
    assert left.target[0] == -right.target[0]


def test_rig_mount_replaces_default_lights():
    surface = FakeSurface()
    surface.lights.append("default-light-kit")
    rig = LightingRig(RenderConfig().spotlights)
    rig.mount(surface)
    assert surface.lights == rig.lights
    assert len(surface.lights) == 2

    rig.unmount(surface)
    assert surface.lights == []
    assert rig.lights == []
