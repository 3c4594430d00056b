import logging

import pytest

from lightingstudio.config import (
    FogConfig,
    PostFxConfig,
    RenderConfig,
    SamplerCaps,
    TerrainConfig,
    effective_pixel_ratio,
)
from lightingstudio.logging_config import parse_level, setup_logging


@pytest.mark.parametrize("ratio, expected", [(1.0, 1.0), (1.5, 1.5), (2.0, 2.0), (3.0, 2.0), (0.0, 1.0)])
def test_effective_pixel_ratio(ratio, expected):
    assert effective_pixel_ratio(ratio) == expected


def test_defaults():
    config = RenderConfig()
    assert config.caps == SamplerCaps(max_panels=200, max_per_panel=3000, skip_interval=10)
    assert config.terrain.period == 2.0
    assert config.postfx.gamma == 1.0
    assert len(config.spotlights) == 2


@pytest.mark.parametrize(
    "build",
    [
        lambda: SamplerCaps(max_panels=-1),
        lambda: SamplerCaps(skip_interval=-2),
        lambda: FogConfig(near=2.0, far=1.0),
        lambda: TerrainConfig(period=0.0),
        lambda: TerrainConfig(segments=0),
        lambda: PostFxConfig(gamma=0.0),
        lambda: PostFxConfig(bloom_levels=0),
    ],
)
def test_invalid_values(build):
    with pytest.raises(ValueError):
        build()


class TestLogging:
    @pytest.fixture(autouse=True)
    def restore_logger(self):
        logger = logging.getLogger("lightingstudio")
        yield logger
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    @pytest.mark.parametrize("level, expected", [("debug", 10), ("INFO", 20), ("Warning", 30), (40, 40)])
    def test_parse_level(self, level, expected):
        assert parse_level(level) == expected

    def test_parse_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            parse_level("chatty")

    def test_setup_is_idempotent(self, restore_logger):
        setup_logging("debug")
        setup_logging("debug")
        assert restore_logger.level == logging.DEBUG
        assert len(restore_logger.handlers) == 1

    def test_log_file(self, tmp_path, restore_logger):
        path = tmp_path / "studio.log"
        setup_logging(logging.INFO, log_file=str(path))
        logging.getLogger("lightingstudio.test").info("hello from the test")
        for handler in restore_logger.handlers:
            handler.flush()
            handler.close()
        assert "hello from the test" in path.read_text(encoding="utf-8")
