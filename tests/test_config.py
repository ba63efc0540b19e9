"""Tests for settings and logging setup."""

import logging

import pytest

from zonesim.config import Settings, get_settings, validate_zone_kind
from zonesim.logging_config import ROADS_LOG_FILE_NAME, SIM_LOG_FILE_NAME, setup_logging


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.world_width == 10000
        assert settings.connection_radius == 60
        assert settings.max_agents_per_zone == 10
        assert settings.seed is None

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ZONESIM_SPAWN_DELAY_MS", "250")
        monkeypatch.setenv("ZONESIM_SEED", "11")
        settings = Settings()
        assert settings.spawn_delay_ms == 250
        assert settings.seed == 11

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_validate_zone_kind(self):
        assert validate_zone_kind("road")
        assert validate_zone_kind("residential")
        assert not validate_zone_kind("industrial")


class TestLogging:
    """Tests for log handler setup."""

    @pytest.fixture
    def clean_handlers(self):
        root = logging.getLogger()
        roads = logging.getLogger("zonesim.engine.road_network")
        root_before = list(root.handlers)
        roads_before = list(roads.handlers)
        level_before = root.level
        yield
        for logger, before in ((root, root_before), (roads, roads_before)):
            for handler in list(logger.handlers):
                if handler not in before:
                    logger.removeHandler(handler)
                    handler.close()
        root.setLevel(level_before)

    def test_file_logging(self, tmp_path, clean_handlers):
        setup_logging(level="debug", log_dir=tmp_path)

        logging.getLogger("zonesim.engine.road_network").info("rebuilt")
        for handler in logging.getLogger().handlers + logging.getLogger("zonesim.engine.road_network").handlers:
            handler.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "rebuilt" in (tmp_path / SIM_LOG_FILE_NAME).read_text()
        assert "[ROADS]" in (tmp_path / ROADS_LOG_FILE_NAME).read_text()

    def test_console_only(self, clean_handlers):
        before = list(logging.getLogger().handlers)
        root = setup_logging(level="WARNING")

        added = [h for h in root.handlers if h not in before]
        assert root.level == logging.WARNING
        assert len(added) == 1
        assert not isinstance(added[0], logging.FileHandler)
