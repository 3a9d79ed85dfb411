"""
Tests for settings validation and tile engine wiring.
"""

import pytest

from dzi_ingest.config.settings import Settings
from dzi_ingest.main import build_engine
from dzi_ingest.tile_engines import PillowTileEngine, VipsTileEngine
from dzi_ingest.tile_interface.factory import TileEngineFactory


class TestSettings:

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        for key in ("UPLOAD_DIR", "TILES_DIR", "REGISTRY_PATH", "TILE_ENGINE", "TILE_SIZE", "TILE_OVERLAP"):
            monkeypatch.delenv(key, raising=False)

        cfg = Settings().validate()

        assert cfg.UPLOAD_DIR == tmp_path / "uploads"
        assert cfg.TILES_DIR == tmp_path / "tiles" / "uploaded"
        assert cfg.REGISTRY_PATH == tmp_path / "uploaded_images.json"
        assert cfg.TILE_ENGINE == "pillow"
        assert (cfg.TILE_SIZE, cfg.TILE_OVERLAP) == (256, 2)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DZI_URL_PREFIX", "/static/tiles/")
        monkeypatch.setenv("DEFER_CHUNK_CLEANUP", "TRUE")
        monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")

        cfg = Settings()

        assert cfg.DZI_URL_PREFIX == "/static/tiles"
        assert cfg.DEFER_CHUNK_CLEANUP is True
        assert cfg.CORS_ORIGINS == ["http://a.test", "http://b.test"]

    @pytest.mark.parametrize("key,value", [
        ("TILE_ENGINE", "imagemagick"),
        ("REGISTRY_BACKEND", "redis"),
        ("TILE_SIZE", "0"),
        ("TILE_OVERLAP", "256"),
        ("TILE_FORMAT", "webp"),
        ("TILE_WORKERS", "0"),
    ])
    def test_validate_rejects(self, monkeypatch, key, value):
        monkeypatch.setenv(key, value)
        with pytest.raises(ValueError):
            Settings().validate()


class TestTileEngineFactory:

    def test_registered_engines(self):
        assert set(TileEngineFactory.list_engines()) >= {"pillow", "vips"}

    def test_unknown_engine(self):
        with pytest.raises(ValueError):
            TileEngineFactory.create("gdal")

    def test_build_engine_pillow(self, monkeypatch):
        monkeypatch.setenv("TILE_ENGINE", "pillow")
        monkeypatch.setenv("TILE_FORMAT", "png")
        engine = build_engine(Settings())
        assert isinstance(engine, PillowTileEngine)
        assert engine.tile_format == "png"

    def test_build_engine_vips(self, monkeypatch):
        monkeypatch.setenv("TILE_ENGINE", "vips")
        monkeypatch.setenv("VIPS_PATH", "/usr/local/bin/vips")
        engine = build_engine(Settings())
        assert isinstance(engine, VipsTileEngine)
        assert engine.vips_path == "/usr/local/bin/vips"
