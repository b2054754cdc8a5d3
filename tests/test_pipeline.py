"""
Pytest tests for the end-to-end terrain pipeline using an in-memory tile source.
"""

import numpy as np
import pytest

from terrain_mapper.config import TerrainConfig
from terrain_mapper.errors import ConfigError
from terrain_mapper.filters import FilterMethod
from terrain_mapper.pipeline import TerrainMapGenerator
from terrain_mapper.tiles import BoundingBox, TileCoord, TileStyle, tile_to_bounding_box


@pytest.fixture
def config(small_bbox):
    return TerrainConfig(bbox=small_bbox, mesh_resolution=128, tile_size=8, max_workers=2)


class TestPlan:

    def test_plan_within_budget(self, small_bbox):
        plan = TerrainMapGenerator.plan(small_bbox, max_tiles=16)
        assert 8 <= plan.zoom <= 15
        assert plan.tiles
        assert all(t.z == plan.zoom for t in plan.tiles)


class TestGenerate:
    """Tests for TerrainMapGenerator.generate."""

    def test_generates_mesh_and_textures(self, fake_fetcher, config):
        fetcher = fake_fetcher(tile_size=8, elevation=250.0)
        result = TerrainMapGenerator(fetcher=fetcher).generate(config)

        assert set(result.textures) == {"satellite", "streets"}
        assert result.texture is result.textures["satellite"]
        assert result.mesh.vertex_count == 129 * 129
        assert result.min_elevation == pytest.approx(250.0, abs=1e-2)
        assert result.max_elevation == pytest.approx(250.0, abs=1e-2)
        assert np.allclose(result.mesh.elevation_offsets(), 0.0)
        assert result.height_field.shape == result.raw_height_field.shape

    def test_fetches_every_style(self, fake_fetcher, config):
        fetcher = fake_fetcher(tile_size=8)
        result = TerrainMapGenerator(fetcher=fetcher).generate(config)

        styles = {style for _, style in fetcher.calls}
        assert styles == {TileStyle.SATELLITE, TileStyle.STREETS, TileStyle.TERRAIN_RGB}
        assert len(fetcher.calls) == 3 * len(result.plan.tiles)

    def test_heatmap_texture(self, fake_fetcher, config):
        fetcher = fake_fetcher(tile_size=8)
        result = TerrainMapGenerator(fetcher=fetcher).generate(config.with_changes(texture_type="heatmap"))

        heatmap = result.texture
        assert heatmap is result.textures["heatmap"]
        assert heatmap.size == (result.height_field.width, result.height_field.height)
        # A flat field renders at the midpoint, pure green
        assert tuple(heatmap.pixels[0, 0]) == (0, 255, 0, 255)

    def test_failed_tiles_reported(self, fake_fetcher, config):
        """One failing tile of a multi-tile plan is reported for every style."""
        # Straddle the edge between two zoom 8 tiles; every zoom from 8 up splits there
        west = tile_to_bounding_box(TileCoord(53, 96, 8))
        mid_lat = (west.min_lat + west.max_lat) / 2
        bbox = BoundingBox(west.max_lon - 0.05, mid_lat - 0.05, west.max_lon + 0.05, mid_lat + 0.05)
        config = config.with_changes(bbox=bbox)

        plan = TerrainMapGenerator.plan(bbox, config.max_tiles)
        assert len({t.x for t in plan.tiles}) >= 2
        bad = plan.tiles[0]
        fetcher = fake_fetcher(tile_size=8, failing={(bad.x, bad.y)})

        result = TerrainMapGenerator(fetcher=fetcher).generate(config)
        assert result.failed_tiles["terrain-rgb"] == [bad]
        assert result.failed_tiles["satellite"] == [bad]
        assert result.failed_tiles["streets"] == [bad]

    def test_real_scale(self, fake_fetcher, config):
        fetcher = fake_fetcher(tile_size=8, elevation=-20.0)
        result = TerrainMapGenerator(fetcher=fetcher).generate(
            config.with_changes(use_real_scale=True, filter_method="none")
        )
        assert result.mesh.applied_max < 0.0

    def test_missing_token(self, config):
        with pytest.raises(ConfigError):
            TerrainMapGenerator().generate(config)


class TestRebuild:
    """Tests for re-displacing already fetched data."""

    def test_rebuild_without_fetching(self, fake_fetcher, config):
        fetcher = fake_fetcher(tile_size=8)
        generator = TerrainMapGenerator(fetcher=fetcher)
        first = generator.generate(config)
        calls = len(fetcher.calls)

        second = generator.rebuild(first, config.with_changes(mesh_resolution=256, filter_method="capping"))

        assert len(fetcher.calls) == calls
        assert second.mesh.vertex_count == 257 * 257
        assert second.config.filter_method is FilterMethod.CAPPING
        assert second.raw_height_field is first.raw_height_field

    def test_rebuild_switches_to_heatmap(self, fake_fetcher, config):
        generator = TerrainMapGenerator(fetcher=fake_fetcher(tile_size=8))
        first = generator.generate(config)
        second = generator.rebuild(first, config.with_changes(texture_type="heatmap"))
        assert "heatmap" in second.textures
        assert "heatmap" not in first.textures

    def test_rebuild_rejects_new_bbox(self, fake_fetcher, config):
        generator = TerrainMapGenerator(fetcher=fake_fetcher(tile_size=8))
        first = generator.generate(config)
        moved = config.with_changes(bbox=BoundingBox(-105.0, 39.95, -104.9, 40.05))
        with pytest.raises(ConfigError):
            generator.rebuild(first, moved)
