"""
Terrain map pipeline.

bbox -> tile plan -> stitched imagery and Terrain-RGB rasters -> decoded
heights -> artifact filter -> displaced mesh.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import TerrainConfig
from .console import output
from .decoder import decode_terrain_rgb
from .errors import ConfigError
from .filters import get_filter
from .heatmap import generate_heatmap
from .heightfield import HeightField
from .mesh import DisplacedMesh, MeshGrid, displace
from .raster import RasterCanvas
from .scale import ScaleModel
from .stitcher import TileFetcher, TileStitcher
from .tiles import BoundingBox, TileCoord, TileStyle, calculate_zoom_level, get_tiles_for_bounding_box

# Imagery styles stitched for every request, keyed by texture type
IMAGERY_STYLES = {
    "satellite": TileStyle.SATELLITE,
    "streets": TileStyle.STREETS,
}


@dataclass
class TilePlan:
    """Zoom level and tiles chosen for a bounding box."""

    bbox: BoundingBox
    zoom: int
    tiles: List[TileCoord]


@dataclass
class TerrainMapResult:
    """Everything the external renderer needs for one request."""

    config: TerrainConfig
    plan: TilePlan
    textures: Dict[str, RasterCanvas]
    elevation_raster: RasterCanvas
    raw_height_field: HeightField
    height_field: HeightField
    mesh: DisplacedMesh
    failed_tiles: Dict[str, List[TileCoord]] = field(default_factory=dict)

    @property
    def min_elevation(self) -> float:
        return self.mesh.min_elevation

    @property
    def max_elevation(self) -> float:
        return self.mesh.max_elevation

    @property
    def texture(self) -> Optional[RasterCanvas]:
        """Texture selected by the config's texture_type."""
        return self.textures.get(self.config.texture_type)


class TerrainMapGenerator:
    """Runs the tile-to-mesh pipeline for a TerrainConfig."""

    def __init__(self, fetcher=None, stitcher: Optional[TileStitcher] = None):
        """
        Args:
            fetcher: Tile source with fetch(tile, style) -> bytes. When omitted a
                TileFetcher is created per request from the config's token.
            stitcher: Pre-built stitcher; overrides fetcher
        """
        self.fetcher = fetcher
        self.stitcher = stitcher

    @staticmethod
    def plan(bbox: BoundingBox, max_tiles: int) -> TilePlan:
        zoom = calculate_zoom_level(bbox, max_tiles)
        tiles = get_tiles_for_bounding_box(bbox, zoom)
        return TilePlan(bbox, zoom, tiles)

    def _stitcher_for(self, config: TerrainConfig) -> TileStitcher:
        if self.stitcher is not None:
            return self.stitcher

        fetcher = self.fetcher
        if fetcher is None:
            if not config.access_token:
                raise ConfigError("An access token is required to fetch tiles (set MAPBOX_TOKEN)")
            fetcher = TileFetcher(config.access_token, timeout=config.timeout, max_retries=config.max_retries)

        return TileStitcher(fetcher, tile_size=config.tile_size, max_workers=config.max_workers)

    def generate(self, config: TerrainConfig) -> TerrainMapResult:
        """
        Produce textures, cleaned heights and a displaced mesh for a bounding box.

        Args:
            config: Validated request configuration

        Returns:
            TerrainMapResult: Textures, height fields and the displaced mesh

        Raises:
            ConfigError: If tiles must be fetched but no access token is set
            StitchError: If a raster style could not be assembled at all
        """
        start_time = time.time()
        bbox = config.bbox
        output.subheader(f"Generating terrain for bounds: {tuple(bbox)}")

        plan = self.plan(bbox, config.max_tiles)
        output.tile_plan(bbox, plan.zoom, plan.tiles)

        stitcher = self._stitcher_for(config)

        textures: Dict[str, RasterCanvas] = {}
        failed: Dict[str, List[TileCoord]] = {}
        for texture_type, style in IMAGERY_STYLES.items():
            result = stitcher.stitch(plan.tiles, bbox, style)
            textures[texture_type] = result.canvas
            failed[style.value] = result.failed_tiles

        terrain = stitcher.stitch(plan.tiles, bbox, TileStyle.TERRAIN_RGB)
        failed[TileStyle.TERRAIN_RGB.value] = terrain.failed_tiles

        raw = decode_terrain_rgb(terrain.image_data.pixels)
        result = self._build(config, plan, textures, terrain.image_data, raw, failed)

        output.success(f"Terrain generated in {time.time() - start_time:.2f} seconds")
        return result

    def rebuild(self, previous: TerrainMapResult, config: TerrainConfig) -> TerrainMapResult:
        """
        Re-filter and re-displace already fetched data for a changed config.

        Use this when only the filter method, mesh resolution, exaggeration,
        plane width or scale mode changed. A different bbox needs generate().
        """
        if tuple(config.bbox) != tuple(previous.config.bbox):
            raise ConfigError("rebuild() cannot change the bounding box; call generate() instead")
        textures = {k: v for k, v in previous.textures.items() if k in IMAGERY_STYLES}
        return self._build(
            config,
            previous.plan,
            textures,
            previous.elevation_raster,
            previous.raw_height_field,
            previous.failed_tiles,
        )

    def _build(
        self,
        config: TerrainConfig,
        plan: TilePlan,
        textures: Dict[str, RasterCanvas],
        elevation_raster: RasterCanvas,
        raw: HeightField,
        failed: Dict[str, List[TileCoord]],
    ) -> TerrainMapResult:
        artifact_filter = get_filter(config.filter_method)
        output.progress_info(f"Applying '{config.filter_method.value}' filter ({artifact_filter.name})")
        cleaned = artifact_filter.filter(raw)

        scale_model = ScaleModel(config.bbox, config.plane_width)
        grid = MeshGrid.create(config.plane_width, scale_model.plane_height, config.mesh_resolution)
        mesh = displace(cleaned, grid, scale_model, config.height_exaggeration, config.use_real_scale)

        textures = dict(textures)
        if config.texture_type == "heatmap":
            textures["heatmap"] = generate_heatmap(cleaned, mesh.min_elevation, mesh.max_elevation)

        output.elevation_stats(
            cleaned.shape,
            mesh.min_elevation,
            mesh.max_elevation,
            {
                "Filter": config.filter_method.value,
                "Real Scale": config.use_real_scale,
                "Base Scale": mesh.base_scale,
                "Horizontal Distance": f"{scale_model.horizontal_distance_meters:,.1f}m",
                "Vertical Distance": f"{scale_model.vertical_distance_meters:,.1f}m",
                "Exaggeration": float(config.height_exaggeration),
                "Mesh Vertices": mesh.vertex_count,
                "Applied Z Range": f"{mesh.applied_min:.4f} to {mesh.applied_max:.4f}",
            },
        )

        return TerrainMapResult(
            config=config,
            plan=plan,
            textures=textures,
            elevation_raster=elevation_raster,
            raw_height_field=raw,
            height_field=cleaned,
            mesh=mesh,
            failed_tiles=failed,
        )
