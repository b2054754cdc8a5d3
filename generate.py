#!/usr/bin/env python3

"""
Terrain map generator driven by a YAML configuration.

Usage:
  python generate.py --config configs/example.yaml
  python generate.py --config configs/example.yaml --job grand_canyon
  python generate.py --bbox "-112.2, 36.0, -112.0, 36.2" --dry-run

Config schema (high level):
  - version: 1
  - jobs: [ { name, bbox, terrain, textures, tiles } ]
    or a single job object with the same fields at the root.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict, List, Optional

from terrain_mapper.config import TerrainConfig, as_jobs, load_yaml
from terrain_mapper.console import output
from terrain_mapper.errors import TerrainMapError
from terrain_mapper.pipeline import TerrainMapGenerator
from terrain_mapper.tiles import get_tile_url


def run_job(job_cfg: Dict[str, Any], bbox_override: Optional[str] = None,
            only_name: Optional[str] = None, dry_run: bool = False) -> None:
    name = str(job_cfg.get("name") or "job")
    if only_name and name != only_name:
        return

    if bbox_override:
        job_cfg = dict(job_cfg, bbox=bbox_override)
    config = TerrainConfig.from_dict(job_cfg)

    output.header(f"Terrain map: {name}", f"Bounds: {tuple(config.bbox)}")
    generator = TerrainMapGenerator()

    if dry_run:
        plan = generator.plan(config.bbox, config.max_tiles)
        output.tile_plan(config.bbox, plan.zoom, plan.tiles)
        for tile in plan.tiles:
            output.info(f"  {get_tile_url(tile, 'terrain-rgb', '<token>')}")
        output.print_section_divider()
        return

    result = generator.generate(config)

    failed = {style: len(tiles) for style, tiles in result.failed_tiles.items() if tiles}
    if failed:
        output.warning(f"Placeholder tiles used: {failed}")
    output.stats_table(
        "Result",
        {
            "Texture": f"{config.texture_type} {result.texture.width}x{result.texture.height}"
            if result.texture is not None else "-",
            "Height Field": f"{result.height_field.width}x{result.height_field.height}",
            "Elevation": f"{result.min_elevation:.1f}m to {result.max_elevation:.1f}m",
            "Vertices": result.mesh.vertex_count,
            "Faces": int(result.mesh.faces.shape[0]),
        },
    )
    output.success(f"Completed: {name}")
    output.print_section_divider()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate displaced terrain meshes from Terrain-RGB tiles")
    parser.add_argument("--config", help="Path to YAML configuration file")
    parser.add_argument("--job", help="Run only the named job")
    parser.add_argument("--bbox", help='Bounding box override: "minLon, minLat, maxLon, maxLat"')
    parser.add_argument("--dry-run", action="store_true", help="Only print the zoom level and tile plan")
    args = parser.parse_args(argv)
    if not args.config and not args.bbox:
        parser.error("either --config or --bbox is required")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_yaml(args.config) if args.config else {}
    jobs = as_jobs(cfg)
    if not jobs:
        output.error("No jobs found in configuration")
        return 2

    for job in jobs:
        try:
            run_job(job, bbox_override=args.bbox, only_name=args.job, dry_run=args.dry_run)
        except TerrainMapError as exc:
            output.error(f"Job failed: {exc}")
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
