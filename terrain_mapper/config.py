"""
Pipeline configuration.

A TerrainConfig is an immutable value passed to every pipeline stage. Jobs are
described in YAML; each job is merged over the defaults below and validated.

Config schema (high level):
  - version: 1
  - jobs: [ { name, bbox, terrain, textures, tiles } ]
    or a single job object with the same fields at the root.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

import yaml  # type: ignore

from .errors import ConfigError
from .filters import FilterMethod
from .mesh import MESH_RESOLUTIONS
from .stitcher import DEFAULT_MAX_RETRIES, DEFAULT_MAX_WORKERS, DEFAULT_TILE_SIZE, DEFAULT_TIMEOUT_SECONDS
from .tiles import DEFAULT_MAX_TILES, BoundingBox, parse_bounding_box, validate_bounding_box
from .scale import DEFAULT_PLANE_WIDTH

TOKEN_ENV_VAR = "MAPBOX_TOKEN"
TEXTURE_TYPES = ("satellite", "streets", "heatmap")


def _terrain_defaults() -> Dict[str, Any]:
    return {
        "filter_method": "median",
        "mesh_resolution": 256,
        "height_exaggeration": 1.0,
        "use_real_scale": False,
        "plane_width": DEFAULT_PLANE_WIDTH,
    }


def _tiles_defaults() -> Dict[str, Any]:
    return {
        "max_tiles": DEFAULT_MAX_TILES,
        "tile_size": DEFAULT_TILE_SIZE,
        "timeout": DEFAULT_TIMEOUT_SECONDS,
        "max_retries": DEFAULT_MAX_RETRIES,
        "max_workers": DEFAULT_MAX_WORKERS,
        "access_token": None,
    }


def _merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in (b or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _as_number(value: Any, name: str, kind=float):
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


@dataclass(frozen=True)
class TerrainConfig:
    """All parameters for one terrain map request."""

    bbox: BoundingBox
    filter_method: FilterMethod = FilterMethod.MEDIAN
    mesh_resolution: int = 256
    height_exaggeration: float = 1.0
    use_real_scale: bool = False
    texture_type: str = "satellite"
    plane_width: float = DEFAULT_PLANE_WIDTH
    max_tiles: int = DEFAULT_MAX_TILES
    tile_size: int = DEFAULT_TILE_SIZE
    access_token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    max_workers: int = DEFAULT_MAX_WORKERS

    def __post_init__(self):
        object.__setattr__(self, "bbox", validate_bounding_box(self.bbox))
        object.__setattr__(self, "filter_method", FilterMethod.parse(self.filter_method))

        resolution = self.mesh_resolution
        if isinstance(resolution, float) and resolution.is_integer():
            resolution = int(resolution)
        if isinstance(resolution, bool) or resolution not in MESH_RESOLUTIONS:
            raise ConfigError(
                f"mesh_resolution must be one of {MESH_RESOLUTIONS}, got {self.mesh_resolution}"
            )
        object.__setattr__(self, "mesh_resolution", int(resolution))
        if not self.height_exaggeration > 0:
            raise ConfigError(f"height_exaggeration must be > 0, got {self.height_exaggeration}")
        if self.texture_type not in TEXTURE_TYPES:
            raise ConfigError(f"texture_type must be one of {TEXTURE_TYPES}, got {self.texture_type!r}")
        if not self.plane_width > 0:
            raise ConfigError(f"plane_width must be > 0, got {self.plane_width}")
        if self.max_tiles < 1:
            raise ConfigError(f"max_tiles must be at least 1, got {self.max_tiles}")
        if self.tile_size < 1:
            raise ConfigError(f"tile_size must be at least 1, got {self.tile_size}")

    def with_changes(self, **changes) -> "TerrainConfig":
        """Copy of this config with some fields replaced (re-validated)."""
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, job: Dict[str, Any], env: Optional[Dict[str, str]] = None) -> "TerrainConfig":
        """
        Build a config from a job mapping as found in the YAML file.

        Args:
            job: Job definition with bbox, terrain, textures and tiles sections
            env: Environment used for the access token fallback (default: os.environ)

        Returns:
            TerrainConfig: Validated configuration

        Raises:
            ConfigError: If a value is missing or invalid
        """
        env = os.environ if env is None else env

        bbox_value = job.get("bbox", job.get("bounds"))
        if bbox_value is None:
            raise ConfigError("bbox is required: [min_lon, min_lat, max_lon, max_lat]")
        bbox = parse_bounding_box(bbox_value) if isinstance(bbox_value, str) else validate_bounding_box(bbox_value)

        terrain = _merge(_terrain_defaults(), job.get("terrain", {}))
        tiles = _merge(_tiles_defaults(), job.get("tiles", {}))
        textures = job.get("textures", {}) or {}

        token = tiles.get("access_token") or env.get(TOKEN_ENV_VAR) or None

        return cls(
            bbox=bbox,
            filter_method=FilterMethod.parse(terrain["filter_method"]),
            mesh_resolution=_as_number(terrain["mesh_resolution"], "mesh_resolution", int),
            height_exaggeration=_as_number(terrain["height_exaggeration"], "height_exaggeration"),
            use_real_scale=_as_bool(terrain["use_real_scale"], "use_real_scale"),
            texture_type=str(textures.get("type", "satellite")).lower(),
            plane_width=_as_number(terrain["plane_width"], "plane_width"),
            max_tiles=_as_number(tiles["max_tiles"], "max_tiles", int),
            tile_size=_as_number(tiles["tile_size"], "tile_size", int),
            access_token=token,
            timeout=_as_number(tiles["timeout"], "timeout"),
            max_retries=_as_number(tiles["max_retries"], "max_retries", int),
            max_workers=_as_number(tiles["max_workers"], "max_workers", int),
        )


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def as_jobs(config: Dict[str, Any]) -> List[Dict[str, Any]]:
    # Support either top-level jobs list or a single job object at root
    if isinstance(config.get("jobs"), list):
        return config["jobs"]
    return [config]


def load_configs(path: str, env: Optional[Dict[str, str]] = None) -> List[TerrainConfig]:
    """Load and validate every job in a YAML configuration file."""
    return [TerrainConfig.from_dict(job, env=env) for job in as_jobs(load_yaml(path))]
