"""Exception types raised by the terrain mapping pipeline."""

from typing import Optional


class TerrainMapError(Exception):
    """Base exception for terrain mapping errors."""
    pass


class InvalidBoundingBoxError(TerrainMapError, ValueError):
    """A bounding box is malformed, out of range or empty."""
    pass


class ConfigError(TerrainMapError, ValueError):
    """A configuration value is missing or invalid."""
    pass


class TileFetchError(TerrainMapError):
    """A single tile could not be fetched or decoded."""

    def __init__(self, tile: str, status_code: Optional[int] = None, message: str = ""):
        self.tile = tile
        self.status_code = status_code
        detail = f"status {status_code}" if status_code is not None else "no response"
        suffix = f": {message}" if message else ""
        super().__init__(f"Tile {tile} request failed ({detail}){suffix}")


class StitchError(TerrainMapError):
    """Tiles could not be assembled into a raster at all."""
    pass
