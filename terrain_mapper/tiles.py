"""
Tile geometry for the web-mercator XYZ scheme.

Converts between lon/lat bounding boxes and the tiles covering them, picks a zoom
level that keeps the number of tile fetches bounded, and builds provider URLs.
"""

import math
from enum import Enum
from typing import List, NamedTuple, Sequence, Tuple, Union

import mercantile

from .errors import InvalidBoundingBoxError

# Zoom limits for terrain requests
MIN_ZOOM = 8
MAX_ZOOM = 15
MAX_SEARCH_ZOOM = 18
DEFAULT_MAX_TILES = 16

# Web-mercator cannot project the poles
MAX_MERCATOR_LAT = 85.0511287798

MAPBOX_API_URL = "https://api.mapbox.com"


class BoundingBox(NamedTuple):
    """Geographic bounding box in WGS84 degrees."""
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @property
    def lon_span(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def mean_lat(self) -> float:
        return (self.min_lat + self.max_lat) / 2


class TileCoord(NamedTuple):
    """XYZ tile index."""
    x: int
    y: int
    z: int

    def __str__(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"


class TileStyle(str, Enum):
    """Raster styles served by the tile provider."""
    SATELLITE = "satellite"
    SATELLITE_V9 = "satellite-v9"
    SATELLITE_STREETS = "satellite-streets"
    STREETS = "streets"
    TERRAIN_RGB = "terrain-rgb"


_TILE_URL_TEMPLATES = {
    TileStyle.SATELLITE: "/v4/mapbox.satellite/{z}/{x}/{y}@2x.jpg",
    TileStyle.SATELLITE_V9: "/styles/v1/mapbox/satellite-v9/tiles/512/{z}/{x}/{y}@2x",
    TileStyle.SATELLITE_STREETS: "/styles/v1/mapbox/satellite-streets-v12/tiles/512/{z}/{x}/{y}@2x",
    TileStyle.STREETS: "/styles/v1/mapbox/outdoors-v12/tiles/512/{z}/{x}/{y}@2x",
    TileStyle.TERRAIN_RGB: "/v4/mapbox.terrain-rgb/{z}/{x}/{y}@2x.png",
}


def validate_bounding_box(bbox: Sequence[float]) -> BoundingBox:
    """
    Validate a (min_lon, min_lat, max_lon, max_lat) sequence.

    Args:
        bbox: Four numbers in WGS84 degrees

    Returns:
        BoundingBox: The validated bounding box

    Raises:
        InvalidBoundingBoxError: If the values are not finite, out of range or empty
    """
    if not (isinstance(bbox, (list, tuple)) and len(bbox) == 4):
        raise InvalidBoundingBoxError(
            "bounding box must have 4 values: min_lon, min_lat, max_lon, max_lat"
        )
    try:
        min_lon, min_lat, max_lon, max_lat = (float(v) for v in bbox)
    except (TypeError, ValueError) as exc:
        raise InvalidBoundingBoxError(f"Invalid bounding box values: {bbox}") from exc

    if not all(math.isfinite(v) for v in (min_lon, min_lat, max_lon, max_lat)):
        raise InvalidBoundingBoxError(f"Bounding box values must be finite: {bbox}")
    if min_lon < -180 or max_lon > 180 or min_lat < -90 or max_lat > 90:
        raise InvalidBoundingBoxError(f"Bounding box outside [-180,180]x[-90,90]: {bbox}")
    if min_lon >= max_lon or min_lat >= max_lat:
        raise InvalidBoundingBoxError(f"Bounding box minimums must be below maximums: {bbox}")

    return BoundingBox(min_lon, min_lat, max_lon, max_lat)


def parse_bounding_box(text: str) -> BoundingBox:
    """
    Parse a bounding box string in the form "minLon, minLat, maxLon, maxLat".

    Raises:
        InvalidBoundingBoxError: If the string does not hold a valid bounding box
    """
    parts = [part.strip() for part in str(text).split(",")]
    if len(parts) != 4:
        raise InvalidBoundingBoxError(
            "Invalid bounding box format. Please use: minLon, minLat, maxLon, maxLat"
        )
    return validate_bounding_box(parts)


def point_to_tile(lon: float, lat: float, zoom: int) -> Tuple[int, int]:
    """
    Return the (x, y) index of the tile containing a point at a zoom level.

    Latitudes beyond the web-mercator limit fall into the first or last tile row.
    """
    lat = max(-MAX_MERCATOR_LAT, min(lat, MAX_MERCATOR_LAT))
    tile = mercantile.tile(lon, lat, zoom, truncate=True)
    return tile.x, tile.y


def _tile_range(bbox: BoundingBox, zoom: int) -> Tuple[int, int, int, int]:
    # Top-left corner is (min_lon, max_lat); tile y grows southwards
    top_left = point_to_tile(bbox.min_lon, bbox.max_lat, zoom)
    bottom_right = point_to_tile(bbox.max_lon, bbox.min_lat, zoom)

    min_x = min(top_left[0], bottom_right[0])
    max_x = max(top_left[0], bottom_right[0])
    min_y = min(top_left[1], bottom_right[1])
    max_y = max(top_left[1], bottom_right[1])
    return min_x, min_y, max_x, max_y


def calculate_zoom_level(bbox: BoundingBox, max_tiles: int = DEFAULT_MAX_TILES) -> int:
    """
    Pick the highest zoom whose tile cover stays within a tile budget.

    Zoom increases from 0 while the number of tiles spanning the bbox stays at or
    below max_tiles. The result is clamped to [MIN_ZOOM, MAX_ZOOM].

    Args:
        bbox: Region of interest
        max_tiles: Maximum number of tiles per raster style

    Returns:
        int: Zoom level
    """
    if max_tiles < 1:
        raise ValueError(f"max_tiles must be at least 1, got {max_tiles}")

    zoom = 0
    for z in range(MAX_SEARCH_ZOOM + 1):
        min_x, min_y, max_x, max_y = _tile_range(bbox, z)
        total_tiles = (max_x - min_x + 1) * (max_y - min_y + 1)
        if total_tiles > max_tiles:
            break
        zoom = z

    return max(MIN_ZOOM, min(zoom, MAX_ZOOM))


def get_tiles_for_bounding_box(bbox: BoundingBox, zoom: int) -> List[TileCoord]:
    """
    Enumerate every tile in the rectangle covering the bbox corners.

    Tiles are listed column by column (x outer, y inner).
    """
    min_x, min_y, max_x, max_y = _tile_range(bbox, zoom)

    tiles = []
    for x in range(min_x, max_x + 1):
        for y in range(min_y, max_y + 1):
            tiles.append(TileCoord(x, y, zoom))
    return tiles


def tile_to_bounding_box(tile: TileCoord) -> BoundingBox:
    """Geographic bounds of a tile."""
    west, south, east, north = mercantile.bounds(tile.x, tile.y, tile.z)
    return BoundingBox(west, south, east, north)


def get_tile_url(tile: TileCoord, style: Union[TileStyle, str], token: str) -> str:
    """Build the provider URL for a tile in the given style."""
    style = TileStyle(style)
    path = _TILE_URL_TEMPLATES[style].format(z=tile.z, x=tile.x, y=tile.y)
    return f"{MAPBOX_API_URL}{path}?access_token={token}"
