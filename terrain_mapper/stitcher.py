"""
Tile fetching and stitching.

Fetches a set of XYZ tiles concurrently, lays them out on one composite canvas in
grid order and crops the composite to the exact requested bounding box. A tile
that fails to download or decode is replaced by a flat placeholder so that one
bad tile never aborts the whole mosaic.
"""

import concurrent.futures
import random
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import requests

from .console import output
from .errors import StitchError, TileFetchError
from .raster import PLACEHOLDER_COLOR, RasterCanvas
from .tiles import BoundingBox, TileCoord, TileStyle, get_tile_url, tile_to_bounding_box

# Provider tiles are 512x512 at @2x
DEFAULT_TILE_SIZE = 512
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_WORKERS = 8


def _backoff_delay(attempt: int) -> float:
    """Exponential backoff with jitter for the given 0-indexed attempt."""
    return (2 ** attempt) * 0.5 + random.random() * 0.5


class TileFetcher:
    """Downloads raw tile images from the provider."""

    def __init__(
        self,
        token: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        session: Optional[requests.Session] = None,
    ):
        self.token = token
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.session = session or requests.Session()

    def fetch(self, tile: TileCoord, style: Union[TileStyle, str]) -> bytes:
        """
        Fetch the encoded image bytes of one tile.

        Rate limiting (429) and connection errors are retried with backoff;
        any other non-2xx status fails immediately.

        Raises:
            TileFetchError: If the tile could not be fetched
        """
        url = get_tile_url(tile, style, self.token)
        label = f"{TileStyle(style).value} {tile}"

        last_error = ""
        status = None
        for attempt in range(self.max_retries):
            try:
                response = self.session.get(url, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_error = exc.__class__.__name__
                status = None
            else:
                status = response.status_code
                if response.ok:
                    return response.content
                if status != 429:
                    raise TileFetchError(label, status, response.reason or "")
                last_error = "rate limited"

            if attempt < self.max_retries - 1:
                time.sleep(_backoff_delay(attempt))

        raise TileFetchError(label, status, f"{last_error} after {self.max_retries} attempts")


@dataclass
class TileFetchResult:
    """Outcome of fetching one tile: pixels on success, an error otherwise."""

    tile: TileCoord
    canvas: Optional[RasterCanvas] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.canvas is not None


@dataclass
class StitchResult:
    """Cropped raster for a bounding box plus the composite it was cut from."""

    canvas: RasterCanvas
    composite: RasterCanvas
    composite_bounds: BoundingBox
    style: TileStyle
    failed_tiles: List[TileCoord] = field(default_factory=list)
    image_data: Optional[RasterCanvas] = None


class TileStitcher:
    """Stitches tiles of one style into a raster cropped to a bounding box."""

    def __init__(
        self,
        fetcher,
        tile_size: int = DEFAULT_TILE_SIZE,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        """
        Args:
            fetcher: Object with fetch(tile, style) -> bytes (e.g. TileFetcher)
            tile_size (int): Pixel size every tile is drawn at
            max_workers (int): Concurrent tile downloads
        """
        self.fetcher = fetcher
        self.tile_size = tile_size
        self.max_workers = max(1, int(max_workers))

    def _load_tile(self, tile: TileCoord, style: TileStyle) -> TileFetchResult:
        try:
            data = self.fetcher.fetch(tile, style)
            canvas = RasterCanvas.from_image_bytes(data, size=self.tile_size)
        except Exception as exc:
            # Any failure for a single tile degrades to a placeholder cell
            return TileFetchResult(tile, error=str(exc) or exc.__class__.__name__)
        return TileFetchResult(tile, canvas=canvas)

    def fetch_tiles(self, tiles: Sequence[TileCoord], style: TileStyle) -> List[TileFetchResult]:
        """Fetch all tiles concurrently; failures are returned, never raised."""
        workers = min(self.max_workers, len(tiles))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(lambda tile: self._load_tile(tile, style), tiles))

    @staticmethod
    def composite_bounds(tiles: Sequence[TileCoord]) -> BoundingBox:
        """Geographic bounds covered by the union of the tiles."""
        boxes = [tile_to_bounding_box(tile) for tile in tiles]
        return BoundingBox(
            min(b.min_lon for b in boxes),
            min(b.min_lat for b in boxes),
            max(b.max_lon for b in boxes),
            max(b.max_lat for b in boxes),
        )

    def stitch(
        self,
        tiles: Sequence[TileCoord],
        bbox: BoundingBox,
        style: Union[TileStyle, str],
    ) -> StitchResult:
        """
        Build one continuous raster for the bounding box.

        Args:
            tiles: Tiles covering the bounding box
            bbox: Region to crop to
            style: Raster style to fetch

        Returns:
            StitchResult: Cropped canvas; image_data is set for terrain-rgb only

        Raises:
            StitchError: If no tiles were given or every tile failed
        """
        if not tiles:
            raise StitchError("No tiles provided")
        style = TileStyle(style)

        start_time = time.time()
        xs = sorted({tile.x for tile in tiles})
        ys = sorted({tile.y for tile in tiles})
        column: Dict[int, int] = {x: i for i, x in enumerate(xs)}
        row: Dict[int, int] = {y: i for i, y in enumerate(ys)}

        size = self.tile_size
        composite = RasterCanvas.blank(len(xs) * size, len(ys) * size)

        output.progress_info(f"Fetching {len(tiles)} {style.value} tiles ({len(xs)}x{len(ys)} grid)")
        with output.progress_context(f"Downloading {style.value} tiles"):
            results = self.fetch_tiles(tiles, style)

        failed = []
        for result in results:
            x = column[result.tile.x] * size
            y = row[result.tile.y] * size
            if result.ok:
                composite.draw(result.canvas, x, y)
            else:
                output.warning(f"  Error loading tile {result.tile}: {result.error}")
                composite.fill_rect(x, y, size, size, PLACEHOLDER_COLOR)
                failed.append(result.tile)

        if len(failed) == len(results):
            raise StitchError(f"All {len(failed)} {style.value} tiles failed to load")

        bounds = self.composite_bounds(tiles)
        canvas = self.crop_to_bounds(composite, bounds, bbox, smooth=style is not TileStyle.TERRAIN_RGB)

        output.success(
            f"  Stitched {style.value}: {composite.width}x{composite.height} -> "
            f"{canvas.width}x{canvas.height} in {time.time() - start_time:.2f}s"
        )

        return StitchResult(
            canvas=canvas,
            composite=composite,
            composite_bounds=bounds,
            style=style,
            failed_tiles=failed,
            image_data=canvas if style is TileStyle.TERRAIN_RGB else None,
        )

    @staticmethod
    def crop_to_bounds(
        composite: RasterCanvas,
        composite_bounds: BoundingBox,
        bbox: BoundingBox,
        smooth: bool = True,
    ) -> RasterCanvas:
        """
        Crop a composite to a bounding box with a linear pixel/degree mapping.

        Raster y grows downwards while latitude grows upwards, so the vertical
        offset is measured from the composite's northern edge.
        """
        lon_range = composite_bounds.max_lon - composite_bounds.min_lon
        lat_range = composite_bounds.max_lat - composite_bounds.min_lat
        width, height = composite.width, composite.height

        start_x = (bbox.min_lon - composite_bounds.min_lon) / lon_range * width
        start_y = (composite_bounds.max_lat - bbox.max_lat) / lat_range * height
        crop_width = bbox.lon_span / lon_range * width
        crop_height = bbox.lat_span / lat_range * height

        return composite.crop(max(0.0, start_x), max(0.0, start_y), crop_width, crop_height, smooth=smooth)
