"""
Scale model: conversion between geographic extent, meters and scene units.

The mesh plane is a flat equirectangular approximation of the bounding box,
which is only acceptable for small regions. Great-circle distance is used to
find how many meters the plane width represents when real-world scale is
requested.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from geopy.distance import great_circle

from .tiles import BoundingBox

EARTH_RADIUS_M = 6371000.0

DEFAULT_PLANE_WIDTH = 10.0
# Normalized relief spans this fraction of the plane width
NORMALIZED_RELIEF_FRACTION = 0.25
NORMALIZED_FALLBACK_SCALE = 0.01
REAL_SCALE_FALLBACK_SCALE = 0.1


def distance_meters(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Haversine great-circle distance in meters on a 6,371 km sphere."""
    return great_circle((lat1, lon1), (lat2, lon2), radius=EARTH_RADIUS_M / 1000.0).meters


def plane_dimensions(bbox: BoundingBox, plane_width: float = DEFAULT_PLANE_WIDTH) -> Tuple[float, float]:
    """Width and height of the mesh plane; height follows the lat/lon aspect ratio."""
    return plane_width, plane_width * (bbox.lat_span / bbox.lon_span)


def compute_base_scale(
    min_elevation: float,
    max_elevation: float,
    plane_width: float,
    horizontal_distance_m: float,
    use_real_scale: bool,
) -> float:
    """
    Scene units per meter of elevation.

    Normalized mode stretches the elevation range to a quarter of the plane
    width. Real-scale mode uses the same scene units per meter as the horizontal
    extent of the plane.
    """
    if use_real_scale:
        if horizontal_distance_m > 0:
            return plane_width / horizontal_distance_m
        return REAL_SCALE_FALLBACK_SCALE

    elevation_range = max_elevation - min_elevation
    if elevation_range > 0:
        return (plane_width * NORMALIZED_RELIEF_FRACTION) / elevation_range
    return NORMALIZED_FALLBACK_SCALE


@dataclass(frozen=True)
class ScaleModel:
    """Horizontal and vertical scale for one bounding box and plane width."""

    bbox: BoundingBox
    plane_width: float = DEFAULT_PLANE_WIDTH

    @property
    def plane_height(self) -> float:
        return plane_dimensions(self.bbox, self.plane_width)[1]

    @property
    def horizontal_distance_meters(self) -> float:
        """East-west extent of the bbox at its mean latitude."""
        lat = self.bbox.mean_lat
        return distance_meters(self.bbox.min_lon, lat, self.bbox.max_lon, lat)

    @property
    def vertical_distance_meters(self) -> float:
        """North-south extent of the bbox along its western edge."""
        lon = self.bbox.min_lon
        return distance_meters(lon, self.bbox.min_lat, lon, self.bbox.max_lat)

    def base_scale(self, min_elevation: float, max_elevation: float, use_real_scale: bool) -> float:
        horizontal = self.horizontal_distance_meters if use_real_scale else 0.0
        return compute_base_scale(
            min_elevation, max_elevation, self.plane_width, horizontal, use_real_scale
        )

    @staticmethod
    def to_scene_units(
        heights: np.ndarray,
        min_elevation: float,
        base_scale: float,
        exaggeration: float,
        use_real_scale: bool,
    ) -> np.ndarray:
        """
        Convert elevations in meters to vertical scene offsets.

        Real scale keeps absolute elevation (including below sea level);
        normalized scale measures from the lowest point. The exaggeration is
        applied after the conversion in both modes.
        """
        heights = np.asarray(heights, dtype=np.float64)
        if use_real_scale:
            return heights * base_scale * exaggeration
        return (heights - min_elevation) * base_scale * exaggeration
