"""
Pytest tests for distance and elevation scale conversion.
"""

import numpy as np
import pytest

from terrain_mapper.scale import (
    NORMALIZED_FALLBACK_SCALE,
    REAL_SCALE_FALLBACK_SCALE,
    ScaleModel,
    compute_base_scale,
    distance_meters,
    plane_dimensions,
)
from terrain_mapper.tiles import BoundingBox


class TestDistance:
    """Tests for great-circle distance."""

    def test_one_degree_at_equator(self):
        assert distance_meters(0.0, 0.0, 1.0, 0.0) == pytest.approx(111194.93, abs=0.5)

    def test_one_degree_of_latitude(self):
        assert distance_meters(10.0, 45.0, 10.0, 46.0) == pytest.approx(111194.93, abs=0.5)

    def test_longitude_shrinks_with_latitude(self):
        at_equator = distance_meters(0.0, 0.0, 1.0, 0.0)
        at_sixty = distance_meters(0.0, 60.0, 1.0, 60.0)
        assert at_sixty == pytest.approx(at_equator / 2, rel=1e-3)

    def test_zero_distance(self):
        assert distance_meters(7.0, 46.0, 7.0, 46.0) == 0.0


class TestPlaneDimensions:

    def test_height_follows_aspect_ratio(self):
        width, height = plane_dimensions(BoundingBox(0.0, 0.0, 2.0, 1.0), plane_width=10.0)
        assert width == 10.0
        assert height == pytest.approx(5.0)


class TestBaseScale:
    """Tests for scene units per meter of elevation."""

    def test_normalized_quarter_of_width(self):
        assert compute_base_scale(0.0, 1000.0, 10.0, 0.0, False) == pytest.approx(0.0025)

    def test_normalized_flat_fallback(self):
        assert compute_base_scale(500.0, 500.0, 10.0, 0.0, False) == NORMALIZED_FALLBACK_SCALE

    def test_real_scale_uses_horizontal_distance(self):
        assert compute_base_scale(0.0, 1000.0, 10.0, 20000.0, True) == pytest.approx(0.0005)

    def test_real_scale_ignores_elevation_range(self):
        a = compute_base_scale(0.0, 10.0, 10.0, 20000.0, True)
        b = compute_base_scale(0.0, 4000.0, 10.0, 20000.0, True)
        assert a == b

    def test_real_scale_fallback(self):
        assert compute_base_scale(0.0, 1000.0, 10.0, 0.0, True) == REAL_SCALE_FALLBACK_SCALE


class TestScaleModel:

    def test_distances(self):
        model = ScaleModel(BoundingBox(0.0, -0.5, 1.0, 0.5))
        assert model.vertical_distance_meters == pytest.approx(111194.93, abs=0.5)
        # Mean latitude 0, so the east-west extent is one equatorial degree
        assert model.horizontal_distance_meters == pytest.approx(111194.93, abs=0.5)
        assert model.plane_height == pytest.approx(10.0)

    def test_real_scale_matches_plane(self):
        model = ScaleModel(BoundingBox(0.0, -0.5, 1.0, 0.5), plane_width=10.0)
        scale = model.base_scale(0.0, 1000.0, use_real_scale=True)
        assert scale == pytest.approx(10.0 / model.horizontal_distance_meters)

    def test_normalized_scene_units(self):
        heights = np.array([100.0, 600.0, 1100.0])
        scaled = ScaleModel.to_scene_units(heights, 100.0, 0.0025, 2.0, use_real_scale=False)
        assert np.allclose(scaled, [0.0, 2.5, 5.0])

    def test_real_scene_units_keep_sign(self):
        heights = np.array([-50.0, 0.0, 200.0])
        scaled = ScaleModel.to_scene_units(heights, -50.0, 0.001, 1.0, use_real_scale=True)
        assert np.allclose(scaled, [-0.05, 0.0, 0.2])
