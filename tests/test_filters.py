"""
Pytest tests for the artifact filters.
"""

import numpy as np
import pytest

from terrain_mapper.errors import ConfigError
from terrain_mapper.filters import (
    MAX_SPIKE_HEIGHT,
    CappingFilter,
    FilterMethod,
    HampelFilter,
    NoFilter,
    apply_terrain_filter,
    get_filter,
)
from terrain_mapper.heightfield import HeightField


class TestFilterMethod:
    """Tests for parsing filter labels."""

    @pytest.mark.parametrize("label,expected", [
        ("none", FilterMethod.NONE),
        ("capping", FilterMethod.CAPPING),
        ("median", FilterMethod.MEDIAN),
        ("hampel", FilterMethod.MEDIAN),
        (" Median ", FilterMethod.MEDIAN),
        (FilterMethod.CAPPING, FilterMethod.CAPPING),
    ])
    def test_known_labels(self, label, expected):
        assert FilterMethod.parse(label) is expected

    def test_unknown_label(self):
        with pytest.raises(ConfigError):
            FilterMethod.parse("gaussian")

    def test_get_filter_types(self):
        assert isinstance(get_filter("none"), NoFilter)
        assert isinstance(get_filter("capping"), CappingFilter)
        assert isinstance(get_filter("median"), HampelFilter)
        assert isinstance(get_filter("hampel"), HampelFilter)


class TestNoFilter:

    def test_returns_values_unchanged(self, spike_field):
        result = NoFilter().filter(spike_field)
        assert np.array_equal(result.values, spike_field.values)


class TestCappingFilter:
    """Tests for the fixed ceiling filter."""

    def test_everything_below_ceiling(self):
        values = np.array([[100.0, 3499.0], [3500.0, 7000.0]], dtype=np.float32)
        result = CappingFilter().filter(HeightField(values))
        assert result.values.max() <= MAX_SPIKE_HEIGHT

    def test_values_below_ceiling_unchanged(self):
        values = np.array([[-20.0, 100.0], [3499.5, 9000.0]], dtype=np.float32)
        result = CappingFilter().filter(HeightField(values))
        assert result.values[0, 0] == -20.0
        assert result.values[0, 1] == 100.0
        assert result.values[1, 0] == 3499.5
        assert result.values[1, 1] == MAX_SPIKE_HEIGHT

    def test_input_not_modified(self, spike_field):
        CappingFilter().filter(spike_field)
        assert spike_field.values[2, 2] == 5000.0

    def test_custom_ceiling(self, spike_field):
        result = CappingFilter(max_height=150.0).filter(spike_field)
        assert result.values.max() == 150.0


class TestHampelFilter:
    """Tests for median/MAD spike removal."""

    def test_spike_replaced_with_median(self, spike_field):
        hampel = HampelFilter()
        result = hampel.filter(spike_field)
        assert result.values[2, 2] == pytest.approx(100.0)
        assert hampel.last_replaced == 1

    def test_non_spikes_untouched(self, spike_field):
        result = HampelFilter().filter(spike_field)
        mask = np.ones((5, 5), dtype=bool)
        mask[2, 2] = False
        assert np.array_equal(result.values[mask], spike_field.values[mask])

    def test_flat_field_unchanged(self, flat_field):
        hampel = HampelFilter()
        result = hampel.filter(flat_field)
        assert np.array_equal(result.values, flat_field.values)
        assert hampel.last_replaced == 0

    def test_filter_is_stable_on_its_output(self, spike_field):
        hampel = HampelFilter()
        once = hampel.filter(spike_field)
        twice = hampel.filter(once)
        assert np.array_equal(once.values, twice.values)

    def test_small_raster_left_alone(self):
        """A 2x2 raster never has enough samples for a reliable MAD."""
        values = np.array([[100.0, 100.0], [100.0, 9000.0]], dtype=np.float32)
        result = HampelFilter().filter(HeightField(values))
        assert np.array_equal(result.values, values)

    def test_corner_spike_with_enough_samples(self):
        """The 3x3 corner window holds exactly min_samples pixels."""
        values = np.full((6, 6), 100.0, dtype=np.float32)
        values[0, 0] = 5000.0
        result = HampelFilter().filter(HeightField(values))
        assert result.values[0, 0] == pytest.approx(100.0)

    def test_corner_spike_below_min_samples(self):
        values = np.full((6, 6), 100.0, dtype=np.float32)
        values[0, 0] = 5000.0
        result = HampelFilter(min_samples=10).filter(HeightField(values))
        assert result.values[0, 0] == 5000.0

    def test_gentle_slope_preserved(self):
        ramp = np.tile(np.arange(12, dtype=np.float32) * 10.0, (12, 1))
        result = HampelFilter().filter(HeightField(ramp))
        assert np.allclose(result.values, ramp)

    def test_block_size_does_not_change_result(self):
        rng = np.random.default_rng(3)
        values = rng.normal(500.0, 5.0, size=(20, 15)).astype(np.float32)
        values[4, 7] = 4000.0
        values[15, 2] = -3000.0
        a = HampelFilter(block_rows=1).filter(HeightField(values))
        b = HampelFilter(block_rows=64).filter(HeightField(values))
        assert np.array_equal(a.values, b.values)
        assert a.values[4, 7] < 1000.0
        assert a.values[15, 2] > 0.0

    def test_even_window_rejected(self):
        with pytest.raises(ValueError):
            HampelFilter(window=4)


class TestApplyTerrainFilter:

    def test_dispatches_by_label(self, spike_field):
        assert apply_terrain_filter(spike_field, "none").values[2, 2] == 5000.0
        assert apply_terrain_filter(spike_field, "capping").values[2, 2] == MAX_SPIKE_HEIGHT
        assert apply_terrain_filter(spike_field, "median").values[2, 2] == pytest.approx(100.0)
