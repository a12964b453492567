"""Tests for chromaticity, colour and texture histograms."""

import numpy as np
import pytest

from image_retrieval.errors import ExtractionError
from image_retrieval.histograms import (
    chromaticity_histogram, color_histogram, texture_histogram,
    gradient_orientations, min_max_normalize,
)


class TestMinMaxNormalize:
    """Tests for min-max histogram normalization."""

    def test_maps_range_to_unit_interval(self):
        hist = min_max_normalize(np.array([2, 4, 6], dtype=np.float32))
        np.testing.assert_allclose(hist, [0.0, 0.5, 1.0])

    def test_maximum_is_exactly_one(self):
        hist = min_max_normalize(np.array([3, 7, 10, 4], dtype=np.float32))
        assert hist.max() == 1.0
        assert hist.min() == 0.0

    def test_flat_histogram_becomes_zeros(self):
        hist = min_max_normalize(np.full(5, 3.0, dtype=np.float32))
        assert np.all(hist == 0)

    def test_output_dtype(self):
        assert min_max_normalize(np.arange(4)).dtype == np.float32


class TestChromaticityHistogram:
    """Tests for the two-channel histogram."""

    def test_output_shape(self, red_image):
        assert chromaticity_histogram(red_image, bins=16).shape == (16, 16)

    def test_solid_red_fills_one_bin(self, red_image):
        hist = chromaticity_histogram(red_image, bins=16)
        assert hist[15, 0] == 1.0
        assert hist.sum() == 1.0

    def test_bin_index_is_floor_of_value(self):
        img = np.zeros((4, 4, 3), dtype=np.uint8)
        img[:, :] = [31, 32, 0]
        hist = chromaticity_histogram(img, bins=8)
        # 256 / 8 = 32 per bin: 31 → bin 0, 32 → bin 1
        assert hist[0, 1] == 1.0

    def test_values_in_unit_interval(self, noise_image):
        hist = chromaticity_histogram(noise_image, bins=16)
        assert hist.max() == pytest.approx(1.0)
        assert hist.min() >= 0.0

    def test_selected_channels(self, blue_image):
        hist = chromaticity_histogram(blue_image, bins=4, channels=(1, 2))
        assert hist[0, 3] == 1.0

    def test_works_on_region_view(self, split_image):
        hist = chromaticity_histogram(split_image[10:], bins=8)
        assert hist[0, 7] == 1.0

    def test_grayscale_rejected(self):
        gray = np.zeros((10, 10), dtype=np.uint8)
        with pytest.raises(ExtractionError, match="channel"):
            chromaticity_histogram(gray)

    def test_empty_image_rejected(self):
        with pytest.raises(ExtractionError):
            chromaticity_histogram(np.zeros((0, 10, 3), dtype=np.uint8))


class TestColorHistogram:
    """Tests for the three-channel histogram."""

    def test_output_shape(self, noise_image):
        assert color_histogram(noise_image, bins=8).shape == (8, 8, 8)

    def test_solid_blue_fills_one_bin(self, blue_image):
        hist = color_histogram(blue_image, bins=8)
        assert hist[0, 0, 7] == 1.0
        assert hist.sum() == 1.0

    def test_two_channel_image_rejected(self):
        with pytest.raises(ExtractionError):
            color_histogram(np.zeros((5, 5, 2), dtype=np.uint8))


class TestTextureHistogram:
    """Tests for the gradient orientation histogram."""

    def test_output_shape(self, checkerboard_image):
        assert texture_histogram(checkerboard_image, bins=8).shape == (8,)

    def test_flat_image_counts_in_first_bin(self, red_image):
        hist = texture_histogram(red_image, bins=8)
        assert hist[0] == 1.0
        assert np.all(hist[1:] == 0)

    def test_edges_spread_orientations(self, checkerboard_image):
        hist = texture_histogram(checkerboard_image, bins=8)
        assert np.count_nonzero(hist) > 1

    def test_normalized(self, noise_image):
        hist = texture_histogram(noise_image, bins=8)
        assert hist.max() == pytest.approx(1.0)
        assert 0.0 <= hist.min()

    def test_accepts_grayscale(self):
        gray = np.zeros((10, 10), dtype=np.uint8)
        gray[:, 5:] = 255
        assert texture_histogram(gray, bins=4).shape == (4,)

    def test_orientations_in_degrees(self, noise_image):
        magnitude, angle = gradient_orientations(noise_image)
        assert magnitude.shape == angle.shape == noise_image.shape[:2]
        assert angle.min() >= 0.0
        assert angle.max() <= 360.0

    def test_invalid_bin_count(self, red_image):
        with pytest.raises(ExtractionError):
            texture_histogram(red_image, bins=0)
