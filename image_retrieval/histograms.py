"""
Colour and texture histogram extraction.

Three histogram families are computed from RGB uint8 images:
    - 2D chromaticity histogram over two channels (red × green by default)
    - 3D colour histogram over all three channels
    - 1D gradient-orientation (texture) histogram

All of them are min-max normalized so the fullest bin is 1.0 and the
emptiest is 0.0. This is not probability normalization: chi-squared
distances between these histograms depend on that scale.

Default bin counts are configurable via environment variables
(CBIR_CHROMA_BINS, CBIR_SPLIT_BINS, CBIR_COLOR_BINS, CBIR_TEXTURE_BINS).
"""

import os
import logging
from typing import Sequence

import cv2
import numpy as np

from .errors import ExtractionError
from .image_io import normalize_image

logger = logging.getLogger(__name__)

# Bin counts per axis. Higher values give finer colour discrimination
# but sparser histograms, which inflates chi-squared distances.
CHROMA_BINS = int(os.environ.get("CBIR_CHROMA_BINS", "16"))
SPLIT_BINS = int(os.environ.get("CBIR_SPLIT_BINS", "8"))
COLOR_BINS = int(os.environ.get("CBIR_COLOR_BINS", "8"))
TEXTURE_BINS = int(os.environ.get("CBIR_TEXTURE_BINS", "8"))

# Channel intensities are histogrammed over [0, 256); orientations over [0, 360)
CHANNEL_RANGE = [0, 256]
ANGLE_RANGE = (0.0, 360.0)


def min_max_normalize(hist: np.ndarray) -> np.ndarray:
    """
    Rescale a histogram so its minimum maps to 0.0 and its maximum to 1.0.

    A flat histogram (max == min) has no range to stretch and becomes
    all zeros, matching OpenCV's NORM_MINMAX.
    """
    hist = hist.astype(np.float32)
    lo = float(hist.min())
    hi = float(hist.max())
    if hi - lo <= 0:
        return np.zeros_like(hist)
    return (hist - lo) / np.float32(hi - lo)


def _check_image(image_np: np.ndarray, min_channels: int) -> None:
    if image_np.ndim < 2 or image_np.shape[0] == 0 or image_np.shape[1] == 0:
        raise ExtractionError(f"Cannot describe an empty image of shape {image_np.shape}")
    channels = 1 if image_np.ndim == 2 else image_np.shape[2]
    if channels < min_channels:
        raise ExtractionError(
            f"Image has {channels} channel(s), at least {min_channels} required"
        )


def _check_bins(bins: int) -> None:
    if bins < 1:
        raise ExtractionError(f"Bin count must be positive, got {bins}")


def chromaticity_histogram(image_np: np.ndarray,
                           bins: int = CHROMA_BINS,
                           channels: Sequence[int] = (0, 1)) -> np.ndarray:
    """
    Compute a min-max normalized 2D histogram over two channels.

    Each pixel falls into bin floor(value / (256 / bins)) on each axis,
    so intensities 0-255 always map to a valid bin.

    Args:
        image_np: RGB uint8 image (or region view).
        bins: Bins per axis.
        channels: The two channel indices to histogram (red, green).

    Returns:
        Float32 array of shape (bins, bins).
    """
    _check_bins(bins)
    if len(channels) != 2:
        raise ExtractionError(f"Chromaticity needs two channels, got {list(channels)}")
    _check_image(image_np, max(channels) + 1)

    image_np = np.ascontiguousarray(normalize_image(image_np))
    hist = cv2.calcHist([image_np], list(channels), None,
                        [bins, bins], CHANNEL_RANGE + CHANNEL_RANGE)
    return min_max_normalize(hist)


def color_histogram(image_np: np.ndarray, bins: int = COLOR_BINS) -> np.ndarray:
    """
    Compute a min-max normalized 3D histogram over all three channels.

    Returns:
        Float32 array of shape (bins, bins, bins).
    """
    _check_bins(bins)
    _check_image(image_np, 3)

    image_np = np.ascontiguousarray(normalize_image(image_np))
    hist = cv2.calcHist([image_np], [0, 1, 2], None,
                        [bins, bins, bins], CHANNEL_RANGE * 3)
    return min_max_normalize(hist)


def gradient_orientations(image_np: np.ndarray) -> tuple:
    """
    Per-pixel gradient magnitude and orientation (degrees, [0, 360)).

    Uses 3x3 Sobel first derivatives on the grayscale image.
    """
    _check_image(image_np, 1)
    image_np = normalize_image(image_np)

    if image_np.ndim == 3 and image_np.shape[2] >= 3:
        gray = cv2.cvtColor(np.ascontiguousarray(image_np[:, :, :3]), cv2.COLOR_RGB2GRAY)
    elif image_np.ndim == 3:
        gray = np.ascontiguousarray(image_np[:, :, 0])
    else:
        gray = image_np

    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    magnitude, angle = cv2.cartToPolar(gx, gy, angleInDegrees=True)
    return magnitude, angle


def texture_histogram(image_np: np.ndarray, bins: int = TEXTURE_BINS) -> np.ndarray:
    """
    Compute a min-max normalized histogram of gradient orientations.

    Every pixel counts once regardless of gradient magnitude, so flat
    areas (orientation 0) land in the first bin.

    Returns:
        Float32 array of shape (bins,).
    """
    _check_bins(bins)
    _, angle = gradient_orientations(image_np)

    # np.histogram closes the last bin, so a rounded 360.0 is kept in range
    hist, _ = np.histogram(angle, bins=bins, range=ANGLE_RANGE)
    return min_max_normalize(hist.astype(np.float32))
