"""
Feature extractors.

Every extractor maps an RGB image to a descriptor through a single
`extract(image)` method. Configuration (bin count, patch size, region)
is fixed at construction so the target and every candidate in a run are
described identically.

Multi-part extractors (split regions, colour + texture) return a tuple
of arrays; single extractors return one array.
"""

import os
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from .histograms import (
    chromaticity_histogram, color_histogram, texture_histogram,
    CHROMA_BINS, COLOR_BINS, TEXTURE_BINS,
)
from .regions import RegionSelector, center_square, top_half, bottom_half, crop

logger = logging.getLogger(__name__)

# Side of the centered square used by the raw-patch extractor
PATCH_SIZE = int(os.environ.get("CBIR_PATCH_SIZE", "7"))

Descriptor = Union[np.ndarray, Tuple[np.ndarray, ...]]


class FeatureExtractor(ABC):
    """Deterministic, side-effect free image → descriptor mapping."""

    name = "extractor"

    @abstractmethod
    def extract(self, image_np: np.ndarray) -> Descriptor:
        """
        Describe an image.

        Raises:
            ExtractionError: On a degenerate region or too few channels.
        """
        raise NotImplementedError

    def __repr__(self):
        params = ", ".join(f"{k}={v!r}" for k, v in sorted(vars(self).items()))
        return f"{type(self).__name__}({params})"


class RawPatchExtractor(FeatureExtractor):
    """Flattened channel values of the centered size×size square, unnormalized."""

    name = "patch"

    def __init__(self, size: int = PATCH_SIZE):
        self.size = size

    def extract(self, image_np: np.ndarray) -> np.ndarray:
        patch = center_square(image_np, self.size).crop(image_np)
        return patch.astype(np.float64).reshape(-1)


class ChromaticityHistogramExtractor(FeatureExtractor):
    """2D histogram over two channels, optionally restricted to a region."""

    name = "chromaticity"

    def __init__(self, bins: int = CHROMA_BINS,
                 channels: Sequence[int] = (0, 1),
                 region: Optional[RegionSelector] = None):
        self.bins = bins
        self.channels = tuple(channels)
        self.region = region

    def extract(self, image_np: np.ndarray) -> np.ndarray:
        return chromaticity_histogram(crop(image_np, self.region),
                                      self.bins, self.channels)


class ColorHistogramExtractor(FeatureExtractor):
    """3D histogram over all three channels."""

    name = "color"

    def __init__(self, bins: int = COLOR_BINS,
                 region: Optional[RegionSelector] = None):
        self.bins = bins
        self.region = region

    def extract(self, image_np: np.ndarray) -> np.ndarray:
        return color_histogram(crop(image_np, self.region), self.bins)


class TextureHistogramExtractor(FeatureExtractor):
    """Unweighted histogram of gradient orientations in degrees."""

    name = "texture"

    def __init__(self, bins: int = TEXTURE_BINS,
                 region: Optional[RegionSelector] = None):
        self.bins = bins
        self.region = region

    def extract(self, image_np: np.ndarray) -> np.ndarray:
        return texture_histogram(crop(image_np, self.region), self.bins)


class SplitRegionExtractor(FeatureExtractor):
    """
    Run one extractor on the top and bottom halves of an image.

    The base extractor must describe whatever array it is given; any
    region it was configured with is ignored in favour of the halves.
    """

    name = "split"

    def __init__(self, base: FeatureExtractor):
        self.base = base

    def extract(self, image_np: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        top = top_half(image_np).crop(image_np)
        bottom = bottom_half(image_np).crop(image_np)
        return self.base.extract(top), self.base.extract(bottom)


class CompositeExtractor(FeatureExtractor):
    """Run several extractors on the same image and keep every descriptor."""

    name = "composite"

    def __init__(self, *parts: FeatureExtractor):
        if not parts:
            raise ValueError("CompositeExtractor needs at least one part")
        self.parts = parts

    def extract(self, image_np: np.ndarray) -> Tuple[np.ndarray, ...]:
        return tuple(part.extract(image_np) for part in self.parts)


def descriptor_shape(descriptor: Descriptor) -> tuple:
    """Shape of a descriptor; a tuple of shapes for multi-part descriptors."""
    if isinstance(descriptor, tuple):
        return tuple(np.shape(part) for part in descriptor)
    return np.shape(descriptor)
