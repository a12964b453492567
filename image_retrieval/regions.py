"""
Rectangular sub-windows of an image.

A Region is an immutable (x, y, width, height) value checked against the
image it will crop. Cropping returns a numpy view, so the source image is
never copied or modified.
"""

import logging
from typing import NamedTuple, Callable, Optional

import numpy as np

from .errors import ExtractionError

logger = logging.getLogger(__name__)


class Region(NamedTuple):
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def within(cls, image_np: np.ndarray, x: int, y: int,
               width: int, height: int) -> "Region":
        """
        Build a region and validate it against the image bounds.

        Raises:
            ExtractionError: If the region is empty or leaves the image.
        """
        h, w = image_np.shape[:2]
        if width <= 0 or height <= 0:
            raise ExtractionError(
                f"Degenerate region {width}x{height} in {w}x{h} image"
            )
        if x < 0 or y < 0 or x + width > w or y + height > h:
            raise ExtractionError(
                f"Region ({x}, {y}, {width}, {height}) exceeds "
                f"image bounds {w}x{h}"
            )
        return cls(x, y, width, height)

    def crop(self, image_np: np.ndarray) -> np.ndarray:
        return image_np[self.y:self.y + self.height, self.x:self.x + self.width]


# Selects a region for a given image; None means the whole image.
RegionSelector = Callable[[np.ndarray], Region]


def center_square(image_np: np.ndarray, size: int) -> Region:
    """Square of side `size` whose top-left corner is ((W-size)//2, (H-size)//2)."""
    h, w = image_np.shape[:2]
    if size > w or size > h:
        raise ExtractionError(
            f"Image {w}x{h} is smaller than the {size}x{size} patch"
        )
    return Region.within(image_np, (w - size) // 2, (h - size) // 2, size, size)


def top_half(image_np: np.ndarray) -> Region:
    h, w = image_np.shape[:2]
    return Region.within(image_np, 0, 0, w, h // 2)


def bottom_half(image_np: np.ndarray) -> Region:
    # Same height as the top half; the last row of an odd-height image is dropped
    h, w = image_np.shape[:2]
    return Region.within(image_np, 0, h // 2, w, h // 2)


def crop(image_np: np.ndarray, selector: Optional[RegionSelector]) -> np.ndarray:
    if selector is None:
        return image_np
    return selector(image_np).crop(image_np)
