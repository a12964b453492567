"""
Image decoding and directory listing.

Thin wrappers around OpenCV so the rest of the package can work on
RGB uint8 arrays and raise package errors instead of checking for None.
"""

import os
import logging
from typing import List

import cv2
import numpy as np

from .errors import CandidateError, InputError

logger = logging.getLogger(__name__)


def normalize_image(image_np: np.ndarray) -> np.ndarray:
    """Ensure image is uint8."""
    if image_np.dtype != np.uint8:
        if image_np.size and image_np.max() <= 1.0:
            image_np = (image_np * 255).astype(np.uint8)
        else:
            image_np = image_np.astype(np.uint8)
    return image_np


def load_image(path: str) -> np.ndarray:
    """
    Decode an image file into an RGB uint8 array.

    Raises:
        CandidateError: If the file is missing or cannot be decoded.
    """
    image = cv2.imread(str(path))
    if image is None:
        raise CandidateError(f"Unable to read image {path}")
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def to_bgr(image_np: np.ndarray) -> np.ndarray:
    """Convert an RGB array back to OpenCV's channel order for display."""
    if image_np.ndim == 3 and image_np.shape[2] == 3:
        return cv2.cvtColor(image_np, cv2.COLOR_RGB2BGR)
    return image_np


def list_directory(path: str) -> List[str]:
    """
    List the regular files in a directory in sorted order.

    No extension filter is applied: unreadable entries surface as
    skipped candidates instead of disappearing silently.
    """
    if not os.path.isdir(path):
        raise InputError(f"Not a directory: {path}")

    entries = []
    for name in sorted(os.listdir(path)):
        full = os.path.join(path, name)
        if os.path.isfile(full):
            entries.append(full)

    logger.debug(f"Listed {len(entries)} files in {path}")
    return entries
