"""
Descriptor distance functions.

Every function scores dissimilarity between two descriptors of the same
shape (lower = more similar) and raises ShapeMismatchError otherwise.
Single-part metrics operate on arrays; WeightedDistance lifts one metric
to multi-part descriptors (split regions, colour + texture).

Heterogeneous scores (cosine on cached vectors, chi-squared on
histograms) are combined with mean_distance as-is. They live on
different scales and are deliberately not rescaled first.
"""

import os
import math
import logging
from typing import Callable, Dict, Sequence

import cv2
import numpy as np

from .errors import ConfigurationError, ShapeMismatchError

logger = logging.getLogger(__name__)

# Region / feature weights for the combined variants. Must sum to 1.0.
DEFAULT_WEIGHTS = (
    float(os.environ.get("CBIR_WEIGHT_FIRST", "0.5")),
    float(os.environ.get("CBIR_WEIGHT_SECOND", "0.5")),
)

DistanceFunction = Callable[[np.ndarray, np.ndarray], float]


def _check_shapes(a: np.ndarray, b: np.ndarray) -> None:
    if np.shape(a) != np.shape(b):
        raise ShapeMismatchError(
            f"Cannot compare descriptors of shape {np.shape(a)} and {np.shape(b)}"
        )


def ssd(a: np.ndarray, b: np.ndarray) -> float:
    """Sum of squared differences over raw vectors."""
    _check_shapes(a, b)
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return float(np.sum(diff * diff))


def chi_squared(a: np.ndarray, b: np.ndarray) -> float:
    """
    Chi-squared histogram distance: sum of (a - b)^2 / (a + b).

    Bins empty in both histograms contribute zero rather than being
    undefined, so the distance of a histogram to itself is exactly 0.
    """
    _check_shapes(a, b)
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    total = a + b
    mask = total != 0
    diff = a[mask] - b[mask]
    return float(np.sum(diff * diff / total[mask]))


def correlation(a: np.ndarray, b: np.ndarray) -> float:
    """
    1 - Pearson correlation of the flattened histograms, roughly in [0, 2].

    Uses OpenCV's HISTCMP_CORREL, which reports a correlation of 1 when
    either histogram is constant.
    """
    _check_shapes(a, b)
    a32 = np.ascontiguousarray(np.asarray(a, dtype=np.float32).reshape(-1))
    b32 = np.ascontiguousarray(np.asarray(b, dtype=np.float32).reshape(-1))
    return 1.0 - float(cv2.compareHist(a32, b32, cv2.HISTCMP_CORREL))


def cosine(a: np.ndarray, b: np.ndarray) -> float:
    """
    1 - cosine similarity.

    Returns:
        Distance in [0, 2], or NaN when either vector has zero norm.
        Callers are expected to guard against zero vectors.
    """
    _check_shapes(a, b)
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return math.nan
    # Rounding can push identical vectors a hair below zero
    return max(0.0, float(1.0 - np.dot(a, b) / (norm_a * norm_b)))


class WeightedDistance:
    """
    Convex combination of one metric applied part-by-part.

    `WeightedDistance(chi_squared)((top1, bottom1), (top2, bottom2))`
    is 0.5 * chi2(top1, top2) + 0.5 * chi2(bottom1, bottom2).
    """

    def __init__(self, metric: DistanceFunction,
                 weights: Sequence[float] = DEFAULT_WEIGHTS):
        weights = tuple(float(w) for w in weights)
        if not weights or any(w < 0 for w in weights):
            raise ConfigurationError(f"Weights must be non-negative, got {weights}")
        if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
            raise ConfigurationError(f"Weights must sum to 1.0, got {sum(weights)}")
        self.metric = metric
        self.weights = weights

    def __call__(self, a: Sequence[np.ndarray], b: Sequence[np.ndarray]) -> float:
        if len(a) != len(self.weights) or len(b) != len(self.weights):
            raise ShapeMismatchError(
                f"Expected {len(self.weights)}-part descriptors, "
                f"got {len(a)} and {len(b)}"
            )
        return float(sum(
            w * self.metric(part_a, part_b)
            for w, part_a, part_b in zip(self.weights, a, b)
        ))

    def __repr__(self):
        return f"WeightedDistance({self.metric.__name__}, weights={self.weights})"


def mean_distance(*scores: float) -> float:
    """Unweighted arithmetic mean of distances from different metrics."""
    if not scores:
        raise ValueError("mean_distance needs at least one score")
    return float(sum(scores) / len(scores))


DISTANCES: Dict[str, DistanceFunction] = {
    "ssd": ssd,
    "chi_squared": chi_squared,
    "correlation": correlation,
    "cosine": cosine,
}


def get_distance(name: str) -> DistanceFunction:
    try:
        return DISTANCES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown distance {name!r}; choose from {sorted(DISTANCES)}"
        ) from None
