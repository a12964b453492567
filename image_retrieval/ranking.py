"""
Top-N ranking over a candidate set.

The ranker describes the target once, then scans every candidate:
decode → extract → distance. All (distance, identifier) pairs are kept,
stably sorted ascending and truncated to N. There is no early pruning
and no index; candidate sets are expected to be small batch databases.

Failure policy:
    - target cannot be read or described → InputError (fatal)
    - candidate cannot be read or described → warning, candidate skipped
    - candidate descriptor shape differs from the target's → fatal
    - cache problems (see feature_cache) → fatal
"""

import os
import math
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence

import numpy as np

from .distances import chi_squared, cosine, mean_distance
from .errors import CandidateError, ConfigurationError, ExtractionError, InputError
from .feature_cache import FeatureCache
from .features import (
    ChromaticityHistogramExtractor, Descriptor, FeatureExtractor, descriptor_shape,
)
from .image_io import list_directory, load_image

logger = logging.getLogger(__name__)

WORKERS = int(os.environ.get("CBIR_WORKERS", "1"))


class Match(NamedTuple):
    distance: float
    identifier: str


class CandidateRecord(NamedTuple):
    identifier: str
    descriptor: Descriptor


def rank_matches(matches: Iterable[Match], n: int) -> List[Match]:
    """
    Stable ascending sort by distance, truncated to the first n.

    Ties keep their discovery order. Fewer than n matches is not an error.
    """
    if n < 0:
        raise InputError(f"Number of matches must be non-negative, got {n}")
    return sorted(matches, key=lambda m: m.distance)[:n]


def _check_compatible(target: Descriptor, candidate: Descriptor, identifier: str) -> None:
    target_shape = descriptor_shape(target)
    candidate_shape = descriptor_shape(candidate)
    if target_shape != candidate_shape:
        raise ConfigurationError(
            f"Descriptor of {identifier} has shape {candidate_shape}, "
            f"target has {target_shape}"
        )


def _finite(distance: float, identifier: str) -> bool:
    if math.isfinite(distance):
        return True
    logger.warning(f"Skipping {identifier}: distance is {distance}")
    return False


class Ranker:
    """
    One extractor and one distance function applied to a candidate scan.

    Args:
        extractor: Describes target and candidates identically.
        distance: Scores a pair of descriptors (lower = closer).
        workers: Threads for the candidate scan. Results are merged in
            discovery order, so the output matches a sequential scan.
        loader: Decodes a candidate path into an image.
    """

    def __init__(self, extractor: FeatureExtractor,
                 distance: Callable[[Descriptor, Descriptor], float],
                 workers: int = WORKERS,
                 loader: Callable[[str], np.ndarray] = load_image):
        self.extractor = extractor
        self.distance = distance
        self.workers = max(1, int(workers))
        self.loader = loader

    def describe_target(self, target_image: np.ndarray) -> Descriptor:
        try:
            return self.extractor.extract(target_image)
        except ExtractionError as e:
            raise InputError(f"Unable to describe the target image: {e}") from e

    def score(self, target: Descriptor, path: str) -> Optional[Match]:
        """
        Distance from the target to one candidate image.

        Returns:
            Match, or None when the candidate was skipped.

        Raises:
            ConfigurationError: If the candidate's descriptor shape differs.
        """
        try:
            candidate = self.extractor.extract(self.loader(path))
        except CandidateError as e:
            logger.warning(f"Skipping {path}: {e}")
            return None

        _check_compatible(target, candidate, path)
        distance = self.distance(target, candidate)
        if not _finite(distance, path):
            return None
        return Match(float(distance), path)

    def scan(self, target: Descriptor, paths: Sequence[str]) -> List[Match]:
        """Score every candidate; skipped candidates are left out."""
        if self.workers > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                scored = list(executor.map(lambda p: self.score(target, p), paths))
        else:
            scored = [self.score(target, p) for p in paths]
        return [m for m in scored if m is not None]

    def rank_images(self, target_image: np.ndarray,
                    candidate_paths: Sequence[str],
                    n: int) -> List[Match]:
        target = self.describe_target(target_image)
        matches = self.scan(target, list(candidate_paths))
        results = rank_matches(matches, n)

        logger.info(
            f"Ranking complete: {len(candidate_paths)} candidates → "
            f"{len(matches)} scored → {len(results)} results"
        )
        return results

    def rank_directory(self, target_path: str, database_dir: str, n: int) -> List[Match]:
        """Rank every file in database_dir against the image at target_path."""
        try:
            target_image = self.loader(target_path)
        except CandidateError as e:
            raise InputError(f"Unable to read target image {target_path}") from e
        return self.rank_images(target_image, list_directory(database_dir), n)


def rank_cached(cache: FeatureCache, target_id: str, n: int) -> List[Match]:
    """
    Rank cache rows by cosine distance to the row named target_id.

    The target lookup happens before any distance is computed. The
    target itself is a candidate and normally ranks first at distance 0.

    Raises:
        NotFoundError: If target_id has no row.
        InputError: If the target vector has zero norm.
    """
    target = cache.lookup(target_id)
    if not np.any(target):
        raise InputError(f"Feature vector for {target_id!r} has zero norm")

    matches = []
    for row in cache:
        distance = cosine(target, row.vector)
        if _finite(distance, row.identifier):
            matches.append(Match(distance, row.identifier))

    results = rank_matches(matches, n)
    logger.info(
        f"Cached ranking complete: {len(cache)} rows → {len(results)} results"
    )
    return results


def rank_combined(cache: FeatureCache,
                  target_path: str,
                  database_dir: str,
                  n: int,
                  extractor: Optional[FeatureExtractor] = None,
                  loader: Callable[[str], np.ndarray] = load_image) -> List[Match]:
    """
    Rank cache rows by the mean of cosine (cached vectors) and
    chi-squared (chromaticity histograms computed from the images).

    The target vector is looked up by the base filename of target_path.
    Each row's image is read from database_dir/identifier; rows whose
    image cannot be read or described are skipped.
    """
    extractor = extractor or ChromaticityHistogramExtractor()

    target_vector = cache.lookup(os.path.basename(target_path))
    if not np.any(target_vector):
        raise InputError(f"Feature vector for {target_path!r} has zero norm")

    try:
        target_image = loader(target_path)
    except CandidateError as e:
        raise InputError(f"Unable to read target image {target_path}") from e
    try:
        target_hist = extractor.extract(target_image)
    except ExtractionError as e:
        raise InputError(f"Unable to describe the target image: {e}") from e

    matches = []
    for row in cache:
        feature_distance = cosine(target_vector, row.vector)

        try:
            hist = extractor.extract(loader(os.path.join(database_dir, row.identifier)))
        except CandidateError as e:
            logger.warning(f"Skipping {row.identifier}: {e}")
            continue

        _check_compatible(target_hist, hist, row.identifier)
        distance = mean_distance(feature_distance, chi_squared(target_hist, hist))
        if _finite(distance, row.identifier):
            matches.append(Match(distance, row.identifier))

    results = rank_matches(matches, n)
    logger.info(
        f"Combined ranking complete: {len(cache)} rows → "
        f"{len(matches)} scored → {len(results)} results"
    )
    return results


def closest(target: Descriptor,
            library: Sequence[CandidateRecord],
            distance: Callable[[Descriptor, Descriptor], float]) -> Optional[Match]:
    """Single nearest library entry; the first one wins on ties."""
    matches = []
    for record in library:
        _check_compatible(target, record.descriptor, record.identifier)
        d = distance(target, record.descriptor)
        if _finite(d, record.identifier):
            matches.append(Match(float(d), record.identifier))
    best = rank_matches(matches, 1)
    return best[0] if best else None
