"""
Precomputed feature cache (CSV).

Each row is `identifier, v1, v2, ..., vK`: the base filename of an
indexed image followed by K numeric feature values (K = 512 by default,
CBIR_FEATURE_DIM). The cosine-distance variants read vectors from this
table instead of recomputing them.

Loading is fail-fast: the first short or non-numeric row aborts the
whole load with MalformedCacheError. This is the opposite of candidate
images, which are skipped one by one.
"""

import os
import csv
import logging
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

import numpy as np

from .errors import CacheError, CandidateError, MalformedCacheError, NotFoundError
from .features import FeatureExtractor
from .image_io import list_directory, load_image

logger = logging.getLogger(__name__)

FEATURE_DIM = int(os.environ.get("CBIR_FEATURE_DIM", "512"))


class FeatureCacheRow(NamedTuple):
    identifier: str
    vector: np.ndarray


class FeatureCache:
    """Rows of a loaded feature cache, kept in file order."""

    def __init__(self, rows: List[FeatureCacheRow], dim: int):
        self.rows = rows
        self.dim = dim
        self._index: Dict[str, int] = {}
        for i, row in enumerate(rows):
            # First occurrence wins, like a top-to-bottom scan
            self._index.setdefault(row.identifier, i)

    def __len__(self):
        return len(self.rows)

    def __iter__(self) -> Iterator[FeatureCacheRow]:
        return iter(self.rows)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._index

    def lookup(self, identifier: str) -> np.ndarray:
        """
        Return the vector whose identifier matches exactly (extension included).

        Raises:
            NotFoundError: If no row has this identifier.
        """
        try:
            return self.rows[self._index[identifier]].vector
        except KeyError:
            raise NotFoundError(
                f"Feature vector not found for {identifier!r}"
            ) from None


def read_csv(path: str) -> Iterator[Tuple[int, List[str]]]:
    """Yield (line number, fields) for each non-blank row of a CSV file."""
    try:
        with open(path, 'r', newline='', encoding='utf-8') as f:
            for line_no, fields in enumerate(csv.reader(f), start=1):
                if not fields or all(not field.strip() for field in fields):
                    continue
                yield line_no, fields
    except OSError as e:
        raise CacheError(f"Unable to open feature cache {path}: {e}") from e


def parse_row(fields: List[str], dim: int, line_no: int = 0) -> FeatureCacheRow:
    """
    Parse one cache row into an identifier and a float32 vector.

    Fields beyond the first `dim` values are ignored.

    Raises:
        MalformedCacheError: If the row is short or holds a non-number.
    """
    if len(fields) < dim + 1:
        raise MalformedCacheError(
            f"Line {line_no}: expected {dim + 1} fields, found {len(fields)}"
        )
    identifier = fields[0]
    try:
        vector = np.array([float(v) for v in fields[1:dim + 1]], dtype=np.float32)
    except ValueError as e:
        raise MalformedCacheError(f"Line {line_no}: {e}") from e
    return FeatureCacheRow(identifier, vector)


def load_feature_cache(path: str, dim: int = FEATURE_DIM) -> FeatureCache:
    """
    Load every row of a feature cache.

    Args:
        path: CSV file written by an external feature extractor or by
            build_feature_cache().
        dim: Number of feature values expected after the identifier.

    Returns:
        FeatureCache with rows in file order.

    Raises:
        CacheError: If the file cannot be opened.
        MalformedCacheError: On the first malformed row; nothing is returned.
    """
    rows = [parse_row(fields, dim, line_no) for line_no, fields in read_csv(path)]
    logger.info(f"Loaded feature cache: {len(rows)} rows, {dim}d vectors from {path}")
    return FeatureCache(rows, dim)


def build_feature_cache(image_dir: str,
                        output_path: str,
                        extractor: FeatureExtractor) -> dict:
    """
    Describe every image in a directory and write the vectors as a cache.

    Descriptors are flattened, so any single-part extractor can populate
    a cache. Identifiers are base filenames; rows follow sorted filename
    order. Unreadable images are skipped.

    Returns:
        Dict with 'rows', 'dimensions', 'errors' counts and 'path'.
    """
    written = 0
    errors = 0
    dim: Optional[int] = None

    paths = list_directory(image_dir)
    logger.info(f"Building feature cache from {len(paths)} files in {image_dir}")

    parent = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(parent, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        for path in paths:
            filename = os.path.basename(path)
            try:
                vector = np.asarray(extractor.extract(load_image(path))).reshape(-1)
            except CandidateError as e:
                logger.warning(f"Skipping {filename}: {e}")
                errors += 1
                continue

            if dim is None:
                dim = vector.size
            elif vector.size != dim:
                logger.warning(
                    f"Skipping {filename}: {vector.size}d vector, expected {dim}d"
                )
                errors += 1
                continue

            writer.writerow([filename] + [repr(float(v)) for v in vector])
            written += 1

    logger.info(
        f"Feature cache built: {written} rows, {dim or 0}d vectors, "
        f"{errors} errors → {output_path}"
    )

    return {
        "rows": written,
        "dimensions": dim or 0,
        "errors": errors,
        "path": output_path,
    }
