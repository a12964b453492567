"""
Named retrieval variants.

Each variant is a Ranker built from one extractor and one distance:

    patch         centered 7x7 raw patch            sum of squared differences
    chromaticity  16-bin red/green histogram        chi-squared (or correlation)
    split         8-bin red/green, top + bottom     0.5 * chi2 + 0.5 * chi2
    texture       8-bin colour + 8-bin orientation  0.5 * chi2 + 0.5 * chi2

The cache-backed variants (cosine, combined) live in ranking.rank_cached
and ranking.rank_combined since their candidates are cache rows.
"""

import logging
from typing import Callable, Dict, Sequence

from .distances import DEFAULT_WEIGHTS, WeightedDistance, chi_squared, get_distance, ssd
from .errors import ConfigurationError
from .features import (
    PATCH_SIZE, ChromaticityHistogramExtractor, ColorHistogramExtractor,
    CompositeExtractor, RawPatchExtractor, SplitRegionExtractor,
    TextureHistogramExtractor,
)
from .histograms import CHROMA_BINS, COLOR_BINS, SPLIT_BINS, TEXTURE_BINS
from .ranking import WORKERS, Ranker

logger = logging.getLogger(__name__)


def patch_ranker(size: int = PATCH_SIZE, workers: int = WORKERS) -> Ranker:
    return Ranker(RawPatchExtractor(size), ssd, workers=workers)


def chromaticity_ranker(bins: int = CHROMA_BINS,
                        metric: str = "chi_squared",
                        workers: int = WORKERS) -> Ranker:
    return Ranker(ChromaticityHistogramExtractor(bins), get_distance(metric),
                  workers=workers)


def split_ranker(bins: int = SPLIT_BINS,
                 weights: Sequence[float] = DEFAULT_WEIGHTS,
                 workers: int = WORKERS) -> Ranker:
    extractor = SplitRegionExtractor(ChromaticityHistogramExtractor(bins))
    return Ranker(extractor, WeightedDistance(chi_squared, weights), workers=workers)


def texture_ranker(color_bins: int = COLOR_BINS,
                   texture_bins: int = TEXTURE_BINS,
                   weights: Sequence[float] = DEFAULT_WEIGHTS,
                   workers: int = WORKERS) -> Ranker:
    extractor = CompositeExtractor(
        ColorHistogramExtractor(color_bins),
        TextureHistogramExtractor(texture_bins),
    )
    return Ranker(extractor, WeightedDistance(chi_squared, weights), workers=workers)


VARIANTS: Dict[str, Callable[..., Ranker]] = {
    "patch": patch_ranker,
    "chromaticity": chromaticity_ranker,
    "split": split_ranker,
    "texture": texture_ranker,
}


def build_ranker(variant: str, **options) -> Ranker:
    """Build the ranker for a named variant; options go to its factory."""
    try:
        factory = VARIANTS[variant]
    except KeyError:
        raise ConfigurationError(
            f"Unknown variant {variant!r}; choose from {sorted(VARIANTS)}"
        ) from None
    ranker = factory(**options)
    logger.debug(f"Built {variant} ranker: {ranker.extractor!r} / {ranker.distance!r}")
    return ranker
