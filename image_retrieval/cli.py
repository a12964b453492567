#!/usr/bin/env python3
"""Command-line interface for image_retrieval."""

import argparse
import logging
import os
import sys
from typing import List, Optional

import cv2

from .errors import RetrievalError
from .feature_cache import FEATURE_DIM, build_feature_cache, load_feature_cache
from .features import PATCH_SIZE, ChromaticityHistogramExtractor
from .histograms import CHROMA_BINS, COLOR_BINS, SPLIT_BINS, TEXTURE_BINS
from .live import INTERVAL_MS, LIBRARY_DIR, LiveMatcher, run_camera
from .pipelines import build_ranker
from .ranking import WORKERS, Match, rank_cached, rank_combined

logger = logging.getLogger(__name__)

LOG_LEVEL = os.environ.get("CBIR_LOG_LEVEL", "INFO")


class ArgumentParser(argparse.ArgumentParser):
    """argparse parser that reports usage errors with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {n}")
    return n


def print_path_matches(matches: List[Match], n: int) -> None:
    print(f"Top {n} matches:")
    for match in matches:
        print(f"{match.identifier} (Distance: {match.distance:g})")


def print_distance_matches(matches: List[Match]) -> None:
    for match in matches:
        print(f"Distance: {match.distance:g}, Image: {match.identifier}")


def display_matches(target_path: Optional[str], matches: List[Match]) -> None:
    """Show the ranked images (and the target) until a key is pressed."""
    for i, match in enumerate(matches, start=1):
        image = cv2.imread(match.identifier)
        if image is None:
            logger.error(f"Unable to read image {match.identifier}")
            continue
        cv2.imshow(f"Closest Image {i}", image)
    if target_path:
        target = cv2.imread(target_path)
        if target is not None:
            cv2.imshow("Target Image", target)
    cv2.waitKey(0)
    cv2.destroyAllWindows()


def run_image_variant(args) -> int:
    options = {"workers": args.workers}
    if args.command == "patch":
        options["size"] = args.patch_size
    elif args.command == "chromaticity":
        options.update(bins=args.bins, metric=args.metric)
    elif args.command == "split":
        options["bins"] = args.bins
    elif args.command == "texture":
        options.update(color_bins=args.bins, texture_bins=args.texture_bins)

    ranker = build_ranker(args.command, **options)
    matches = ranker.rank_directory(args.target, args.database_dir, args.n)

    if args.command in ("patch", "chromaticity"):
        print_path_matches(matches, args.n)
    else:
        print_distance_matches(matches)

    if args.display:
        display_matches(args.target, matches)
    return 0


def run_cosine(args) -> int:
    cache = load_feature_cache(args.feature_csv, dim=args.dim)
    print_distance_matches(rank_cached(cache, args.target_filename, args.n))
    return 0


def run_combined(args) -> int:
    cache = load_feature_cache(args.feature_csv, dim=args.dim)
    matches = rank_combined(cache, args.target, args.database_dir, args.n,
                            extractor=ChromaticityHistogramExtractor(args.bins))
    print_distance_matches(matches)
    return 0


def run_live(args) -> int:
    matcher = LiveMatcher(args.library,
                          extractor=ChromaticityHistogramExtractor(args.bins),
                          interval_ms=args.interval_ms)
    run_camera(matcher, args.camera)
    return 0


def run_build_cache(args) -> int:
    summary = build_feature_cache(args.image_dir, args.output_csv,
                                  ChromaticityHistogramExtractor(args.bins))
    print(f"Wrote {summary['rows']} rows ({summary['dimensions']}d) to {summary['path']}")
    return 0


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="cbir",
        description="Rank database images by visual similarity to a target",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--workers", type=positive_int, default=max(1, WORKERS),
                        help="Threads for the candidate scan")
    parser.add_argument("--log-level", default=LOG_LEVEL,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging verbosity (logs go to stderr)")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    def image_command(name, help_text, bins=None):
        p = sub.add_parser(name, help=help_text,
                           formatter_class=argparse.ArgumentDefaultsHelpFormatter)
        p.add_argument("target", help="Path to the target image")
        p.add_argument("database_dir", help="Directory of candidate images")
        p.add_argument("n", type=positive_int, help="Number of matches to return")
        if bins is not None:
            p.add_argument("--bins", type=positive_int, default=bins,
                           help="Histogram bins per axis")
        p.add_argument("--no-display", dest="display", action="store_false",
                       help="Only print the ranked list")
        p.set_defaults(func=run_image_variant)
        return p

    p = image_command("patch", "Centered 7x7 patch, sum of squared differences")
    p.add_argument("--patch-size", type=positive_int, default=PATCH_SIZE,
                   help="Side of the centered square patch")

    p = image_command("chromaticity", "Red/green histogram, chi-squared", CHROMA_BINS)
    p.add_argument("--metric", choices=["chi_squared", "correlation"],
                   default="chi_squared", help="Histogram distance")

    image_command("split", "Top/bottom red/green histograms", SPLIT_BINS)

    p = image_command("texture", "Colour + gradient-orientation histograms", COLOR_BINS)
    p.add_argument("--texture-bins", type=positive_int, default=TEXTURE_BINS,
                   help="Orientation histogram bins")

    p = sub.add_parser("cosine", help="Cosine distance over cached feature vectors",
                       formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    p.add_argument("feature_csv", help="Feature cache CSV")
    p.add_argument("target_filename", help="Identifier of the target row (e.g. pic.0164.jpg)")
    p.add_argument("n", type=positive_int, help="Number of matches to return")
    p.add_argument("--dim", type=positive_int, default=FEATURE_DIM,
                   help="Feature values per row")
    p.set_defaults(func=run_cosine)

    p = sub.add_parser("combined", help="Mean of cached cosine and histogram chi-squared",
                       formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    p.add_argument("feature_csv", help="Feature cache CSV")
    p.add_argument("target", help="Path to the target image")
    p.add_argument("database_dir", help="Directory holding the cached images")
    p.add_argument("n", type=positive_int, help="Number of matches to return")
    p.add_argument("--dim", type=positive_int, default=FEATURE_DIM,
                   help="Feature values per row")
    p.add_argument("--bins", type=positive_int, default=CHROMA_BINS,
                   help="Histogram bins per axis")
    p.set_defaults(func=run_combined)

    p = sub.add_parser("live", help="Match camera frames against an image library",
                       formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    p.add_argument("--library", default=LIBRARY_DIR,
                   help="Library image directory (CBIR_LIBRARY_DIR)")
    p.add_argument("--camera", type=int, default=0, help="Camera index")
    p.add_argument("--interval-ms", type=positive_int, default=INTERVAL_MS,
                   help="Refresh interval; press ESC to stop")
    p.add_argument("--bins", type=positive_int, default=CHROMA_BINS,
                   help="Histogram bins per axis")
    p.set_defaults(func=run_live)

    p = sub.add_parser("build-cache", help="Write a feature cache from a directory",
                       formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    p.add_argument("image_dir", help="Directory of images")
    p.add_argument("output_csv", help="Cache file to write")
    p.add_argument("--bins", type=positive_int, default=CHROMA_BINS,
                   help="Histogram bins per axis")
    p.set_defaults(func=run_build_cache)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns 0 on success, 1 on any fatal error."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    try:
        return args.func(args)
    except RetrievalError as e:
        logger.debug("Fatal error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
