"""
Live camera matching.

Library descriptors are computed once at startup and held read-only.
Every cycle captures a frame, describes it, finds the closest library
image by a full scan and shows it. The loop ends when the key callback
reports ESC, or when the camera stops delivering frames.

Camera, display and key handling are injected so the loop can run
without a camera or a window; run_camera() wires them to OpenCV.
"""

import os
import logging
from typing import Callable, Optional, Sequence

import cv2
import numpy as np

from .distances import chi_squared
from .errors import CandidateError, ConfigurationError, ExtractionError
from .features import ChromaticityHistogramExtractor, Descriptor, FeatureExtractor
from .image_io import list_directory, load_image, to_bgr
from .ranking import CandidateRecord, Match, closest

logger = logging.getLogger(__name__)

LIBRARY_DIR = os.environ.get("CBIR_LIBRARY_DIR")
INTERVAL_MS = int(os.environ.get("CBIR_LIVE_INTERVAL_MS", "1000"))
ESCAPE_KEY = 27

CAMERA_WINDOW = "Camera Feed"
MATCH_WINDOW = "Closest Image"


class LiveMatcher:
    """
    Match camera frames against a fixed image library.

    Args:
        library_dir: Directory of library images.
        extractor: Describes library images and frames.
        distance: Scores frame vs library descriptors.
        interval_ms: Delay between cycles, passed to the key callback.
        loader: Decodes library images.
    """

    def __init__(self, library_dir: str,
                 extractor: Optional[FeatureExtractor] = None,
                 distance: Callable[[Descriptor, Descriptor], float] = chi_squared,
                 interval_ms: int = INTERVAL_MS,
                 loader: Callable[[str], np.ndarray] = load_image):
        if not library_dir:
            raise ConfigurationError(
                "No library directory configured (pass one or set CBIR_LIBRARY_DIR)"
            )
        self.library_dir = library_dir
        self.extractor = extractor or ChromaticityHistogramExtractor()
        self.distance = distance
        self.interval_ms = interval_ms
        self.loader = loader
        self.library: Sequence[CandidateRecord] = self._describe_library()

    def _describe_library(self) -> Sequence[CandidateRecord]:
        library = []
        for path in list_directory(self.library_dir):
            try:
                library.append(CandidateRecord(path, self.extractor.extract(self.loader(path))))
            except CandidateError as e:
                logger.warning(f"Skipping library image {path}: {e}")
        logger.info(f"Described {len(library)} library images from {self.library_dir}")
        return tuple(library)

    def step(self, frame: np.ndarray) -> Optional[Match]:
        """Closest library image for one frame, or None if nothing matched."""
        try:
            descriptor = self.extractor.extract(frame)
        except ExtractionError as e:
            logger.warning(f"Skipping frame: {e}")
            return None
        return closest(descriptor, self.library, self.distance)

    def run(self,
            capture: Callable[[], Optional[np.ndarray]],
            show: Callable[[str, np.ndarray], None],
            wait_key: Callable[[int], int]) -> int:
        """
        Run until ESC is pressed or the camera returns no frame.

        Args:
            capture: Returns the next RGB frame, or None/empty when the
                camera has nothing more to give.
            show: Displays an RGB image in a named window.
            wait_key: Blocks up to the given milliseconds, returns the key.

        Returns:
            Number of frames processed.
        """
        frames = 0
        while True:
            frame = capture()
            if frame is None or frame.size == 0:
                logger.error("Unable to capture frame from camera")
                break
            show(CAMERA_WINDOW, frame)
            frames += 1

            match = self.step(frame)
            if match is not None:
                try:
                    show(MATCH_WINDOW, self.loader(match.identifier))
                except CandidateError as e:
                    logger.error(f"Unable to read closest image: {e}")
                logger.debug(f"Frame {frames}: {match.identifier} ({match.distance:.4f})")

            if wait_key(self.interval_ms) & 0xFF == ESCAPE_KEY:
                break

        logger.info(f"Live matching stopped after {frames} frames")
        return frames


def run_camera(matcher: LiveMatcher, camera_index: int = 0) -> int:
    """
    Drive a LiveMatcher from an OpenCV camera and windows.

    Raises:
        ConfigurationError: If the camera cannot be opened.
    """
    cap = cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        raise ConfigurationError(f"Unable to open camera {camera_index}")

    def capture():
        ok, frame = cap.read()
        if not ok or frame is None:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def show(window, image_np):
        cv2.imshow(window, to_bgr(image_np))

    try:
        return matcher.run(capture, show, cv2.waitKey)
    finally:
        cap.release()
        cv2.destroyAllWindows()
