"""Tests for the live camera matching loop with injected collaborators."""

import numpy as np
import pytest

from image_retrieval.errors import ConfigurationError
from image_retrieval.image_io import load_image
from image_retrieval.live import LiveMatcher, ESCAPE_KEY, CAMERA_WINDOW, MATCH_WINDOW

from conftest import solid


class FakeCamera:
    """Returns queued frames, then None."""

    def __init__(self, frames):
        self.frames = list(frames)

    def __call__(self):
        return self.frames.pop(0) if self.frames else None


class CountingLoader:

    def __init__(self):
        self.calls = 0

    def __call__(self, path):
        self.calls += 1
        return load_image(path)


@pytest.fixture
def matcher(image_database):
    return LiveMatcher(image_database["dir"], interval_ms=5)


class TestLiveMatcher:
    """Tests for LiveMatcher setup and single steps."""

    def test_library_described_once(self, image_database):
        loader = CountingLoader()
        live = LiveMatcher(image_database["dir"], loader=loader)
        # red.png, blue.png and the unreadable notes.txt
        assert loader.calls == 3
        assert len(live.library) == 2

    def test_step_finds_closest(self, matcher, red_image, blue_image):
        assert matcher.step(red_image).identifier.endswith("red.png")
        assert matcher.step(blue_image).identifier.endswith("blue.png")
        assert matcher.step(red_image).distance == 0.0

    def test_step_skips_undescribable_frame(self, matcher):
        assert matcher.step(np.zeros((0, 0, 3), dtype=np.uint8)) is None

    def test_library_dir_required(self):
        with pytest.raises(ConfigurationError, match="CBIR_LIBRARY_DIR"):
            LiveMatcher(None)

    def test_empty_library(self, tmp_path, red_image):
        live = LiveMatcher(str(tmp_path))
        assert live.step(red_image) is None


class TestLiveLoop:
    """Tests for the capture → match → show loop."""

    def test_runs_until_camera_stops(self, matcher, red_image, blue_image):
        shown = []
        frames = matcher.run(FakeCamera([red_image, blue_image]),
                             lambda window, image: shown.append((window, image)),
                             lambda ms: -1)
        assert frames == 2
        windows = [w for w, _ in shown]
        assert windows == [CAMERA_WINDOW, MATCH_WINDOW, CAMERA_WINDOW, MATCH_WINDOW]
        np.testing.assert_array_equal(shown[1][1], red_image)
        np.testing.assert_array_equal(shown[3][1], blue_image)

    def test_escape_cancels(self, matcher, red_image):
        keys = []

        def wait_key(ms):
            keys.append(ms)
            return ESCAPE_KEY

        frames = matcher.run(FakeCamera([red_image] * 5), lambda w, i: None, wait_key)
        assert frames == 1
        assert keys == [5]

    def test_library_not_recomputed_per_frame(self, image_database):
        loader = CountingLoader()
        live = LiveMatcher(image_database["dir"], loader=loader)
        before = loader.calls
        live.run(FakeCamera([solid((250, 0, 0))] * 3), lambda w, i: None, lambda ms: -1)
        # one load per frame to display the match, none for the library
        assert loader.calls - before == 3
