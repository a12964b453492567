"""Shared test fixtures for image retrieval tests."""

import numpy as np
import cv2
import pytest

from image_retrieval.errors import CandidateError


def solid(color, size=10):
    """Generate a size×size RGB image filled with one colour."""
    img = np.zeros((size, size, 3), dtype=np.uint8)
    img[:, :] = color
    return img


def write_rgb(path, image_np):
    """Write an RGB image to disk in OpenCV's BGR order."""
    cv2.imwrite(str(path), cv2.cvtColor(image_np, cv2.COLOR_RGB2BGR))
    return str(path)


def make_loader(images):
    """In-memory replacement for load_image keyed by path."""
    def loader(path):
        if path not in images:
            raise CandidateError(f"Unable to read image {path}")
        return images[path]
    return loader


@pytest.fixture
def red_image():
    """Generate a 10x10 solid red image."""
    return solid((255, 0, 0))


@pytest.fixture
def blue_image():
    """Generate a 10x10 solid blue image."""
    return solid((0, 0, 255))


@pytest.fixture
def split_image():
    """Generate a 20x20 image: red top half, green bottom half."""
    img = np.zeros((20, 20, 3), dtype=np.uint8)
    img[:10] = [255, 0, 0]
    img[10:] = [0, 255, 0]
    return img


@pytest.fixture
def checkerboard_image():
    """Generate a 40x40 gray checkerboard with strong edges."""
    img = np.ones((40, 40, 3), dtype=np.uint8) * 200
    for y in range(0, 40, 10):
        for x in range(0, 40, 10):
            if (x // 10 + y // 10) % 2 == 0:
                img[y:y + 10, x:x + 10] = [50, 50, 50]
    return img


@pytest.fixture
def noise_image():
    """Generate a 32x32 random noise image."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 255, (32, 32, 3), dtype=np.uint8)


@pytest.fixture
def image_database(tmp_path, red_image, blue_image):
    """
    A directory with red.png, blue.png and an undecodable notes.txt,
    plus a red target image stored outside it.
    """
    db = tmp_path / "db"
    db.mkdir()
    write_rgb(db / "red.png", red_image)
    write_rgb(db / "blue.png", blue_image)
    (db / "notes.txt").write_text("not an image")
    target = write_rgb(tmp_path / "target.png", red_image)
    return {"dir": str(db), "target": target}


def cache_line(identifier, vector):
    return ",".join([identifier] + [str(v) for v in vector])


@pytest.fixture
def unit_cache(tmp_path):
    """512-d cache with a.jpg = e0 and b.jpg = e1."""
    a = [1] + [0] * 511
    b = [0, 1] + [0] * 510
    path = tmp_path / "features.csv"
    path.write_text(
        cache_line('"a.jpg"', a) + "\n" + cache_line('"b.jpg"', b) + "\n"
    )
    return str(path)
