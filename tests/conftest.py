import matplotlib
import numpy as np
import pytest

matplotlib.use('Agg')


@pytest.fixture
def rgb_pixels():
    """A `(height, width, 3)` test image with smooth structure plus noise."""
    rng = np.random.default_rng(42)
    height, width = 24, 32
    y, x = np.mgrid[0:height, 0:width]
    base = 128 + 60 * np.sin(x / 5)[..., np.newaxis] * np.cos(y / 7)[..., np.newaxis] * np.array([1.0, 0.6, -0.8])
    noisy = base + rng.normal(0, 10, size=(height, width, 3))
    return np.clip(np.rint(noisy), 0, 255).astype(np.uint8)
