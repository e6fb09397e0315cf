import numpy as np
import pytest

from slidematch.edges import (
    adaptive_thresholds,
    canny,
    hysteresis_threshold,
    non_maximum_suppression,
)
from slidematch.errors import ImageTooSmallError


def _vertical_step(size: int = 20) -> np.ndarray:
    gray = np.zeros((size, size), dtype=np.uint8)
    gray[:, size // 2 :] = 255
    return gray


@pytest.mark.unit
@pytest.mark.parametrize("shape", [(2, 5), (5, 2), (1, 1)])
def test_canny_rejects_tiny_grids(shape):
    with pytest.raises(ImageTooSmallError):
        canny(np.zeros(shape, dtype=np.uint8))


@pytest.mark.unit
def test_canny_accepts_minimum_grid():
    edges = canny(np.zeros((3, 3), dtype=np.uint8))
    assert edges.shape == (3, 3)
    assert not edges.any()


@pytest.mark.unit
def test_canny_uniform_image_has_no_edges():
    edges = canny(np.full((16, 24), 173, dtype=np.uint8))
    assert edges.shape == (16, 24)
    assert edges.dtype == np.uint8
    assert not edges.any()


@pytest.mark.unit
@pytest.mark.parametrize("sigma", [0.0, 1.4])
def test_canny_vertical_step(sigma):
    gray = _vertical_step(20)
    edges = canny(gray, 100.0, 200.0, sigma=sigma)

    assert edges.shape == gray.shape
    assert set(np.unique(edges).tolist()) <= {0, 255}
    _, cols = np.nonzero(edges)
    assert set(cols.tolist()) <= {9, 10}
    for row in range(1, 19):
        assert edges[row].any(), f"missing edge on row {row}"
    # outer ring is always suppressed
    assert not edges[0].any()
    assert not edges[-1].any()


@pytest.mark.unit
def test_canny_rejects_inverted_thresholds():
    with pytest.raises(ValueError):
        canny(_vertical_step(), low=200.0, high=100.0)


@pytest.mark.unit
def test_canny_rejects_colour_grid():
    with pytest.raises(ValueError):
        canny(np.zeros((8, 8, 3), dtype=np.uint8))


@pytest.mark.unit
def test_non_maximum_suppression_horizontal_gradient():
    profile = np.array([0, 1, 3, 5, 3, 1, 0], dtype=np.float32)
    magnitude = np.tile(profile, (5, 1))
    gx = np.ones_like(magnitude)
    gy = np.zeros_like(magnitude)

    thin = non_maximum_suppression(magnitude, gx, gy)
    assert np.array_equal(np.nonzero(thin[1:-1].any(axis=0))[0], [3])
    assert np.all(thin[1:-1, 3] == 5)
    assert not thin[0].any() and not thin[-1].any()


@pytest.mark.unit
def test_non_maximum_suppression_vertical_gradient():
    profile = np.array([0, 2, 6, 2, 0, 0], dtype=np.float32)
    magnitude = np.tile(profile[:, np.newaxis], (1, 6))
    gx = np.zeros_like(magnitude)
    gy = -np.ones_like(magnitude)

    thin = non_maximum_suppression(magnitude, gx, gy)
    rows, cols = np.nonzero(thin)
    assert set(rows.tolist()) == {2}
    assert set(cols.tolist()) == {1, 2, 3, 4}


@pytest.mark.unit
def test_hysteresis_promotes_connected_candidates():
    magnitude = np.zeros((7, 9), dtype=np.float32)
    magnitude[1, 1] = 250  # strong
    magnitude[2, 2] = 150  # diagonal neighbour of the strong pixel
    magnitude[3, 3] = 150
    magnitude[3, 4] = 100  # exactly the low threshold
    magnitude[5, 7] = 150  # isolated candidate
    magnitude[6, 0] = 99  # below low

    edges = hysteresis_threshold(magnitude, 100.0, 200.0)
    expected = {(1, 1), (2, 2), (3, 3), (3, 4)}
    assert set(zip(*map(lambda a: a.tolist(), np.nonzero(edges)))) == expected
    assert set(np.unique(edges).tolist()) == {0, 255}


@pytest.mark.unit
def test_hysteresis_strong_at_exact_high_threshold():
    magnitude = np.zeros((3, 3), dtype=np.float32)
    magnitude[1, 1] = 200
    edges = hysteresis_threshold(magnitude, 100.0, 200.0)
    assert edges[1, 1] == 255
    assert edges.sum() == 255


@pytest.mark.unit
def test_hysteresis_follows_long_chains():
    magnitude = np.zeros((40, 40), dtype=np.float32)
    magnitude[5, :] = 120
    magnitude[5:, 39] = 120
    magnitude[5, 0] = 240
    edges = hysteresis_threshold(magnitude, 100.0, 200.0)
    assert np.all(edges[5, :] == 255)
    assert np.all(edges[5:, 39] == 255)
    assert np.count_nonzero(edges) == 40 + 34


@pytest.mark.unit
def test_hysteresis_ignores_zero_magnitude_with_zero_low():
    magnitude = np.zeros((4, 4), dtype=np.float32)
    magnitude[1, 1] = 10
    edges = hysteresis_threshold(magnitude, 0.0, 5.0)
    assert np.count_nonzero(edges) == 1


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [
        (200, (200.0, 200.0)),
        (255, (250.0, 250.0)),
        (0, (0.0, 0.0)),
    ],
)
def test_adaptive_thresholds_uniform(value, expected):
    gray = np.full((10, 10), value, dtype=np.uint8)
    assert adaptive_thresholds(gray) == pytest.approx(expected)


@pytest.mark.unit
def test_adaptive_thresholds_two_tone():
    low, high = adaptive_thresholds(_vertical_step(20))
    assert low == pytest.approx(50.0)
    assert high == pytest.approx(250.0)


@pytest.mark.unit
def test_adaptive_thresholds_mid_contrast():
    gray = np.full((10, 10), 100, dtype=np.uint8)
    gray[:, 5:] = 140
    low, high = adaptive_thresholds(gray)
    assert low == pytest.approx(100.0)
    assert high == pytest.approx(160.0)
    assert low <= high
