"""
Canny-style edge extraction for the slide matcher.

The four classic stages run in sequence on a grayscale grid: Sobel gradients
(after Gaussian pre-smoothing), non-maximum suppression along the quantised
gradient direction, double thresholding and hysteresis edge tracking. The
output is a binary 0/255 ``uint8`` edge map with the same shape as the input.

Border policy: smoothing and Sobel use clamp-to-edge (``BORDER_REPLICATE``),
and the outermost one-pixel ring of the map is always suppressed.
"""

from __future__ import annotations

import logging
from typing import Tuple

import cv2
import numpy as np

from .errors import ImageTooSmallError

logger = logging.getLogger(__name__)

# ---------- configuration ----------
CANNY_LOW = 100.0
CANNY_HIGH = 200.0
GAUSSIAN_SIGMA = 1.4
KERNEL_SIZE = 3
BORDER_MODE = cv2.BORDER_REPLICATE

ADAPTIVE_LOW_FLOOR = 50.0
ADAPTIVE_HIGH_CEIL = 250.0

# (dy, dx) neighbour pairs for the 0, 45, 90 and 135 degree sectors; y grows downwards.
_SECTOR_NEIGHBOURS = (
    ((0, 1), (0, -1)),
    ((1, 1), (-1, -1)),
    ((1, 0), (-1, 0)),
    ((1, -1), (-1, 1)),
)


def _check_grid(gray: np.ndarray) -> None:
    if gray.ndim != 2:
        raise ValueError(f"Expected a single-channel grid, got shape {gray.shape}")
    h, w = gray.shape
    if h < KERNEL_SIZE or w < KERNEL_SIZE:
        raise ImageTooSmallError(
            f"Image {w}x{h} is smaller than the "
            f"{KERNEL_SIZE}x{KERNEL_SIZE} gradient kernel"
        )


def sobel_gradients(
    gray: np.ndarray, sigma: float = GAUSSIAN_SIGMA
) -> Tuple[np.ndarray, np.ndarray]:
    """Return float32 (gx, gy) Sobel responses of the optionally smoothed grid."""
    _check_grid(gray)
    src = gray.astype(np.float32)
    if sigma > 0:
        src = cv2.GaussianBlur(
            src, (0, 0), sigmaX=sigma, sigmaY=sigma, borderType=BORDER_MODE
        )
    gx = cv2.Sobel(src, cv2.CV_32F, 1, 0, ksize=KERNEL_SIZE, borderType=BORDER_MODE)
    gy = cv2.Sobel(src, cv2.CV_32F, 0, 1, ksize=KERNEL_SIZE, borderType=BORDER_MODE)
    return gx, gy


def non_maximum_suppression(
    magnitude: np.ndarray, gx: np.ndarray, gy: np.ndarray
) -> np.ndarray:
    """
    Thin gradient ridges to one pixel.

    Each pixel's gradient direction is quantised to one of four sectors and
    the pixel keeps its magnitude only if it is at least as large as both
    neighbours along that direction. Border pixels are always zeroed.
    """
    h, w = magnitude.shape
    padded = np.pad(magnitude, 1, mode="constant")

    def _shifted(dy: int, dx: int) -> np.ndarray:
        return padded[1 + dy : h + 1 + dy, 1 + dx : w + 1 + dx]

    angle = np.degrees(np.arctan2(gy, gx)) % 180.0
    sector = ((angle + 22.5) // 45.0).astype(np.int32) % 4

    keep = np.zeros((h, w), dtype=bool)
    for idx, (ahead, behind) in enumerate(_SECTOR_NEIGHBOURS):
        keep |= (
            (sector == idx)
            & (magnitude >= _shifted(*ahead))
            & (magnitude >= _shifted(*behind))
        )

    thin = np.where(keep, magnitude, 0).astype(np.float32)
    thin[0, :] = 0
    thin[-1, :] = 0
    thin[:, 0] = 0
    thin[:, -1] = 0
    return thin


def hysteresis_threshold(magnitude: np.ndarray, low: float, high: float) -> np.ndarray:
    """
    Double-threshold a magnitude map and keep weak edges attached to strong ones.

    Pixels >= ``high`` are strong edges; pixels in [``low``, ``high``) are
    candidates that survive only when 8-connected to a strong edge, either
    directly or through other surviving candidates. Tracking walks an explicit
    stack over flat per-pixel buffers.

    Returns:
        A ``uint8`` map holding 255 on edges and 0 elsewhere.
    """
    if low > high:
        raise ValueError(f"Low threshold {low} exceeds high threshold {high}")
    height, width = magnitude.shape
    flat = np.asarray(magnitude, dtype=np.float64).ravel()
    nonzero = flat > 0
    candidate = bytearray(((flat >= low) & nonzero).astype(np.uint8).tobytes())
    edges = bytearray(height * width)

    stack = np.flatnonzero((flat >= high) & nonzero).tolist()
    for idx in stack:
        edges[idx] = 255

    while stack:
        idx = stack.pop()
        y, x = divmod(idx, width)
        for ny in range(max(y - 1, 0), min(y + 2, height)):
            row = ny * width
            for nx in range(max(x - 1, 0), min(x + 2, width)):
                n = row + nx
                if candidate[n] and not edges[n]:
                    edges[n] = 255
                    stack.append(n)

    return np.frombuffer(edges, dtype=np.uint8).reshape(height, width)


def canny(
    gray: np.ndarray,
    low: float = CANNY_LOW,
    high: float = CANNY_HIGH,
    sigma: float = GAUSSIAN_SIGMA,
) -> np.ndarray:
    """
    Run the full edge pipeline on a grayscale grid.

    Args:
        gray: 2-D intensity grid, at least 3x3.
        low: Candidate threshold on the L2 gradient magnitude.
        high: Strong-edge threshold on the L2 gradient magnitude.
        sigma: Gaussian pre-smoothing; 0 disables it.

    Returns:
        Binary 0/255 ``uint8`` edge map of the same shape.

    Raises:
        ImageTooSmallError: If the grid is smaller than 3x3.
        ValueError: If ``low`` exceeds ``high`` or the grid is not 2-D.
    """
    if low > high:
        raise ValueError(f"Low threshold {low} exceeds high threshold {high}")
    gx, gy = sobel_gradients(gray, sigma)
    magnitude = np.hypot(gx, gy)
    thin = non_maximum_suppression(magnitude, gx, gy)
    return hysteresis_threshold(thin, low, high)


def adaptive_thresholds(gray: np.ndarray) -> Tuple[float, float]:
    """
    Derive (low, high) Canny thresholds from the grid's intensity statistics.

    ``low = mean - std`` (floored at 50) and ``high = mean + 2 * std``
    (capped at 250); ``low`` never exceeds ``high``.
    """
    values = np.asarray(gray, dtype=np.float64)
    mean = float(values.mean())
    std = float(values.std())
    low = max(mean - std, 0.0, ADAPTIVE_LOW_FLOOR)
    high = min(mean + 2.0 * std, 255.0, ADAPTIVE_HIGH_CEIL)
    low = min(low, high)
    logger.debug(
        "adaptive thresholds: mean=%.1f std=%.1f -> low=%.1f high=%.1f",
        mean,
        std,
        low,
        high,
    )
    return low, high
