"""
Slider-captcha matcher: locates a puzzle piece inside its background image.

Every entry point runs the same pipeline on two compressed image buffers
(or file paths): decode, crop the piece to its visible content, reduce both
images to grayscale, extract Canny edges and correlate the piece edge map
against the background edge map. The result is a ``BoundingBox`` in
background coordinates.

The "simple" variants skip the transparency crop; the "improved" variants
use per-image adaptive Canny thresholds with the density-filtered matcher
and fall back to the fixed thresholds when the best score is not convincing.
"""

from __future__ import annotations

import logging
import os
import time
from typing import List, Optional, Tuple, Union

import numpy as np

from .correlation import MatchStrategy, match_template
from .edges import CANNY_HIGH, CANNY_LOW, GAUSSIAN_SIGMA, adaptive_thresholds, canny
from .errors import DimensionMismatchError, NoValidOffsetError
from .imaging import (
    ALPHA_THRESHOLD,
    content_bounds,
    crop_to_rect,
    decode_image,
    full_rect,
    read_image_bytes,
    to_grayscale,
)
from .models import BoundingBox, CropRect, MatchOffset

logger = logging.getLogger(__name__)

# ---------- configuration ----------
DEFAULT_CONFIDENCE_THRESHOLD = 0.3
PROFILE_ENV = "SLIDEMATCH_PROFILE"

PathLike = Union[str, os.PathLike]


class _Profiler:
    def __init__(self) -> None:
        value = os.getenv(PROFILE_ENV, "").strip().lower()
        self.enabled = value not in ("", "0", "false", "no")
        self.start = time.perf_counter()
        self.marks: List[Tuple[str, float]] = []

    def mark(self, label: str) -> None:
        if self.enabled:
            self.marks.append((label, time.perf_counter()))

    def report(self) -> None:
        if not self.enabled:
            return
        prev = self.start
        parts = []
        for label, ts in self.marks:
            parts.append(f"{label}={((ts - prev) * 1000.0):.2f}ms")
            prev = ts
        parts.append(f"total={((time.perf_counter() - self.start) * 1000.0):.2f}ms")
        logger.info("matcher profile: %s", " ".join(parts))


def assemble_bbox(
    rect: CropRect, offset: MatchOffset, piece_shape: Tuple[int, int]
) -> BoundingBox:
    ph, pw = piece_shape[:2]
    return BoundingBox(
        target_x=rect.offset_x,
        target_y=rect.offset_y,
        x1=offset.x,
        y1=offset.y,
        x2=offset.x + int(pw),
        y2=offset.y + int(ph),
    )


def _ensure_fits(piece: np.ndarray, background: np.ndarray) -> None:
    ph, pw = piece.shape[:2]
    bh, bw = background.shape[:2]
    if bw < pw:
        raise DimensionMismatchError(
            f"Background width {bw} must be at least the piece width {pw}"
        )
    if bh < ph:
        raise DimensionMismatchError(
            f"Background height {bh} must be at least the piece height {ph}"
        )


def _check_confidence(confidence_threshold: float) -> float:
    value = float(confidence_threshold)
    if not 0.0 <= value <= 1.0:
        raise ValueError(
            "Confidence threshold must be within [0.0, 1.0], "
            f"got {confidence_threshold}"
        )
    return value


def _edge_pair(
    piece_gray: np.ndarray,
    background_gray: np.ndarray,
    adaptive: bool,
) -> Tuple[np.ndarray, np.ndarray]:
    if adaptive:
        piece_low, piece_high = adaptive_thresholds(piece_gray)
        bg_low, bg_high = adaptive_thresholds(background_gray)
    else:
        piece_low, piece_high = CANNY_LOW, CANNY_HIGH
        bg_low, bg_high = CANNY_LOW, CANNY_HIGH
    piece_edges = canny(piece_gray, piece_low, piece_high, GAUSSIAN_SIGMA)
    background_edges = canny(background_gray, bg_low, bg_high, GAUSSIAN_SIGMA)
    return piece_edges, background_edges


def _improved_offset(
    piece_gray: np.ndarray,
    background_gray: np.ndarray,
    confidence_threshold: float,
    profiler: _Profiler,
) -> MatchOffset:
    offset: Optional[MatchOffset] = None
    piece_edges, background_edges = _edge_pair(
        piece_gray, background_gray, adaptive=True
    )
    profiler.mark("edges")
    try:
        offset = match_template(piece_edges, background_edges, MatchStrategy.IMPROVED)
    except NoValidOffsetError as exc:
        if isinstance(exc, DimensionMismatchError):
            raise
        logger.debug("adaptive pass found no valid offset: %s", exc)
    profiler.mark("match")

    if offset is not None and offset.score > confidence_threshold:
        return offset

    logger.debug(
        "score %s <= confidence %.3f; retrying with fixed thresholds %.0f/%.0f",
        "n/a" if offset is None else f"{offset.score:.4f}",
        confidence_threshold,
        CANNY_LOW,
        CANNY_HIGH,
    )
    piece_edges, background_edges = _edge_pair(
        piece_gray, background_gray, adaptive=False
    )
    profiler.mark("fallback_edges")
    offset = match_template(piece_edges, background_edges, MatchStrategy.IMPROVED)
    profiler.mark("fallback_match")
    return offset


def _run_match(
    piece_bytes: bytes,
    background_bytes: bytes,
    crop: bool,
    improved: bool,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> BoundingBox:
    profiler = _Profiler()

    piece = decode_image(piece_bytes, role="piece")
    background = decode_image(background_bytes, role="background")
    profiler.mark("decode")
    _ensure_fits(piece, background)

    rect = content_bounds(piece, ALPHA_THRESHOLD) if crop else full_rect(piece)
    if crop:
        logger.debug(
            "piece content starts at (%d, %d), size %dx%d",
            rect.offset_x,
            rect.offset_y,
            rect.width,
            rect.height,
        )
        piece = crop_to_rect(piece, rect)
    profiler.mark("crop")

    piece_gray = to_grayscale(piece)
    background_gray = to_grayscale(background)
    profiler.mark("grayscale")

    if improved:
        offset = _improved_offset(
            piece_gray, background_gray, confidence_threshold, profiler
        )
    else:
        piece_edges, background_edges = _edge_pair(
            piece_gray, background_gray, adaptive=False
        )
        profiler.mark("edges")
        offset = match_template(piece_edges, background_edges, MatchStrategy.BASELINE)
        profiler.mark("match")

    bbox = assemble_bbox(rect, offset, piece_gray.shape)
    profiler.report()
    return bbox


# ---------- public API ----------
def slide_match(piece_image: bytes, background_image: bytes) -> BoundingBox:
    """Locate a piece with a transparent border inside its background."""
    return _run_match(piece_image, background_image, crop=True, improved=False)


def simple_slide_match(piece_image: bytes, background_image: bytes) -> BoundingBox:
    """Locate an opaque piece; ``target_x`` and ``target_y`` are always 0."""
    return _run_match(piece_image, background_image, crop=False, improved=False)


def improved_slide_match(
    piece_image: bytes,
    background_image: bytes,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> BoundingBox:
    """
    Locate a piece with adaptive edge thresholds and the density-filtered matcher.

    Args:
        piece_image: Compressed bytes of the piece (transparent border allowed).
        background_image: Compressed bytes of the background.
        confidence_threshold: Minimum score (0.0-1.0) the adaptive pass must
            beat; otherwise the match is redone with the fixed thresholds.

    Returns:
        The matched ``BoundingBox``.

    Raises:
        ValueError: If ``confidence_threshold`` is outside [0.0, 1.0].
        SlideMatchError: For any decode, crop or matching failure.
    """
    threshold = _check_confidence(confidence_threshold)
    return _run_match(
        piece_image,
        background_image,
        crop=True,
        improved=True,
        confidence_threshold=threshold,
    )


def improved_simple_slide_match(
    piece_image: bytes,
    background_image: bytes,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> BoundingBox:
    threshold = _check_confidence(confidence_threshold)
    return _run_match(
        piece_image,
        background_image,
        crop=False,
        improved=True,
        confidence_threshold=threshold,
    )


def slide_match_with_path(
    piece_path: PathLike, background_path: PathLike
) -> BoundingBox:
    return slide_match(
        read_image_bytes(piece_path, "piece"),
        read_image_bytes(background_path, "background"),
    )


def simple_slide_match_with_path(
    piece_path: PathLike, background_path: PathLike
) -> BoundingBox:
    return simple_slide_match(
        read_image_bytes(piece_path, "piece"),
        read_image_bytes(background_path, "background"),
    )


def improved_slide_match_with_path(
    piece_path: PathLike,
    background_path: PathLike,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> BoundingBox:
    threshold = _check_confidence(confidence_threshold)
    return improved_slide_match(
        read_image_bytes(piece_path, "piece"),
        read_image_bytes(background_path, "background"),
        threshold,
    )


def improved_simple_slide_match_with_path(
    piece_path: PathLike,
    background_path: PathLike,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> BoundingBox:
    threshold = _check_confidence(confidence_threshold)
    return improved_simple_slide_match(
        read_image_bytes(piece_path, "piece"),
        read_image_bytes(background_path, "background"),
        threshold,
    )
