"""
Template matching of a piece edge map inside a background edge map.

Both strategies share one exhaustive offset scan scored with zero-mean
normalised cross-correlation:

    score(x, y) = sum((P - mean(P)) * (B_xy - mean(B_xy))) / (N * std(P) * std(B_xy))

where ``B_xy`` is the piece-sized background window at offset (x, y). The
cross term comes from ``cv2.matchTemplate`` and the window statistics from
integral images, so a scan costs O(Bw * Bh) window lookups instead of
O(Bw * Bh * Pw * Ph) pixel products. Windows with zero variance have no
defined score and are reported as ``-inf``.

``MatchStrategy.IMPROVED`` also drops windows whose edge density is well below
the piece's own edge density, so flat or nearly blank background regions
never compete with the real alignment.
"""

from __future__ import annotations

import enum
import logging

import cv2
import numpy as np

from .errors import DimensionMismatchError, NoValidOffsetError
from .models import MatchOffset

logger = logging.getLogger(__name__)

MIN_EDGE_DENSITY_RATIO = 0.25
_ENERGY_EPS = 1e-9
# float32 correlation leaves ~1e-7 noise between identical windows
SCORE_TIE_TOLERANCE = 1e-6


class MatchStrategy(enum.Enum):
    BASELINE = "baseline"
    IMPROVED = "improved"


def _as_grid(arr: np.ndarray, name: str) -> np.ndarray:
    grid = np.asarray(arr)
    if grid.ndim != 2:
        raise ValueError(f"{name} edge map must be 2-D, got shape {grid.shape}")
    return grid.astype(np.float64)


def _window_sums(grid: np.ndarray, ph: int, pw: int) -> np.ndarray:
    """Sum of every ph x pw window, indexed by the window's top-left corner."""
    h, w = grid.shape
    integral = np.zeros((h + 1, w + 1), dtype=np.float64)
    integral[1:, 1:] = grid.cumsum(axis=0).cumsum(axis=1)
    return (
        integral[ph:, pw:]
        - integral[:-ph, pw:]
        - integral[ph:, :-pw]
        + integral[:-ph, :-pw]
    )


def _density_mask(
    piece: np.ndarray, background: np.ndarray, ratio: float
) -> np.ndarray:
    ph, pw = piece.shape
    piece_edges = float(np.count_nonzero(piece))
    window_edges = _window_sums((background != 0).astype(np.float64), ph, pw)
    return window_edges >= ratio * piece_edges


def score_offsets(
    piece: np.ndarray,
    background: np.ndarray,
    strategy: MatchStrategy = MatchStrategy.BASELINE,
    min_density_ratio: float = MIN_EDGE_DENSITY_RATIO,
) -> np.ndarray:
    """
    Score every offset at which the piece fits inside the background.

    Args:
        piece: Piece edge map (Ph x Pw).
        background: Background edge map (Bh x Bw), at least as large as the
            piece in both axes.
        strategy: Scoring variant; IMPROVED adds the edge-density pre-filter.
        min_density_ratio: Fraction of the piece's edge count a window must
            reach to be scored under IMPROVED.

    Returns:
        ``float64`` array of shape (Bh - Ph + 1, Bw - Pw + 1) indexed [y, x].
        Scores lie in [-1, 1]; offsets without a defined score hold ``-inf``.

    Raises:
        DimensionMismatchError: If the piece is larger than the background.
        NoValidOffsetError: If the piece edge map is uniform.
    """
    P = _as_grid(piece, "piece")
    B = _as_grid(background, "background")
    ph, pw = P.shape
    bh, bw = B.shape
    if ph == 0 or pw == 0:
        raise NoValidOffsetError("Piece edge map is empty")
    if ph > bh or pw > bw:
        raise DimensionMismatchError(
            f"Piece {pw}x{ph} does not fit inside background {bw}x{bh}"
        )

    n = float(ph * pw)
    template = P - P.mean()
    template_norm = float(np.sqrt(np.sum(template * template)))
    if template_norm <= _ENERGY_EPS * max(float(np.sum(P * P)), 1.0):
        raise NoValidOffsetError("Piece edge map is uniform; nothing to correlate")

    cross = cv2.matchTemplate(
        B.astype(np.float32), template.astype(np.float32), cv2.TM_CCORR
    ).astype(np.float64)

    sums = _window_sums(B, ph, pw)
    sq_sums = _window_sums(B * B, ph, pw)
    window_energy = np.maximum(sq_sums - sums * sums / n, 0.0)
    valid = window_energy > _ENERGY_EPS * np.maximum(sq_sums, 1.0)

    if strategy is MatchStrategy.IMPROVED:
        filtered = valid & _density_mask(P, B, min_density_ratio)
        if filtered.any():
            logger.debug(
                "density pre-filter kept %d of %d scorable offsets",
                int(filtered.sum()),
                int(valid.sum()),
            )
            valid = filtered
        else:
            logger.debug(
                "density pre-filter rejected every offset; using baseline mask"
            )

    denom = template_norm * np.sqrt(window_energy)
    scores = np.full(cross.shape, -np.inf, dtype=np.float64)
    np.divide(cross, denom, out=scores, where=valid)
    scores[valid] = np.clip(scores[valid], -1.0, 1.0)
    return scores


def select_best(scores: np.ndarray) -> MatchOffset:
    """
    Pick the highest score; ties go to the top-most, then left-most offset.

    Scores within ``SCORE_TIE_TOLERANCE`` of the maximum count as tied, so
    identical windows resolve by position and not by float rounding in the
    correlation.

    Raises:
        NoValidOffsetError: If no offset has a defined score.
    """
    if scores.size == 0:
        raise NoValidOffsetError("No offsets to choose from")
    top = float(np.max(scores))
    if not np.isfinite(top):
        raise NoValidOffsetError(
            "No offset has a defined score - background edge map is featureless"
        )
    best = int(np.flatnonzero(scores >= top - SCORE_TIE_TOLERANCE)[0])
    y, x = divmod(best, scores.shape[1])
    return MatchOffset(x=int(x), y=int(y), score=float(scores[y, x]))


def match_template(
    piece: np.ndarray,
    background: np.ndarray,
    strategy: MatchStrategy = MatchStrategy.BASELINE,
    min_density_ratio: float = MIN_EDGE_DENSITY_RATIO,
) -> MatchOffset:
    scores = score_offsets(piece, background, strategy, min_density_ratio)
    best = select_best(scores)
    logger.debug(
        "%s match: best offset (%d, %d) score=%.4f",
        strategy.value,
        best.x,
        best.y,
        best.score,
    )
    return best
