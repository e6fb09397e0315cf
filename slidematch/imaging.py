"""
Pixel-level helpers: decoding compressed bytes into pixel grids, cropping a
piece to its visible content and reducing colour grids to grayscale.

Grids are plain numpy arrays in row-major (height, width[, channels]) order
with RGB(A) channel order. Every helper returns a new array and never
modifies its input.
"""

from __future__ import annotations

import io
import logging
import os
from typing import Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, EmptyContentError, ImageReadError
from .models import CropRect

logger = logging.getLogger(__name__)

ALPHA_THRESHOLD = 0
_ALPHA_MODES = {"RGBA", "RGBa", "LA", "La", "PA"}


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in _ALPHA_MODES or "transparency" in img.info


def read_image_bytes(path: Union[str, os.PathLike], role: str) -> bytes:
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as exc:
        raise ImageReadError(role, f"cannot read {os.fspath(path)}: {exc}") from exc


def decode_image(data: bytes, role: str) -> np.ndarray:
    """
    Decode compressed image bytes into an RGB or RGBA pixel grid.

    Any format Pillow can open is accepted; for animated formats only the
    first frame is used. Images that carry transparency (alpha band, palette
    or tRNS transparency) are returned as RGBA, everything else as RGB.

    Args:
        data: The raw, still-compressed image bytes.
        role: Which input the bytes belong to ("piece" or "background");
            attached to any error raised.

    Returns:
        A ``uint8`` array of shape (H, W, 3) or (H, W, 4).

    Raises:
        DecodeError: If the bytes are empty, corrupt, truncated or in a
            format Pillow cannot read.
    """
    if not data:
        raise DecodeError(role, "empty image buffer")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.seek(0)
            img.load()
            mode = "RGBA" if _has_alpha(img) else "RGB"
            pixels = np.array(img.convert(mode), dtype=np.uint8)
    except (
        UnidentifiedImageError,
        OSError,
        EOFError,
        SyntaxError,
        ValueError,
        Image.DecompressionBombError,
    ) as exc:
        raise DecodeError(role, str(exc) or type(exc).__name__) from exc
    if pixels.ndim != 3 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise DecodeError(role, f"decoded to an empty grid {pixels.shape}")
    logger.debug(
        "decoded %s image: %dx%d %s", role, pixels.shape[1], pixels.shape[0], mode
    )
    return pixels


def full_rect(pixels: np.ndarray) -> CropRect:
    h, w = pixels.shape[:2]
    return CropRect(offset_x=0, offset_y=0, width=int(w), height=int(h))


def content_bounds(
    pixels: np.ndarray, alpha_threshold: int = ALPHA_THRESHOLD
) -> CropRect:
    """
    Compute the tightest rectangle holding every pixel with alpha above the
    threshold.

    Grids without an alpha channel yield the full-grid rectangle.

    Raises:
        EmptyContentError: If no pixel has alpha above ``alpha_threshold``.
    """
    if pixels.ndim != 3 or pixels.shape[2] < 4:
        return full_rect(pixels)
    ys, xs = np.where(pixels[:, :, 3] > alpha_threshold)
    if len(xs) == 0:
        raise EmptyContentError(
            f"Crop failed: piece has no pixel with alpha > {alpha_threshold}"
        )
    x0, y0 = int(xs.min()), int(ys.min())
    return CropRect(
        offset_x=x0,
        offset_y=y0,
        width=int(xs.max()) - x0 + 1,
        height=int(ys.max()) - y0 + 1,
    )


def crop_to_rect(pixels: np.ndarray, rect: CropRect) -> np.ndarray:
    y0, x0 = rect.offset_y, rect.offset_x
    return pixels[y0 : y0 + rect.height, x0 : x0 + rect.width].copy()


def to_grayscale(pixels: np.ndarray) -> np.ndarray:
    """Reduce an RGB(A) grid to Rec.601 luma; alpha is ignored."""
    if pixels.ndim == 2:
        return pixels.astype(np.uint8, copy=True)
    channels = pixels.shape[2]
    if channels == 4:
        code = cv2.COLOR_RGBA2GRAY
    elif channels == 3:
        code = cv2.COLOR_RGB2GRAY
    else:
        raise ValueError(f"Unsupported channel count: {channels}")
    return cv2.cvtColor(np.ascontiguousarray(pixels, dtype=np.uint8), code)
