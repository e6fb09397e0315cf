"""Create synthetic slider-captcha image pairs with a known answer."""

from __future__ import annotations

import io
import random
from dataclasses import dataclass
from typing import List, Tuple

from PIL import Image, ImageDraw

from .models import BoundingBox

CANVAS_COLOR = (128, 128, 128)
SHAPE_COLORS = [(0, 0, 0), (255, 255, 255)]
# Blank band kept around the drawn target shapes and around the target
# region; wider than the smoothing plus Sobel footprint.
CONTENT_MARGIN = 8
MAX_PLACEMENT_TRIES = 50

Box = Tuple[int, int, int, int]


@dataclass(frozen=True)
class SamplePair:
    piece_png: bytes
    opaque_piece_png: bytes
    background_png: bytes
    expected: BoundingBox


def _png_bytes(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def _overlaps(a: Box, b: Box) -> bool:
    return a[0] < b[2] and b[0] < a[2] and a[1] < b[3] and b[1] < a[3]


def _random_box(rng: random.Random, area: Box, min_side: int, max_side: int) -> Box:
    x0, y0, x1, y1 = area
    w = rng.randint(min_side, min(max_side, x1 - x0))
    h = rng.randint(min_side, min(max_side, y1 - y0))
    left = rng.randint(x0, x1 - w)
    top = rng.randint(y0, y1 - h)
    return left, top, left + w, top + h


def _draw_shape(
    draw: ImageDraw.ImageDraw, rng: random.Random, box: Box, kind: str
) -> None:
    color = rng.choice(SHAPE_COLORS)
    # PIL boxes are inclusive
    shape_box = [box[0], box[1], box[2] - 1, box[3] - 1]
    if kind == "rectangle":
        draw.rectangle(shape_box, fill=color)
    elif kind == "ellipse":
        draw.ellipse(shape_box, fill=color)
    else:
        draw.line(shape_box, fill=color, width=4)


def _draw_distractors(
    draw: ImageDraw.ImageDraw,
    rng: random.Random,
    size: Tuple[int, int],
    keepout: Box,
    count: int,
) -> List[Box]:
    width, height = size
    placed: List[Box] = []
    for _ in range(count):
        for _ in range(MAX_PLACEMENT_TRIES):
            box = _random_box(rng, (0, 0, width, height), 10, 30)
            if not _overlaps(box, keepout):
                _draw_shape(draw, rng, box, rng.choice(["rectangle", "ellipse"]))
                placed.append(box)
                break
    return placed


def make_sample_pair(
    seed: int = 0,
    size: Tuple[int, int] = (260, 160),
    piece_size: Tuple[int, int] = (48, 48),
    padding: int = 6,
    distractors: int = 4,
) -> SamplePair:
    """
    Draw a background with a textured target region and cut the piece from it.

    The piece is the target region surrounded by a fully transparent border of
    ``padding`` pixels. Random distractor shapes are kept well away from the
    target so the piece's edges appear unchanged in the background.

    Args:
        seed: Seed for every random choice; equal seeds give equal images.
        size: Background (width, height).
        piece_size: Size (width, height) of the piece's opaque content.
        padding: Width of the transparent border around the piece.
        distractors: Number of shapes drawn elsewhere on the background.

    Returns:
        A ``SamplePair`` with PNG bytes and the expected bounding box.
    """
    width, height = size
    pw, ph = piece_size
    if pw > width or ph > height:
        raise ValueError(f"Piece {pw}x{ph} does not fit in background {width}x{height}")
    if min(pw, ph) <= 2 * CONTENT_MARGIN + 8:
        raise ValueError(f"Piece {pw}x{ph} is too small to hold any shapes")

    rng = random.Random(seed)
    x1 = rng.randint(0, width - pw)
    y1 = rng.randint(0, height - ph)
    target: Box = (x1, y1, x1 + pw, y1 + ph)

    background = Image.new("RGB", size, CANVAS_COLOR)
    draw = ImageDraw.Draw(background)

    inner: Box = (
        x1 + CONTENT_MARGIN,
        y1 + CONTENT_MARGIN,
        x1 + pw - CONTENT_MARGIN,
        y1 + ph - CONTENT_MARGIN,
    )
    for kind in ("rectangle", "ellipse", "line"):
        _draw_shape(draw, rng, _random_box(rng, inner, 8, 24), kind)

    keepout: Box = (
        x1 - 2 * CONTENT_MARGIN,
        y1 - 2 * CONTENT_MARGIN,
        x1 + pw + 2 * CONTENT_MARGIN,
        y1 + ph + 2 * CONTENT_MARGIN,
    )
    _draw_distractors(draw, rng, size, keepout, distractors)

    content = background.crop(target)
    piece = Image.new("RGBA", (pw + 2 * padding, ph + 2 * padding), (0, 0, 0, 0))
    piece.paste(content.convert("RGBA"), (padding, padding))

    return SamplePair(
        piece_png=_png_bytes(piece),
        opaque_piece_png=_png_bytes(content),
        background_png=_png_bytes(background),
        expected=BoundingBox(
            target_x=padding,
            target_y=padding,
            x1=x1,
            y1=y1,
            x2=x1 + pw,
            y2=y1 + ph,
        ),
    )
