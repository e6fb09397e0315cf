"""Slider-captcha piece localisation by edge-map correlation."""

from .correlation import MatchStrategy, match_template, score_offsets
from .edges import adaptive_thresholds, canny
from .errors import (
    DecodeError,
    DimensionMismatchError,
    EmptyContentError,
    ImageReadError,
    ImageTooSmallError,
    NoValidOffsetError,
    SlideMatchError,
)
from .imaging import content_bounds, decode_image, to_grayscale
from .matcher import (
    assemble_bbox,
    improved_simple_slide_match,
    improved_simple_slide_match_with_path,
    improved_slide_match,
    improved_slide_match_with_path,
    simple_slide_match,
    simple_slide_match_with_path,
    slide_match,
    slide_match_with_path,
)
from .models import BoundingBox, CropRect, MatchOffset
from .version import __version__

__all__ = [
    "BoundingBox",
    "CropRect",
    "DecodeError",
    "DimensionMismatchError",
    "EmptyContentError",
    "ImageReadError",
    "ImageTooSmallError",
    "MatchOffset",
    "MatchStrategy",
    "NoValidOffsetError",
    "SlideMatchError",
    "adaptive_thresholds",
    "assemble_bbox",
    "canny",
    "content_bounds",
    "decode_image",
    "improved_simple_slide_match",
    "improved_simple_slide_match_with_path",
    "improved_slide_match",
    "improved_slide_match_with_path",
    "match_template",
    "score_offsets",
    "simple_slide_match",
    "simple_slide_match_with_path",
    "slide_match",
    "slide_match_with_path",
    "to_grayscale",
    "__version__",
]
