"""Error kinds raised by the slide matcher. All of them are terminal."""

from __future__ import annotations


class SlideMatchError(RuntimeError):
    """Base class for every failure of a match call."""


class DecodeError(SlideMatchError):
    """The pixel source could not turn the bytes of one input into pixels."""

    def __init__(self, role: str, reason: str):
        self.role = role
        self.reason = reason
        super().__init__(f"Failed to load {role} image: {reason}")


class ImageReadError(DecodeError):
    """The bytes of one input could not be read from disk."""


class EmptyContentError(SlideMatchError):
    """The piece is fully transparent."""


class ImageTooSmallError(SlideMatchError):
    """The grid is smaller than the 3x3 gradient kernel."""


class NoValidOffsetError(SlideMatchError):
    """No alignment of the piece inside the background has a defined score."""


class DimensionMismatchError(NoValidOffsetError):
    """The background is smaller than the piece in at least one axis."""
