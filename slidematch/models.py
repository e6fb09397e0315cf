from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Dict


@dataclass(frozen=True)
class CropRect:
    offset_x: int
    offset_y: int
    width: int
    height: int


@dataclass(frozen=True)
class MatchOffset:
    x: int
    y: int
    score: float


@dataclass(frozen=True)
class BoundingBox:
    """
    Final match result in background coordinates.

    ``target_x``/``target_y`` is where the piece's visible content starts
    inside the piece image (zero when cropping was skipped), and
    ``(x1, y1)-(x2, y2)`` is the matched rectangle inside the background.
    """

    target_x: int
    target_y: int
    x1: int
    y1: int
    x2: int
    y2: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
