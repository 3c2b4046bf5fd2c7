from __future__ import annotations

import math
from dataclasses import dataclass

# Bezier handle length approximating a quarter circle with one cubic segment.
BEZIER_KAPPA = 0.5522847498


@dataclass
class MapCoord:
    """Map position in 1/1000 mm with path flags. Y grows downwards."""

    x: int = 0
    y: int = 0
    curve_start: bool = False
    close_point: bool = False
    hole_point: bool = False
    dash_point: bool = False

    def position_equals(self, other: MapCoord) -> bool:
        return self.x == other.x and self.y == other.y

    def length_to(self, other: MapCoord) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def to_float(self) -> MapCoordF:
        return MapCoordF(float(self.x), float(self.y))


@dataclass(frozen=True)
class MapCoordF:
    x: float
    y: float

    def __add__(self, other: MapCoordF) -> MapCoordF:
        return MapCoordF(self.x + other.x, self.y + other.y)

    def __sub__(self, other: MapCoordF) -> MapCoordF:
        return MapCoordF(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> MapCoordF:
        return MapCoordF(self.x * factor, self.y * factor)

    __rmul__ = __mul__

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def normalized(self) -> MapCoordF:
        length = self.length()
        if length == 0.0:
            return self
        return MapCoordF(self.x / length, self.y / length)

    def angle(self) -> float:
        return math.atan2(self.y, self.x)

    def to_coord(self, *, curve_start: bool = False) -> MapCoord:
        return MapCoord(round(self.x), round(self.y), curve_start=curve_start)


def rotate_text_to_map(x: float, y: float, rotation: float) -> tuple[float, float]:
    """Rotate a text-space offset (y down) by a counter-clockwise map rotation."""
    cos_r = math.cos(rotation)
    sin_r = math.sin(rotation)
    return (x * cos_r + y * sin_r, -x * sin_r + y * cos_r)
