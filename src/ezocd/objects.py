from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .coords import MapCoord
from .symbol import Symbol, TextSymbol


class HorizontalAlignment(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class VerticalAlignment(Enum):
    BASELINE = "baseline"
    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"


@dataclass(eq=False)
class MapObject:
    symbol: Symbol | None = None
    coords: list[MapCoord] = field(default_factory=list)


@dataclass(eq=False)
class PointObject(MapObject):
    rotation: float = 0.0

    @property
    def position(self) -> MapCoord:
        return self.coords[0]


@dataclass(eq=False)
class PathObject(MapObject):
    def parts(self) -> list[tuple[int, int]]:
        """Index ranges (inclusive) of the sub-paths separated by hole points."""
        ranges: list[tuple[int, int]] = []
        start = 0
        for index, coord in enumerate(self.coords):
            if coord.hole_point or index == len(self.coords) - 1:
                ranges.append((start, index))
                start = index + 1
        return ranges

    def close_part(self, part_index: int) -> None:
        start, end = self.parts()[part_index]
        first = self.coords[start]
        last = self.coords[end]
        if not last.position_equals(first):
            self.coords.insert(end + 1, MapCoord(first.x, first.y, hole_point=last.hole_point))
            last.hole_point = False
            last = self.coords[end + 1]
        last.close_point = True

    def is_part_closed(self, part_index: int) -> bool:
        _start, end = self.parts()[part_index]
        return self.coords[end].close_point


@dataclass(frozen=True)
class TextLineInfo:
    """Layout of one text line in text coordinates (mm, y down, origin at anchor)."""

    text: str
    line_x: float
    line_y: float
    width: float
    ascent: float
    descent: float


@dataclass(eq=False)
class TextObject(MapObject):
    text: str = ""
    rotation: float = 0.0
    horizontal_alignment: HorizontalAlignment = HorizontalAlignment.CENTER
    vertical_alignment: VerticalAlignment = VerticalAlignment.BASELINE
    box_size: tuple[int, int] | None = None

    @property
    def has_single_anchor(self) -> bool:
        return self.box_size is None

    @property
    def anchor(self) -> MapCoord:
        return self.coords[0]

    @property
    def box_width(self) -> int:
        return self.box_size[0] if self.box_size else 0

    @property
    def box_height(self) -> int:
        return self.box_size[1] if self.box_size else 0

    def set_anchor_position(self, x: int, y: int) -> None:
        self.coords = [MapCoord(x, y)]
        self.box_size = None

    def set_box(self, mid_x: int, mid_y: int, width: float, height: float) -> None:
        self.coords = [MapCoord(mid_x, mid_y)]
        self.box_size = (round(width), round(height))

    def layout(self) -> list[TextLineInfo]:
        symbol = self.symbol
        if not isinstance(symbol, TextSymbol) or not self.text:
            return []
        metrics = symbol.metrics()
        scale = metrics.internal_scaling
        ascent = metrics.ascent / scale
        descent = metrics.descent / scale
        spacing = symbol.line_spacing * metrics.line_spacing / scale
        lines = self.text.split("\n")
        total_height = ascent + (len(lines) - 1) * spacing + descent + symbol.paragraph_spacing * (len(lines) - 1)

        half_w = 0.0005 * self.box_width
        half_h = 0.0005 * self.box_height
        if self.vertical_alignment == VerticalAlignment.BASELINE:
            line_y = 0.0
        elif self.vertical_alignment == VerticalAlignment.TOP:
            line_y = -half_h + ascent
        elif self.vertical_alignment == VerticalAlignment.CENTER:
            line_y = -total_height / 2 + ascent
        else:
            line_y = half_h - total_height + ascent

        infos: list[TextLineInfo] = []
        for line in lines:
            width = metrics.text_width(line) / scale
            if self.horizontal_alignment == HorizontalAlignment.LEFT:
                line_x = -half_w
            elif self.horizontal_alignment == HorizontalAlignment.RIGHT:
                line_x = half_w - width
            else:
                line_x = -width / 2
            infos.append(TextLineInfo(line, line_x, line_y, width, ascent, descent))
            line_y += spacing + symbol.paragraph_spacing
        return infos
