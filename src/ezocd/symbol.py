from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Iterator, Sequence

from .coords import MapCoord
from .fonts import FontMetrics, font_metrics

if TYPE_CHECKING:
    from .map import MapColor

_HTML_TAG = re.compile(r"<[^>]+>")


class SymbolType(Enum):
    POINT = "point"
    LINE = "line"
    AREA = "area"
    TEXT = "text"
    COMBINED = "combined"


class CapStyle(Enum):
    FLAT = "flat"
    ROUND = "round"
    SQUARE = "square"
    POINTED = "pointed"


class JoinStyle(Enum):
    BEVEL = "bevel"
    MITER = "miter"
    ROUND = "round"


class FramingMode(Enum):
    NONE = "none"
    SHADOW = "shadow"
    LINE = "line"


@dataclass(frozen=True, order=True)
class SymbolNumber:
    """Dotted symbol number such as 10.1 or 10.1.2; -1 marks unset components."""

    major: int = -1
    minor: int = -1
    sub: int = -1

    @property
    def components(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.sub)

    def with_component(self, index: int, value: int) -> SymbolNumber:
        name = ("major", "minor", "sub")[index]
        return replace(self, **{name: value})

    def __str__(self) -> str:
        parts: list[str] = []
        for value in self.components:
            if value < 0:
                break
            parts.append(str(value))
        return ".".join(parts)


@dataclass(eq=False)
class Symbol:
    number: SymbolNumber = field(default_factory=SymbolNumber)
    name: str = ""
    description: str = ""
    hidden: bool = False
    protected: bool = False
    helper: bool = False

    kind: ClassVar[SymbolType]

    @property
    def plain_name(self) -> str:
        if "<" in self.name:
            return _HTML_TAG.sub("", self.name)
        return self.name

    def iter_colors(self, symbols: Sequence[Symbol] = ()) -> Iterator[MapColor]:
        return iter(())


@dataclass(eq=False)
class PointElement:
    """One drawable of a point symbol: a sub-symbol and its coordinates."""

    symbol: Symbol
    coords: list[MapCoord] = field(default_factory=list)


@dataclass(eq=False)
class PointSymbol(Symbol):
    rotatable: bool = False
    inner_radius: int = 0
    inner_color: MapColor | None = None
    outer_width: int = 0
    outer_color: MapColor | None = None
    elements: list[PointElement] = field(default_factory=list)

    kind: ClassVar[SymbolType] = SymbolType.POINT

    def add_element(self, element: PointElement) -> None:
        self.elements.append(element)

    def is_empty(self) -> bool:
        if self.elements:
            return False
        has_inner = self.inner_radius > 0 and self.inner_color is not None
        has_outer = self.outer_width > 0 and self.outer_color is not None
        return not (has_inner or has_outer)

    def is_symmetrical(self) -> bool:
        for element in self.elements:
            if element.symbol.kind != SymbolType.POINT:
                return False
            if len(element.coords) != 1:
                return False
            if element.coords[0].x != 0 or element.coords[0].y != 0:
                return False
        return True

    def iter_colors(self, symbols: Sequence[Symbol] = ()) -> Iterator[MapColor]:
        if self.inner_color is not None:
            yield self.inner_color
        if self.outer_color is not None:
            yield self.outer_color
        for element in self.elements:
            yield from element.symbol.iter_colors(symbols)


@dataclass(eq=False)
class LineSymbol(Symbol):
    line_width: int = 0
    color: MapColor | None = None
    minimum_length: int = 0
    cap_style: CapStyle = CapStyle.FLAT
    join_style: JoinStyle = JoinStyle.MITER
    pointed_cap_length: int = 1000

    dashed: bool = False
    dash_length: int = 4000
    break_length: int = 1000
    dashes_in_group: int = 1
    in_group_break_length: int = 500
    half_outer_dashes: bool = False
    segment_length: int = 4000
    end_length: int = 0

    mid_symbol: PointSymbol | None = None
    mid_symbols_per_spot: int = 1
    mid_symbol_distance: int = 0
    minimum_mid_symbol_count: int = 0
    minimum_mid_symbol_count_when_closed: int = 0
    show_at_least_one_symbol: bool = False
    start_symbol: PointSymbol | None = None
    end_symbol: PointSymbol | None = None
    dash_symbol: PointSymbol | None = None

    have_border_lines: bool = False
    border_color: MapColor | None = None
    border_width: int = 0
    border_shift: int = 0
    dashed_border: bool = False
    border_dash_length: int = 2000
    border_break_length: int = 1000

    kind: ClassVar[SymbolType] = SymbolType.LINE

    def has_border(self) -> bool:
        return self.have_border_lines and self.border_width > 0

    def iter_colors(self, symbols: Sequence[Symbol] = ()) -> Iterator[MapColor]:
        if self.color is not None:
            yield self.color
        if self.have_border_lines and self.border_color is not None:
            yield self.border_color
        for sub_symbol in (self.mid_symbol, self.start_symbol, self.end_symbol, self.dash_symbol):
            if sub_symbol is not None:
                yield from sub_symbol.iter_colors(symbols)


class FillPatternType(Enum):
    LINE = "line"
    POINT = "point"


@dataclass(eq=False)
class FillPattern:
    type: FillPatternType = FillPatternType.LINE
    angle: float = 0.0
    rotatable: bool = False
    line_spacing: int = 5000
    line_offset: int = 0
    offset_along_line: int = 0
    line_color: MapColor | None = None
    line_width: int = 0
    point_distance: int = 0
    point: PointSymbol | None = None


@dataclass(eq=False)
class AreaSymbol(Symbol):
    color: MapColor | None = None
    minimum_area: int = 0
    patterns: list[FillPattern] = field(default_factory=list)

    kind: ClassVar[SymbolType] = SymbolType.AREA

    def iter_colors(self, symbols: Sequence[Symbol] = ()) -> Iterator[MapColor]:
        if self.color is not None:
            yield self.color
        for pattern in self.patterns:
            if pattern.type == FillPatternType.LINE and pattern.line_color is not None:
                yield pattern.line_color
            elif pattern.type == FillPatternType.POINT and pattern.point is not None:
                yield from pattern.point.iter_colors(symbols)


@dataclass(eq=False)
class TextSymbol(Symbol):
    font_family: str = "Arial"
    font_size: int = 4000
    color: MapColor | None = None
    bold: bool = False
    italic: bool = False
    underline: bool = False
    kerning: bool = True
    line_spacing: float = 1.0
    paragraph_spacing: float = 0.0
    character_spacing: float = 0.0

    line_below: bool = False
    line_below_color: MapColor | None = None
    line_below_width: float = 0.0
    line_below_distance: float = 0.0
    custom_tabs: list[int] = field(default_factory=list)

    framing: bool = False
    framing_color: MapColor | None = None
    framing_mode: FramingMode = FramingMode.NONE
    framing_line_half_width: int = 200
    framing_shadow_x_offset: int = 200
    framing_shadow_y_offset: int = 200

    kind: ClassVar[SymbolType] = SymbolType.TEXT

    @property
    def font_size_mm(self) -> float:
        return 0.001 * self.font_size

    def metrics(self) -> FontMetrics:
        return font_metrics(self.font_family, self.font_size_mm, self.bold)

    def extra_leading_adjustment(self) -> float:
        """Distance in mm the legacy renderer shifts the first line of box text."""
        metrics = self.metrics()
        return (metrics.ascent + metrics.descent + 0.5) / metrics.internal_scaling - self.font_size_mm

    def iter_colors(self, symbols: Sequence[Symbol] = ()) -> Iterator[MapColor]:
        if self.color is not None:
            yield self.color
        if self.framing and self.framing_color is not None:
            yield self.framing_color
        if self.line_below and self.line_below_color is not None:
            yield self.line_below_color


@dataclass(eq=False)
class CombinedSymbol(Symbol):
    """Union of other symbols; parts are indices into the map's symbol list."""

    parts: list[int] = field(default_factory=list)

    kind: ClassVar[SymbolType] = SymbolType.COMBINED

    def iter_colors(self, symbols: Sequence[Symbol] = ()) -> Iterator[MapColor]:
        for index in self.parts:
            if 0 <= index < len(symbols) and symbols[index] is not self:
                yield from symbols[index].iter_colors(symbols)
