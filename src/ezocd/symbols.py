from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from .colors import ColorExporter, ColorImporter
from .coords import MapCoord
from .errors import WarningLog
from .geometry import decode_path, encode_path
from .map import Map
from .objects import HorizontalAlignment, TextObject
from .records import (
    BLANK_ICON,
    ELEMENT_AREA,
    ELEMENT_CIRCLE,
    ELEMENT_DOT,
    ELEMENT_LINE,
    MAX_TABS,
    OcdAreaSymbol,
    OcdElement,
    OcdLineSymbol,
    OcdPointSymbol,
    OcdRectSymbol,
    OcdSymbol,
    OcdTextSymbol,
)
from .strings import StringCodec, decode_rotation, decode_size, encode_rotation, encode_size
from .symbol import (
    AreaSymbol,
    CapStyle,
    CombinedSymbol,
    FillPattern,
    FillPatternType,
    FramingMode,
    JoinStyle,
    LineSymbol,
    PointElement,
    PointSymbol,
    Symbol,
    SymbolNumber,
    TextSymbol,
)

logger = logging.getLogger(__name__)

# Legacy "ends" field: cap and join style combinations.
_ENDS_TO_STYLE: dict[int, tuple[CapStyle, JoinStyle]] = {
    0: (CapStyle.FLAT, JoinStyle.BEVEL),
    1: (CapStyle.ROUND, JoinStyle.ROUND),
    2: (CapStyle.POINTED, JoinStyle.BEVEL),
    3: (CapStyle.POINTED, JoinStyle.ROUND),
    4: (CapStyle.FLAT, JoinStyle.MITER),
    6: (CapStyle.POINTED, JoinStyle.MITER),
}
_STYLE_TO_ENDS = {style: ends for ends, style in _ENDS_TO_STYLE.items()}
_CAP_FALLBACK_ENDS = {CapStyle.FLAT: 0, CapStyle.ROUND: 1, CapStyle.POINTED: 3, CapStyle.SQUARE: 0}

_HALIGN_FROM_LEGACY = {
    0: HorizontalAlignment.LEFT,
    1: HorizontalAlignment.CENTER,
    2: HorizontalAlignment.RIGHT,
}
_HALIGN_TO_LEGACY = {alignment: code for code, alignment in _HALIGN_FROM_LEGACY.items()}

_ELEMENT_ROUND = 1
_ELEMENT_MITER = 4

RECT_GRID_LINE_WIDTH = 150
RECT_TEXT_FONT_SIZE = round(1000 * (15 / 72.0 * 25.4))


def split_legacy_number(number: int) -> tuple[int, int]:
    """Major and minor part of a legacy number such as 101 for 10.1, truncating toward zero."""
    major = int(number / 10)
    return major, number - 10 * major


def legacy_number_label(number: int) -> str:
    major, minor = split_legacy_number(number)
    return f"{major}.{minor}"


@dataclass(eq=False)
class RectangleInfo:
    """Symbols and grid settings a legacy rectangle symbol expands to."""

    border_line: LineSymbol
    corner_radius: float = 0.0
    has_grid: bool = False
    inner_line: LineSymbol | None = None
    text: TextSymbol | None = None
    number_from_bottom: bool = False
    cell_width: float = 0.0
    cell_height: float = 0.0
    unnumbered_cells: int = 0
    unnumbered_text: str = ""

    @property
    def symbols(self) -> list[Symbol]:
        if self.has_grid and self.inner_line is not None and self.text is not None:
            return [self.border_line, self.inner_line, self.text]
        return [self.border_line]


class SymbolImporter:
    def __init__(self, strings: StringCodec, colors: ColorImporter, warnings: WarningLog) -> None:
        self.strings = strings
        self.colors = colors
        self.warnings = warnings
        self.text_alignments: dict[TextSymbol, HorizontalAlignment] = {}

    def _fill_common(self, symbol: Symbol, record: OcdSymbol) -> None:
        symbol.name = self.strings.decode_pascal(record.name)
        symbol.number = SymbolNumber(*split_legacy_number(record.number), -1)
        symbol.helper = False
        if record.status & 1:
            symbol.protected = True
        if record.status & 2:
            symbol.hidden = True

    def import_symbol(self, record: OcdSymbol) -> list[Symbol] | None:
        """Translate one record; combined results come first, followed by their parts."""
        logger.debug("importing symbol %s (type %d)", legacy_number_label(record.number), record.type)
        self.colors.context = f"symbol {legacy_number_label(record.number)}"
        if isinstance(record, OcdPointSymbol):
            return [self.import_point(record)]
        if isinstance(record, OcdLineSymbol):
            return self.import_line(record)
        if isinstance(record, OcdAreaSymbol):
            return [self.import_area(record)]
        if isinstance(record, OcdTextSymbol):
            return [self.import_text(record)]
        return None

    def import_pattern(self, elements: Sequence[OcdElement]) -> PointSymbol:
        symbol = PointSymbol(rotatable=True)
        multiple_elements = len(elements) > 1
        for element in elements:
            if element.type == ELEMENT_DOT:
                inner_radius = int(decode_size(element.diameter) / 2)
                if inner_radius <= 0:
                    continue
                target = PointSymbol() if multiple_elements else symbol
                target.inner_color = self.colors.resolve(element.color)
                target.inner_radius = inner_radius
                target.outer_color = None
                target.outer_width = 0
                if multiple_elements:
                    target.rotatable = False
                    symbol.add_element(PointElement(target, [MapCoord(0, 0)]))
            elif element.type == ELEMENT_CIRCLE:
                outer_width = decode_size(element.width)
                inner_radius = int(decode_size(element.diameter) / 2) - outer_width
                if outer_width <= 0 or inner_radius <= 0:
                    continue
                target = PointSymbol() if multiple_elements else symbol
                target.inner_color = None
                target.inner_radius = inner_radius
                target.outer_color = self.colors.resolve(element.color)
                target.outer_width = outer_width
                if multiple_elements:
                    target.rotatable = False
                    symbol.add_element(PointElement(target, [MapCoord(0, 0)]))
            elif element.type == ELEMENT_LINE:
                line = LineSymbol(
                    line_width=decode_size(element.width),
                    color=self.colors.resolve(element.color),
                )
                if element.flags & _ELEMENT_ROUND:
                    line.cap_style, line.join_style = CapStyle.ROUND, JoinStyle.ROUND
                elif not element.flags & _ELEMENT_MITER:
                    line.join_style = JoinStyle.BEVEL
                symbol.add_element(PointElement(line, decode_path(element.points, is_area=False)))
            elif element.type == ELEMENT_AREA:
                area = AreaSymbol(color=self.colors.resolve(element.color))
                symbol.add_element(PointElement(area, decode_path(element.points, is_area=True)))
        return symbol

    def import_point(self, record: OcdPointSymbol) -> PointSymbol:
        symbol = self.import_pattern(record.elements)
        self._fill_common(symbol, record)
        symbol.rotatable = record.rotatable
        return symbol

    def _import_main_line(self, record: OcdLineSymbol, label: str) -> LineSymbol:
        line = LineSymbol()
        self._fill_common(line, record)
        line.minimum_length = 0
        line.line_width = decode_size(record.width)
        line.color = self.colors.resolve(record.color)
        if record.ends in _ENDS_TO_STYLE:
            line.cap_style, line.join_style = _ENDS_TO_STYLE[record.ends]

        if line.cap_style == CapStyle.POINTED:
            average = int((record.bdist + record.edist) / 2)
            if record.bdist != record.edist:
                self.warnings.add(
                    f"In dashed line symbol {label}, pointed cap lengths for begin and end are "
                    f"different ({record.bdist} and {record.edist}). Using {average}."
                )
            line.pointed_cap_length = decode_size(average)
            # Pointed caps are always drawn with round joins.
            line.join_style = JoinStyle.ROUND

        if record.gap > 0 or record.gap2 > 0:
            line.dashed = True
            half_length = int(record.len / 2)
            end_matches_half = half_length - 1 <= record.elen <= half_length + 1
            if record.gap2 > 0 and record.gap == 0:
                line.dash_length = decode_size(record.len - record.gap2)
                line.break_length = decode_size(record.gap2)
                if not end_matches_half:
                    self.warnings.add(f"In dashed line symbol {label}, the end length cannot be imported correctly.")
                if record.egap != 0:
                    self.warnings.add(f"In dashed line symbol {label}, the end gap cannot be imported correctly.")
            else:
                if record.len != record.elen:
                    if end_matches_half:
                        line.half_outer_dashes = True
                    else:
                        self.warnings.add(
                            f"In dashed line symbol {label}, main and end length are different "
                            f"({record.len} and {record.elen}). Using {record.len}."
                        )
                line.dash_length = decode_size(record.len)
                line.break_length = decode_size(record.gap)
                if record.gap2 > 0:
                    line.dashes_in_group = 2
                    if record.gap2 != record.egap:
                        self.warnings.add(
                            f"In dashed line symbol {label}, gaps D and E are different "
                            f"({record.gap2} and {record.egap}). Using {record.gap2}."
                        )
                    line.in_group_break_length = decode_size(record.gap2)
                    line.dash_length = (line.dash_length - line.in_group_break_length) // 2
        else:
            line.segment_length = decode_size(record.len)
            line.end_length = decode_size(record.elen)
        return line

    def _import_double_line(self, record: OcdLineSymbol, label: str) -> LineSymbol:
        line = LineSymbol()
        self._fill_common(line, record)
        line.line_width = decode_size(record.dwidth)
        line.color = self.colors.resolve(record.dcolor) if record.dflags & 1 else None
        line.cap_style = CapStyle.FLAT
        line.join_style = JoinStyle.MITER
        line.segment_length = decode_size(record.len)
        line.end_length = decode_size(record.elen)

        if record.lwidth > 0 or record.rwidth > 0:
            line.have_border_lines = True
            if record.lcolor != record.rcolor:
                self.warnings.add(
                    f"In symbol {label}, left and right borders are different colors "
                    f"({record.lcolor} and {record.rcolor}). Using {record.lcolor}."
                )
            line.border_color = self.colors.resolve(record.lcolor)
            if record.lwidth != record.rwidth:
                self.warnings.add(
                    f"In symbol {label}, left and right borders are different width "
                    f"({record.lwidth} and {record.rwidth}). Using {record.lwidth}."
                )
            line.border_width = decode_size(record.lwidth)
            line.border_shift = line.border_width // 2

            if record.dgap > 0 and record.dmode > 1:
                line.dashed_border = True
                line.border_dash_length = decode_size(record.dlen)
                line.border_break_length = decode_size(record.dgap)
                if record.dmode == 2:
                    self.warnings.add(
                        f"In line symbol {label}, ignoring that only the left border line should be dashed"
                    )
        return line

    def import_line(self, record: OcdLineSymbol) -> list[Symbol]:
        label = legacy_number_label(record.number)
        main_line = self._import_main_line(record, label) if record.dmode == 0 or record.width > 0 else None
        double_line = self._import_double_line(record, label) if record.dmode != 0 else None

        carrier = main_line if main_line is not None else double_line
        assert carrier is not None
        carrier.mid_symbol = self.import_pattern(record.main_elements)
        carrier.mid_symbols_per_spot = record.snum
        carrier.mid_symbol_distance = decode_size(record.sdist)
        # Secondary symbols have no counterpart; corner symbols become dash symbols.
        if record.corner_elements:
            carrier.dash_symbol = self.import_pattern(record.corner_elements)
            carrier.dash_symbol.name = "Dash symbol"
        if record.start_elements:
            carrier.start_symbol = self.import_pattern(record.start_elements)
            carrier.start_symbol.name = "Start symbol"
        if record.end_elements:
            carrier.end_symbol = self.import_pattern(record.end_elements)
        carrier.minimum_mid_symbol_count = 0
        carrier.minimum_mid_symbol_count_when_closed = 0
        carrier.show_at_least_one_symbol = False

        if record.fwidth > 0:
            self.warnings.add(f"In symbol {label}, ignoring framing line.")

        if main_line is None or double_line is None:
            return [carrier]

        combined = CombinedSymbol()
        self._fill_common(combined, record)
        combined.parts = [1, 2]
        for position, part in enumerate((main_line, double_line), start=1):
            part.hidden = False
            part.protected = False
            part.number = part.number.with_component(2, position)
        return [combined, main_line, double_line]

    def import_area(self, record: OcdAreaSymbol) -> AreaSymbol:
        symbol = AreaSymbol()
        self._fill_common(symbol, record)
        symbol.minimum_area = 0
        symbol.color = self.colors.resolve(record.color) if record.fill else None

        if record.hmode > 0:
            symbol.patterns.append(
                FillPattern(
                    type=FillPatternType.LINE,
                    angle=decode_rotation(record.hangle1),
                    rotatable=True,
                    line_spacing=decode_size(record.hdist + record.hwidth),
                    line_color=self.colors.resolve(record.hcolor),
                    line_width=decode_size(record.hwidth),
                )
            )
            if record.hmode == 2:
                # The second hatch is spaced by the distance alone.
                symbol.patterns.append(
                    FillPattern(
                        type=FillPatternType.LINE,
                        angle=decode_rotation(record.hangle2),
                        rotatable=True,
                        line_spacing=decode_size(record.hdist),
                        line_color=self.colors.resolve(record.hcolor),
                        line_width=decode_size(record.hwidth),
                    )
                )

        if record.pmode > 0:
            # Staggered rows are two overlapping patterns of twice the row height.
            spacing = decode_size(record.pheight)
            if record.pmode == 2:
                spacing *= 2
            symbol.patterns.append(
                FillPattern(
                    type=FillPatternType.POINT,
                    angle=decode_rotation(record.pangle),
                    rotatable=True,
                    point_distance=decode_size(record.pwidth),
                    line_spacing=spacing,
                    point=self.import_pattern(record.elements),
                )
            )
            if record.pmode == 2:
                point_distance = decode_size(record.pwidth)
                symbol.patterns.append(
                    FillPattern(
                        type=FillPatternType.POINT,
                        angle=decode_rotation(record.pangle),
                        rotatable=True,
                        point_distance=point_distance,
                        line_spacing=spacing,
                        line_offset=spacing // 2,
                        offset_along_line=point_distance // 2,
                        point=self.import_pattern(record.elements),
                    )
                )
        return symbol

    def import_text(self, record: OcdTextSymbol) -> TextSymbol:
        label = legacy_number_label(record.number)
        symbol = TextSymbol()
        self._fill_common(symbol, record)
        symbol.font_family = self.strings.decode_pascal(record.font)
        symbol.color = self.colors.resolve(record.color)
        font_size_mm = (0.1 * record.dpts) / 72.0 * 25.4
        symbol.font_size = round(1000 * font_size_mm)
        symbol.bold = record.bold >= 550
        symbol.italic = bool(record.italic)
        symbol.underline = False
        symbol.paragraph_spacing = 0.001 * decode_size(record.pspace)
        symbol.character_spacing = record.cspace / 100.0
        symbol.kerning = False
        symbol.line_below = bool(record.under)
        symbol.line_below_color = self.colors.resolve(record.ucolor)
        symbol.line_below_width = 0.001 * decode_size(record.uwidth)
        symbol.line_below_distance = 0.001 * decode_size(record.udist)
        ntabs = max(0, min(record.ntabs, MAX_TABS))
        symbol.custom_tabs = [decode_size(tab) for tab in record.tabs[:ntabs]]

        alignment = _HALIGN_FROM_LEGACY.get(record.halign, HorizontalAlignment.CENTER)
        if record.halign == 3:
            self.warnings.add(f"During import of text symbol {label}: ignoring justified alignment")
        self.text_alignments[symbol] = alignment

        if record.bold not in (400, 700):
            self.warnings.add(f"During import of text symbol {label}: ignoring custom weight ({record.bold})")
        if record.cspace != 0:
            self.warnings.add(
                f"During import of text symbol {label}: custom character spacing is set, "
                "its implementation does not match the legacy behavior yet"
            )
        if record.wspace != 100:
            self.warnings.add(f"During import of text symbol {label}: ignoring custom word spacing ({record.wspace}%)")
        if record.indent1 != 0 or record.indent2 != 0:
            self.warnings.add(
                f"During import of text symbol {label}: ignoring custom indents ({record.indent1}/{record.indent2})"
            )

        if record.fmode > 0:
            symbol.framing = True
            symbol.framing_color = self.colors.resolve(record.fcolor)
            if record.fmode == 1:
                symbol.framing_mode = FramingMode.SHADOW
                symbol.framing_shadow_x_offset = decode_size(record.fdx)
                symbol.framing_shadow_y_offset = -decode_size(record.fdy)
            elif record.fmode == 2:
                symbol.framing_mode = FramingMode.LINE
                symbol.framing_line_half_width = decode_size(record.fdpts)
            else:
                self.warnings.add(
                    f"During import of text symbol {label}: ignoring text framing (mode {record.fmode})"
                )

        # The legacy percentage refers to the rendered line height, not the nominal size.
        metrics = symbol.metrics()
        absolute_line_spacing = font_size_mm * 0.01 * record.lspace
        if metrics.line_spacing > 0:
            symbol.line_spacing = absolute_line_spacing / (metrics.line_spacing / metrics.internal_scaling)
        return symbol

    def import_rectangle(self, record: OcdRectSymbol) -> RectangleInfo:
        self.colors.context = f"symbol {legacy_number_label(record.number)}"
        border = LineSymbol()
        self._fill_common(border, record)
        border.line_width = decode_size(record.width)
        border.color = self.colors.resolve(record.color)
        border.cap_style = CapStyle.FLAT
        border.join_style = JoinStyle.ROUND
        rect = RectangleInfo(
            border_line=border,
            corner_radius=0.001 * decode_size(record.corner),
            has_grid=bool(record.grid_flags & 1),
        )
        if rect.has_grid:
            inner = LineSymbol()
            self._fill_common(inner, record)
            inner.number = inner.number.with_component(2, 1)
            inner.line_width = RECT_GRID_LINE_WIDTH
            inner.color = border.color

            text = TextSymbol()
            self._fill_common(text, record)
            text.number = text.number.with_component(2, 2)
            text.font_family = "Arial"
            text.font_size = RECT_TEXT_FONT_SIZE
            text.color = border.color
            text.bold = True

            rect.inner_line = inner
            rect.text = text
            rect.number_from_bottom = bool(record.grid_flags & 2)
            rect.cell_width = 0.001 * decode_size(record.cwidth)
            rect.cell_height = 0.001 * decode_size(record.cheight)
            rect.unnumbered_cells = record.gcells
            rect.unnumbered_text = self.strings.decode_pascal(record.gtext)
        return rect


def _element_margin(symbol: Symbol) -> float:
    if isinstance(symbol, LineSymbol):
        return 0.5 * symbol.line_width
    if isinstance(symbol, PointSymbol):
        return float(symbol.inner_radius + symbol.outer_width)
    return 0.0


def point_symbol_extent(symbol: PointSymbol | None) -> int:
    """Half the larger side of the symbol's bounding box, in legacy units."""
    if symbol is None:
        return 0
    left = top = float("inf")
    right = bottom = float("-inf")
    for element in symbol.elements:
        margin = _element_margin(element.symbol)
        for coord in element.coords:
            left = min(left, coord.x - margin)
            right = max(right, coord.x + margin)
            top = min(top, coord.y - margin)
            bottom = max(bottom, coord.y + margin)
    extent = 0.0
    if left <= right:
        extent = 0.0005 * max(right - left, bottom - top)
    if symbol.inner_color is not None:
        extent = max(extent, 0.001 * symbol.inner_radius)
    if symbol.outer_color is not None:
        extent = max(extent, 0.001 * (symbol.inner_radius + symbol.outer_width))
    return encode_size(1000 * extent)


class SymbolExporter:
    """Builds legacy symbol records; ``reserved_numbers`` is shared with the caller for one export."""

    def __init__(
        self,
        map: Map,
        strings: StringCodec,
        colors: ColorExporter,
        warnings: WarningLog,
        reserved_numbers: set[int],
    ) -> None:
        self.map = map
        self.strings = strings
        self.colors = colors
        self.warnings = warnings
        self.reserved_numbers = reserved_numbers

    def reserve_number(self, number: int) -> int:
        while number in self.reserved_numbers:
            number += 1
        self.reserved_numbers.add(number)
        return number

    def _fill_common(self, symbol: Symbol, record: OcdSymbol) -> None:
        record.name = self.strings.encode_pascal(symbol.plain_name, 32)
        number = symbol.number.major * 10
        if symbol.number.minor >= 0:
            number += symbol.number.minor % 10
        record.number = self.reserve_number(number)
        record.status = 0
        if symbol.protected:
            record.status |= 1
        if symbol.hidden:
            record.status |= 2
        record.colors = self.colors.color_set(symbol)
        # OCAD redraws symbol icons when it opens the file.
        record.icon = BLANK_ICON

    def export_symbol(self, symbol: Symbol) -> OcdSymbol | None:
        logger.debug("exporting %s symbol %s", symbol.kind.value, symbol.number)
        if isinstance(symbol, PointSymbol):
            return self.export_point(symbol)
        if isinstance(symbol, LineSymbol):
            return self.export_line(symbol)
        if isinstance(symbol, AreaSymbol):
            return self.export_area(symbol)
        if isinstance(symbol, TextSymbol):
            return self.export_text(symbol)
        return None

    def export_pattern(self, point: PointSymbol | None) -> list[OcdElement]:
        if point is None:
            return []
        elements: list[OcdElement] = []
        for element in point.elements:
            elements.extend(self._export_sub_pattern(element.coords, element.symbol))
        elements.extend(self._export_sub_pattern([MapCoord(0, 0)], point))
        return elements

    def _export_sub_pattern(self, coords: list[MapCoord], symbol: Symbol) -> list[OcdElement]:
        elements: list[OcdElement] = []
        if isinstance(symbol, PointSymbol):
            if symbol.inner_radius > 0 and symbol.inner_color is not None:
                elements.append(
                    OcdElement(
                        type=ELEMENT_DOT,
                        color=self.colors.ordinal(symbol.inner_color),
                        diameter=encode_size(2 * symbol.inner_radius),
                        points=encode_path(coords, symbol),
                    )
                )
            if symbol.outer_width > 0 and symbol.outer_color is not None:
                elements.append(
                    OcdElement(
                        type=ELEMENT_CIRCLE,
                        color=self.colors.ordinal(symbol.outer_color),
                        width=encode_size(symbol.outer_width),
                        diameter=encode_size(2 * symbol.inner_radius + 2 * symbol.outer_width),
                        points=encode_path(coords, symbol),
                    )
                )
        elif isinstance(symbol, LineSymbol):
            flags = 0
            if symbol.cap_style == CapStyle.ROUND:
                flags |= _ELEMENT_ROUND
            elif symbol.join_style == JoinStyle.MITER:
                flags |= _ELEMENT_MITER
            elements.append(
                OcdElement(
                    type=ELEMENT_LINE,
                    flags=flags,
                    color=self.colors.ordinal(symbol.color),
                    width=encode_size(symbol.line_width),
                    points=encode_path(coords, symbol),
                )
            )
        elif isinstance(symbol, AreaSymbol):
            elements.append(
                OcdElement(
                    type=ELEMENT_AREA,
                    color=self.colors.ordinal(symbol.color),
                    points=encode_path(coords, symbol),
                )
            )
        else:
            self.warnings.add(f"Unable to export a {symbol.kind.value} element of a point symbol")
        return elements

    def export_point(self, point: PointSymbol) -> OcdPointSymbol:
        record = OcdPointSymbol()
        self._fill_common(point, record)
        record.extent = point_symbol_extent(point)
        if record.extent <= 0:
            record.extent = 100
        if point.rotatable:
            record.flags |= 1
        record.elements = self.export_pattern(point)
        return record

    def export_line(self, line: LineSymbol) -> OcdLineSymbol:
        record = OcdLineSymbol()
        self._fill_common(line, record)
        name = line.plain_name

        extent = encode_size(0.5 * line.line_width)
        if line.has_border():
            extent = max(extent, encode_size(0.5 * line.line_width + line.border_shift + 0.5 * line.border_width))
        for sub_symbol in (line.start_symbol, line.end_symbol, line.mid_symbol, line.dash_symbol):
            extent = max(extent, point_symbol_extent(sub_symbol))
        record.extent = extent
        record.color = self.colors.ordinal(line.color)
        if line.color is not None:
            record.width = encode_size(line.line_width)

        ends = _STYLE_TO_ENDS.get((line.cap_style, line.join_style))
        if ends is None:
            self.warnings.add(f'In line symbol "{name}", cannot represent cap/join combination.')
            ends = _CAP_FALLBACK_ENDS[line.cap_style]
        record.ends = ends

        if line.cap_style == CapStyle.POINTED:
            record.bdist = encode_size(line.pointed_cap_length)
            record.edist = encode_size(line.pointed_cap_length)

        if line.dashed:
            if line.mid_symbol is not None and not line.mid_symbol.is_empty():
                if line.dashes_in_group > 1:
                    self.warnings.add(f'In line symbol "{name}", neglecting the dash grouping.')
                record.len = encode_size(line.dash_length + line.break_length)
                record.elen = int(record.len / 2)
                record.gap2 = encode_size(line.break_length)
            elif line.dashes_in_group > 1:
                if line.dashes_in_group > 2:
                    self.warnings.add(
                        f'In line symbol "{name}", the number of dashes in a group has been reduced to 2.'
                    )
                record.len = encode_size(2 * line.dash_length + line.in_group_break_length)
                record.elen = record.len
                record.gap = encode_size(line.break_length)
                record.gap2 = encode_size(line.in_group_break_length)
                record.egap = record.gap2
            else:
                record.len = encode_size(line.dash_length)
                record.elen = int(record.len / 2) if line.half_outer_dashes else record.len
                record.gap = encode_size(line.break_length)
        else:
            record.len = encode_size(line.segment_length)
            record.elen = encode_size(line.end_length)

        record.smin = 0 if line.show_at_least_one_symbol else -1

        if line.has_border() and line.border_color is not None:
            record.dwidth = encode_size(line.line_width - line.border_width + 2 * line.border_shift)
            record.dmode = 3 if line.dashed_border else 1
            record.lwidth = encode_size(line.border_width)
            record.rwidth = record.lwidth
            record.lcolor = self.colors.ordinal(line.border_color)
            record.rcolor = record.lcolor
            if line.dashed_border:
                record.dlen = encode_size(line.border_dash_length)
                record.dgap = encode_size(line.border_break_length)

        record.main_elements = self.export_pattern(line.mid_symbol)
        record.snum = line.mid_symbols_per_spot
        record.sdist = encode_size(line.mid_symbol_distance)
        record.secondary_elements = []
        record.corner_elements = self.export_pattern(line.dash_symbol)
        record.start_elements = self.export_pattern(line.start_symbol)
        record.end_elements = self.export_pattern(line.end_symbol)
        return record

    def export_area(self, area: AreaSymbol) -> OcdAreaSymbol:
        record = OcdAreaSymbol()
        self._fill_common(area, record)
        name = area.plain_name
        record.extent = 0
        if area.color is not None:
            record.fill = 1
            record.color = self.colors.ordinal(area.color)

        for pattern in area.patterns:
            if pattern.type != FillPatternType.LINE:
                continue
            line_color = self.colors.ordinal(pattern.line_color)
            if record.hmode >= 2 or (record.hmode == 1 and record.hcolor != line_color):
                self.warnings.add(f'In area symbol "{name}", skipping a fill pattern.')
                continue
            if pattern.rotatable:
                record.flags |= 1
            record.hmode += 1
            if record.hmode == 1:
                record.hcolor = line_color
                record.hwidth = encode_size(pattern.line_width)
                record.hdist = encode_size(pattern.line_spacing - pattern.line_width)
                record.hangle1 = encode_rotation(pattern.angle)
            else:
                record.hwidth = int((record.hwidth + encode_size(pattern.line_width)) / 2)
                record.hdist = int((record.hdist + encode_size(pattern.line_spacing - pattern.line_width)) / 2)
                record.hangle2 = encode_rotation(pattern.angle)

        point_pattern: PointSymbol | None = None
        for pattern in area.patterns:
            if pattern.type != FillPatternType.POINT:
                continue
            if record.pmode >= 2:
                self.warnings.add(f'In area symbol "{name}", skipping a fill pattern.')
                continue
            if pattern.rotatable:
                record.flags |= 1
            record.pmode += 1
            if record.pmode == 1:
                record.pwidth = encode_size(pattern.point_distance)
                record.pheight = encode_size(pattern.line_spacing)
                record.pangle = encode_rotation(pattern.angle)
                point_pattern = pattern.point
            else:
                # Works for common orienteering symbol sets only; there is no general conversion.
                self.warnings.add(
                    f'In area symbol "{name}", assuming a "shifted rows" point pattern. '
                    "This might be correct as well as incorrect."
                )
                if pattern.line_offset != 0:
                    record.pheight = int(record.pheight / 2)
                else:
                    record.pwidth = int(record.pwidth / 2)

        record.elements = self.export_pattern(point_pattern)
        return record

    def export_text(self, text: TextSymbol) -> OcdTextSymbol:
        record = OcdTextSymbol()
        self._fill_common(text, record)
        name = text.plain_name
        record.subtype = 1
        record.extent = 0
        record.font = self.strings.encode_pascal(text.font_family, 32)
        record.color = self.colors.ordinal(text.color)
        record.dpts = round(10 * text.font_size_mm / 25.4 * 72.0)
        record.bold = 700 if text.bold else 400
        record.italic = 1 if text.italic else 0
        record.cspace = encode_size(1000 * text.character_spacing)
        if record.cspace != 0:
            self.warnings.add(
                f"In text symbol {name}: custom character spacing is set, "
                "its implementation does not match the legacy behavior yet"
            )
        record.wspace = 100
        record.halign = 0

        metrics = text.metrics()
        absolute_line_spacing = text.line_spacing * (metrics.line_spacing / metrics.internal_scaling)
        record.lspace = round(absolute_line_spacing / (text.font_size_mm * 0.01)) if text.font_size > 0 else 0
        record.pspace = encode_size(1000 * text.paragraph_spacing)
        if text.underline:
            self.warnings.add(f"In text symbol {name}: ignoring underlining")
        if text.kerning:
            self.warnings.add(f"In text symbol {name}: ignoring kerning")

        record.under = 1 if text.line_below else 0
        record.ucolor = self.colors.ordinal(text.line_below_color)
        record.uwidth = encode_size(1000 * text.line_below_width)
        record.udist = encode_size(1000 * text.line_below_distance)

        if len(text.custom_tabs) > MAX_TABS:
            self.warnings.add(f"In text symbol {name}: ignoring custom tabs beyond the first {MAX_TABS}")
        tabs = [encode_size(tab) for tab in text.custom_tabs[:MAX_TABS]]
        record.ntabs = len(tabs)
        record.tabs = tabs + [0] * (MAX_TABS - len(tabs))

        if text.framing and text.framing_mode != FramingMode.NONE and text.framing_color is not None:
            record.fcolor = self.colors.ordinal(text.framing_color)
            if text.framing_mode == FramingMode.SHADOW:
                record.fmode = 1
                record.fdx = encode_size(text.framing_shadow_x_offset)
                record.fdy = -encode_size(text.framing_shadow_y_offset)
            else:
                record.fmode = 2
                record.fdpts = encode_size(text.framing_line_half_width)
        return record

    @staticmethod
    def set_text_formatting(record: OcdTextSymbol, formatting: TextObject) -> None:
        record.halign = _HALIGN_TO_LEGACY.get(formatting.horizontal_alignment, 1)

    def export_combined(self, combined: CombinedSymbol, exported: Mapping[Symbol, set[int]]) -> set[int]:
        """Legacy numbers of every already exported symbol ``combined`` uses, transitively."""
        marked = [False] * len(self.map.symbols)
        index = self.map.find_symbol_index(combined)
        if index < 0:
            return set()
        marked[index] = True
        self.map.determine_symbol_use_closure(marked)
        numbers: set[int] = set()
        for position, used in enumerate(marked):
            if used:
                numbers.update(exported.get(self.map.symbols[position], ()))
        return numbers
