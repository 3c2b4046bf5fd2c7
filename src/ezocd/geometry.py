from __future__ import annotations

from typing import Sequence

from .coords import MapCoord, rotate_text_to_map
from .errors import WarningLog
from .objects import TextObject, VerticalAlignment
from .records import PX_CTL1, PX_CTL2, PY_CORNER, PY_DASH, PY_HOLE, OcdPoint
from .strings import decode_point, encode_point
from .symbol import LineSymbol, Symbol, TextSymbol


def decode_coord(point: OcdPoint) -> MapCoord:
    x, y = decode_point(point.coord_x, point.coord_y)
    return MapCoord(x, y)


def encode_coord(x: float, y: float, x_flags: int = 0, y_flags: int = 0) -> OcdPoint:
    ocd_x, ocd_y = encode_point(round(x), round(y))
    return OcdPoint.from_coords(ocd_x, ocd_y, x_flags, y_flags)


def decode_path(points: Sequence[OcdPoint], is_area: bool, detect_closed: bool = True) -> list[MapCoord]:
    """Convert legacy points to map coordinates, moving each flag to the coordinate it belongs to.

    A control point 1 marks the preceding point as curve start. Area holes end the
    previous part, line holes start at the flagged point.
    """
    coords: list[MapCoord] = []
    for index, point in enumerate(points):
        coord = decode_coord(point)
        coords.append(coord)
        if point.x_flags & PX_CTL1 and index > 0:
            coords[index - 1].curve_start = True
        if point.y_flags & (PY_DASH | PY_CORNER):
            coord.dash_point = True
        if point.y_flags & PY_HOLE:
            if not is_area:
                coord.hole_point = True
            elif index > 0:
                coords[index - 1].hole_point = True

    if detect_closed:
        start = 0
        for index, coord in enumerate(coords):
            if not coord.hole_point and index < len(coords) - 1:
                continue
            if coord.position_equals(coords[start]):
                coord.close_point = True
            start = index + 1
    return coords


def _uses_dash_flag(symbol: Symbol | None) -> bool:
    if not isinstance(symbol, LineSymbol):
        return False
    no_dash_symbol = symbol.dash_symbol is None or symbol.dash_symbol.is_empty()
    return no_dash_symbol and symbol.dashed


def encode_path(coords: Sequence[MapCoord], symbol: Symbol | None) -> list[OcdPoint]:
    dash_flag = PY_DASH if _uses_dash_flag(symbol) else PY_CORNER
    points: list[OcdPoint] = []
    curve_start = False
    curve_continue = False
    hole_point = False
    for coord in coords:
        x_flags = 0
        y_flags = 0
        if coord.dash_point:
            y_flags |= dash_flag
        if curve_start:
            x_flags |= PX_CTL1
        if hole_point:
            y_flags |= PY_HOLE
        if curve_continue:
            x_flags |= PX_CTL2

        curve_continue = curve_start
        curve_start = coord.curve_start
        hole_point = coord.hole_point
        points.append(encode_coord(coord.x, coord.y, x_flags, y_flags))
    return points


def decode_text_geometry(
    obj: TextObject,
    symbol: TextSymbol,
    points: Sequence[OcdPoint],
    warnings: WarningLog,
    where: str = "",
) -> bool:
    """Place ``obj`` from a 4 point box or a 5 point anchor record; False if there is nothing to place."""
    if not points:
        return False

    if len(points) == 4:
        bottom_left = decode_coord(points[0])
        top_right = decode_coord(points[2])
        top_left = decode_coord(points[3])

        # The legacy renderer adds the internal leading once more above the first line.
        adjust = 1000 * symbol.extra_leading_adjustment()
        dx, dy = rotate_text_to_map(0.0, adjust, obj.rotation)
        for corner in (top_left, top_right):
            corner.x = round(corner.x + dx)
            corner.y = round(corner.y + dy)

        obj.set_box(
            (bottom_left.x + top_right.x) // 2,
            (bottom_left.y + top_right.y) // 2,
            top_left.length_to(top_right),
            top_left.length_to(bottom_left),
        )
        obj.vertical_alignment = VerticalAlignment.TOP
        return True

    if len(points) != 5:
        suffix = f" ({where})" if where else ""
        warnings.add(f"Trying to import a text object with unknown coordinate format{suffix}")
    anchor = decode_coord(points[0])
    obj.set_anchor_position(anchor.x, anchor.y)
    obj.vertical_alignment = VerticalAlignment.BASELINE
    return True


def _text_point(obj: TextObject, x_mm: float, y_mm: float) -> OcdPoint:
    dx, dy = rotate_text_to_map(x_mm, y_mm, obj.rotation)
    anchor = obj.anchor
    return encode_coord(anchor.x + 1000 * dx, anchor.y + 1000 * dy)


def encode_text_geometry(obj: TextObject) -> list[OcdPoint]:
    lines = obj.layout()
    if not lines:
        return []
    first = lines[0]

    if obj.has_single_anchor:
        # Baseline anchor followed by the bounding box, clockwise from bottom left.
        left = min(line.line_x for line in lines)
        right = max(line.line_x + line.width for line in lines)
        top = min(line.line_y - line.ascent for line in lines)
        bottom = max(line.line_y + line.descent for line in lines)
        return [
            _text_point(obj, 0.0, first.line_y),
            _text_point(obj, left, bottom),
            _text_point(obj, right, bottom),
            _text_point(obj, right, top),
            _text_point(obj, left, top),
        ]

    # Only top alignment exists in the legacy format: the top edge follows the first line.
    symbol = obj.symbol
    adjust = symbol.extra_leading_adjustment() if isinstance(symbol, TextSymbol) else 0.0
    new_top = first.line_y - first.ascent - adjust
    half_width = 0.0005 * obj.box_width
    half_height = 0.0005 * obj.box_height
    return [
        _text_point(obj, -half_width, half_height),
        _text_point(obj, half_width, half_height),
        _text_point(obj, half_width, new_top),
        _text_point(obj, -half_width, new_top),
    ]
