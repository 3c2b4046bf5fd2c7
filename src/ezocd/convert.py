from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .coords import MapCoord, rotate_text_to_map
from .document import read
from .map import Map, MapColor
from .objects import MapObject, PathObject, PointObject, TextObject
from .symbol import Symbol, TextSymbol


@dataclass(frozen=True)
class ConvertResult:
    source_path: str
    output_path: str
    total_entities: int
    written_entities: int
    skipped_entities: int
    skipped_by_type: dict[str, int]


def to_dxf(
    source: str | Path | Map,
    output_path: str,
    *,
    dxf_version: str = "R2010",
    strict: bool = False,
) -> ConvertResult:
    """Write a DXF preview of a map: paths, points and texts in millimeters, y up."""
    ezdxf = _require_ezdxf()
    source_path, map = _resolve_map(source)

    dxf_doc = ezdxf.new(dxfversion=dxf_version)
    modelspace = dxf_doc.modelspace()
    layers: dict[str, dict[str, Any]] = {}

    total = 0
    written = 0
    skipped_by_type: dict[str, int] = {}

    for obj in map.iter_objects():
        total += 1
        dxfattribs = _object_dxfattribs(dxf_doc, layers, map, obj.symbol)
        if _write_object_to_modelspace(modelspace, obj, dxfattribs):
            written += 1
            continue
        object_type = _object_type_name(obj)
        skipped_by_type[object_type] = skipped_by_type.get(object_type, 0) + 1

    skipped = total - written
    if strict and skipped > 0:
        summary = ", ".join(f"{name}:{count}" for name, count in sorted(skipped_by_type.items()))
        raise ValueError(f"failed to convert {skipped} objects ({summary})")

    out_path = Path(output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    dxf_doc.saveas(str(out_path))

    return ConvertResult(
        source_path=source_path,
        output_path=str(out_path),
        total_entities=total,
        written_entities=written,
        skipped_entities=skipped,
        skipped_by_type=dict(sorted(skipped_by_type.items())),
    )


def _require_ezdxf():
    try:
        import ezdxf
    except Exception as exc:
        raise ImportError(
            "ezdxf is required for map->DXF conversion. "
            'Install it with `pip install "ezocd[dxf]"`.'
        ) from exc
    return ezdxf


def _resolve_map(source: str | Path | Map) -> tuple[str, Map]:
    if isinstance(source, Map):
        return "<map>", source
    map, _view, _warnings = read(source)
    return str(source), map


def _object_type_name(obj: MapObject) -> str:
    if isinstance(obj, PointObject):
        return "POINT"
    if isinstance(obj, TextObject):
        return "TEXT"
    if isinstance(obj, PathObject):
        return "PATH"
    return type(obj).__name__.upper()


def _write_object_to_modelspace(modelspace: Any, obj: MapObject, dxfattribs: dict[str, Any]) -> bool:
    try:
        return _write_object_to_modelspace_unsafe(modelspace, obj, dxfattribs)
    except Exception:
        return False


def _write_object_to_modelspace_unsafe(modelspace: Any, obj: MapObject, dxfattribs: dict[str, Any]) -> bool:
    if not obj.coords:
        return False
    if isinstance(obj, TextObject):
        return _write_text(modelspace, obj, dxfattribs)
    if isinstance(obj, PointObject):
        modelspace.add_point(_point3(obj.position), dxfattribs=dxfattribs)
        return True
    if isinstance(obj, PathObject):
        return _write_path(modelspace, obj, dxfattribs)
    return False


def _write_path(modelspace: Any, obj: PathObject, dxfattribs: dict[str, Any]) -> bool:
    written = False
    for part_index, (start, end) in enumerate(obj.parts()):
        coords = obj.coords[start : end + 1]
        closed = obj.is_part_closed(part_index)
        if closed and len(coords) > 1 and coords[-1].position_equals(coords[0]):
            coords = coords[:-1]
        if len(coords) < 2:
            continue
        # Curves are written as their control polygon.
        modelspace.add_lwpolyline([_point2(coord) for coord in coords], close=closed, dxfattribs=dxfattribs)
        written = True
    return written


def _write_text(modelspace: Any, obj: TextObject, dxfattribs: dict[str, Any]) -> bool:
    symbol = obj.symbol
    if not isinstance(symbol, TextSymbol):
        return False
    lines = obj.layout()
    if not lines:
        return False
    anchor = obj.anchor
    for line in lines:
        dx, dy = rotate_text_to_map(line.line_x, line.line_y, obj.rotation)
        insert = (0.001 * anchor.x + dx, -(0.001 * anchor.y + dy))
        attribs = dict(dxfattribs)
        attribs["height"] = symbol.font_size_mm
        attribs["rotation"] = math.degrees(obj.rotation)
        text_entity = modelspace.add_text(line.text, dxfattribs=attribs)
        text_entity.dxf.insert = (insert[0], insert[1], 0.0)
    return True


def _object_dxfattribs(
    dxf_doc: Any,
    layers: dict[str, dict[str, Any]],
    map: Map,
    symbol: Symbol | None,
) -> dict[str, Any]:
    layer_name = _layer_name(symbol)
    attribs = layers.get(layer_name)
    if attribs is not None:
        return attribs

    attribs = {"layer": layer_name}
    color = _symbol_color(map, symbol)
    if color is not None:
        rgb = color.to_rgb()
        attribs["color"] = _nearest_aci(rgb)
        attribs["true_color"] = (rgb[0] << 16) | (rgb[1] << 8) | rgb[2]
    if layer_name not in dxf_doc.layers:
        dxf_doc.layers.add(layer_name)
    layers[layer_name] = attribs
    return attribs


def _layer_name(symbol: Symbol | None) -> str:
    if symbol is None:
        return "0"
    number = str(symbol.number)
    return number or "0"


def _symbol_color(map: Map, symbol: Symbol | None) -> MapColor | None:
    if symbol is None:
        return None
    return next(iter(symbol.iter_colors(map.symbols)), None)


def _nearest_aci(rgb: tuple[int, int, int]) -> int:
    from ezdxf.colors import DXF_DEFAULT_COLORS, int2rgb

    best = 7
    best_distance: int | None = None
    for aci in range(1, 256):
        r, g, b = int2rgb(DXF_DEFAULT_COLORS[aci])
        distance = (r - rgb[0]) ** 2 + (g - rgb[1]) ** 2 + (b - rgb[2]) ** 2
        if best_distance is None or distance < best_distance:
            best = aci
            best_distance = distance
    return best


def _point2(coord: MapCoord) -> tuple[float, float]:
    return (0.001 * coord.x, -0.001 * coord.y)


def _point3(coord: MapCoord) -> tuple[float, float, float]:
    return (0.001 * coord.x, -0.001 * coord.y, 0.0)
