from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .colors import ColorExporter, ColorImporter
from .coords import BEZIER_KAPPA, MapCoord, MapCoordF
from .errors import FormatError, WarningLog
from .geometry import decode_coord, decode_path, decode_text_geometry, encode_coord, encode_path, encode_text_geometry
from .map import Map, MapLayer, MapView, TemplateImage
from .objects import HorizontalAlignment, MapObject, PathObject, PointObject, TextObject, VerticalAlignment
from .records import (
    MAGIC,
    MAX_COLORS,
    MAX_OBJECT_UNITS,
    OBJECT_AREA,
    OBJECT_FORMATTED_TEXT,
    OBJECT_LINE,
    OBJECT_POINT,
    OBJECT_UNFORMATTED_TEXT,
    STRING_BACKGROUND,
    SUPPORTED_MAJOR_VERSIONS,
    SYMBOL_LINE,
    OcdBuilder,
    OcdFile,
    OcdObject,
    OcdRectSymbol,
    OcdString,
    OcdSymbol,
    OcdTextSymbol,
)
from .settings import ExportOptions, ImportOptions, resolve_encodings
from .strings import StringCodec, decode_point, decode_rotation, encode_rotation
from .symbol import AreaSymbol, CombinedSymbol, LineSymbol, PointSymbol, Symbol, SymbolType, TextSymbol
from .symbols import RectangleInfo, SymbolExporter, SymbolImporter, legacy_number_label

logger = logging.getLogger(__name__)

IMPORT_LAYER_NAME = "OCAD import layer"
RASTER_EXTENSIONS = frozenset(
    {"bmp", "gif", "ico", "jpeg", "jpg", "pbm", "pgm", "png", "ppm", "tif", "tiff", "xbm", "xpm"}
)


def understands(buffer: bytes) -> bool:
    return len(buffer) >= 2 and buffer[:2] == MAGIC


def read(path: str | Path, *, symbols_only: bool = False) -> tuple[Map, MapView, list[str]]:
    options = ImportOptions(symbols_only=symbols_only, close_stream=True)
    return import_map(open(path, "rb"), str(path), options)


def write(path: str | Path, map: Map, view: MapView | None = None) -> list[str]:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return export_map(open(out_path, "wb"), map, view, ExportOptions(close_stream=True))


def import_map(
    stream: BinaryIO,
    path: str | None = None,
    options: ImportOptions | None = None,
) -> tuple[Map, MapView, list[str]]:
    """Translate a legacy buffer into a new map; returns the map, its view and the warnings."""
    options = options or ImportOptions()
    try:
        data = stream.read()
    except OSError as exc:
        raise FormatError(f"could not read {path or 'stream'}: {exc}") from exc
    finally:
        if options.close_stream:
            stream.close()
    return _MapImporter(bytes(data), options, path).run()


def export_map(
    stream: BinaryIO,
    map: Map,
    view: MapView | None = None,
    options: ExportOptions | None = None,
) -> list[str]:
    options = options or ExportOptions()
    try:
        data, warnings = _MapExporter(map, view, options).run()
        stream.write(data)
    finally:
        if options.close_stream:
            stream.close()
    return warnings


@dataclass(frozen=True)
class _Background:
    filename: str
    x: int = 0
    y: int = 0
    angle: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    dimming: int = 0
    transparent: bool = False


def _parse_background(text: str) -> _Background | None:
    fields = text.split("\t")
    filename = fields[0].strip()
    if not filename:
        return None
    values: dict[str, str] = {}
    for item in fields[1:]:
        if item:
            values[item[0]] = item[1:]
    try:
        return _Background(
            filename=filename,
            x=round(float(values.get("x", 0))),
            y=round(float(values.get("y", 0))),
            angle=float(values.get("a", 0.0)),
            scale_x=float(values.get("u", 1.0)),
            scale_y=float(values.get("v", 1.0)),
            dimming=int(float(values.get("d", 0))),
            transparent=values.get("t", "0").strip() not in ("", "0"),
        )
    except ValueError:
        return None


def _symbol_label(symbol: Symbol | None) -> str:
    if symbol is None or not str(symbol.number):
        return "no symbol"
    return f"symbol {symbol.number}"


def is_raster_image_file(filename: str) -> bool:
    _stem, dot, extension = filename.rpartition(".")
    return bool(dot) and extension.lower() in RASTER_EXTENSIONS


class _MapImporter:
    def __init__(self, data: bytes, options: ImportOptions, path: str | None) -> None:
        self.data = data
        self.options = options
        self.path = path
        self.warnings = WarningLog()
        narrow, wide = resolve_encodings(options)
        self.strings = StringCodec(narrow, wide, self.warnings)
        self.colors = ColorImporter(self.strings, self.warnings)
        self.symbols = SymbolImporter(self.strings, self.colors, self.warnings)
        self.symbol_index: dict[int, Symbol] = {}
        self.rectangles: dict[int, RectangleInfo] = {}
        self.map = Map()
        self.view = MapView()

    def run(self) -> tuple[Map, MapView, list[str]]:
        file = OcdFile(self.data)
        major = file.header.major
        if major not in SUPPORTED_MAJOR_VERSIONS:
            raise FormatError(f"OCAD files of version {major} cannot be loaded")

        setup = file.setup()
        self.map.scale_denominator = round(setup.scale)
        notes = file.notes()
        self.map.notes = self.strings.decode_cstring(notes, len(notes))
        self.map.colors = self.colors.import_colors(file.colors())

        for record in file.iter_symbols():
            if record.number != 0:
                self._import_symbol(record)

        if not self.options.symbols_only:
            layer = MapLayer(IMPORT_LAYER_NAME)
            for index, ocd_object in enumerate(file.iter_objects()):
                self._import_object(ocd_object, layer, index)
            self.map.layers = [layer]
            self.map.current_layer_index = 0

            self.map.templates = []
            for string in file.iter_strings():
                self._import_string(string)
            # Templates in front of the map do not exist in the legacy format.
            self.map.first_front_template = len(self.map.templates)

            if setup.zoom is not None and MapView.ZOOM_OUT_LIMIT <= setup.zoom <= MapView.ZOOM_IN_LIMIT:
                self.view.zoom = setup.zoom
            center = decode_coord(setup.center)
            self.view.center_x = center.x
            self.view.center_y = center.y

        logger.info(
            "imported %s (version %d.%d): %d colors, %d symbols, %d objects, %d warnings",
            self.path or "stream",
            major,
            file.header.minor,
            len(self.map.colors),
            len(self.map.symbols),
            self.map.object_count,
            len(self.warnings),
        )
        return self.map, self.view, self.warnings.messages

    def _import_symbol(self, record: OcdSymbol) -> None:
        if isinstance(record, OcdRectSymbol):
            rect = self.symbols.import_rectangle(record)
            self.map.add_symbol_group(rect.symbols)
            self.rectangles[record.number] = rect
            return
        group = self.symbols.import_symbol(record)
        if group is None:
            name = self.strings.decode_pascal(record.name)
            self.warnings.add(f'Unable to import symbol "{name}" ({legacy_number_label(record.number)})')
            return
        self.map.add_symbol_group(group)
        self.symbol_index[record.number] = group[0]

    def _import_object(self, record: OcdObject, layer: MapLayer, index: int) -> None:
        where = f"object {index}, symbol {legacy_number_label(record.symbol)}"
        symbol = self.symbol_index.get(record.symbol)
        if symbol is None:
            rect = self.rectangles.get(record.symbol)
            if rect is not None:
                if not self._import_rectangle_object(record, layer, rect):
                    self.warnings.add(f"Unable to import rectangle object ({where})")
                return
            if record.type == OBJECT_POINT:
                symbol = self.map.undefined_point
            elif record.type in (OBJECT_LINE, OBJECT_AREA):
                symbol = self.map.undefined_line
            else:
                self.warnings.add(f"Unable to load object ({where})")
                return

        obj: MapObject | None = None
        if isinstance(symbol, PointSymbol):
            obj = self._import_point_object(record, symbol, where)
        elif isinstance(symbol, TextSymbol):
            obj = self._import_text_object(record, symbol, where)
        elif symbol.kind in (SymbolType.LINE, SymbolType.AREA, SymbolType.COMBINED):
            obj = PathObject(symbol, decode_path(record.points, is_area=symbol.kind == SymbolType.AREA))
        else:
            self.warnings.add(f"Unable to load object ({where})")
        if obj is not None:
            layer.objects.append(obj)

    def _import_point_object(self, record: OcdObject, symbol: PointSymbol, where: str) -> PointObject | None:
        if not record.points:
            self.warnings.add(f"Unable to load object ({where})")
            return None
        point = PointObject(symbol)
        if symbol.rotatable:
            point.rotation = decode_rotation(record.angle)
        elif record.angle != 0 and not symbol.is_symmetrical():
            symbol.rotatable = True
            point.rotation = decode_rotation(record.angle)
        # Exactly one coordinate, whatever the record claims.
        point.coords = decode_path(record.points[:1], is_area=False, detect_closed=False)
        return point

    def _import_text_object(self, record: OcdObject, symbol: TextSymbol, where: str) -> TextObject | None:
        text = TextObject(
            symbol,
            rotation=decode_rotation(record.angle),
            horizontal_alignment=self.symbols.text_alignments.get(symbol, HorizontalAlignment.CENTER),
            vertical_alignment=VerticalAlignment.BASELINE,
        )
        if record.unicode:
            text.text = self.strings.decode_wide_cstring(record.text, len(record.text), ignore_first_newline=True)
        else:
            text.text = self.strings.decode_cstring(record.text, len(record.text), ignore_first_newline=True)
        text.text = text.text.replace("\r\n", "\n")

        if not decode_text_geometry(text, symbol, record.points, self.warnings, where):
            self.warnings.add(
                f"Not importing text symbol, couldn't figure out path ({where}, npts={len(record.points)}): {text.text}"
            )
            return None
        return text

    def _import_rectangle_object(self, record: OcdObject, layer: MapLayer, rect: RectangleInfo) -> bool:
        if len(record.points) != 4:
            return False
        bottom_left = decode_coord(record.points[0]).to_float()
        bottom_right = decode_coord(record.points[1]).to_float()
        top_right = decode_coord(record.points[2]).to_float()
        top_left = decode_coord(record.points[3]).to_float()

        right = top_right - top_left
        angle = right.angle()
        down = (bottom_left - top_left).normalized()
        right = right.normalized()

        radius = 1000 * rect.corner_radius
        if radius == 0:
            coords = [corner.to_coord() for corner in (top_left, top_right, bottom_right, bottom_left)]
        else:
            handle = (1 - BEZIER_KAPPA) * radius
            coords = [
                (top_right - right * radius).to_coord(curve_start=True),
                (top_right - right * handle).to_coord(),
                (top_right + down * handle).to_coord(),
                (top_right + down * radius).to_coord(),
                (bottom_right - down * radius).to_coord(curve_start=True),
                (bottom_right - down * handle).to_coord(),
                (bottom_right - right * handle).to_coord(),
                (bottom_right - right * radius).to_coord(),
                (bottom_left + right * radius).to_coord(curve_start=True),
                (bottom_left + right * handle).to_coord(),
                (bottom_left - down * handle).to_coord(),
                (bottom_left - down * radius).to_coord(),
                (top_left + down * radius).to_coord(curve_start=True),
                (top_left + down * handle).to_coord(),
                (top_left + right * handle).to_coord(),
                (top_left + right * radius).to_coord(),
            ]
        border = PathObject(rect.border_line, coords)
        border.close_part(0)
        layer.objects.append(border)

        if not (rect.has_grid and rect.cell_width > 0 and rect.cell_height > 0):
            return True
        assert rect.inner_line is not None and rect.text is not None

        width = (top_right - top_left).length()
        height = (bottom_left - top_left).length()
        cells_x = max(1, round(width / (1000 * rect.cell_width)))
        cells_y = max(1, round(height / (1000 * rect.cell_height)))
        cell_width = width / cells_x
        cell_height = height / cells_y

        for x in range(1, cells_x):
            offset = right * (x * cell_width)
            layer.objects.append(
                PathObject(rect.inner_line, [(top_left + offset).to_coord(), (bottom_left + offset).to_coord()])
            )
        for y in range(1, cells_y):
            offset = down * (y * cell_height)
            layer.objects.append(
                PathObject(rect.inner_line, [(top_left + offset).to_coord(), (top_right + offset).to_coord()])
            )

        if height < 1000 * rect.cell_height / 2:
            return True
        metrics = rect.text.metrics()
        baseline_shift = 1000 * (metrics.ascent / metrics.internal_scaling - rect.text.font_size_mm)
        total_cells = cells_x * cells_y
        for y in range(cells_y):
            for x in range(cells_x):
                if rect.number_from_bottom:
                    cell_number = y * cells_x + x + 1
                else:
                    cell_number = (cells_y - 1 - y) * cells_x + x + 1
                if cell_number > total_cells - rect.unnumbered_cells:
                    cell_text = rect.unnumbered_text
                else:
                    cell_text = str(cell_number)

                position_x = (x + 0.07) * cell_width
                position_y = (y + 0.04) * cell_height + baseline_shift
                anchor = top_left + right * position_x + down * position_y
                text = TextObject(
                    rect.text,
                    text=cell_text,
                    rotation=-angle,
                    horizontal_alignment=HorizontalAlignment.LEFT,
                    vertical_alignment=VerticalAlignment.TOP,
                )
                text.set_anchor_position(round(anchor.x), round(anchor.y))
                layer.objects.append(text)
        return True

    def _import_string(self, string: OcdString) -> None:
        if string.type != STRING_BACKGROUND:
            return
        text = self.strings.decode_cstring(string.data, len(string.data))
        background = _parse_background(text)
        if background is None:
            self.warnings.add(f"Unable to import template: {text}")
            return
        template = self._import_raster_template(background)
        if template is not None:
            self.map.templates.append(template)
            self.view.set_template_visible(template, True)

    def _import_raster_template(self, background: _Background) -> TemplateImage | None:
        if not is_raster_image_file(background.filename):
            self.warnings.add(
                f'Unable to import template: background "{background.filename}" doesn\'t seem to be a raster image'
            )
            return None
        x, y = decode_point(background.x, background.y)
        return TemplateImage(
            filename=background.filename,
            x=x,
            y=y,
            rotation=math.pi / 180 * background.angle,
            scale_x=self._template_scale(background.scale_x),
            scale_y=self._template_scale(background.scale_y),
        )

    def _template_scale(self, legacy_scale: float) -> float:
        # Meters on the map per pixel, times the scale: meters in reality per pixel.
        return legacy_scale * 0.00001 * self.map.scale_denominator


class _MapExporter:
    def __init__(self, map: Map, view: MapView | None, options: ExportOptions) -> None:
        self.map = map
        self.view = view
        self.warnings = WarningLog()
        narrow, wide = resolve_encodings(options)
        self.strings = StringCodec(narrow, wide, self.warnings)
        self.colors = ColorExporter(map, self.strings)
        self.reserved_numbers: set[int] = set()
        self.symbols = SymbolExporter(map, self.strings, self.colors, self.warnings, self.reserved_numbers)
        self.builder = OcdBuilder()
        self.records: dict[int, OcdSymbol] = {}
        self.exported: dict[Symbol, set[int]] = {}
        self.text_formats: dict[Symbol, list[tuple[HorizontalAlignment, int]]] = {}

    def run(self) -> tuple[bytes, list[str]]:
        if len(self.map.colors) > MAX_COLORS:
            raise FormatError(
                f"The map contains more than {MAX_COLORS} colors which is not supported by ocd version 8."
            )
        builder = self.builder
        builder.header.file_type = 2
        builder.header.major = 8
        builder.header.minor = 0
        if self.map.notes:
            builder.notes = self.strings.encode_cstring(self.map.notes, len(self.map.notes) + 1)

        if self.view is not None:
            builder.setup.center = encode_coord(self.view.center_x, self.view.center_y)
            builder.setup.zoom = self.view.zoom
        else:
            builder.setup.zoom = 1.0
        builder.setup.scale = float(self.map.scale_denominator)

        builder.colors = self.colors.export_colors()
        self._export_symbols()
        index = 0
        for layer in self.map.layers:
            for obj in layer.objects:
                self._export_object(obj, index)
                index += 1

        data = builder.to_bytes()
        logger.info(
            "exported %d colors, %d symbols and %d objects (%d bytes, %d warnings)",
            len(builder.colors),
            len(builder.symbols),
            len(builder.objects),
            len(data),
            len(self.warnings),
        )
        return data, self.warnings.messages

    def _add_record(self, record: OcdSymbol) -> None:
        self.builder.add_symbol(record)
        self.records[record.number] = record

    def _export_symbols(self) -> None:
        # Combined symbols go second so that all their parts already have numbers.
        for symbol in self.map.symbols:
            if isinstance(symbol, CombinedSymbol):
                continue
            record = self.symbols.export_symbol(symbol)
            if record is None:
                continue
            self._add_record(record)
            self.exported[symbol] = {record.number}
        for symbol in self.map.symbols:
            if isinstance(symbol, CombinedSymbol):
                self.exported[symbol] = self.symbols.export_combined(symbol, self.exported)

    def _export_object(self, obj: MapObject, index: int) -> None:
        angle = 0
        unicode = 0
        text = b""
        if isinstance(obj, TextObject):
            points = encode_text_geometry(obj)
        else:
            points = encode_path(obj.coords, obj.symbol)
        if len(points) > MAX_OBJECT_UNITS - (1 if isinstance(obj, TextObject) else 0):
            self.warnings.add(
                f"Object {index} ({_symbol_label(obj.symbol)}) has {len(points)} coordinates, "
                f"more than {MAX_OBJECT_UNITS}; not exporting it"
            )
            return
        if isinstance(obj, TextObject):
            unicode = 1
            angle = encode_rotation(obj.rotation)
            # Text units share the int16 count with the coordinates.
            text = self.strings.encode_wide_cstring(obj.text, 8 * (MAX_OBJECT_UNITS - len(points)))
        elif isinstance(obj, PointObject):
            angle = encode_rotation(obj.rotation)

        if obj.symbol is not None and obj.symbol in self.exported:
            numbers = sorted(self.exported[obj.symbol])
        else:
            numbers = [-1]

        for number in numbers:
            if isinstance(obj, TextObject):
                number = self._formatted_text_number(obj, number)
            object_type = self._object_type(obj, number)
            if object_type is None:
                continue
            self.builder.objects.append(
                OcdObject(
                    symbol=number,
                    type=object_type,
                    unicode=unicode,
                    angle=angle,
                    points=list(points),
                    text=text,
                )
            )

    def _formatted_text_number(self, obj: TextObject, number: int) -> int:
        """Number of a text symbol record whose alignment matches ``obj``, cloning one if needed."""
        record = self.records.get(number)
        if not isinstance(record, OcdTextSymbol) or obj.symbol is None:
            return number
        formats = self.text_formats.get(obj.symbol)
        if formats is None:
            SymbolExporter.set_text_formatting(record, obj)
            self.text_formats[obj.symbol] = [(obj.horizontal_alignment, number)]
            return number
        for alignment, existing in formats:
            if alignment == obj.horizontal_alignment:
                return existing
        clone = copy.deepcopy(record)
        SymbolExporter.set_text_formatting(clone, obj)
        clone.number = self.symbols.reserve_number(clone.number)
        self._add_record(clone)
        formats.append((obj.horizontal_alignment, clone.number))
        return clone.number

    def _object_type(self, obj: MapObject, number: int) -> int | None:
        if isinstance(obj, PointObject):
            return OBJECT_POINT
        if isinstance(obj, PathObject):
            record = self.records.get(number)
            if record is None or record.type == SYMBOL_LINE:
                return OBJECT_LINE
            return OBJECT_AREA
        if isinstance(obj, TextObject):
            return OBJECT_UNFORMATTED_TEXT if obj.has_single_anchor else OBJECT_FORMATTED_TEXT
        return None
