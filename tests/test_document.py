from __future__ import annotations

import io
import logging
import math
from pathlib import Path

import pytest

import ezocd
from ezocd.coords import MapCoord
from ezocd.document import export_map, import_map, understands
from ezocd.errors import FormatError
from ezocd.map import Map, MapColor, MapView
from ezocd.objects import HorizontalAlignment, PathObject, PointObject, TextObject, VerticalAlignment
from ezocd.records import (
    ELEMENT_DOT,
    ELEMENT_LINE,
    MAX_OBJECT_UNITS,
    OBJECT_AREA,
    OBJECT_FORMATTED_TEXT,
    OBJECT_LINE,
    OBJECT_POINT,
    OBJECT_RECTANGLE,
    OBJECT_UNFORMATTED_TEXT,
    PY_HOLE,
    STRING_BACKGROUND,
    OcdAreaSymbol,
    OcdElement,
    OcdFile,
    OcdLineSymbol,
    OcdObject,
    OcdRectSymbol,
    OcdString,
    OcdSymbol,
    OcdTextSymbol,
)
from ezocd.settings import ImportOptions
from ezocd.strings import StringCodec
from ezocd.symbol import (
    AreaSymbol,
    CombinedSymbol,
    LineSymbol,
    PointSymbol,
    SymbolNumber,
    TextSymbol,
)
from tests._ocd_helpers import build_ocd, minimal_ocd, pascal, point_symbol, pt

_SQUARE = [pt(0, 0), pt(2000, 0), pt(2000, 1000), pt(0, 1000)]


def _import(data: bytes, **options) -> tuple[Map, MapView, list[str]]:
    return import_map(io.BytesIO(data), options=ImportOptions(**options))


def test_understands_checks_magic_bytes() -> None:
    assert understands(minimal_ocd())
    assert not understands(b"PK\x03\x04")
    assert not understands(b"")


def test_import_minimal_file() -> None:
    map, view, warnings = _import(minimal_ocd())

    assert warnings == []
    assert len(map.colors) == 1
    assert map.colors[0].name == "Black"
    assert len(map.symbols) == 1
    symbol = map.symbols[0]
    assert isinstance(symbol, PointSymbol)
    assert not symbol.rotatable
    assert str(symbol.number) == "10.1"
    assert [layer.name for layer in map.layers] == ["OCAD import layer"]
    assert map.object_count == 1
    obj = map.layers[0].objects[0]
    assert isinstance(obj, PointObject)
    assert obj.symbol is symbol
    assert (obj.position.x, obj.position.y) == (1000, -2000)
    assert map.first_front_template == 0


@pytest.mark.parametrize("major", [6, 7, 8])
def test_supported_versions_load(major: int) -> None:
    map, _view, _warnings = _import(minimal_ocd(major=major))
    assert map.object_count == 1


@pytest.mark.parametrize("major", [5, 9, 11])
def test_unsupported_versions_are_fatal(major: int) -> None:
    with pytest.raises(FormatError, match=f"version {major}"):
        _import(minimal_ocd(major=major))


def test_bad_magic_and_short_buffers_are_fatal() -> None:
    data = bytearray(minimal_ocd())
    data[0] = 0
    with pytest.raises(FormatError):
        _import(bytes(data))
    with pytest.raises(FormatError):
        _import(b"\xad\x0c\x02\x00")


def test_format_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        _import(b"")


def test_setup_supplies_scale_notes_and_view() -> None:
    data = minimal_ocd(scale=10000.0, zoom=2.0, center=pt(10, -20), notes=b"Event 2024\x00")

    map, view, _warnings = _import(data)

    assert map.scale_denominator == 10000
    assert map.notes == "Event 2024"
    assert view.zoom == 2.0
    assert (view.center_x, view.center_y) == (100, 200)


def test_zoom_outside_limits_is_ignored() -> None:
    _map, view, _warnings = _import(minimal_ocd(zoom=1000.0))
    assert view.zoom == 1.0


def test_symbols_only_skips_objects() -> None:
    map, _view, _warnings = _import(minimal_ocd(), symbols_only=True)

    assert len(map.symbols) == 1
    assert map.object_count == 0


def test_close_stream_option() -> None:
    kept = io.BytesIO(minimal_ocd())
    import_map(kept)
    assert not kept.closed

    closed = io.BytesIO(minimal_ocd())
    import_map(closed, options=ImportOptions(close_stream=True))
    assert closed.closed


def test_rotatable_point_symbol_keeps_object_angle() -> None:
    data = build_ocd(
        symbols=[point_symbol(flags=1)],
        objects=[OcdObject(symbol=101, type=OBJECT_POINT, angle=900, points=[pt(0, 0)])],
    )

    map, _view, _warnings = _import(data)

    assert map.symbols[0].rotatable
    assert map.layers[0].objects[0].rotation == pytest.approx(math.pi / 2)


def test_rotated_object_makes_asymmetric_symbol_rotatable() -> None:
    arrow = OcdElement(type=ELEMENT_LINE, color=0, width=10, points=[pt(0, 0), pt(100, 0)])
    data = build_ocd(
        symbols=[point_symbol(101, elements=[arrow]), point_symbol(102, "Dot")],
        objects=[
            OcdObject(symbol=101, type=OBJECT_POINT, angle=450, points=[pt(0, 0)]),
            OcdObject(symbol=102, type=OBJECT_POINT, angle=450, points=[pt(0, 0)]),
        ],
    )

    map, _view, _warnings = _import(data)

    asymmetric, symmetric = map.symbols
    first, second = map.layers[0].objects
    assert asymmetric.rotatable
    assert first.rotation == pytest.approx(math.pi / 4)
    assert not symmetric.rotatable
    assert second.rotation == 0.0


def test_objects_with_missing_symbols_use_undefined_symbols() -> None:
    data = build_ocd(
        objects=[
            OcdObject(symbol=999, type=OBJECT_POINT, points=[pt(0, 0)]),
            OcdObject(symbol=999, type=OBJECT_LINE, points=[pt(0, 0), pt(100, 0)]),
            OcdObject(symbol=999, type=OBJECT_UNFORMATTED_TEXT, points=[pt(0, 0)], text=b"x\x00"),
        ],
    )

    map, _view, warnings = _import(data)

    point, line = map.layers[0].objects
    assert point.symbol is map.undefined_point
    assert line.symbol is map.undefined_line
    assert warnings == ["Unable to load object (object 2, symbol 99.9)"]


def test_missing_color_ordinal_is_reported_once() -> None:
    dot = OcdElement(type=ELEMENT_DOT, color=77, diameter=100, points=[pt(0, 0)])
    data = build_ocd(symbols=[point_symbol(elements=[dot])])

    map, _view, warnings = _import(data)

    assert len(warnings) == 1
    assert warnings[0] == "Color id not found: 77 (symbol 10.1), ignoring this color"
    assert map.symbols[0].inner_color is None


def test_unknown_symbol_kind_is_skipped_with_warning() -> None:
    odd = OcdSymbol(number=123, type=9, name=pascal("Odd"))
    data = build_ocd(symbols=[odd], objects=[OcdObject(symbol=123, type=9, points=[pt(0, 0)])])

    map, _view, warnings = _import(data)

    assert map.symbols == []
    assert warnings == ['Unable to import symbol "Odd" (12.3)', "Unable to load object (object 0, symbol 12.3)"]


def test_line_and_area_objects_keep_flags() -> None:
    data = build_ocd(
        symbols=[
            OcdLineSymbol(number=102, name=pascal("Path"), width=25),
            OcdAreaSymbol(number=401, name=pascal("Lake"), fill=1),
        ],
        objects=[
            OcdObject(symbol=102, type=OBJECT_LINE, points=[pt(0, 0), pt(100, 0), pt(100, 100), pt(0, 0)]),
            OcdObject(
                symbol=401,
                type=OBJECT_AREA,
                points=[pt(0, 0), pt(500, 0), pt(500, 500), pt(100, 100, 0, PY_HOLE), pt(200, 100), pt(200, 200)],
            ),
        ],
    )

    map, _view, _warnings = _import(data)

    line, area = map.layers[0].objects
    assert isinstance(line, PathObject)
    assert isinstance(line.symbol, LineSymbol)
    assert line.coords[-1].close_point
    assert isinstance(area.symbol, AreaSymbol)
    assert [coord.hole_point for coord in area.coords] == [False, False, True, False, False, False]
    assert len(area.parts()) == 2


def test_double_line_objects_reference_the_combined_symbol() -> None:
    record = OcdLineSymbol(number=102, name=pascal("Road"), width=20, dmode=1, dwidth=60, lwidth=5, rwidth=5)
    data = build_ocd(symbols=[record], objects=[OcdObject(symbol=102, type=OBJECT_LINE, points=[pt(0, 0), pt(100, 0)])])

    map, _view, _warnings = _import(data)

    assert len(map.symbols) == 3
    combined = map.symbols[0]
    assert isinstance(combined, CombinedSymbol)
    assert combined.parts == [1, 2]
    assert map.layers[0].objects[0].symbol is combined


def _text_symbol(number: int = 301, halign: int = 0) -> OcdTextSymbol:
    return OcdTextSymbol(number=number, name=pascal("Label"), font=pascal("Arial"), dpts=100, halign=halign, lspace=115)


def test_text_objects_decode_wide_and_narrow_text() -> None:
    codec = StringCodec()
    anchor_points = [pt(100, 200), pt(90, 190), pt(130, 190), pt(130, 230), pt(90, 230)]
    data = build_ocd(
        symbols=[_text_symbol()],
        objects=[
            OcdObject(
                symbol=301,
                type=OBJECT_UNFORMATTED_TEXT,
                unicode=1,
                angle=900,
                points=anchor_points,
                text=codec.encode_wide_cstring("Line 1\nLine 2", 64),
            ),
            OcdObject(symbol=301, type=OBJECT_UNFORMATTED_TEXT, points=anchor_points, text=b"\r\nHi\x00"),
        ],
    )

    map, _view, warnings = _import(data)

    wide, narrow = map.layers[0].objects
    assert isinstance(wide, TextObject)
    assert wide.text == "Line 1\nLine 2"
    assert wide.rotation == pytest.approx(math.pi / 2)
    assert wide.horizontal_alignment == HorizontalAlignment.LEFT
    assert wide.vertical_alignment == VerticalAlignment.BASELINE
    assert (wide.anchor.x, wide.anchor.y) == (1000, -2000)
    assert narrow.text == "Hi"
    assert warnings == []


def test_text_object_without_points_is_dropped() -> None:
    data = build_ocd(
        symbols=[_text_symbol()],
        objects=[OcdObject(symbol=301, type=OBJECT_UNFORMATTED_TEXT, points=[], text=b"Hello\x00")],
    )

    map, _view, warnings = _import(data)

    assert map.object_count == 0
    assert warnings == [
        "Not importing text symbol, couldn't figure out path (object 0, symbol 30.1, npts=0): Hello"
    ]


def test_box_text_object_becomes_top_aligned_box() -> None:
    data = build_ocd(
        symbols=[_text_symbol(halign=1)],
        objects=[OcdObject(symbol=301, type=OBJECT_FORMATTED_TEXT, points=_SQUARE, text=b"Box\x00")],
    )

    map, _view, _warnings = _import(data)

    (text,) = map.layers[0].objects
    assert not text.has_single_anchor
    assert text.vertical_alignment == VerticalAlignment.TOP
    assert text.horizontal_alignment == HorizontalAlignment.CENTER
    assert text.box_width == 20000
    assert 9000 < text.box_height < 10000


def test_rectangle_object_expands_to_closed_border() -> None:
    data = build_ocd(
        symbols=[OcdRectSymbol(number=501, name=pascal("Frame"), color=0, width=20)],
        objects=[OcdObject(symbol=501, type=OBJECT_RECTANGLE, points=_SQUARE)],
    )

    map, _view, warnings = _import(data)

    assert warnings == []
    assert len(map.symbols) == 1
    (border,) = map.layers[0].objects
    assert isinstance(border, PathObject)
    assert border.symbol is map.symbols[0]
    assert [(coord.x, coord.y) for coord in border.coords] == [
        (0, -10000),
        (20000, -10000),
        (20000, 0),
        (0, 0),
        (0, -10000),
    ]
    assert border.is_part_closed(0)


def test_rounded_rectangle_uses_curves() -> None:
    data = build_ocd(
        symbols=[OcdRectSymbol(number=501, color=0, width=20, corner=100)],
        objects=[OcdObject(symbol=501, type=OBJECT_RECTANGLE, points=_SQUARE)],
    )

    map, _view, _warnings = _import(data)

    (border,) = map.layers[0].objects
    assert len(border.coords) == 17
    assert sum(coord.curve_start for coord in border.coords) == 4
    assert (border.coords[0].x, border.coords[0].y) == (19000, -10000)
    assert border.is_part_closed(0)


def test_rectangle_grid_adds_lines_and_cell_numbers() -> None:
    data = build_ocd(
        symbols=[OcdRectSymbol(number=501, color=0, width=20, grid_flags=1, cwidth=1000, cheight=1000)],
        objects=[OcdObject(symbol=501, type=OBJECT_RECTANGLE, points=_SQUARE)],
    )

    map, _view, _warnings = _import(data)

    assert len(map.symbols) == 3
    _border, grid_line, *texts = map.layers[0].objects
    assert grid_line.symbol is map.symbols[1]
    assert [(coord.x, coord.y) for coord in grid_line.coords] == [(10000, -10000), (10000, 0)]
    assert [text.text for text in texts] == ["1", "2"]
    assert all(text.horizontal_alignment == HorizontalAlignment.LEFT for text in texts)
    assert texts[0].anchor.x == 700
    assert texts[1].anchor.x == 10700


def test_rectangle_object_with_wrong_point_count_warns() -> None:
    data = build_ocd(
        symbols=[OcdRectSymbol(number=501, color=0, width=20)],
        objects=[OcdObject(symbol=501, type=OBJECT_RECTANGLE, points=_SQUARE[:3])],
    )

    map, _view, warnings = _import(data)

    assert map.object_count == 0
    assert warnings == ["Unable to import rectangle object (object 0, symbol 50.1)"]


def test_background_strings_become_raster_templates() -> None:
    data = minimal_ocd(
        scale=10000.0,
        strings=[
            OcdString(STRING_BACKGROUND, b"C:\\maps\\base.JPG\tx100\ty200\ta45\tu1\tv2\td0\tt0\x00"),
            OcdString(STRING_BACKGROUND, b"course.ocd\tx0\ty0\x00"),
            OcdString(STRING_BACKGROUND, b"\tx1\x00"),
            OcdString(7, b"print settings\x00"),
        ],
    )

    map, view, warnings = _import(data)

    assert len(map.templates) == 1
    template = map.templates[0]
    assert template.filename == "C:\\maps\\base.JPG"
    assert (template.x, template.y) == (1000, -2000)
    assert template.rotation == pytest.approx(math.pi / 4)
    assert template.scale_x == pytest.approx(0.1)
    assert template.scale_y == pytest.approx(0.2)
    assert view.is_template_visible(template)
    assert map.first_front_template == 1
    assert len(warnings) == 2
    assert "doesn't seem to be a raster image" in warnings[0]
    assert warnings[1].startswith("Unable to import template")


def _sample_map() -> tuple[Map, MapView]:
    black = MapColor("Black", k=1.0)
    point = PointSymbol(number=SymbolNumber(10, 1), name="Boulder", rotatable=True, inner_radius=300, inner_color=black)
    line = LineSymbol(number=SymbolNumber(20, 0), name="Path", line_width=300, color=black)
    area = AreaSymbol(number=SymbolNumber(30, 0), name="Lake", color=black)
    map = Map(colors=[black], symbols=[point, line, area], scale_denominator=10000, notes="Course A")
    map.layers[0].objects.extend(
        [
            PointObject(point, [MapCoord(1000, -2000)], rotation=math.pi / 2),
            PathObject(line, [MapCoord(0, 0), MapCoord(10000, 0), MapCoord(10000, 10000)]),
            PathObject(area, [MapCoord(0, 0), MapCoord(5000, 0), MapCoord(5000, 5000), MapCoord(0, 0)]),
        ]
    )
    return map, MapView(zoom=4.0, center_x=1000, center_y=2000)


def test_export_then_import_preserves_the_map() -> None:
    map, view = _sample_map()
    stream = io.BytesIO()

    warnings = export_map(stream, map, view)

    assert warnings == []
    data = stream.getvalue()
    assert understands(data)
    file = OcdFile(data)
    assert file.version == (8, 0)
    assert [obj.type for obj in file.iter_objects()] == [OBJECT_POINT, OBJECT_LINE, OBJECT_AREA]

    imported, imported_view, import_warnings = _import(data)

    assert import_warnings == []
    assert imported.scale_denominator == 10000
    assert imported.notes == "Course A"
    assert [color.name for color in imported.colors] == ["Black"]
    assert [str(symbol.number) for symbol in imported.symbols] == ["10.1", "20.0", "30.0"]
    point, line, area = imported.layers[0].objects
    assert point.symbol.rotatable
    assert point.rotation == pytest.approx(math.pi / 2)
    assert (point.position.x, point.position.y) == (1000, -2000)
    assert [(coord.x, coord.y) for coord in line.coords] == [(0, 0), (10000, 0), (10000, 10000)]
    assert area.coords[-1].close_point
    assert imported_view.zoom == 4.0
    assert (imported_view.center_x, imported_view.center_y) == (1000, 2000)


def test_export_without_view_writes_unit_zoom() -> None:
    map, _view = _sample_map()
    stream = io.BytesIO()
    export_map(stream, map)

    _map, view, _warnings = _import(stream.getvalue())

    assert view.zoom == 1.0


def test_export_rejects_more_than_256_colors() -> None:
    map = Map(colors=[MapColor(str(i)) for i in range(257)])

    with pytest.raises(FormatError, match="256"):
        export_map(io.BytesIO(), map)


def test_export_truncates_text_that_does_not_fit_the_object_record() -> None:
    symbol = TextSymbol(number=SymbolNumber(30, 1), name="Label", kerning=False)
    text = TextObject(symbol, text="x" * 200000)
    text.set_anchor_position(0, 0)
    map = Map(colors=[MapColor("Black", k=1.0)], symbols=[symbol])
    map.layers[0].objects.append(text)
    stream = io.BytesIO()

    warnings = export_map(stream, map)

    truncated = [warning for warning in warnings if warning.startswith("String truncated")]
    assert len(truncated) == 1
    assert "x|||x" in truncated[0]
    (exported,) = OcdFile(stream.getvalue()).iter_objects()
    assert exported.unicode == 1
    assert len(exported.points) + exported.ntext == MAX_OBJECT_UNITS

    imported, _view, _warnings = _import(stream.getvalue())
    assert imported.layers[0].objects[0].text == "x" * 131047


def test_export_skips_paths_with_too_many_coordinates() -> None:
    black = MapColor("Black", k=1.0)
    line = LineSymbol(number=SymbolNumber(20, 0), name="Path", line_width=300, color=black)
    map = Map(colors=[black], symbols=[line])
    map.layers[0].objects.extend(
        [
            PathObject(line, [MapCoord(i, 0) for i in range(40000)]),
            PathObject(line, [MapCoord(0, 0), MapCoord(1000, 0)]),
        ]
    )
    stream = io.BytesIO()

    warnings = export_map(stream, map)

    assert warnings == ["Object 0 (symbol 20.0) has 40000 coordinates, more than 32767; not exporting it"]
    objects = list(OcdFile(stream.getvalue()).iter_objects())
    assert [len(obj.points) for obj in objects] == [2]


def test_export_keeps_paths_at_the_coordinate_limit() -> None:
    black = MapColor("Black", k=1.0)
    line = LineSymbol(number=SymbolNumber(20, 0), name="Path", line_width=300, color=black)
    map = Map(colors=[black], symbols=[line])
    map.layers[0].objects.append(PathObject(line, [MapCoord(i, 0) for i in range(MAX_OBJECT_UNITS)]))
    stream = io.BytesIO()

    assert export_map(stream, map) == []
    (exported,) = OcdFile(stream.getvalue()).iter_objects()
    assert len(exported.points) == MAX_OBJECT_UNITS


def test_object_record_refuses_to_pack_more_than_the_unit_limit() -> None:
    record = OcdObject(symbol=101, type=OBJECT_LINE, points=[pt(0, 0)] * MAX_OBJECT_UNITS, text=b"\x00\x00")

    with pytest.raises(FormatError, match="32767"):
        record.pack()


def test_text_symbols_are_cloned_per_alignment() -> None:
    symbol = TextSymbol(number=SymbolNumber(30, 1), name="Label", kerning=False)
    map = Map(colors=[MapColor("Black", k=1.0)], symbols=[symbol])
    texts = [
        TextObject(symbol, text="A", horizontal_alignment=HorizontalAlignment.LEFT),
        TextObject(symbol, text="B", horizontal_alignment=HorizontalAlignment.RIGHT),
        TextObject(symbol, text="C", horizontal_alignment=HorizontalAlignment.LEFT),
        TextObject(symbol, text="D", horizontal_alignment=HorizontalAlignment.CENTER),
    ]
    for index, text in enumerate(texts[:3]):
        text.set_anchor_position(10000 * index, 0)
    texts[3].set_box(0, 20000, 10000, 5000)
    texts[3].vertical_alignment = VerticalAlignment.TOP
    map.layers[0].objects.extend(texts)

    stream = io.BytesIO()
    export_map(stream, map)
    file = OcdFile(stream.getvalue())

    halign = {record.number: record.halign for record in file.iter_symbols()}
    assert halign == {301: 0, 302: 2, 303: 1}
    objects = list(file.iter_objects())
    assert [obj.symbol for obj in objects] == [301, 302, 301, 303]
    assert [obj.type for obj in objects] == [
        OBJECT_UNFORMATTED_TEXT,
        OBJECT_UNFORMATTED_TEXT,
        OBJECT_UNFORMATTED_TEXT,
        OBJECT_FORMATTED_TEXT,
    ]
    assert all(obj.unicode == 1 for obj in objects)

    imported, _view, _warnings = _import(stream.getvalue())
    assert [text.text for text in imported.layers[0].objects] == ["A", "B", "C", "D"]
    assert [text.horizontal_alignment for text in imported.layers[0].objects] == [
        HorizontalAlignment.LEFT,
        HorizontalAlignment.RIGHT,
        HorizontalAlignment.LEFT,
        HorizontalAlignment.CENTER,
    ]


def test_combined_symbol_objects_are_written_once_per_part() -> None:
    first = LineSymbol(number=SymbolNumber(10, 0), line_width=100)
    second = LineSymbol(number=SymbolNumber(11, 0), line_width=300)
    combined = CombinedSymbol(number=SymbolNumber(12, 0), parts=[0, 1])
    map = Map(symbols=[first, second, combined])
    map.layers[0].objects.append(PathObject(combined, [MapCoord(0, 0), MapCoord(1000, 0)]))
    map.layers[0].objects.append(PointObject(map.undefined_point, [MapCoord(0, 0)]))

    stream = io.BytesIO()
    export_map(stream, map)
    file = OcdFile(stream.getvalue())

    assert sorted(record.number for record in file.iter_symbols()) == [100, 110]
    objects = list(file.iter_objects())
    assert [(obj.symbol, obj.type) for obj in objects] == [(100, OBJECT_LINE), (110, OBJECT_LINE), (-1, OBJECT_POINT)]


def test_read_and_write_paths(tmp_path: Path) -> None:
    map, view = _sample_map()
    output = tmp_path / "nested" / "course.ocd"

    assert ezocd.write(output, map, view) == []
    assert output.exists()

    loaded, loaded_view, warnings = ezocd.read(output)
    assert warnings == []
    assert loaded.object_count == 3
    assert loaded_view.zoom == 4.0

    symbols_only, _view, _warnings = ezocd.read(output, symbols_only=True)
    assert symbols_only.object_count == 0


def test_warnings_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    dot = OcdElement(type=ELEMENT_DOT, color=77, diameter=100, points=[pt(0, 0)])
    data = build_ocd(symbols=[point_symbol(elements=[dot])])

    with caplog.at_level(logging.WARNING, logger="ezocd"):
        _import(data)

    assert any("77" in record.getMessage() for record in caplog.records)
