from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Sequence

from .convert import to_dxf
from .document import read, write
from .errors import FormatError
from .objects import PathObject, PointObject, TextObject
from .settings import get_settings

_TOP_WARNINGS = 5


def _package_version() -> str:
    try:
        return version("ezocd")
    except PackageNotFoundError:
        return "0.0.0"


def _configure_logging() -> None:
    level = getattr(logging, get_settings().log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ezocd", description="Inspect, convert, and rewrite OCAD 6-8 map files.")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_package_version()}",
    )
    subparsers = parser.add_subparsers(dest="command")

    inspect_parser = subparsers.add_parser("inspect", help="Show basic map information.")
    inspect_parser.add_argument("path", help="Path to OCD file.")
    inspect_parser.add_argument(
        "--symbols-only",
        action="store_true",
        help="Skip objects, templates and view parameters.",
    )
    inspect_parser.add_argument(
        "--verbose",
        action="store_true",
        help="List every warning instead of the most frequent ones.",
    )

    convert_parser = subparsers.add_parser(
        "convert",
        help="Convert OCD to a DXF preview using ezdxf as the writing backend.",
    )
    convert_parser.add_argument("input_path", help="Path to OCD file.")
    convert_parser.add_argument("output_path", help="Path to output DXF file.")
    convert_parser.add_argument(
        "--dxf-version",
        default="R2010",
        help="DXF version for ezdxf.new(), e.g. R2000/R2010/R2018.",
    )
    convert_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail if any object cannot be converted.",
    )

    rewrite_parser = subparsers.add_parser(
        "rewrite",
        help="Import an OCD file and export it again as version 8.",
    )
    rewrite_parser.add_argument("input_path", help="Path to OCD file.")
    rewrite_parser.add_argument("output_path", help="Path to output OCD file.")
    return parser


def _print_warnings(warnings: list[str], *, verbose: bool, prefix: str = "warning") -> None:
    print(f"{prefix}s: {len(warnings)}")
    if verbose:
        for message in warnings:
            print(f"{prefix}: {message}")
        return
    for message, count in Counter(warnings).most_common(_TOP_WARNINGS):
        print(f"{prefix}[{count}]: {message}")


def _run_inspect(path: str, *, symbols_only: bool = False, verbose: bool = False) -> int:
    file_path = Path(path)
    if not file_path.exists():
        print(f"error: file not found: {file_path}", file=sys.stderr)
        return 2

    try:
        header = file_path.read_bytes()[:8]
        map, view, warnings = read(file_path, symbols_only=symbols_only)
    except (FormatError, OSError) as exc:
        print(f"error: failed to read OCD: {exc}", file=sys.stderr)
        return 2

    major = int.from_bytes(header[4:6], "little")
    minor = int.from_bytes(header[6:8], "little")
    print(f"path: {file_path}")
    print(f"version: {major}.{minor}")
    print(f"scale: 1:{map.scale_denominator}")
    print(f"colors: {len(map.colors)}")
    print(f"symbols: {len(map.symbols)}")
    symbol_kinds = Counter(symbol.kind.value for symbol in map.symbols)
    for kind, count in sorted(symbol_kinds.items()):
        print(f"symbols[{kind}]: {count}")

    if not symbols_only:
        print(f"objects: {map.object_count}")
        object_kinds: Counter[str] = Counter()
        for obj in map.iter_objects():
            if isinstance(obj, TextObject):
                object_kinds["text"] += 1
            elif isinstance(obj, PointObject):
                object_kinds["point"] += 1
            elif isinstance(obj, PathObject):
                object_kinds["path"] += 1
        for kind, count in sorted(object_kinds.items()):
            print(f"objects[{kind}]: {count}")
        print(f"templates: {len(map.templates)}")
        print(f"view: zoom={view.zoom:g} center=({view.center_x}, {view.center_y})")

    _print_warnings(warnings, verbose=verbose)
    return 0


def _run_convert(
    input_path: str,
    output_path: str,
    *,
    dxf_version: str = "R2010",
    strict: bool = False,
) -> int:
    ocd_path = Path(input_path)
    if not ocd_path.exists():
        print(f"error: file not found: {ocd_path}", file=sys.stderr)
        return 2

    try:
        result = to_dxf(str(ocd_path), output_path, dxf_version=dxf_version, strict=strict)
    except Exception as exc:
        print(f"error: failed to convert OCD to DXF: {exc}", file=sys.stderr)
        return 2

    print(f"input: {result.source_path}")
    print(f"output: {result.output_path}")
    print(f"total_entities: {result.total_entities}")
    print(f"written_entities: {result.written_entities}")
    print(f"skipped_entities: {result.skipped_entities}")
    for name, count in result.skipped_by_type.items():
        print(f"skipped[{name}]: {count}")
    return 0


def _run_rewrite(input_path: str, output_path: str) -> int:
    ocd_path = Path(input_path)
    if not ocd_path.exists():
        print(f"error: file not found: {ocd_path}", file=sys.stderr)
        return 2

    try:
        map, view, import_warnings = read(ocd_path)
        export_warnings = write(output_path, map, view)
    except (FormatError, OSError) as exc:
        print(f"error: failed to rewrite OCD: {exc}", file=sys.stderr)
        return 2

    print(f"input: {ocd_path}")
    print(f"output: {output_path}")
    print(f"objects: {map.object_count}")
    _print_warnings(import_warnings, verbose=False, prefix="import_warning")
    _print_warnings(export_warnings, verbose=False, prefix="export_warning")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging()

    if args.command == "inspect":
        return _run_inspect(args.path, symbols_only=bool(args.symbols_only), verbose=bool(args.verbose))
    if args.command == "convert":
        return _run_convert(
            args.input_path,
            args.output_path,
            dxf_version=args.dxf_version,
            strict=bool(args.strict),
        )
    if args.command == "rewrite":
        return _run_rewrite(args.input_path, args.output_path)

    parser.print_help()
    return 0
