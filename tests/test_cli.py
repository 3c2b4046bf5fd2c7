from __future__ import annotations

from pathlib import Path

import pytest

import ezocd.cli as cli_module
from ezocd.document import understands
from ezocd.records import ELEMENT_DOT, OcdElement
from tests._ocd_helpers import build_ocd, minimal_ocd, point_symbol, pt


def _write(path: Path, data: bytes) -> Path:
    path.write_bytes(data)
    return path


def test_cli_inspect_prints_summary(tmp_path: Path, capsys) -> None:
    path = _write(tmp_path / "course.ocd", minimal_ocd(scale=10000.0))

    code = cli_module.main(["inspect", str(path)])

    out = capsys.readouterr().out
    assert code == 0
    assert f"path: {path}" in out
    assert "version: 8.0" in out
    assert "scale: 1:10000" in out
    assert "colors: 1" in out
    assert "symbols[point]: 1" in out
    assert "objects: 1" in out
    assert "objects[point]: 1" in out
    assert "templates: 0" in out
    assert "view: zoom=1 center=(0, 0)" in out
    assert "warnings: 0" in out


def test_cli_inspect_symbols_only_skips_objects(tmp_path: Path, capsys) -> None:
    path = _write(tmp_path / "course.ocd", minimal_ocd(major=7))

    code = cli_module.main(["inspect", "--symbols-only", str(path)])

    out = capsys.readouterr().out
    assert code == 0
    assert "version: 7.0" in out
    assert "objects:" not in out


def test_cli_inspect_reports_warnings(tmp_path: Path, capsys) -> None:
    dot = OcdElement(type=ELEMENT_DOT, color=77, diameter=100, points=[pt(0, 0)])
    path = _write(tmp_path / "broken_color.ocd", build_ocd(symbols=[point_symbol(elements=[dot])]))

    code = cli_module._run_inspect(str(path), verbose=True)

    out = capsys.readouterr().out
    assert code == 0
    assert "warnings: 1" in out
    assert "warning: Color id not found: 77 (symbol 10.1), ignoring this color" in out


def test_cli_inspect_missing_file(tmp_path: Path, capsys) -> None:
    code = cli_module.main(["inspect", str(tmp_path / "missing.ocd")])

    assert code == 2
    assert "error: file not found" in capsys.readouterr().err


def test_cli_inspect_rejects_other_files(tmp_path: Path, capsys) -> None:
    path = _write(tmp_path / "notes.ocd", b"not a map")

    code = cli_module.main(["inspect", str(path)])

    assert code == 2
    assert "error: failed to read OCD" in capsys.readouterr().err


def test_cli_rewrite_exports_version_8(tmp_path: Path, capsys) -> None:
    source = _write(tmp_path / "old.ocd", minimal_ocd(major=6))
    output = tmp_path / "out" / "new.ocd"

    code = cli_module.main(["rewrite", str(source), str(output)])

    out = capsys.readouterr().out
    assert code == 0
    assert "objects: 1" in out
    assert "import_warnings: 0" in out
    data = output.read_bytes()
    assert understands(data)
    assert int.from_bytes(data[4:6], "little") == 8


def test_cli_convert_writes_dxf(tmp_path: Path, capsys) -> None:
    pytest.importorskip("ezdxf")
    source = _write(tmp_path / "course.ocd", minimal_ocd())
    output = tmp_path / "course.dxf"

    code = cli_module.main(["convert", str(source), str(output), "--dxf-version", "R2000"])

    out = capsys.readouterr().out
    assert code == 0
    assert output.exists()
    assert "total_entities: 1" in out
    assert "written_entities: 1" in out


def test_cli_without_command_prints_help(capsys) -> None:
    assert cli_module.main([]) == 0
    assert "usage: ezocd" in capsys.readouterr().out
