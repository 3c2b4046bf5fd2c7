from typing import Sequence

from .convert import ConvertResult, to_dxf
from .document import export_map, import_map, read, understands, write
from .errors import FormatError, WarningLog
from .map import Map, MapColor, MapLayer, MapView, TemplateImage
from .settings import CodecSettings, ExportOptions, ImportOptions, get_settings

__all__ = [
    "read",
    "write",
    "understands",
    "import_map",
    "export_map",
    "Map",
    "MapColor",
    "MapLayer",
    "MapView",
    "TemplateImage",
    "FormatError",
    "WarningLog",
    "ImportOptions",
    "ExportOptions",
    "CodecSettings",
    "get_settings",
    "to_dxf",
    "ConvertResult",
]


def main(argv: Sequence[str] | None = None) -> int:
    from ezocd.cli import main as cli_main

    return cli_main(argv)
