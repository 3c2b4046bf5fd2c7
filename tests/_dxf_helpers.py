from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest


def read_modelspace(path: Path) -> Any:
    ezdxf = pytest.importorskip("ezdxf")
    return ezdxf.readfile(str(path)).modelspace()


def dxf_entities_of_type(path: Path, entity_type: str) -> list[Any]:
    return list(read_modelspace(path).query(entity_type))


def dxf_lwpolyline_points(entity: Any) -> list[tuple[float, float]]:
    return [(round(x, 6), round(y, 6)) for x, y in entity.get_points("xy")]
