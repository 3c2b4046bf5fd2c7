from __future__ import annotations

import pytest

from ezocd.settings import reload_settings


@pytest.fixture(autouse=True)
def no_system_fonts(monkeypatch: pytest.MonkeyPatch):
    """Lay out text with the built-in metrics unless a test points at its own fonts."""
    monkeypatch.setenv("EZOCD_FONT_DIRS", "[]")
    reload_settings()
    yield
    monkeypatch.undo()
    reload_settings()
