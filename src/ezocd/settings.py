from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FONT_DIRS = (
    "/usr/share/fonts",
    "/usr/local/share/fonts",
    "~/.fonts",
    "~/.local/share/fonts",
    "C:/Windows/Fonts",
    "/Library/Fonts",
    "/System/Library/Fonts",
)


class CodecSettings(BaseSettings):
    """Process-wide defaults, overridable with ``EZOCD_*`` environment variables."""

    narrow_encoding: str = "cp1252"
    wide_encoding: str = "utf-16-le"
    log_level: str = "WARNING"
    font_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_FONT_DIRS))

    model_config = SettingsConfigDict(env_prefix="EZOCD_")


class ImportOptions(BaseModel):
    symbols_only: bool = False
    narrow_encoding: str | None = None
    wide_encoding: str | None = None
    close_stream: bool = False


class ExportOptions(BaseModel):
    narrow_encoding: str | None = None
    wide_encoding: str | None = None
    close_stream: bool = False


_settings: CodecSettings | None = None


def get_settings() -> CodecSettings:
    global _settings
    if _settings is None:
        _settings = CodecSettings()
    return _settings


def reload_settings() -> CodecSettings:
    global _settings
    _settings = CodecSettings()
    return _settings


def resolve_encodings(options: ImportOptions | ExportOptions) -> tuple[str, str]:
    settings = get_settings()
    return (
        options.narrow_encoding or settings.narrow_encoding,
        options.wide_encoding or settings.wide_encoding,
    )
