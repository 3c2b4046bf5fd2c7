from __future__ import annotations

import logging
from typing import Iterator

logger = logging.getLogger(__name__)


class FormatError(ValueError):
    """The buffer cannot be translated at all."""


class WarningLog:
    """Non-fatal translation warnings of one import or export pass."""

    def __init__(self) -> None:
        self._messages: list[str] = []

    def add(self, message: str) -> None:
        logger.warning(message)
        self._messages.append(message)

    @property
    def messages(self) -> list[str]:
        return list(self._messages)

    def __iter__(self) -> Iterator[str]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)
