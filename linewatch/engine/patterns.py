from __future__ import annotations

import re
from typing import Iterator

from linewatch.errors import ConfigurationError


class PatternTable:
    """Patterns keyed by user-chosen index, evaluated in ascending index order."""

    def __init__(self, patterns: dict[int, str] | None = None) -> None:
        self._compiled: dict[int, re.Pattern[str]] = {}
        self._order: list[int] = []
        for index, expression in (patterns or {}).items():
            self.add(index, expression)

    def add(self, index: int, expression: str) -> None:
        if index < 0:
            raise ConfigurationError(f"pattern index must be non-negative, got {index}")
        try:
            compiled = re.compile(expression)
        except re.error as exc:
            raise ConfigurationError(
                f"pattern {index}: invalid regular expression {expression!r}: {exc}"
            ) from exc
        # Last write wins for a repeated index.
        self._compiled[index] = compiled
        self._order = sorted(self._compiled)

    def matching(self, line: str) -> Iterator[int]:
        for index in self._order:
            if self._compiled[index].search(line):
                yield index

    def pattern_text(self, index: int) -> str:
        return self._compiled[index].pattern

    @property
    def indices(self) -> list[int]:
        return list(self._order)

    def __contains__(self, index: object) -> bool:
        return index in self._compiled

    def __len__(self) -> int:
        return len(self._compiled)
