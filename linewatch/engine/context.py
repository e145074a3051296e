from __future__ import annotations

import copy
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import TextIO

from linewatch.config.defaults import DEFAULT_CONFIG
from linewatch.config.manager import lookup
from linewatch.mailer import Mailer

from .patterns import PatternTable
from .registry import HandlerRegistry


class ScreenGuard:
    """Per-line "already surfaced" flag shared by screen and cowsay."""

    def __init__(self) -> None:
        self.surfaced = False

    def claim(self) -> bool:
        if self.surfaced:
            return False
        self.surfaced = True
        return True

    def reset(self) -> None:
        self.surfaced = False


@dataclass
class RunContext:
    """State owned by one dispatch loop and handed to every handler.

    Everything here is touched only from the dispatching thread.
    """

    patterns: PatternTable
    registry: HandlerRegistry
    follow: bool = False
    colors: dict[int, str] = field(default_factory=dict)
    config: dict = field(default_factory=lambda: copy.deepcopy(DEFAULT_CONFIG))
    out: TextIO = field(default_factory=lambda: sys.stdout)
    mailer: Mailer | None = None
    guard: ScreenGuard = field(default_factory=ScreenGuard)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    def setting(self, key_path: str, default: object = None) -> object:
        return lookup(self.config, key_path, default)

    def get_mailer(self) -> Mailer:
        if self.mailer is None:
            self.mailer = Mailer.from_config(self.config.get("email", {}))
        return self.mailer
