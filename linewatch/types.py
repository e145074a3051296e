from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class HandlerKind(Enum):
    LOG = "log"
    EXEC = "exec"
    PEXEC = "pexec"
    SCREEN = "screen"
    EMAIL = "email"
    COWSAY = "cowsay"


class HookEvent(Enum):
    OPEN = "open"
    PRE_SEARCH = "pre_search"
    POST_SEARCH = "post_search"
    CLOSE = "close"


@dataclass(frozen=True, slots=True)
class HandlerBinding:
    kind: HandlerKind
    index: int
    argument: str
