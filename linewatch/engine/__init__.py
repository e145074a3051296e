from __future__ import annotations

from .context import RunContext, ScreenGuard
from .dispatcher import Dispatcher, DispatchState
from .hooks import HookTable
from .patterns import PatternTable
from .registry import HandlerRegistry
from .source import (
    FileSource,
    FollowSource,
    InputSource,
    SourceLine,
    StreamSource,
    open_source,
)

__all__ = [
    "Dispatcher",
    "DispatchState",
    "FileSource",
    "FollowSource",
    "HandlerRegistry",
    "HookTable",
    "InputSource",
    "PatternTable",
    "RunContext",
    "ScreenGuard",
    "SourceLine",
    "StreamSource",
    "open_source",
]
