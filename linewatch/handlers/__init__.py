from __future__ import annotations

from typing import TYPE_CHECKING

from linewatch.types import HandlerKind

from .base import Handler
from .cowsay import CowsayHandler
from .mail import EmailHandler
from .log import LogHandler
from .screen import ScreenHandler
from .shell import ExecHandler, PexecHandler

if TYPE_CHECKING:
    from linewatch.engine.context import RunContext

HANDLER_TYPES: dict[HandlerKind, type[Handler]] = {
    HandlerKind.LOG: LogHandler,
    HandlerKind.EXEC: ExecHandler,
    HandlerKind.PEXEC: PexecHandler,
    HandlerKind.SCREEN: ScreenHandler,
    HandlerKind.EMAIL: EmailHandler,
    HandlerKind.COWSAY: CowsayHandler,
}


def build_handlers(context: RunContext) -> dict[HandlerKind, Handler]:
    return {
        kind: HANDLER_TYPES[kind](context.registry.arguments(kind), context)
        for kind in context.registry.kinds()
    }


__all__ = [
    "HANDLER_TYPES",
    "CowsayHandler",
    "EmailHandler",
    "ExecHandler",
    "Handler",
    "LogHandler",
    "PexecHandler",
    "ScreenHandler",
    "build_handlers",
]
