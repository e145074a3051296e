from __future__ import annotations

import logging
from typing import Callable

from rich.errors import StyleSyntaxError
from rich.style import Style

from linewatch.types import HandlerKind, HookEvent

from .base import Handler

log = logging.getLogger(__name__)


def colorize(text: str, color: str) -> str:
    """Wrap *text* in the ANSI escape for *color* and a reset.

    *color* is any rich style definition ("red", "bold yellow", "#ff8800").
    Unknown colors leave the text plain.
    """
    if not color:
        return text
    try:
        style = Style.parse(color)
    except StyleSyntaxError:
        log.warning("Unknown color %r, printing plain", color)
        return text
    return style.render(text)


class ScreenHandler(Handler):
    kind = HandlerKind.SCREEN
    hooks = frozenset({HookEvent.POST_SEARCH})

    def color_for(self, index: int) -> str:
        return (
            self.context.colors.get(index)
            or self.arguments.get(index)
            or str(self.context.setting("screen.color", "") or "")
        )

    def invoke(self, index: int, line: str) -> None:
        if not self.context.guard.claim():
            return
        self.context.out.write(colorize(line, self.color_for(index)) + "\n")
        self.context.out.flush()

    def hook_callback(self, event: HookEvent) -> Callable[[], None]:
        if event is HookEvent.POST_SEARCH:
            # Same bound method for screen and cowsay, registered once.
            return self.context.guard.reset
        return super().hook_callback(event)
