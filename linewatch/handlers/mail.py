from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from linewatch.errors import HandlerIOError
from linewatch.types import HandlerKind, HookEvent

from .base import Handler

if TYPE_CHECKING:
    from linewatch.engine.context import RunContext

log = logging.getLogger(__name__)

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class EmailHandler(Handler):
    """Mail matching lines to the recipient bound at each index.

    Following runs may never reach close, so each match is mailed at once.
    Otherwise lines are batched per (recipient, pattern) and mailed from
    the close hook.
    """

    kind = HandlerKind.EMAIL
    hooks = frozenset({HookEvent.CLOSE})

    def __init__(self, arguments: dict[int, str], context: RunContext) -> None:
        super().__init__(arguments, context)
        # recipient -> pattern text -> accumulated lines
        self._buffers: dict[str, dict[str, list[str]]] = {}

    def invoke(self, index: int, line: str) -> None:
        recipient = self.arguments[index]
        pattern = self.context.patterns.pattern_text(index)
        if self.context.follow:
            now = datetime.now().strftime(_TIME_FORMAT)
            body = f"Pattern: {pattern}\nTime: {now}\n\n{line}\n"
            self.context.get_mailer().send(recipient, f"{pattern} matched at {now}", body)
            return
        self._buffers.setdefault(recipient, {}).setdefault(pattern, []).append(line)

    def on_hook(self, event: HookEvent) -> None:
        if event is HookEvent.CLOSE:
            self.flush()

    def flush(self) -> None:
        buffers, self._buffers = self._buffers, {}
        started = self.context.started_at.strftime(_TIME_FORMAT)
        for recipient, by_pattern in buffers.items():
            for pattern, lines in by_pattern.items():
                text = "".join(line + "\n" for line in lines)
                body = f"Run started: {started}\nPattern: {pattern}\n\n{text}"
                try:
                    self.context.get_mailer().send(
                        recipient, f"{len(lines)} line(s) matched {pattern}", body
                    )
                except HandlerIOError as exc:
                    log.warning("email to %s dropped: %s", recipient, exc)
