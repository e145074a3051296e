from __future__ import annotations

import logging
import socket
from datetime import datetime
from enum import Enum

from linewatch.errors import ConfigurationError, HandlerIOError
from linewatch.handlers import Handler, build_handlers
from linewatch.types import HandlerKind, HookEvent

from .context import RunContext
from .hooks import HookTable
from .source import InputSource

log = logging.getLogger(__name__)


class DispatchState(Enum):
    INIT = "init"
    OPENED = "opened"
    CLOSED = "closed"


class Dispatcher:
    """Runs every input line through the pattern table and bound handlers.

    Lines are processed one at a time on the calling thread. For each line:
    pre_search hooks, patterns in ascending index order, the handlers of
    each matching index in declaration order, then post_search hooks.
    """

    def __init__(
        self,
        context: RunContext,
        handlers: dict[HandlerKind, Handler] | None = None,
    ) -> None:
        if not len(context.patterns):
            raise ConfigurationError("no patterns specified")
        if not len(context.registry):
            raise ConfigurationError("no handlers specified")
        for index in context.registry.indices:
            if index not in context.patterns:
                log.warning("Handlers bound to index %d have no pattern and never run", index)

        self._ctx = context
        self._handlers = handlers if handlers is not None else build_handlers(context)
        if HandlerKind.EMAIL in self._handlers:
            # Surface a bad email config before any input is read.
            context.get_mailer()

        self._hooks = HookTable()
        for handler in self._handlers.values():
            for event in HookEvent:
                if event in handler.hooks:
                    self._hooks.register(event, handler.hook_callback(event))

        self.state = DispatchState.INIT
        self.lines_read = 0
        self.lines_matched = 0

    @property
    def context(self) -> RunContext:
        return self._ctx

    @property
    def hooks(self) -> HookTable:
        return self._hooks

    @property
    def handlers(self) -> dict[HandlerKind, Handler]:
        return dict(self._handlers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        if self.state is not DispatchState.INIT:
            raise RuntimeError(f"cannot open dispatcher in state {self.state.value}")
        self._hooks.fire(HookEvent.OPEN)
        self.state = DispatchState.OPENED

    def run(self, source: InputSource) -> None:
        self.open()
        try:
            for item in source.lines():
                self.process(item.text)
                if self._ctx.follow and item.offset is not None:
                    source.seek(item.offset)
        except Exception:
            # A failing source still closes handlers. Interrupts are left to
            # cancel(), which decides whether to flush.
            self.close()
            raise
        self.close()

    def process(self, line: str) -> list[int]:
        """Dispatch one line and return the indices that matched."""
        self._hooks.fire(HookEvent.PRE_SEARCH)
        matched: list[int] = []
        for index in self._ctx.patterns.matching(line):
            matched.append(index)
            for kind in self._ctx.registry.handlers_for(index):
                self._invoke(kind, index, line)
        self._hooks.fire(HookEvent.POST_SEARCH)

        self.lines_read += 1
        if matched:
            self.lines_matched += 1
        return matched

    def _invoke(self, kind: HandlerKind, index: int, line: str) -> None:
        handler = self._handlers[kind]
        try:
            handler.invoke(index, line)
        except HandlerIOError as exc:
            log.warning("%s%d: %s", kind.value, index, exc)
        except Exception:
            log.warning("%s%d failed on line %r", kind.value, index, line, exc_info=True)

    def close(self) -> None:
        if self.state is DispatchState.CLOSED:
            return
        self._hooks.fire(HookEvent.CLOSE)
        self.state = DispatchState.CLOSED
        self._ctx.finished_at = datetime.now()
        log.debug("%d lines read, %d matched", self.lines_read, self.lines_matched)

    def cancel(self, flush: bool = True) -> None:
        """Stop after an interrupt; with *flush*, close hooks still run."""
        if flush and self.state is DispatchState.OPENED:
            self.close()
            return
        self.state = DispatchState.CLOSED

    # ------------------------------------------------------------------
    # Completion notification
    # ------------------------------------------------------------------

    def notify_completion(self, recipient: str, command_line: str) -> bool:
        ctx = self._ctx
        finished = ctx.finished_at or datetime.now()
        host = socket.gethostname()
        body = (
            f"Started: {ctx.started_at:%Y-%m-%d %H:%M:%S}\n"
            f"Finished: {finished:%Y-%m-%d %H:%M:%S}\n"
            f"Command: {command_line}\n"
            f"Host: {host}\n"
            f"Lines read: {self.lines_read}\n"
            f"Lines matched: {self.lines_matched}\n"
        )
        try:
            ctx.get_mailer().send(recipient, f"run complete on {host}", body)
        except HandlerIOError as exc:
            log.warning("Completion notice to %s failed: %s", recipient, exc)
            return False
        return True
