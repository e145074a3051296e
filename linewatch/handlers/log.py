from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, TextIO

from linewatch.errors import HandlerIOError
from linewatch.types import HandlerKind, HookEvent

from .base import Handler

if TYPE_CHECKING:
    from linewatch.engine.context import RunContext

log = logging.getLogger(__name__)


class LogHandler(Handler):
    """Copy matching lines to a file per index.

    Files are truncated when first opened and the handle is kept for the
    rest of the run. Indices naming the same file share one handle.
    """

    kind = HandlerKind.LOG
    hooks = frozenset({HookEvent.CLOSE})

    def __init__(self, arguments: dict[int, str], context: RunContext) -> None:
        super().__init__(arguments, context)
        # resolved path -> open handle
        self._streams: dict[str, TextIO] = {}

    def invoke(self, index: int, line: str) -> None:
        path = os.path.realpath(self.arguments[index])
        stream = self._streams.get(path)
        if stream is None:
            stream = self._open(index, path)
        try:
            stream.write(line + "\n")
            if self.context.follow:
                stream.flush()
        except OSError as exc:
            raise HandlerIOError(f"cannot write {self.arguments[index]}: {exc}") from exc

    def _open(self, index: int, path: str) -> TextIO:
        encoding = str(self.context.setting("input.encoding", "utf-8"))
        try:
            stream = open(path, "w", encoding=encoding)
        except OSError as exc:
            raise HandlerIOError(f"cannot open {self.arguments[index]}: {exc}") from exc
        log.debug("log%d writing to %s", index, path)
        self._streams[path] = stream
        return stream

    def on_hook(self, event: HookEvent) -> None:
        if event is HookEvent.CLOSE:
            self.close()

    def close(self) -> None:
        streams, self._streams = self._streams, {}
        for path, stream in streams.items():
            try:
                stream.close()
            except OSError:
                log.warning("Failed to close %s", path, exc_info=True)
