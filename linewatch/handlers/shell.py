"""exec and pexec handlers.

Commands come from the operator's own command line and run through the
shell with the invoking user's privileges; they are not sandboxed.
"""

from __future__ import annotations

import logging
import subprocess

from linewatch.errors import HandlerIOError
from linewatch.types import HandlerKind

from .base import Handler

log = logging.getLogger(__name__)


class ExecHandler(Handler):
    """Run the command with the placeholder replaced by the line, output discarded."""

    kind = HandlerKind.EXEC

    @property
    def placeholder(self) -> str:
        return str(self.context.setting("exec.placeholder", "{}"))

    @property
    def shell(self) -> str:
        return str(self.context.setting("exec.shell", "/bin/sh"))

    def command_for(self, index: int, line: str) -> str:
        return self.arguments[index].replace(self.placeholder, line)

    def invoke(self, index: int, line: str) -> None:
        command = self.command_for(index, line)
        try:
            subprocess.Popen(  # noqa: S602
                command,
                shell=True,
                executable=self.shell,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise HandlerIOError(f"cannot run {command!r}: {exc}") from exc
        log.debug("%s%d spawned %r", self.kind.value, index, command)


class PexecHandler(ExecHandler):
    """Like exec, but the line is also piped to the command's stdin."""

    kind = HandlerKind.PEXEC

    def invoke(self, index: int, line: str) -> None:
        command = self.command_for(index, line)
        encoding = str(self.context.setting("input.encoding", "utf-8"))
        try:
            proc = subprocess.Popen(  # noqa: S602
                command,
                shell=True,
                executable=self.shell,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            assert proc.stdin is not None
            proc.stdin.write((line + "\n").encode(encoding, errors="replace"))
            proc.stdin.close()
        except OSError as exc:
            # BrokenPipeError included: the command exited without reading.
            raise HandlerIOError(f"cannot run {command!r}: {exc}") from exc
        log.debug("%s%d piped line to %r", self.kind.value, index, command)
