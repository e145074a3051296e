from __future__ import annotations

import textwrap

from linewatch.types import HandlerKind

from .screen import ScreenHandler

COW = r"""        \   ^__^
         \  (oo)\_______
            (__)\       )\/\
                ||----w |
                ||     ||
"""


def speech_bubble(text: str, width: int) -> str:
    lines = textwrap.wrap(text, width) or [""]
    inner = max(len(line) for line in lines)
    top = " " + "_" * (inner + 2)
    bottom = " " + "-" * (inner + 2)
    if len(lines) == 1:
        body = [f"< {lines[0]} >"]
    else:
        body = []
        for i, line in enumerate(lines):
            if i == 0:
                left, right = "/", "\\"
            elif i == len(lines) - 1:
                left, right = "\\", "/"
            else:
                left, right = "|", "|"
            body.append(f"{left} {line.ljust(inner)} {right}")
    return "\n".join([top, *body, bottom]) + "\n"


def cowsay(text: str, width: int) -> str:
    return speech_bubble(text, width) + COW


class CowsayHandler(ScreenHandler):
    """Surface the line once, as a speech bubble when a wrap width is set.

    Shares screen's once-per-line rule, so a line matched by several
    screen or cowsay indices is shown by the first of them only.
    """

    kind = HandlerKind.COWSAY

    def width_for(self, index: int) -> int | None:
        value = self.arguments.get(index, "").strip()
        return int(value) if value else None

    def invoke(self, index: int, line: str) -> None:
        if not self.context.guard.claim():
            return
        width = self.width_for(index)
        if width is None:
            self.context.out.write(line + "\n")
        else:
            self.context.out.write(cowsay(line, width))
        self.context.out.flush()
