"""Line sources for the dispatch loop.

A source yields :class:`SourceLine` items with the terminator stripped.
File-backed sources also report the byte offset just past each line so a
following run can re-seek there before the next read.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterator, TextIO

from linewatch.errors import InputNotFound

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SourceLine:
    text: str
    offset: int | None = None


def _chomp(text: str) -> str:
    if text.endswith("\n"):
        text = text[:-1]
        if text.endswith("\r"):
            text = text[:-1]
    return text


class InputSource(ABC):
    follows: bool = False

    @abstractmethod
    def lines(self) -> Iterator[SourceLine]: ...

    def seek(self, offset: int) -> None:
        """Position the next read at *offset*. No-op for unseekable sources."""

    def close(self) -> None:
        pass

    def __enter__(self) -> InputSource:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class StreamSource(InputSource):
    """Reads an already-open stream, standard input by default.

    Bytes are decoded per line with undecodable sequences replaced, the same
    as file input.
    """

    def __init__(self, stream: BinaryIO | TextIO | None = None, encoding: str = "utf-8") -> None:
        self._stream = stream
        self._encoding = encoding

    def lines(self) -> Iterator[SourceLine]:
        stream = self._stream if self._stream is not None else sys.stdin
        # Text streams expose their byte layer as ``buffer``.
        binary = getattr(stream, "buffer", stream)
        for raw in binary:
            if isinstance(raw, bytes):
                raw = raw.decode(self._encoding, errors="replace")
            yield SourceLine(_chomp(raw))


class FileSource(InputSource):
    def __init__(self, path: str, encoding: str = "utf-8") -> None:
        if not os.path.exists(path):
            raise InputNotFound(path)
        self.path = path
        self._encoding = encoding
        self._fh: BinaryIO | None = None

    def lines(self) -> Iterator[SourceLine]:
        # Binary mode keeps tell() a real byte offset.
        self._fh = open(self.path, "rb")
        for raw in iter(self._fh.readline, b""):
            text = raw.decode(self._encoding, errors="replace")
            yield SourceLine(_chomp(text), self._fh.tell())

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


class FollowSource(InputSource):
    """Delivers only lines appended after reading starts, like ``tail -F``.

    The sequence never ends on its own. A partially written last line is
    held back until its terminator arrives. Truncation restarts at offset 0
    and a replaced file (new inode) is reopened from the start.
    """

    follows = True

    def __init__(
        self,
        path: str,
        poll_interval: float = 0.5,
        encoding: str = "utf-8",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not os.path.exists(path):
            raise InputNotFound(path)
        self.path = path
        self.poll_interval = poll_interval
        self._encoding = encoding
        self._sleep = sleep
        self._fh: BinaryIO | None = None
        self._identity: tuple[int, int] | None = None
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    def seek(self, offset: int) -> None:
        self._offset = offset

    def lines(self) -> Iterator[SourceLine]:
        self._open(at_end=True)
        while True:
            assert self._fh is not None
            self._fh.seek(self._offset)
            raw = self._fh.readline()
            if raw.endswith(b"\n"):
                offset = self._fh.tell()
                self._offset = offset
                yield SourceLine(_chomp(raw.decode(self._encoding, errors="replace")), offset)
                continue
            # EOF or an incomplete line: wait, then reread from the last
            # complete-line offset.
            self._sleep(self.poll_interval)
            self._check_replaced()

    def _open(self, at_end: bool) -> None:
        self.close()
        self._fh = open(self.path, "rb")
        st = os.fstat(self._fh.fileno())
        self._identity = (st.st_dev, st.st_ino)
        self._offset = self._fh.seek(0, os.SEEK_END) if at_end else 0

    def _check_replaced(self) -> None:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            # Rotated away and not recreated yet.
            return
        if (st.st_dev, st.st_ino) != self._identity:
            log.info("%s was replaced, reopening", self.path)
            self._open(at_end=False)
        elif st.st_size < self._offset:
            log.info("%s was truncated, rereading from start", self.path)
            self._offset = 0

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


def open_source(
    path: str | None,
    follow: bool = False,
    *,
    poll_interval: float = 0.5,
    encoding: str = "utf-8",
    stdin: BinaryIO | TextIO | None = None,
) -> InputSource:
    if path is None:
        if follow:
            log.debug("Reading standard input; follow has no effect")
        return StreamSource(stdin, encoding=encoding)
    if follow:
        return FollowSource(path, poll_interval=poll_interval, encoding=encoding)
    return FileSource(path, encoding=encoding)
