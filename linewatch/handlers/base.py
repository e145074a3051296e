from __future__ import annotations

from abc import ABC, abstractmethod
from functools import partial
from typing import TYPE_CHECKING, Callable, ClassVar

from linewatch.types import HandlerKind, HookEvent

if TYPE_CHECKING:
    from linewatch.engine.context import RunContext


class Handler(ABC):
    """One instance per handler kind, serving every index bound to that kind.

    ``hooks`` declares the lifecycle events the kind participates in; the
    dispatcher registers only those.
    """

    kind: ClassVar[HandlerKind]
    hooks: ClassVar[frozenset[HookEvent]] = frozenset()

    def __init__(self, arguments: dict[int, str], context: RunContext) -> None:
        self.arguments = arguments
        self.context = context

    @abstractmethod
    def invoke(self, index: int, line: str) -> None: ...

    def on_hook(self, event: HookEvent) -> None:
        pass

    def hook_callback(self, event: HookEvent) -> Callable[[], None]:
        return partial(self.on_hook, event)
