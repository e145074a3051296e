from __future__ import annotations

import logging
from typing import Callable

from linewatch.types import HookEvent

log = logging.getLogger(__name__)

Hook = Callable[[], None]


class HookTable:
    def __init__(self) -> None:
        self._hooks: dict[HookEvent, list[Hook]] = {event: [] for event in HookEvent}

    def register(self, event: HookEvent, callback: Hook) -> bool:
        """Add *callback* for *event*.

        Returns False when an equal callback is already registered, so a
        callback shared by several handler kinds still runs once per event.
        """
        callbacks = self._hooks[event]
        if callback in callbacks:
            return False
        callbacks.append(callback)
        return True

    def fire(self, event: HookEvent) -> None:
        for callback in self._hooks[event]:
            try:
                callback()
            except Exception:
                log.warning("%s hook %r failed", event.value, callback, exc_info=True)

    def callbacks(self, event: HookEvent) -> list[Hook]:
        return list(self._hooks[event])
