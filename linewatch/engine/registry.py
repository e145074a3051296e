from __future__ import annotations

from linewatch.types import HandlerBinding, HandlerKind


class HandlerRegistry:
    def __init__(self, bindings: list[HandlerBinding] | None = None) -> None:
        # kind -> index -> argument
        self._by_kind: dict[HandlerKind, dict[int, str]] = {}
        # index -> kinds, in the order the bindings were declared
        self._by_index: dict[int, list[HandlerKind]] = {}
        for binding in bindings or []:
            self.add(binding)

    def add(self, binding: HandlerBinding) -> None:
        self._by_kind.setdefault(binding.kind, {})[binding.index] = binding.argument
        kinds = self._by_index.setdefault(binding.index, [])
        if binding.kind not in kinds:
            kinds.append(binding.kind)

    def kinds(self) -> list[HandlerKind]:
        return list(self._by_kind)

    def arguments(self, kind: HandlerKind) -> dict[int, str]:
        return dict(self._by_kind.get(kind, {}))

    def handlers_for(self, index: int) -> list[HandlerKind]:
        return list(self._by_index.get(index, []))

    @property
    def indices(self) -> list[int]:
        return list(self._by_index)

    def __len__(self) -> int:
        return sum(len(args) for args in self._by_kind.values())
