from __future__ import annotations

import io
from pathlib import Path
from typing import Iterator
from unittest.mock import MagicMock

import pytest

from linewatch.engine import (
    Dispatcher,
    DispatchState,
    FileSource,
    HandlerRegistry,
    InputSource,
    PatternTable,
    RunContext,
    SourceLine,
)
from linewatch.errors import ConfigurationError, HandlerIOError, SignalInterrupt
from linewatch.handlers import Handler
from linewatch.types import HandlerBinding, HandlerKind, HookEvent

SAMPLE = "ERROR disk full\nINFO ok\nERROR net down\n"


def _make_context(
    patterns: dict[int, str],
    bindings: list[tuple[HandlerKind, int, str]],
    **kwargs,
) -> RunContext:
    registry = HandlerRegistry(
        [HandlerBinding(kind=k, index=i, argument=a) for k, i, a in bindings]
    )
    kwargs.setdefault("out", io.StringIO())
    return RunContext(patterns=PatternTable(patterns), registry=registry, **kwargs)


def _write_input(tmp_path: Path, text: str = SAMPLE) -> Path:
    path = tmp_path / "input.log"
    path.write_text(text)
    return path


class RecordingHandler(Handler):
    kind = HandlerKind.EXEC
    hooks = frozenset(HookEvent)

    def __init__(self, calls: list, kind: HandlerKind) -> None:
        super().__init__({}, None)  # type: ignore[arg-type]
        self.calls = calls
        self.tag = kind.value

    def invoke(self, index: int, line: str) -> None:
        self.calls.append((self.tag, index, line))

    def on_hook(self, event: HookEvent) -> None:
        self.calls.append((self.tag, event.value))


class ListSource(InputSource):
    follows = True

    def __init__(self, items: list[SourceLine]) -> None:
        self.items = items
        self.seeks: list[int] = []

    def lines(self) -> Iterator[SourceLine]:
        yield from self.items

    def seek(self, offset: int) -> None:
        self.seeks.append(offset)


# ── Validation ────────────────────────────────────────────────────


def test_no_patterns_is_configuration_error() -> None:
    ctx = _make_context({}, [(HandlerKind.SCREEN, 0, "")])
    with pytest.raises(ConfigurationError, match="no patterns"):
        Dispatcher(ctx)


def test_no_handlers_is_configuration_error() -> None:
    ctx = _make_context({0: "ERROR"}, [])
    with pytest.raises(ConfigurationError, match="no handlers"):
        Dispatcher(ctx)


# ── Scenarios ─────────────────────────────────────────────────────


def test_log_handler_writes_only_matching_lines(tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    ctx = _make_context({0: "ERROR"}, [(HandlerKind.LOG, 0, str(out))])
    with FileSource(str(_write_input(tmp_path))) as source:
        Dispatcher(ctx).run(source)
    assert out.read_text() == "ERROR disk full\nERROR net down\n"


def test_repeated_runs_produce_identical_log_files(tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    path = _write_input(tmp_path)
    results = []
    for _ in range(2):
        ctx = _make_context({0: "ERROR", 1: "ok"}, [(HandlerKind.LOG, 0, str(out))])
        with FileSource(str(path)) as source:
            Dispatcher(ctx).run(source)
        results.append(out.read_bytes())
    assert results[0] == results[1]


def test_screen_emits_each_line_once_when_several_patterns_match(tmp_path: Path) -> None:
    ctx = _make_context(
        {0: "ERROR", 1: ".*"},
        [(HandlerKind.SCREEN, 0, ""), (HandlerKind.SCREEN, 1, "")],
    )
    with FileSource(str(_write_input(tmp_path))) as source:
        Dispatcher(ctx).run(source)
    assert ctx.out.getvalue() == SAMPLE
    assert ctx.guard.surfaced is False


def test_dedup_flag_clear_before_next_line() -> None:
    ctx = _make_context(
        {0: "a", 1: "b"},
        [(HandlerKind.SCREEN, 0, ""), (HandlerKind.COWSAY, 1, "")],
    )
    dispatcher = Dispatcher(ctx)
    dispatcher.open()
    dispatcher.process("ab")
    assert ctx.guard.surfaced is False
    dispatcher.process("b")
    assert ctx.out.getvalue() == "ab\nb\n"
    # screen and cowsay share one clear callback
    assert len(dispatcher.hooks.callbacks(HookEvent.POST_SEARCH)) == 1


def test_cowsay_with_width_surfaces_line_once_across_patterns() -> None:
    ctx = _make_context(
        {0: "ERROR", 1: ".*"},
        [(HandlerKind.COWSAY, 0, "20"), (HandlerKind.COWSAY, 1, "20")],
    )
    dispatcher = Dispatcher(ctx)
    dispatcher.open()
    dispatcher.process("ERROR x")
    assert ctx.out.getvalue().count("< ERROR x >") == 1
    dispatcher.process("ERROR y")
    assert ctx.out.getvalue().count("< ERROR y >") == 1


def test_log_indices_sharing_a_path_keep_every_line(tmp_path: Path) -> None:
    out = tmp_path / "shared.txt"
    ctx = _make_context(
        {0: "ERROR", 1: "INFO"},
        [(HandlerKind.LOG, 0, str(out)), (HandlerKind.LOG, 1, str(out))],
    )
    with FileSource(str(_write_input(tmp_path))) as source:
        Dispatcher(ctx).run(source)
    assert out.read_text() == SAMPLE


class FailingSource(InputSource):
    def lines(self) -> Iterator[SourceLine]:
        yield SourceLine("ERROR before failure")
        raise OSError("device gone")


def test_source_failure_still_runs_close_hooks() -> None:
    mailer = MagicMock()
    ctx = _make_context({0: "ERROR"}, [(HandlerKind.EMAIL, 0, "a@example.com")], mailer=mailer)
    dispatcher = Dispatcher(ctx)
    with pytest.raises(OSError, match="device gone"):
        dispatcher.run(FailingSource())
    assert dispatcher.state is DispatchState.CLOSED
    mailer.send.assert_called_once()
    assert mailer.send.call_args[0][2].endswith("ERROR before failure\n")


def test_interrupt_from_source_leaves_close_to_cancel() -> None:
    class InterruptedSource(InputSource):
        def lines(self) -> Iterator[SourceLine]:
            yield SourceLine("ERROR x")
            raise SignalInterrupt(2)

    mailer = MagicMock()
    ctx = _make_context({0: "ERROR"}, [(HandlerKind.EMAIL, 0, "a@example.com")], mailer=mailer)
    dispatcher = Dispatcher(ctx)
    with pytest.raises(SignalInterrupt):
        dispatcher.run(InterruptedSource())
    assert dispatcher.state is DispatchState.OPENED
    mailer.send.assert_not_called()


def test_invocation_order_index_ascending_then_declaration() -> None:
    calls: list = []
    ctx = _make_context(
        {5: "x", 1: "x"},
        [
            (HandlerKind.EXEC, 5, "a"),
            (HandlerKind.LOG, 1, "b"),
            (HandlerKind.EXEC, 1, "c"),
        ],
    )
    handlers = {
        HandlerKind.EXEC: RecordingHandler(calls, HandlerKind.EXEC),
        HandlerKind.LOG: RecordingHandler(calls, HandlerKind.LOG),
    }
    dispatcher = Dispatcher(ctx, handlers=handlers)
    dispatcher.open()
    calls.clear()
    assert dispatcher.process("x") == [1, 5]
    invoked = [c for c in calls if len(c) == 3]
    assert invoked == [("log", 1, "x"), ("exec", 1, "x"), ("exec", 5, "x")]


def test_hooks_bracket_each_line() -> None:
    calls: list = []
    ctx = _make_context({0: "hit"}, [(HandlerKind.EXEC, 0, "")])
    dispatcher = Dispatcher(ctx, handlers={HandlerKind.EXEC: RecordingHandler(calls, HandlerKind.EXEC)})
    dispatcher.run(ListSource([SourceLine("hit"), SourceLine("miss")]))
    assert calls == [
        ("exec", "open"),
        ("exec", "pre_search"),
        ("exec", 0, "hit"),
        ("exec", "post_search"),
        ("exec", "pre_search"),
        ("exec", "post_search"),
        ("exec", "close"),
    ]
    assert dispatcher.state is DispatchState.CLOSED
    assert dispatcher.lines_read == 2
    assert dispatcher.lines_matched == 1


def test_open_twice_is_an_error() -> None:
    ctx = _make_context({0: "x"}, [(HandlerKind.SCREEN, 0, "")])
    dispatcher = Dispatcher(ctx)
    dispatcher.open()
    with pytest.raises(RuntimeError):
        dispatcher.open()


def test_follow_reseeks_to_recorded_offsets() -> None:
    ctx = _make_context({0: "x"}, [(HandlerKind.SCREEN, 0, "")], follow=True)
    source = ListSource([SourceLine("x1", 3), SourceLine("y", 5), SourceLine("x2", 8)])
    Dispatcher(ctx).run(source)
    assert source.seeks == [3, 5, 8]
    assert ctx.out.getvalue() == "x1\nx2\n"


def test_static_run_does_not_reseek() -> None:
    ctx = _make_context({0: "x"}, [(HandlerKind.SCREEN, 0, "")])
    source = ListSource([SourceLine("x", 2)])
    Dispatcher(ctx).run(source)
    assert source.seeks == []


def test_failing_handler_does_not_stop_others(tmp_path: Path) -> None:
    # A directory cannot be opened as a log file.
    ctx = _make_context(
        {0: "ERROR"},
        [(HandlerKind.LOG, 0, str(tmp_path)), (HandlerKind.SCREEN, 0, "")],
    )
    with FileSource(str(_write_input(tmp_path))) as source:
        Dispatcher(ctx).run(source)
    assert ctx.out.getvalue() == "ERROR disk full\nERROR net down\n"


def test_unexpected_handler_exception_is_contained() -> None:
    ctx = _make_context({0: "x"}, [(HandlerKind.EXEC, 0, ""), (HandlerKind.SCREEN, 0, "")])
    broken = MagicMock(spec=Handler)
    broken.hooks = frozenset()
    broken.invoke.side_effect = ValueError("bad")
    dispatcher = Dispatcher(ctx)
    dispatcher._handlers[HandlerKind.EXEC] = broken
    dispatcher.open()
    dispatcher.process("x")
    assert ctx.out.getvalue() == "x\n"


# ── Email batching ────────────────────────────────────────────────


def test_batched_email_sends_one_message_at_close(tmp_path: Path) -> None:
    mailer = MagicMock()
    ctx = _make_context({0: "ERROR"}, [(HandlerKind.EMAIL, 0, "a@example.com")], mailer=mailer)
    text = "ERROR one\nERROR two\nINFO skip\nERROR three\n"
    with FileSource(str(_write_input(tmp_path, text))) as source:
        dispatcher = Dispatcher(ctx)
        dispatcher.open()
        for item in source.lines():
            dispatcher.process(item.text)
        mailer.send.assert_not_called()
        dispatcher.close()

    mailer.send.assert_called_once()
    recipient, subject, body = mailer.send.call_args[0]
    assert recipient == "a@example.com"
    assert "ERROR" in subject
    assert body.endswith("ERROR one\nERROR two\nERROR three\n")


def test_follow_email_sends_per_match() -> None:
    mailer = MagicMock()
    ctx = _make_context(
        {0: "ERROR"}, [(HandlerKind.EMAIL, 0, "a@example.com")], mailer=mailer, follow=True
    )
    dispatcher = Dispatcher(ctx)
    dispatcher.open()
    for line in ("ERROR one", "ERROR two", "ERROR three"):
        dispatcher.process(line)
    assert mailer.send.call_count == 3
    first_body = mailer.send.call_args_list[0][0][2]
    assert "ERROR one" in first_body
    dispatcher.close()
    assert mailer.send.call_count == 3


def test_email_send_failure_is_not_fatal() -> None:
    mailer = MagicMock()
    mailer.send.side_effect = HandlerIOError("relay down")
    ctx = _make_context(
        {0: "x"},
        [(HandlerKind.EMAIL, 0, "a@example.com"), (HandlerKind.SCREEN, 0, "")],
        mailer=mailer,
        follow=True,
    )
    dispatcher = Dispatcher(ctx)
    dispatcher.open()
    dispatcher.process("x")
    dispatcher.process("x again")
    assert ctx.out.getvalue() == "x\nx again\n"


# ── Cancellation ──────────────────────────────────────────────────


def test_cancel_with_flush_sends_pending_email() -> None:
    mailer = MagicMock()
    ctx = _make_context({0: "x"}, [(HandlerKind.EMAIL, 0, "a@example.com")], mailer=mailer)
    dispatcher = Dispatcher(ctx)
    dispatcher.open()
    dispatcher.process("x")
    dispatcher.cancel(flush=True)
    mailer.send.assert_called_once()
    assert dispatcher.state is DispatchState.CLOSED


def test_cancel_without_flush_drops_pending_email() -> None:
    mailer = MagicMock()
    ctx = _make_context({0: "x"}, [(HandlerKind.EMAIL, 0, "a@example.com")], mailer=mailer)
    dispatcher = Dispatcher(ctx)
    dispatcher.open()
    dispatcher.process("x")
    dispatcher.cancel(flush=False)
    mailer.send.assert_not_called()
    assert dispatcher.state is DispatchState.CLOSED


# ── Completion notification ───────────────────────────────────────


def test_notify_completion_summarises_run() -> None:
    mailer = MagicMock()
    ctx = _make_context({0: "x"}, [(HandlerKind.SCREEN, 0, "")], mailer=mailer)
    dispatcher = Dispatcher(ctx)
    dispatcher.run(ListSource([SourceLine("x")]))
    assert dispatcher.notify_completion("ops@example.com", "linewatch -p0 x -s0") is True
    recipient, subject, body = mailer.send.call_args[0]
    assert recipient == "ops@example.com"
    assert "run complete" in subject
    assert "Command: linewatch -p0 x -s0" in body
    assert "Started:" in body and "Finished:" in body and "Host:" in body


def test_notify_completion_failure_returns_false() -> None:
    mailer = MagicMock()
    mailer.send.side_effect = HandlerIOError("down")
    ctx = _make_context({0: "x"}, [(HandlerKind.SCREEN, 0, "")], mailer=mailer)
    assert Dispatcher(ctx).notify_completion("ops@example.com", "linewatch") is False
