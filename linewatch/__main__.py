from __future__ import annotations

import shlex
import signal
import sys
from typing import Any

from linewatch.config.manager import ConfigManager
from linewatch.engine import Dispatcher, RunContext, open_source
from linewatch.errors import LinewatchError, SignalInterrupt
from linewatch.options import parse_options
from linewatch.utils.logger import setup_logging


def _raise_interrupt(signum: int, frame: object) -> None:
    raise SignalInterrupt(signum)


def install_signal_handlers() -> dict[int, Any]:
    previous: dict[int, Any] = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _raise_interrupt)
    return previous


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        opts = parse_options(argv)
        config = ConfigManager(opts.config_path).load()
        general = config["general"]
        setup_logging(general.get("log_file", ""), general.get("log_level", "INFO"), opts.verbose)

        context = RunContext(
            patterns=opts.patterns,
            registry=opts.registry,
            # Standard input cannot be followed.
            follow=opts.follow and opts.path is not None,
            colors=opts.colors,
            config=config,
        )
        dispatcher = Dispatcher(context)
        if opts.complete:
            context.get_mailer()
        source = open_source(
            opts.path,
            opts.follow,
            poll_interval=float(config["input"]["poll_interval"]),
            encoding=config["input"]["encoding"],
        )
    except LinewatchError as exc:
        print(f"linewatch: {exc}", file=sys.stderr)
        return exc.exit_code

    previous = install_signal_handlers()
    try:
        with source:
            dispatcher.run(source)
    except SignalInterrupt as exc:
        name = signal.Signals(exc.signum).name
        print(f"linewatch: caught {name}, exiting", file=sys.stderr)
        dispatcher.cancel(flush=bool(general.get("flush_on_interrupt", True)))
        return exc.exit_code
    except OSError as exc:
        print(f"linewatch: read error: {exc}", file=sys.stderr)
        return 1
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if opts.complete:
        dispatcher.notify_completion(opts.complete, shlex.join(["linewatch", *argv]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
