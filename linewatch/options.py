"""Command line parsing.

Global options go through argparse. Indexed flags (``--log0=out.txt``,
``-p1 ERROR``) are pulled out of argv first because their names carry the
index.
"""

from __future__ import annotations

import argparse
import re
from dataclasses import dataclass, field

from linewatch import __version__
from linewatch.engine.patterns import PatternTable
from linewatch.engine.registry import HandlerRegistry
from linewatch.errors import ConfigurationError
from linewatch.types import HandlerBinding, HandlerKind

HANDLER_ALIASES: dict[HandlerKind, str] = {
    HandlerKind.LOG: "l",
    HandlerKind.EXEC: "x",
    HandlerKind.PEXEC: "X",
    HandlerKind.SCREEN: "s",
    HandlerKind.EMAIL: "m",
    HandlerKind.COWSAY: "c",
}

# Indexed option name -> short alias.
INDEXED_OPTIONS: dict[str, str] = {
    "pattern": "p",
    "color": "C",
    **{kind.value: alias for kind, alias in HANDLER_ALIASES.items()},
}

_ALIAS_TO_NAME: dict[str, str] = {alias: name for name, alias in INDEXED_OPTIONS.items()}

# These take a value only in the --name<N>=<value> form.
_OPTIONAL_VALUE: frozenset[str] = frozenset({"screen", "cowsay"})

_INDEXED_RE = re.compile(
    r"^(?:--(?P<name>[a-z]+)|-(?P<alias>[A-Za-z]))(?P<index>\d+)(?:=(?P<value>.*))?$",
    re.DOTALL,
)

EPILOG = """\
indexed options (N is any non-negative integer; a handler runs when the
pattern with the same N matches):
  -pN, --patternN REGEX   pattern for index N
  -CN, --colorN COLOR     color for screen output of index N
  -lN, --logN FILE        write matching lines to FILE (truncated at start)
  -xN, --execN CMD        run CMD in the shell, {} replaced by the line
  -XN, --pexecN CMD       like exec, and pipe the line to CMD's stdin
  -sN, --screenN[=COLOR]  print matching lines, once per line
  -mN, --emailN ADDRESS   mail matching lines to ADDRESS
  -cN, --cowsayN[=WIDTH]  print matching lines, in a speech bubble if WIDTH

Values may follow as the next argument or after '='; screen and cowsay
accept a value only after '='.

examples:
  linewatch -p0 ERROR --log0=errors.txt app.log
  linewatch -f -p0 'disk full' -m0 ops@example.com /var/log/syslog
  dmesg | linewatch -p0 . --screen0 -p1 error --color1=red --screen1
"""


@dataclass
class Options:
    patterns: PatternTable = field(default_factory=PatternTable)
    registry: HandlerRegistry = field(default_factory=HandlerRegistry)
    colors: dict[int, str] = field(default_factory=dict)
    follow: bool = False
    complete: str | None = None
    path: str | None = None
    config_path: str | None = None
    verbose: bool = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linewatch",
        description="Match each input line against numbered patterns and "
        "run the handlers bound to the matching numbers.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument("file", nargs="?", help="Input file (default: standard input)")
    parser.add_argument(
        "-f", "--follow", action="store_true",
        help="Follow FILE as it grows, like tail -f",
    )
    parser.add_argument("--complete", metavar="ADDRESS", help="Mail a summary to ADDRESS when done")
    parser.add_argument("--config", help="Path to config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def split_indexed(argv: list[str]) -> tuple[list[tuple[str, int, str]], list[str]]:
    """Separate indexed flags from the rest of *argv*.

    Returns ``([(name, index, value), ...], remaining_args)`` with the
    indexed flags in command line order.
    """
    indexed: list[tuple[str, int, str]] = []
    rest: list[str] = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--":
            rest.extend(argv[i:])
            break
        m = _INDEXED_RE.match(arg)
        if m is None:
            rest.append(arg)
            i += 1
            continue

        if m.group("name") is not None:
            name = m.group("name")
            if name not in INDEXED_OPTIONS:
                raise ConfigurationError(f"unknown option {arg.split('=', 1)[0]!r}")
        else:
            alias = m.group("alias")
            if alias not in _ALIAS_TO_NAME:
                raise ConfigurationError(f"unknown option {arg.split('=', 1)[0]!r}")
            name = _ALIAS_TO_NAME[alias]

        value = m.group("value")
        if value is None:
            if name in _OPTIONAL_VALUE:
                value = ""
            elif i + 1 < len(argv):
                i += 1
                value = argv[i]
            else:
                raise ConfigurationError(f"option {arg!r} requires a value")
        indexed.append((name, int(m.group("index")), value))
        i += 1
    return indexed, rest


def parse_options(argv: list[str]) -> Options:
    indexed, rest = split_indexed(argv)
    parser = build_parser()
    args = parser.parse_args(rest)

    opts = Options(
        follow=args.follow,
        complete=args.complete,
        path=args.file,
        config_path=args.config,
        verbose=args.verbose,
    )
    for name, index, value in indexed:
        if name == "pattern":
            opts.patterns.add(index, value)
        elif name == "color":
            opts.colors[index] = value
        else:
            kind = HandlerKind(name)
            if kind is HandlerKind.COWSAY:
                _check_width(index, value)
            opts.registry.add(HandlerBinding(kind=kind, index=index, argument=value))
    return opts


def _check_width(index: int, value: str) -> None:
    if not value.strip():
        return
    try:
        width = int(value)
    except ValueError:
        raise ConfigurationError(f"cowsay{index}: width must be an integer, got {value!r}") from None
    if width <= 0:
        raise ConfigurationError(f"cowsay{index}: width must be positive, got {width}")
