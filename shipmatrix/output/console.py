"""Console output for release runs.

Nothing in the pipeline prints or logs directly: the CLI hands services a
`RichConsole`, tests hand them a `MockConsole` and assert on what was said.
Only the coordinating thread of a run writes here; build workers return
outcomes and stay silent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "OutputRecord",
    "RichConsole",
    "Style",
]


class Style(Enum):
    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


# Leading label for the one-line status helpers, as printed and as captured.
_PREFIXES: dict[Style, str] = {
    Style.SUCCESS: "OK",
    Style.ERROR: "error:",
    Style.WARNING: "warning:",
    Style.INFO: "info:",
}

_RICH_STYLES: dict[Style, str] = {
    Style.DEFAULT: "",
    Style.SUCCESS: "green",
    Style.ERROR: "red bold",
    Style.WARNING: "yellow",
    Style.INFO: "cyan",
    Style.DIM: "dim",
    Style.HEADER: "blue bold",
}


class ConsoleProtocol(Protocol):
    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None:
        """Start a section (build matrix, failed targets, release files)."""
        ...


class RichConsole:
    """Terminal console backed by Rich."""

    def __init__(self, *, stderr: bool = False) -> None:
        from rich.console import Console

        self._console = Console(stderr=stderr, highlight=False)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        # Messages carry target triples, paths and gh output; never markup.
        self._console.print(message, style=_RICH_STYLES[style] or None, markup=False)

    def _prefixed(self, style: Style, message: str) -> None:
        self._console.print(_PREFIXES[style] + " ", style=_RICH_STYLES[style], end="", markup=False)
        self._console.print(message, markup=False)

    def success(self, message: str) -> None:
        self._prefixed(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._prefixed(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._prefixed(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._prefixed(Style.INFO, message)

    def header(self, message: str) -> None:
        self._console.print()
        self.print(message, Style.HEADER)


@dataclass(frozen=True, slots=True)
class OutputRecord:
    message: str
    style: Style


def _no_records() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Captures every line; status helpers keep their printed prefix."""

    outputs: list[OutputRecord] = field(default_factory=_no_records)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def _prefixed(self, style: Style, message: str) -> None:
        self.outputs.append(OutputRecord(f"{_PREFIXES[style]} {message}", style))

    def success(self, message: str) -> None:
        self._prefixed(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._prefixed(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._prefixed(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._prefixed(Style.INFO, message)

    def header(self, message: str) -> None:
        self.outputs.append(OutputRecord(message, Style.HEADER))

    def clear(self) -> None:
        self.outputs.clear()

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return self.count(Style.ERROR) > 0

    def has_warning(self) -> bool:
        return self.count(Style.WARNING) > 0

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]

    def count(self, style: Style) -> int:
        return sum(1 for o in self.outputs if o.style is style)
