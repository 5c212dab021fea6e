"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Result
from shipmatrix.output.errors import pipeline_error_exit_code, print_pipeline_error

if TYPE_CHECKING:
    from shipmatrix.cli.context import CLIContext

T = TypeVar("T")


def exit_on_error(result: Result[T, PipelineError], ctx: CLIContext) -> T:
    """Return the Ok value, or print the error and exit with its code."""
    if isinstance(result, Err):
        print_pipeline_error(result.error, ctx.console)
        raise typer.Exit(code=pipeline_error_exit_code(result.error))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


def split_csv(values: list[str]) -> tuple[str, ...]:
    """Flatten repeated and comma-separated option values."""
    out: list[str] = []
    for value in values:
        out.extend(part.strip() for part in value.split(",") if part.strip())
    return tuple(out)
