from __future__ import annotations

import os
from pathlib import Path

import typer

from shipmatrix import __version__
from shipmatrix.cli.commands.gate_cmd import gate
from shipmatrix.cli.commands.plan_cmd import plan
from shipmatrix.cli.commands.run_cmd import run
from shipmatrix.cli.commands.staging_cmd import staging_app
from shipmatrix.cli.commands.targets_cmd import targets
from shipmatrix.cli.context import WORKSPACE_ENV
from shipmatrix.core.errors import ErrorCode

CRATE_MANIFEST = "Cargo.toml"

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Build every release target, then replace the release in one step.",
)

app.command(help="Gate, build, package and publish one run.")(run)
app.command(help="Print the job list and bundle names for a run.")(plan)
app.command(help="Decide whether a trigger should start a run.")(gate)
app.command(help="List the target catalog.")(targets)
app.add_typer(staging_app, name="staging")


def resolve_workspace(path: Path) -> Path:
    """Absolute crate root for `--workspace`, or exit with a user error."""
    try:
        root = path.expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --workspace: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    if not root.is_dir():
        typer.echo(f"error: --workspace '{root}' is not a directory", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    if not (root / CRATE_MANIFEST).is_file():
        typer.echo(f"error: no {CRATE_MANIFEST} in '{root}'", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    return root


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        help="Crate root to release (default: current directory)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if workspace is not None:
        os.environ[WORKSPACE_ENV] = str(resolve_workspace(workspace))


def main() -> None:
    app()
