from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from shipmatrix.catalog import TargetDescriptor, load_catalog
from shipmatrix.core.config import CONFIG_FILENAME, Config, load_config_or_default
from shipmatrix.core.errors import ErrorCode
from shipmatrix.core.result import Err
from shipmatrix.output.console import ConsoleProtocol, RichConsole

WORKSPACE_ENV = "SHIPMATRIX_WORKSPACE"


@dataclass(frozen=True, slots=True)
class CLIContext:
    workspace_root: Path
    config: Config
    catalog: tuple[TargetDescriptor, ...]
    console: ConsoleProtocol


def workspace_root() -> Path:
    """`--workspace` (exported by the app callback), else the current directory."""
    override = os.environ.get(WORKSPACE_ENV)
    if override:
        return Path(override)
    return Path.cwd()


def build_context() -> CLIContext:
    root = workspace_root()
    config_path = root / CONFIG_FILENAME

    config_result = load_config_or_default(config_path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    config = config_result.value

    catalog_result = load_catalog(config)
    if isinstance(catalog_result, Err):
        typer.echo(f"error: {catalog_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(
        workspace_root=root,
        config=config,
        catalog=catalog_result.value,
        console=RichConsole(),
    )
