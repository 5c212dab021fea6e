from __future__ import annotations

import typer

from shipmatrix.cli.commands._helpers import exit_on_error
from shipmatrix.cli.context import build_context
from shipmatrix.core.config import resolve_path
from shipmatrix.services.staging import purge_expired

staging_app = typer.Typer(add_completion=False, no_args_is_help=True)


@staging_app.command("purge")
def purge() -> None:
    """Remove staging directories past their retention window."""
    ctx = build_context()
    root = resolve_path(ctx.workspace_root, ctx.config.staging.dir)

    removed = exit_on_error(purge_expired(root), ctx)
    if not removed:
        ctx.console.info(f"nothing to purge in {root}")
        return
    for run_id in removed:
        ctx.console.print(f"removed {run_id}")
    ctx.console.success(f"purged {len(removed)} staging dir(s)")
