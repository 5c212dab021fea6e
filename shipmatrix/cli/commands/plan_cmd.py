from __future__ import annotations

import typer

from shipmatrix.cli.commands._helpers import exit_on_error, split_csv
from shipmatrix.cli.context import build_context
from shipmatrix.output.console import Style
from shipmatrix.services.packaging.naming import SIDE_FILE_BUNDLES, bundle_name
from shipmatrix.services.planner import RunParameters, plan_matrix


def plan(
    version: str = typer.Option("nightly", "--version", help="Version or ref being built"),
    target: list[str] = typer.Option([], "--target", "-t", help="Target id(s) to build"),
    best_effort: bool = typer.Option(
        True, "--best-effort/--no-best-effort", help="Include best-effort targets"
    ),
) -> None:
    """Print the build matrix and the bundle each job produces."""
    ctx = build_context()
    console = ctx.console
    project = ctx.config.project.name

    planned = exit_on_error(
        plan_matrix(
            ctx.catalog,
            RunParameters(
                version=version,
                features=ctx.config.build.features,
                selection=split_csv(target),
                include_best_effort=best_effort,
            ),
            project=project,
            side_files_triple=ctx.config.build.side_files_triple,
        ),
        ctx,
    )

    console.header(f"Build matrix: {len(planned.jobs)} jobs ({version})")
    for job in planned.jobs:
        d = job.descriptor
        style = Style.DEFAULT if job.is_supported else Style.DIM
        console.print(f"{job.index:>3}  {job.id:<44} {bundle_name(project, d)}", style)

    if planned.side_files_target is not None:
        console.print(
            f"side files from {planned.side_files_target}: " + ", ".join(SIDE_FILE_BUNDLES),
            Style.DIM,
        )
