from __future__ import annotations

import typer

from shipmatrix.cli.commands._helpers import exit_on_error, exit_with_code, split_csv
from shipmatrix.cli.context import build_context
from shipmatrix.core.errors import ErrorCode
from shipmatrix.output.errors import pipeline_error_exit_code, print_pipeline_error
from shipmatrix.services.pipeline import RunRequest, run_release
from shipmatrix.services.release.store import make_store
from shipmatrix.services.trigger import parse_trigger


def run(
    tag: str | None = typer.Option(None, "--tag", help="Release tag (default: release.tag)"),
    version: str = typer.Option("nightly", "--version", help="Version or ref being built"),
    trigger: str = typer.Option(
        "manual", "--trigger", help="manual|scheduled|call|push|pull_request"
    ),
    mock_input: str | None = typer.Option(
        None, "--mock-input", help='"mock" for a dry run; manual runs default to mock'
    ),
    caller: str | None = typer.Option(None, "--caller", help="Calling workflow (call trigger)"),
    changed: list[str] = typer.Option([], "--changed", help="Changed path(s), repeatable"),
    target: list[str] = typer.Option([], "--target", "-t", help="Target id(s) to build"),
    best_effort: bool = typer.Option(
        True, "--best-effort/--no-best-effort", help="Include best-effort targets"
    ),
    prerelease: bool | None = typer.Option(
        None, "--prerelease/--no-prerelease", help="Override release.prerelease"
    ),
    store: str | None = typer.Option(None, "--store", help="github|local (default: release.store)"),
    run_id: str | None = typer.Option(None, "--run-id", help="Run identifier (default: generated)"),
) -> None:
    """Build, package and publish the release."""
    ctx = build_context()
    console = ctx.console

    kind = parse_trigger(trigger)
    if kind is None:
        console.error(f"unknown trigger: {trigger}")
        exit_with_code(int(ErrorCode.USER_ERROR))

    release_store = exit_on_error(
        make_store(ctx.config, workspace_root=ctx.workspace_root, kind=store), ctx
    )

    report = run_release(
        RunRequest(
            trigger=kind,
            version=version,
            tag=tag or ctx.config.release.tag,
            mock_input=mock_input,
            changed_paths=split_csv(changed),
            caller=caller,
            selection=split_csv(target),
            include_best_effort=best_effort,
            prerelease=prerelease,
            run_id=run_id,
        ),
        config=ctx.config,
        catalog=ctx.catalog,
        workspace_root=ctx.workspace_root,
        store=release_store,
        console=console,
    )

    if report.error is not None:
        print_pipeline_error(report.error, console)
        exit_with_code(pipeline_error_exit_code(report.error))

    match report.status:
        case "published":
            console.success(f"run {report.run_id}: published")
        case "mock-completed":
            console.success(f"run {report.run_id}: mock run completed, nothing published")
        case _:
            console.info(f"run {report.run_id}: {report.status}")
