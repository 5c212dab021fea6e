from __future__ import annotations

import typer

from shipmatrix.cli.commands._helpers import exit_on_error, exit_with_code, split_csv
from shipmatrix.cli.context import build_context
from shipmatrix.core.config import resolve_path
from shipmatrix.core.errors import ErrorCode
from shipmatrix.output.console import Style
from shipmatrix.services.ledger import RunLedger
from shipmatrix.services.trigger import decide, parse_trigger, resolve_mock

SKIPPED_EXIT_CODE = 10


def gate(
    trigger: str = typer.Option(
        "push", "--trigger", help="manual|scheduled|call|push|pull_request"
    ),
    changed: list[str] = typer.Option([], "--changed", help="Changed path(s), repeatable"),
    mock_input: str | None = typer.Option(None, "--mock-input", help="Mock input value"),
    strict: bool = typer.Option(
        False, "--strict", help=f"Exit with {SKIPPED_EXIT_CODE} when the run would be skipped"
    ),
) -> None:
    """Decide whether a run for this change set would proceed."""
    ctx = build_context()
    console = ctx.console

    kind = parse_trigger(trigger)
    if kind is None:
        console.error(f"unknown trigger: {trigger}")
        exit_with_code(int(ErrorCode.USER_ERROR))
    mock = resolve_mock(kind, mock_input)

    decision = exit_on_error(
        decide(
            trigger=kind,
            changed_paths=split_csv(changed),
            workspace_root=ctx.workspace_root,
            patterns=ctx.config.gate.paths,
            ledger=RunLedger(resolve_path(ctx.workspace_root, ctx.config.gate.ledger_path)),
            mock=mock,
        ),
        ctx,
    )

    if decision.proceed:
        console.success(f"proceed: {decision.reason}")
    else:
        console.info(f"skip: {decision.reason}")
    console.print(f"mock: {mock}", Style.DIM)
    if decision.signature is not None:
        console.print(f"signature: {decision.signature}", Style.DIM)
    for path in decision.relevant_paths:
        console.print(f"  {path}", Style.DIM)

    if strict and not decision.proceed:
        exit_with_code(SKIPPED_EXIT_CODE)
