from __future__ import annotations

import typer

from shipmatrix.cli.context import build_context
from shipmatrix.output.console import Style


def targets(
    all_: bool = typer.Option(False, "--all", help="Include disabled targets"),
) -> None:
    """List the target catalog."""
    ctx = build_context()
    console = ctx.console

    console.header(f"Targets ({ctx.config.project.name})")
    for d in ctx.catalog:
        if not d.enabled and not all_:
            continue
        flags: list[str] = [d.variant, d.tier]
        if d.cross:
            flags.append("cross")
        if d.container:
            flags.append(f"container={d.container}")
        if d.distro_arch:
            flags.append(f"arch={d.distro_arch}")
        if not d.enabled:
            flags.append("disabled")
        style = Style.DEFAULT if d.is_supported else Style.DIM
        console.print(f"{d.id:<44} {d.family:<8} {d.runner:<16} {' '.join(flags)}", style)
