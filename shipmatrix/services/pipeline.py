"""One release run, end to end.

gate -> plan -> claim group -> stage -> fan out (build + package per job)
-> aggregate (barrier) -> publish -> record success.

Worker threads never write to the console; progress is printed from the
coordinating thread as each job reaches its terminal state.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from shipmatrix.catalog.model import TargetDescriptor
from shipmatrix.core.config import Config, resolve_path
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err
from shipmatrix.output.console import ConsoleProtocol, Style
from shipmatrix.platform.files import file_size_label
from shipmatrix.services.aggregator import ReleaseManifest, aggregate
from shipmatrix.services.builder import Builder, BuildSettings, builder_for
from shipmatrix.services.concurrency import (
    CancellationToken,
    ConcurrencyController,
    GroupClaim,
    run_jobs,
)
from shipmatrix.services.ledger import RunLedger
from shipmatrix.services.outcomes import (
    JobCancelled,
    JobFailed,
    JobOutcome,
    JobSucceeded,
    outcome_label,
)
from shipmatrix.services.packaging.base import Bundle, Packager
from shipmatrix.services.packaging.side_files import compress_side_files
from shipmatrix.services.packaging.strategies import packager_for
from shipmatrix.services.planner import BuildJob, BuildPlan, RunParameters, plan_matrix
from shipmatrix.services.release.publisher import PublishOutcome, PublishState, publish_release
from shipmatrix.services.release.store import ReleaseStore
from shipmatrix.services.staging import StagingArea, create_staging_area, purge_expired
from shipmatrix.services.trigger import GateDecision, TriggerKind, decide, resolve_mock

RunStatus = Literal["skipped", "published", "mock-completed", "failed", "cancelled"]

SUPERSEDED = "superseded by a newer run"


@dataclass(frozen=True, slots=True)
class RunRequest:
    trigger: TriggerKind
    version: str
    tag: str
    mock_input: str | None = None
    changed_paths: tuple[str, ...] = ()
    # Identity of the workflow that invoked this run (call trigger).
    caller: str | None = None
    selection: tuple[str, ...] = ()
    include_best_effort: bool = True
    # None falls back to release.prerelease from config.
    prerelease: bool | None = None
    run_id: str | None = None


@dataclass(frozen=True, slots=True)
class RunReport:
    run_id: str
    status: RunStatus
    mock: bool
    decision: GateDecision | None = None
    plan: BuildPlan | None = None
    manifest: ReleaseManifest | None = None
    publish: PublishOutcome | None = None
    error: PipelineError | None = None
    caller: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in ("skipped", "published", "mock-completed")


def new_run_id(now: datetime | None = None) -> str:
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


def make_job_worker(
    *,
    plan: BuildPlan,
    settings: BuildSettings,
    staging: StagingArea,
    token: CancellationToken,
    is_superseded: Callable[[], bool],
    select_builder: Callable[[TargetDescriptor], Builder] = builder_for,
    select_packager: Callable[[TargetDescriptor], Packager] = packager_for,
) -> Callable[[BuildJob], JobOutcome]:
    """Build and package one job into the staging area."""

    def work(job: BuildJob) -> JobOutcome:
        if not token.cancelled and is_superseded():
            token.cancel(SUPERSEDED)
        if token.cancelled:
            return JobCancelled(job=job)

        d = job.descriptor
        built = select_builder(d).build(job, settings)
        if isinstance(built, Err):
            return JobFailed(job=job, error=built.error)

        packaged = select_packager(d).package(built.value, d, settings, staging.run_dir)
        if isinstance(packaged, Err):
            return JobFailed(job=job, error=packaged.error)
        bundles: list[Bundle] = list(packaged.value)

        if job.id == plan.side_files_target:
            side = compress_side_files(built.value, d, settings, staging.run_dir)
            if isinstance(side, Err):
                return JobFailed(job=job, error=side.error)
            bundles.extend(side.value)

        return JobSucceeded(job=job, bundles=tuple(bundles))

    return work


def _print_plan(plan: BuildPlan, console: ConsoleProtocol) -> None:
    console.header(f"Build matrix ({len(plan.jobs)} jobs, version {plan.version})")
    for job in plan.jobs:
        d = job.descriptor
        marker = "" if d.is_supported else "  (best-effort)"
        console.print(f"  {job.id:<44} {d.variant}{marker}")


def _print_outcome(outcome: JobOutcome, console: ConsoleProtocol) -> None:
    match outcome:
        case JobSucceeded(job=job, bundles=bundles):
            console.success(f"{job.id}: " + ", ".join(b.name for b in bundles))
        case JobFailed(job=job, error=error):
            text = f"{job.id}: {error.message}"
            if job.is_supported:
                console.error(text)
            else:
                console.warning(f"{text} (best-effort)")
        case _:
            console.warning(f"{outcome.job.id}: {outcome_label(outcome)}")


def print_release_files(manifest: ReleaseManifest, console: ConsoleProtocol) -> None:
    console.header(f"Release files for {manifest.tag}")
    for bundle in manifest.bundles:
        try:
            size = file_size_label(bundle.path.stat().st_size)
        except OSError:
            size = "?"
        console.print(f"  {size:>8}  {bundle.name}")


def print_failures(manifest: ReleaseManifest, console: ConsoleProtocol) -> None:
    if not manifest.failures:
        return
    console.header("Failed targets")
    for failure in manifest.failures:
        tier = "" if failure.is_fatal else " (best-effort)"
        console.print(f"  {failure.target_id}{tier}: {failure.error.message}", Style.ERROR)
        if failure.error.hint:
            console.print(f"    {failure.error.hint}", Style.DIM)


def run_release(
    request: RunRequest,
    *,
    config: Config,
    catalog: Sequence[TargetDescriptor],
    workspace_root: Path,
    store: ReleaseStore,
    console: ConsoleProtocol,
    select_builder: Callable[[TargetDescriptor], Builder] = builder_for,
    select_packager: Callable[[TargetDescriptor], Packager] = packager_for,
    sleep: Callable[[float], None] = time.sleep,
    now: datetime | None = None,
) -> RunReport:
    started = now or datetime.now(UTC)
    run_id = request.run_id or new_run_id(started)
    mock = resolve_mock(request.trigger, request.mock_input)
    caller = request.caller

    base = RunReport(run_id=run_id, status="failed", mock=mock, caller=caller)

    if caller:
        console.info(f"run {run_id} called by {caller}")

    ledger = RunLedger(resolve_path(workspace_root, config.gate.ledger_path))
    gate = decide(
        trigger=request.trigger,
        changed_paths=request.changed_paths,
        workspace_root=workspace_root,
        patterns=config.gate.paths,
        ledger=ledger,
        mock=mock,
    )
    if isinstance(gate, Err):
        return replace(base, status="failed", error=gate.error)
    decision = gate.value
    if not decision.proceed:
        console.info(f"skipped: {decision.reason}")
        return replace(base, status="skipped", decision=decision)

    planned = plan_matrix(
        catalog,
        RunParameters(
            version=request.version,
            features=config.build.features,
            selection=request.selection,
            include_best_effort=request.include_best_effort,
        ),
        project=config.project.name,
        side_files_triple=config.build.side_files_triple,
    )
    if isinstance(planned, Err):
        return replace(base, status="failed", decision=decision, error=planned.error)
    plan = planned.value
    _print_plan(plan, console)

    controller = ConcurrencyController(resolve_path(workspace_root, config.concurrency.state_dir))
    claimed = controller.claim(f"{config.concurrency.group}-{request.tag}", run_id, now=started)
    if isinstance(claimed, Err):
        return replace(base, status="failed", decision=decision, plan=plan, error=claimed.error)
    claim = claimed.value

    try:
        return _run_claimed(
            request,
            run_id=run_id,
            mock=mock,
            decision=decision,
            plan=plan,
            claim=claim,
            controller=controller,
            ledger=ledger,
            config=config,
            workspace_root=workspace_root,
            store=store,
            console=console,
            select_builder=select_builder,
            select_packager=select_packager,
            sleep=sleep,
            started=started,
            base=base,
        )
    finally:
        controller.release(claim)


def _run_claimed(
    request: RunRequest,
    *,
    run_id: str,
    mock: bool,
    decision: GateDecision,
    plan: BuildPlan,
    claim: GroupClaim,
    controller: ConcurrencyController,
    ledger: RunLedger,
    config: Config,
    workspace_root: Path,
    store: ReleaseStore,
    console: ConsoleProtocol,
    select_builder: Callable[[TargetDescriptor], Builder],
    select_packager: Callable[[TargetDescriptor], Packager],
    sleep: Callable[[float], None],
    started: datetime,
    base: RunReport,
) -> RunReport:
    staging_root = resolve_path(workspace_root, config.staging.dir)
    purged = purge_expired(staging_root, now=started)
    if isinstance(purged, Err):
        console.warning(f"staging cleanup skipped: {purged.error.message}")
    elif purged.value:
        console.print(f"removed {len(purged.value)} expired staging dir(s)", Style.DIM)

    staged = create_staging_area(
        root=staging_root,
        run_id=run_id,
        retention_days=config.staging.retention_days,
        now=started,
    )
    if isinstance(staged, Err):
        return replace(base, status="failed", decision=decision, plan=plan, error=staged.error)
    staging = staged.value

    token = CancellationToken()

    def superseded() -> bool:
        return controller.is_superseded(claim)

    settings = BuildSettings.from_config(config, workspace_root)
    work = make_job_worker(
        plan=plan,
        settings=settings,
        staging=staging,
        token=token,
        is_superseded=superseded,
        select_builder=select_builder,
        select_packager=select_packager,
    )

    console.header("Building")
    outcomes = run_jobs(
        plan.jobs,
        work,
        max_workers=config.concurrency.max_workers,
        token=token,
        timeout=config.concurrency.job_timeout_seconds,
        is_superseded=superseded,
        on_done=lambda outcome: _print_outcome(outcome, console),
    )

    if token.cancelled or superseded():
        return _cancelled(staging, console=console, base=base, decision=decision, plan=plan)

    prerelease = config.release.prerelease if request.prerelease is None else request.prerelease
    manifest = aggregate(
        plan=plan, outcomes=outcomes, tag=request.tag, prerelease=prerelease, mock=mock
    )
    print_failures(manifest, console)
    print_release_files(manifest, console)

    # Leftovers of failed jobs stay staged but are never published.
    stray = [p.name for p in staging.files() if p.name not in manifest.file_names]
    if stray:
        console.warning("not publishing unclaimed staged file(s): " + ", ".join(stray))

    # Last chance to notice a newer run before touching the release.
    if superseded():
        return _cancelled(
            staging, console=console, base=base, decision=decision, plan=plan, manifest=manifest
        )

    published = publish_release(
        manifest=manifest,
        store=store,
        console=console,
        pause_seconds=config.release.replace_pause_seconds,
        title=config.release.title,
        sleep=sleep,
    )
    if isinstance(published, Err):
        return replace(
            base,
            status="failed",
            decision=decision,
            plan=plan,
            manifest=manifest,
            error=published.error,
        )

    outcome = published.value
    if decision.signature is not None:
        recorded = ledger.record(decision.signature, run_id=run_id, mock=mock, now=started)
        if isinstance(recorded, Err):
            console.warning(f"run ledger not updated: {recorded.error.message}")

    status: RunStatus = "published"
    if outcome.state is PublishState.MOCK_COMPLETED:
        status = "mock-completed"
    return replace(
        base, status=status, decision=decision, plan=plan, manifest=manifest, publish=outcome
    )


def _cancelled(
    staging: StagingArea,
    *,
    console: ConsoleProtocol,
    base: RunReport,
    decision: GateDecision,
    plan: BuildPlan,
    manifest: ReleaseManifest | None = None,
) -> RunReport:
    staging.discard()
    console.warning(f"run cancelled: {SUPERSEDED}; staged files discarded")
    return replace(
        base,
        status="cancelled",
        decision=decision,
        plan=plan,
        manifest=manifest,
        error=PipelineError(kind="cancelled", message=SUPERSEDED),
    )
