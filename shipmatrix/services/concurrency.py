"""Parallelism and cancellation for one run.

Jobs fan out on a thread pool with fail-fast disabled: a failing job never
cancels its siblings. The only things that stop pending jobs are
supersession (a newer run claimed the same concurrency group) and the run
deadline.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.core.structured import as_str_dict, get_str
from shipmatrix.platform.files import atomic_write_text
from shipmatrix.services.outcomes import (
    JobCancelled,
    JobFailed,
    JobOutcome,
    JobTimedOut,
)
from shipmatrix.services.planner import BuildJob


class CancellationToken:
    """Thread-safe, one-way cancellation flag shared by a run's workers."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason


@dataclass(frozen=True, slots=True)
class GroupClaim:
    group: str
    run_id: str
    path: Path


def _group_file_name(group: str) -> str:
    safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in group)
    return f"{safe}.json"


@dataclass(frozen=True, slots=True)
class ConcurrencyController:
    """Concurrency groups: at most one live run per logical ref/trigger group.

    Claiming a group makes the caller its owner; any earlier owner is
    superseded and stops at its next check.
    """

    state_dir: Path

    def claim(
        self, group: str, run_id: str, *, now: datetime | None = None
    ) -> Result[GroupClaim, PipelineError]:
        path = self.state_dir / _group_file_name(group)
        payload = {
            "group": group,
            "run_id": run_id,
            "claimed_at": (now or datetime.now(UTC)).isoformat(),
        }
        try:
            atomic_write_text(path, json.dumps(payload, indent=2) + "\n")
        except OSError as e:
            return Err(
                PipelineError(
                    kind="invalid_input",
                    message=f"failed to claim concurrency group {group}: {e}",
                    hint=str(path),
                )
            )
        return Ok(GroupClaim(group=group, run_id=run_id, path=path))

    def owner(self, group: str) -> str | None:
        path = self.state_dir / _group_file_name(group)
        try:
            obj: object = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        data = as_str_dict(obj)
        return None if data is None else get_str(data, "run_id")

    def is_superseded(self, claim: GroupClaim) -> bool:
        owner = self.owner(claim.group)
        return owner is not None and owner != claim.run_id

    def release(self, claim: GroupClaim) -> None:
        """Give up the group, unless a newer run already owns it."""
        if self.owner(claim.group) == claim.run_id:
            claim.path.unlink(missing_ok=True)


def _guarded(
    job: BuildJob, work: Callable[[BuildJob], JobOutcome], token: CancellationToken
) -> JobOutcome:
    if token.cancelled:
        return JobCancelled(job=job)
    try:
        return work(job)
    except Exception as e:  # noqa: BLE001
        # A crashing adapter is that job's failure, never the run's.
        return JobFailed(
            job=job,
            error=PipelineError(
                kind="build_failed",
                message=f"unexpected error: {e}",
                target_id=job.id,
            ),
        )


def run_jobs(
    jobs: Sequence[BuildJob],
    work: Callable[[BuildJob], JobOutcome],
    *,
    max_workers: int,
    token: CancellationToken,
    timeout: float | None = None,
    is_superseded: Callable[[], bool] | None = None,
    on_done: Callable[[JobOutcome], None] | None = None,
) -> dict[str, JobOutcome]:
    """Run every job and return exactly one terminal outcome per job id.

    Returns only once every job has an outcome (the fan-in barrier).
    """
    outcomes: dict[str, JobOutcome] = {}
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="shipmatrix-job")
    futures: dict[Future[JobOutcome], BuildJob] = {}
    timed_out = False

    def check_superseded() -> None:
        if is_superseded is not None and not token.cancelled and is_superseded():
            token.cancel("superseded by a newer run")
        if token.cancelled:
            for f in futures:
                f.cancel()

    try:
        for job in jobs:
            futures[executor.submit(_guarded, job, work, token)] = job

        try:
            for fut in as_completed(futures, timeout=timeout):
                job = futures[fut]
                outcome: JobOutcome = JobCancelled(job=job) if fut.cancelled() else fut.result()
                outcomes[job.id] = outcome
                if on_done is not None:
                    on_done(outcome)
                check_superseded()
        except TimeoutError:
            timed_out = True
            for fut, job in futures.items():
                if job.id in outcomes:
                    continue
                fut.cancel()
                outcomes[job.id] = JobTimedOut(job=job)
                if on_done is not None:
                    on_done(outcomes[job.id])
    finally:
        # Timed-out workers cannot be interrupted; do not block on them.
        executor.shutdown(wait=not timed_out, cancel_futures=True)

    return outcomes
