"""Tests for fan-out, cancellation and concurrency groups."""

from __future__ import annotations

import threading
import time
from pathlib import Path

from shipmatrix.catalog import TargetDescriptor
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Ok
from shipmatrix.services.concurrency import (
    CancellationToken,
    ConcurrencyController,
    run_jobs,
)
from shipmatrix.services.outcomes import (
    JobCancelled,
    JobFailed,
    JobOutcome,
    JobSucceeded,
    JobTimedOut,
)
from shipmatrix.services.planner import BuildJob


def _jobs(n: int) -> list[BuildJob]:
    return [
        BuildJob(
            descriptor=TargetDescriptor(
                id=f"t{i}", family="linux", triple=f"t{i}-unknown-linux-gnu"
            ),
            version="nightly",
            features=(),
            index=i,
        )
        for i in range(n)
    ]


class TestCancellationToken:
    def test_first_reason_wins(self) -> None:
        token = CancellationToken()
        assert token.cancelled is False
        token.cancel("superseded")
        token.cancel("other")
        assert token.cancelled is True
        assert token.reason == "superseded"


class TestConcurrencyController:
    def test_newer_claim_supersedes(self, tmp_path: Path) -> None:
        controller = ConcurrencyController(tmp_path)
        first = controller.claim("release-nightly", "run-1")
        assert isinstance(first, Ok)
        assert controller.is_superseded(first.value) is False

        second = controller.claim("release-nightly", "run-2")
        assert isinstance(second, Ok)
        assert controller.is_superseded(first.value) is True
        assert controller.is_superseded(second.value) is False

    def test_release_keeps_newer_owner(self, tmp_path: Path) -> None:
        controller = ConcurrencyController(tmp_path)
        first = controller.claim("g", "run-1")
        second = controller.claim("g", "run-2")
        assert isinstance(first, Ok) and isinstance(second, Ok)

        controller.release(first.value)
        assert controller.owner("g") == "run-2"

        controller.release(second.value)
        assert controller.owner("g") is None

    def test_groups_are_independent(self, tmp_path: Path) -> None:
        controller = ConcurrencyController(tmp_path)
        a = controller.claim("release-nightly", "run-1")
        controller.claim("release-v1.0", "run-2")
        assert isinstance(a, Ok)
        assert controller.is_superseded(a.value) is False


class TestRunJobs:
    def test_every_job_gets_an_outcome(self) -> None:
        jobs = _jobs(6)

        def work(job: BuildJob) -> JobOutcome:
            if job.index % 2:
                return JobFailed(job=job, error=PipelineError(kind="build_failed", message="x"))
            return JobSucceeded(job=job, bundles=())

        outcomes = run_jobs(jobs, work, max_workers=3, token=CancellationToken())

        assert set(outcomes) == {j.id for j in jobs}
        # A failing job never cancels its siblings.
        assert sum(isinstance(o, JobSucceeded) for o in outcomes.values()) == 3
        assert sum(isinstance(o, JobFailed) for o in outcomes.values()) == 3

    def test_jobs_run_in_parallel(self) -> None:
        jobs = _jobs(3)
        barrier = threading.Barrier(3, timeout=5)

        def work(job: BuildJob) -> JobOutcome:
            barrier.wait()
            return JobSucceeded(job=job, bundles=())

        outcomes = run_jobs(jobs, work, max_workers=3, token=CancellationToken())
        assert all(isinstance(o, JobSucceeded) for o in outcomes.values())

    def test_exception_becomes_job_failure(self) -> None:
        (job,) = _jobs(1)

        def work(job: BuildJob) -> JobOutcome:
            raise RuntimeError("adapter crashed")

        outcomes = run_jobs([job], work, max_workers=1, token=CancellationToken())

        outcome = outcomes[job.id]
        assert isinstance(outcome, JobFailed)
        assert "adapter crashed" in outcome.error.message
        assert outcome.error.target_id == job.id

    def test_supersession_cancels_pending_jobs(self) -> None:
        jobs = _jobs(5)
        token = CancellationToken()
        started: list[str] = []

        def work(job: BuildJob) -> JobOutcome:
            started.append(job.id)
            return JobSucceeded(job=job, bundles=())

        outcomes = run_jobs(
            jobs,
            work,
            max_workers=1,
            token=token,
            is_superseded=lambda: len(started) >= 1,
        )

        assert token.cancelled is True
        assert set(outcomes) == {j.id for j in jobs}
        assert isinstance(outcomes["t0"], JobSucceeded)
        assert sum(isinstance(o, JobCancelled) for o in outcomes.values()) >= 1
        assert len(started) < len(jobs)

    def test_deadline_times_out_unfinished_jobs(self) -> None:
        jobs = _jobs(2)
        release = threading.Event()

        def work(job: BuildJob) -> JobOutcome:
            if job.index == 1:
                release.wait(timeout=5)
            return JobSucceeded(job=job, bundles=())

        start = time.monotonic()
        outcomes = run_jobs(jobs, work, max_workers=2, token=CancellationToken(), timeout=0.3)
        release.set()

        assert time.monotonic() - start < 4
        assert isinstance(outcomes["t0"], JobSucceeded)
        assert isinstance(outcomes["t1"], JobTimedOut)

    def test_on_done_sees_every_outcome(self) -> None:
        jobs = _jobs(4)
        seen: list[str] = []

        def work(job: BuildJob) -> JobOutcome:
            return JobSucceeded(job=job, bundles=())

        run_jobs(
            jobs,
            work,
            max_workers=2,
            token=CancellationToken(),
            on_done=lambda o: seen.append(o.job.id),
        )
        assert sorted(seen) == ["t0", "t1", "t2", "t3"]
