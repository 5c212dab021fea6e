"""Fan-in barrier: every job outcome -> one release manifest.

The aggregator is the only place where a job-level error can escalate into a
failed run: a failure of a supported target fails the run, a failure of a
best-effort target is recorded and tolerated. Either way every bundle that
was produced ends up in the manifest, so a failed run is still diagnosable.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from shipmatrix.catalog.model import SupportTier
from shipmatrix.core.errors import PipelineError
from shipmatrix.services.outcomes import (
    JobCancelled,
    JobFailed,
    JobOutcome,
    JobSucceeded,
    JobTimedOut,
)
from shipmatrix.services.packaging.base import Bundle
from shipmatrix.services.planner import BuildJob, BuildPlan


@dataclass(frozen=True, slots=True)
class FailureRecord:
    target_id: str
    tier: SupportTier
    error: PipelineError

    @property
    def is_fatal(self) -> bool:
        return self.tier == "supported"


@dataclass(frozen=True, slots=True)
class ReleaseManifest:
    project: str
    tag: str
    version: str
    prerelease: bool
    mock: bool
    bundles: tuple[Bundle, ...]
    failures: tuple[FailureRecord, ...]
    failed: bool
    expected_names: frozenset[str]

    @property
    def file_names(self) -> tuple[str, ...]:
        return tuple(b.name for b in self.bundles)

    @property
    def fatal_failures(self) -> tuple[FailureRecord, ...]:
        return tuple(f for f in self.failures if f.is_fatal)


def _failure_for(job: BuildJob, outcome: JobOutcome | None) -> PipelineError | None:
    match outcome:
        case None:
            return PipelineError(
                kind="aggregation_incomplete",
                message="job never reached a terminal state",
                target_id=job.id,
            )
        case JobTimedOut():
            return PipelineError(
                kind="aggregation_incomplete",
                message="job did not finish before the run deadline",
                target_id=job.id,
            )
        case JobCancelled():
            return PipelineError(kind="cancelled", message="job was cancelled", target_id=job.id)
        case JobFailed(error=error):
            return error
        case JobSucceeded():
            return None


def aggregate(
    *,
    plan: BuildPlan,
    outcomes: Mapping[str, JobOutcome],
    tag: str,
    prerelease: bool,
    mock: bool,
) -> ReleaseManifest:
    """Build the manifest once every planned job has an outcome.

    Bundles keep plan order, so the manifest is stable across runs however
    the jobs interleaved.
    """
    bundles: list[Bundle] = []
    failures: list[FailureRecord] = []

    for job in plan.jobs:
        outcome = outcomes.get(job.id)
        error = _failure_for(job, outcome)
        if error is None:
            assert isinstance(outcome, JobSucceeded)
            bundles.extend(outcome.bundles)
            continue
        failures.append(FailureRecord(target_id=job.id, tier=job.descriptor.tier, error=error))

    return ReleaseManifest(
        project=plan.project,
        tag=tag,
        version=plan.version,
        prerelease=prerelease,
        mock=mock,
        bundles=tuple(bundles),
        failures=tuple(failures),
        failed=any(f.is_fatal for f in failures),
        expected_names=plan.expected_bundle_names(),
    )
