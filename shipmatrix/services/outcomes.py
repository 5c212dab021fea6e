"""Terminal states of a build job.

Every planned job ends in exactly one of these. The aggregator only ever sees
outcomes, never exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass

from shipmatrix.core.errors import PipelineError
from shipmatrix.services.packaging.base import Bundle
from shipmatrix.services.planner import BuildJob


@dataclass(frozen=True, slots=True)
class JobSucceeded:
    job: BuildJob
    bundles: tuple[Bundle, ...]


@dataclass(frozen=True, slots=True)
class JobFailed:
    job: BuildJob
    error: PipelineError


@dataclass(frozen=True, slots=True)
class JobCancelled:
    job: BuildJob


@dataclass(frozen=True, slots=True)
class JobTimedOut:
    job: BuildJob


JobOutcome = JobSucceeded | JobFailed | JobCancelled | JobTimedOut


def outcome_label(outcome: JobOutcome) -> str:
    match outcome:
        case JobSucceeded():
            return "ok"
        case JobFailed():
            return "failed"
        case JobCancelled():
            return "cancelled"
        case JobTimedOut():
            return "timed out"
