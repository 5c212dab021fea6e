"""Error values and process exit codes.

`PipelineError` is the single error payload carried through a release run.
Its `kind` names the failure class; only the aggregator decides whether a
job-level kind escalates into a failed run.

`ErrorCode` maps onto shell exit codes and must remain stable, CI scripts
branch on them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Literal

__all__ = ["ErrorCode", "ErrorKind", "PipelineError"]


ErrorKind = Literal[
    "planning",
    "build_failed",
    "packaging_mismatch",
    "aggregation_incomplete",
    "publish_conflict",
    "run_failed",
    "invalid_input",
    "missing_file",
    "tool_missing",
    "cancelled",
]


@dataclass(frozen=True, slots=True)
class PipelineError:
    kind: ErrorKind
    message: str
    hint: str | None = None
    # Set for job-level errors.
    target_id: str | None = None

    def for_target(self, target_id: str) -> PipelineError:
        return replace(self, target_id=target_id)


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success (including a skipped duplicate run)
    - 1: User error (bad input, invalid config or catalog)
    - 2: Environment error (missing tools)
    - 3: Build error (a supported target failed)
    - 4: Network error (release store unreachable or rejecting changes)
    - 5: I/O error (staged file missing)
    - 6: Cancelled (superseded by a newer run)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    CANCELLED = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")
