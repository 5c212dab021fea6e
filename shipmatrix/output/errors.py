"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipmatrix.core.errors import ErrorCode, PipelineError
from shipmatrix.output.console import Style

if TYPE_CHECKING:
    from shipmatrix.output.console import ConsoleProtocol

__all__ = ["print_pipeline_error", "pipeline_error_exit_code"]


def print_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> None:
    """Print a pipeline error with its target and hint."""
    match error:
        case PipelineError(kind="planning", message=message):
            console.error(f"invalid build plan: {message}")
        case PipelineError(kind="packaging_mismatch", message=message, target_id=target):
            console.error(f"{target}: package metadata mismatch: {message}")
        case PipelineError(kind="build_failed" | "aggregation_incomplete", target_id=str(target)):
            console.error(f"{target}: {error.message}")
        case PipelineError(kind="missing_file", message=message):
            console.error(f"staged file missing: {message}")
        case PipelineError(kind="cancelled", message=message):
            console.warning(message)
            return
        case _:
            console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def pipeline_error_exit_code(error: PipelineError) -> int:
    """Get the process exit code for a pipeline error."""
    match error.kind:
        case "planning" | "invalid_input":
            return int(ErrorCode.USER_ERROR)
        case "build_failed" | "packaging_mismatch" | "aggregation_incomplete" | "run_failed":
            return int(ErrorCode.BUILD_ERROR)
        case "publish_conflict":
            return int(ErrorCode.NETWORK_ERROR)
        case "missing_file":
            return int(ErrorCode.IO_ERROR)
        case "tool_missing":
            return int(ErrorCode.ENV_ERROR)
        case "cancelled":
            return int(ErrorCode.CANCELLED)
    return int(ErrorCode.USER_ERROR)
