"""Subprocess execution for the external toolchain.

cargo, cross, docker, cargo-wix, cargo-deb, dpkg-deb and gh are all invoked
through `run`. A non-zero exit, a missing executable and a timeout all come
back as `Err(ProcessError)`, so adapters translate failures into pipeline
errors without try/except, and tests replace the module-level runner.

Build jobs run on worker threads that must not write to the console. They
pass `log_path` and the child's combined output goes to that file instead of
memory; the error then carries the tail of the log.
"""

from __future__ import annotations

import subprocess
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from shipmatrix.core.result import Err, Ok, Result

__all__ = ["LOG_TAIL_LINES", "ProcessError", "run"]

LOG_TAIL_LINES = 20


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that could not start, timed out (returncode -1) or exited non-zero."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"

    def detail(self) -> str:
        """Last line of output, for error hints."""
        text = self.stderr.strip() or self.stdout.strip()
        return text.splitlines()[-1] if text else str(self)


def _log_tail(path: Path, lines: int = LOG_TAIL_LINES) -> str:
    try:
        with path.open(encoding="utf-8", errors="replace") as fh:
            return "".join(deque(fh, maxlen=lines))
    except OSError:
        return ""


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
    log_path: Path | None = None,
) -> Result[str, ProcessError]:
    """Run cmd to completion.

    Args:
        cmd: Command and arguments.
        cwd: Working directory.
        env: Complete child environment; None inherits ours.
        timeout: Seconds before the child is killed; None waits forever.
        log_path: Write stdout and stderr there (truncated first) instead of
            capturing them. Ok then carries an empty string.

    Returns:
        Ok(stdout) on exit code 0, Err(ProcessError) otherwise.
    """
    command = tuple(cmd)
    child_env = dict(env) if env is not None else None

    try:
        if log_path is None:
            proc = subprocess.run(
                cmd,
                cwd=str(cwd),
                env=child_env,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
            stdout, stderr = proc.stdout, proc.stderr
        else:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with log_path.open("w", encoding="utf-8") as log:
                proc = subprocess.run(
                    cmd,
                    cwd=str(cwd),
                    env=child_env,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    timeout=timeout,
                    check=False,
                )
            stdout, stderr = "", _log_tail(log_path) if proc.returncode != 0 else ""
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(command, -1, partial, f"Command timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(command, -1, "", str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(command, proc.returncode, stdout, stderr))
    return Ok(stdout)
