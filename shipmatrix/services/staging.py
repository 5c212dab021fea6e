"""Run-scoped artifact hand-off.

Packagers deposit bundles in `<staging root>/<run id>/`; the aggregator and
publisher read them from there exactly once. Each run directory records its
own expiry and is removed by `purge_expired` once the retention window has
passed. Staged files are never part of the permanent release record.
"""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.core.structured import as_str_dict, get_str
from shipmatrix.platform.files import atomic_write_text

STAGING_SCHEMA = 1
METADATA_NAME = ".staging.json"


@dataclass(frozen=True, slots=True)
class StagingArea:
    root: Path
    run_id: str
    expires_at: datetime

    @property
    def run_dir(self) -> Path:
        return self.root / self.run_id

    def files(self) -> list[Path]:
        if not self.run_dir.is_dir():
            return []
        return sorted(p for p in self.run_dir.iterdir() if p.is_file() and p.name != METADATA_NAME)

    def discard(self) -> None:
        """Drop everything staged by this run (used when the run is superseded)."""
        if self.run_dir.exists():
            shutil.rmtree(self.run_dir)


def create_staging_area(
    *,
    root: Path,
    run_id: str,
    retention_days: int,
    now: datetime | None = None,
) -> Result[StagingArea, PipelineError]:
    created = now or datetime.now(UTC)
    expires = created + timedelta(days=retention_days)
    area = StagingArea(root=root, run_id=run_id, expires_at=expires)

    payload = {
        "schema": STAGING_SCHEMA,
        "run_id": run_id,
        "created_at": created.isoformat(),
        "expires_at": expires.isoformat(),
    }
    try:
        area.run_dir.mkdir(parents=True, exist_ok=False)
        atomic_write_text(area.run_dir / METADATA_NAME, json.dumps(payload, indent=2) + "\n")
    except FileExistsError:
        return Err(
            PipelineError(
                kind="invalid_input",
                message=f"staging directory already exists for run {run_id}",
                hint=str(area.run_dir),
            )
        )
    except OSError as e:
        return Err(
            PipelineError(
                kind="invalid_input",
                message=f"failed to create staging area: {e}",
                hint=str(area.run_dir),
            )
        )
    return Ok(area)


def _read_expiry(run_dir: Path) -> datetime | None:
    try:
        obj: object = json.loads((run_dir / METADATA_NAME).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    data = as_str_dict(obj)
    if data is None:
        return None
    raw = get_str(data, "expires_at")
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def purge_expired(root: Path, *, now: datetime | None = None) -> Result[list[str], PipelineError]:
    """Remove staging run directories past their expiry.

    Directories without readable metadata are left alone; they were not
    created by a run.

    Returns:
        Ok(run ids removed), sorted.
    """
    if not root.is_dir():
        return Ok([])

    current = now or datetime.now(UTC)
    removed: list[str] = []
    for run_dir in sorted(root.iterdir()):
        if not run_dir.is_dir():
            continue
        expires = _read_expiry(run_dir)
        if expires is None or expires > current:
            continue
        try:
            shutil.rmtree(run_dir)
        except OSError as e:
            return Err(
                PipelineError(
                    kind="invalid_input",
                    message=f"failed to remove expired staging dir: {e}",
                    hint=str(run_dir),
                )
            )
        removed.append(run_dir.name)
    return Ok(removed)
