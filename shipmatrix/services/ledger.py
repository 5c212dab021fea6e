from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.core.structured import as_str_dict, get_bool, get_int, get_list, get_str
from shipmatrix.platform.files import atomic_write_text

LEDGER_SCHEMA = 1


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    signature: str
    run_id: str
    recorded_at: str
    mock: bool = False


@dataclass(frozen=True, slots=True)
class RunLedger:
    """Change-set signatures of runs that finished successfully, mock or real."""

    path: Path

    def entries(self) -> Result[list[LedgerEntry], PipelineError]:
        if not self.path.exists():
            return Ok([])

        try:
            obj: object = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return Err(
                PipelineError(
                    kind="invalid_input",
                    message=f"unreadable run ledger: {e}",
                    hint=str(self.path),
                )
            )

        data = as_str_dict(obj)
        if data is None or get_int(data, "schema") != LEDGER_SCHEMA:
            return Err(
                PipelineError(
                    kind="invalid_input",
                    message="unsupported run ledger format",
                    hint=str(self.path),
                )
            )

        out: list[LedgerEntry] = []
        for item in get_list(data, "runs") or []:
            d = as_str_dict(item)
            if d is None:
                continue
            sig = get_str(d, "signature")
            if sig is None:
                continue
            out.append(
                LedgerEntry(
                    signature=sig,
                    run_id=get_str(d, "run_id") or "",
                    recorded_at=get_str(d, "recorded_at") or "",
                    mock=bool(get_bool(d, "mock")),
                )
            )
        return Ok(out)

    def find(
        self, signature: str, *, mock: bool = False
    ) -> Result[LedgerEntry | None, PipelineError]:
        """Entry that covers a run with this signature.

        A mock run is covered by any success, a real run only by a real one.
        """
        entries = self.entries()
        if isinstance(entries, Err):
            return entries
        for entry in entries.value:
            if entry.signature == signature and (mock or not entry.mock):
                return Ok(entry)
        return Ok(None)

    def record(
        self, signature: str, *, run_id: str, mock: bool = False, now: datetime | None = None
    ) -> Result[None, PipelineError]:
        entries = self.entries()
        if isinstance(entries, Err):
            return entries
        existing = [e for e in entries.value if e.signature == signature]
        if any(mock or not e.mock for e in existing):
            return Ok(None)

        # A real success replaces an earlier mock entry for the same signature.
        kept = [e for e in entries.value if e.signature != signature]
        recorded_at = (now or datetime.now(UTC)).isoformat()
        kept.append(
            LedgerEntry(signature=signature, run_id=run_id, recorded_at=recorded_at, mock=mock)
        )
        runs = [
            {
                "signature": e.signature,
                "run_id": e.run_id,
                "recorded_at": e.recorded_at,
                "mock": e.mock,
            }
            for e in kept
        ]

        payload = {"schema": LEDGER_SCHEMA, "runs": runs}
        try:
            atomic_write_text(self.path, json.dumps(payload, indent=2) + "\n")
        except OSError as e:
            return Err(
                PipelineError(
                    kind="invalid_input",
                    message=f"failed to write run ledger: {e}",
                    hint=str(self.path),
                )
            )
        return Ok(None)
