"""Trigger gate: decide whether a run executes or is skipped as a duplicate.

Manual, scheduled and programmatic (call) triggers always run. Any other
trigger is reduced to the build-relevant part of its change set, and that
part is fingerprinted by content. A fingerprint that already belongs to a
successful run means the work has been done; the run is skipped before
anything else starts.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Literal

from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.platform.files import sha256_file
from shipmatrix.services.ledger import RunLedger

TriggerKind = Literal["manual", "scheduled", "call", "push", "pull_request"]
TRIGGER_KINDS: tuple[TriggerKind, ...] = ("manual", "scheduled", "call", "push", "pull_request")

ALWAYS_PROCEED: frozenset[TriggerKind] = frozenset({"manual", "scheduled", "call"})

# Change-set triggers validate builds; they never touch the release.
NEVER_PUBLISH: frozenset[TriggerKind] = frozenset({"push", "pull_request"})

MOCK_INPUT = "mock"


def parse_trigger(value: str) -> TriggerKind | None:
    for kind in TRIGGER_KINDS:
        if kind == value:
            return kind
    return None


_DELETED = "<deleted>"


@dataclass(frozen=True, slots=True)
class GateDecision:
    proceed: bool
    reason: str
    # Content signature of the build-relevant change set (None when empty).
    signature: str | None
    relevant_paths: tuple[str, ...]


def resolve_mock(trigger: TriggerKind, mock_input: str | None) -> bool:
    """Whether this run must skip every external publish side effect.

    Scheduled runs always publish. Manual runs default to mock and publish
    only when the input is set to anything other than "mock". Programmatic
    calls publish unless they explicitly ask for a mock run. Push and pull
    request runs are always mock, whatever the input says.
    """
    if trigger in NEVER_PUBLISH:
        return True
    value = (mock_input or "").strip()
    match trigger:
        case "scheduled":
            return False
        case "manual":
            return value in ("", MOCK_INPUT)
        case _:
            return value == MOCK_INPUT


def _normalize(path: str) -> str:
    p = path.strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p


def matches_build_input(path: str, patterns: Iterable[str]) -> bool:
    """True if path falls under one of the build-input patterns.

    A pattern ending in `/**` matches everything below that directory; other
    patterns are matched with fnmatch against the whole path.
    """
    p = _normalize(path)
    for pattern in patterns:
        if pattern.endswith("/**"):
            prefix = pattern[: -len("**")]
            if p.startswith(prefix):
                return True
        elif fnmatchcase(p, pattern):
            return True
    return False


def relevant_paths(paths: Iterable[str], patterns: Sequence[str]) -> tuple[str, ...]:
    kept = {_normalize(p) for p in paths if p.strip() and matches_build_input(p, patterns)}
    return tuple(sorted(kept))


def change_signature(workspace_root: Path, paths: Sequence[str]) -> str:
    """SHA-256 over each path and the digest of its current content.

    Two runs that touched the same build inputs with the same resulting
    contents share a signature, whatever commit or event produced them.
    """
    h = hashlib.sha256()
    for rel in sorted(paths):
        target = workspace_root / rel
        digest = sha256_file(target) if target.is_file() else _DELETED
        h.update(rel.encode("utf-8"))
        h.update(b"\0")
        h.update(digest.encode("ascii"))
        h.update(b"\n")
    return h.hexdigest()


def decide(
    *,
    trigger: TriggerKind,
    changed_paths: Sequence[str],
    workspace_root: Path,
    patterns: Sequence[str],
    ledger: RunLedger,
    mock: bool = False,
) -> Result[GateDecision, PipelineError]:
    relevant = relevant_paths(changed_paths, patterns)
    signature = change_signature(workspace_root, relevant) if relevant else None

    if trigger in ALWAYS_PROCEED:
        return Ok(
            GateDecision(
                proceed=True,
                reason=f"{trigger} trigger always runs",
                signature=signature,
                relevant_paths=relevant,
            )
        )

    if signature is None:
        return Ok(
            GateDecision(
                proceed=False,
                reason="no build inputs changed",
                signature=None,
                relevant_paths=(),
            )
        )

    found = ledger.find(signature, mock=mock)
    if isinstance(found, Err):
        return found
    if found.value is not None:
        return Ok(
            GateDecision(
                proceed=False,
                reason=f"identical change set already succeeded in run {found.value.run_id}",
                signature=signature,
                relevant_paths=relevant,
            )
        )

    return Ok(
        GateDecision(
            proceed=True,
            reason="new change set",
            signature=signature,
            relevant_paths=relevant,
        )
    )
