"""Reconcile-by-replace publishing of a release manifest.

    NoRelease --(failed manifest)--> NoRelease            Err(run_failed)
    NoRelease --(mock)-------------> MockCompleted        no external writes
    NoRelease --(delete old)-------> Replacing
    Replacing --(pause, create)----> Published

Every staged file is checked before the old release is deleted, so a missing
file can never leave the tag without a release. Publishing the same manifest
twice leaves one release with the same file set.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.output.console import ConsoleProtocol, Style
from shipmatrix.services.aggregator import ReleaseManifest
from shipmatrix.services.packaging.naming import is_valid_bundle_name
from shipmatrix.services.release.store import ReleaseStore
from shipmatrix.services.release.timeouts import REPLACE_PAUSE_SECONDS


class PublishState(Enum):
    NO_RELEASE = "NoRelease"
    REPLACING = "Replacing"
    PUBLISHED = "Published"
    MOCK_COMPLETED = "MockCompleted"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    state: PublishState
    tag: str
    files: tuple[str, ...]
    transitions: tuple[PublishState, ...]
    # True when an earlier release under the tag was deleted first.
    replaced: bool = False


def validate_manifest(manifest: ReleaseManifest) -> Result[None, PipelineError]:
    """Names and existence of every bundle, without touching any store."""
    if not manifest.bundles:
        return Err(
            PipelineError(kind="invalid_input", message=f"no files to publish for {manifest.tag}")
        )

    seen: set[str] = set()
    for bundle in manifest.bundles:
        if bundle.name in seen:
            return Err(
                PipelineError(
                    kind="invalid_input",
                    message=f"bundle name appears twice: {bundle.name}",
                    target_id=bundle.target_id,
                )
            )
        seen.add(bundle.name)

        if not is_valid_bundle_name(manifest.project, bundle.name):
            return Err(
                PipelineError(
                    kind="invalid_input",
                    message=f"bundle name does not follow the naming convention: {bundle.name}",
                    target_id=bundle.target_id,
                )
            )
        if bundle.name not in manifest.expected_names:
            return Err(
                PipelineError(
                    kind="invalid_input",
                    message=f"bundle was not planned: {bundle.name}",
                    target_id=bundle.target_id,
                )
            )

    missing = [b for b in manifest.bundles if not b.path.is_file()]
    if missing:
        return Err(
            PipelineError(
                kind="missing_file",
                message=", ".join(b.name for b in missing),
                hint="Nothing was published; the existing release is untouched.",
            )
        )
    return Ok(None)


def default_title(manifest: ReleaseManifest) -> str:
    return f"{manifest.project} {manifest.tag}"


def default_notes(manifest: ReleaseManifest) -> str:
    return f"{manifest.tag} build of {manifest.project} ({manifest.version})."


def publish_release(
    *,
    manifest: ReleaseManifest,
    store: ReleaseStore,
    console: ConsoleProtocol,
    pause_seconds: float = REPLACE_PAUSE_SECONDS,
    title: str | None = None,
    notes: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Result[PublishOutcome, PipelineError]:
    if manifest.failed:
        failed = ", ".join(f.target_id for f in manifest.fatal_failures)
        return Err(
            PipelineError(
                kind="run_failed",
                message=f"not publishing {manifest.tag}: supported target(s) failed: {failed}",
            )
        )

    valid = validate_manifest(manifest)
    if isinstance(valid, Err):
        return valid

    names = manifest.file_names

    if manifest.mock:
        console.info(f"mock run: {len(names)} file(s) would be published to {manifest.tag}")
        return Ok(
            PublishOutcome(
                state=PublishState.MOCK_COMPLETED,
                tag=manifest.tag,
                files=names,
                transitions=(PublishState.NO_RELEASE, PublishState.MOCK_COMPLETED),
            )
        )

    ready = store.preflight()
    if isinstance(ready, Err):
        return ready

    console.print(f"delete release {manifest.tag}", Style.DIM)
    deleted = store.delete_release(manifest.tag)
    if isinstance(deleted, Err):
        return deleted

    if pause_seconds > 0:
        console.print(f"waiting {pause_seconds:g}s before recreating {manifest.tag}", Style.DIM)
        sleep(pause_seconds)

    console.print(f"create release {manifest.tag} ({len(names)} files)", Style.DIM)
    created = store.create_release(
        tag=manifest.tag,
        files=[b.path for b in manifest.bundles],
        title=title or default_title(manifest),
        notes=notes or default_notes(manifest),
        prerelease=manifest.prerelease,
    )
    if isinstance(created, Err):
        e = created.error
        hint = e.hint or ""
        if deleted.value:
            hint = f"{hint}\nThe previous release was already deleted; rerun to publish.".strip()
        return Err(PipelineError(kind=e.kind, message=e.message, hint=hint or None))

    console.success(f"published {manifest.tag}")
    return Ok(
        PublishOutcome(
            state=PublishState.PUBLISHED,
            tag=manifest.tag,
            files=created.value.files,
            transitions=(PublishState.NO_RELEASE, PublishState.REPLACING, PublishState.PUBLISHED),
            replaced=deleted.value,
        )
    )
