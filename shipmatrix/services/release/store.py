"""Release stores: where a published release lives.

`GhReleaseStore` talks to GitHub through the `gh` CLI, which owns
authentication. `LocalReleaseStore` keeps one directory per tag and is used
for offline runs and tests. Neither retries: a store error is reported and
left for the operator.
"""

from __future__ import annotations

import json
import shutil
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from shipmatrix.core.config import Config, resolve_path
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.core.structured import as_obj_list, as_str_dict, get_bool, get_str, get_str_list
from shipmatrix.platform.files import atomic_write_text
from shipmatrix.platform.process import run as run_process
from shipmatrix.services.release.timeouts import GH_TIMEOUT_SECONDS, GH_UPLOAD_TIMEOUT_SECONDS

STORE_KINDS = ("github", "local")

# gh prints this for a missing release; other 404s (bad --repo) are real errors.
_RELEASE_NOT_FOUND = "release not found"

# `gh api` answers for a tag ref that is already gone.
_REF_GONE_MARKERS = ("HTTP 404", "HTTP 422")


@dataclass(frozen=True, slots=True)
class PublishedRelease:
    tag: str
    prerelease: bool
    files: tuple[str, ...]
    title: str | None = None


class ReleaseStore(Protocol):
    def preflight(self) -> Result[None, PipelineError]:
        """Check the store is usable before any state is changed."""
        ...

    def get_release(self, tag: str) -> Result[PublishedRelease | None, PipelineError]: ...

    def delete_release(self, tag: str) -> Result[bool, PipelineError]:
        """Delete the release and its tag. Ok(False) when there was none."""
        ...

    def create_release(
        self,
        *,
        tag: str,
        files: Sequence[Path],
        title: str,
        notes: str,
        prerelease: bool,
    ) -> Result[PublishedRelease, PipelineError]: ...


def _conflict(message: str, hint: str | None = None) -> Err[PipelineError]:
    return Err(PipelineError(kind="publish_conflict", message=message, hint=hint))


def _is_not_found(text: str) -> bool:
    return _RELEASE_NOT_FOUND in text.lower()


@dataclass(frozen=True, slots=True)
class GhReleaseStore:
    workspace_root: Path
    repo: str | None = None
    timeout: float = GH_TIMEOUT_SECONDS
    upload_timeout: float = GH_UPLOAD_TIMEOUT_SECONDS

    def _repo_args(self) -> list[str]:
        return ["--repo", self.repo] if self.repo else []

    def preflight(self) -> Result[None, PipelineError]:
        if shutil.which("gh") is None:
            return Err(
                PipelineError(
                    kind="tool_missing",
                    message="gh: missing",
                    hint="Install GitHub CLI: https://cli.github.com/",
                )
            )
        result = run_process(
            ["gh", "auth", "status"], cwd=self.workspace_root, timeout=self.timeout
        )
        if isinstance(result, Err):
            return Err(
                PipelineError(
                    kind="tool_missing", message="gh auth required", hint="Run: gh auth login"
                )
            )
        return Ok(None)

    def get_release(self, tag: str) -> Result[PublishedRelease | None, PipelineError]:
        cmd = ["gh", "release", "view", tag, "--json", "tagName,isPrerelease,name,assets"]
        cmd.extend(self._repo_args())
        result = run_process(cmd, cwd=self.workspace_root, timeout=self.timeout)
        if isinstance(result, Err):
            msg = result.error.stderr.strip() or str(result.error)
            if _is_not_found(msg):
                return Ok(None)
            return _conflict(f"failed to read release: {tag}", hint=msg)

        try:
            obj: object = json.loads(result.value)
        except json.JSONDecodeError as e:
            return _conflict(f"gh returned invalid JSON: {e}", hint=tag)

        data = as_str_dict(obj)
        if data is None:
            return _conflict("gh returned an unexpected release payload", hint=tag)

        names: list[str] = []
        for item in as_obj_list(data.get("assets")) or []:
            asset = as_str_dict(item)
            name = None if asset is None else get_str(asset, "name")
            if name is not None:
                names.append(name)

        return Ok(
            PublishedRelease(
                tag=get_str(data, "tagName") or tag,
                prerelease=bool(get_bool(data, "isPrerelease")),
                files=tuple(sorted(names)),
                title=get_str(data, "name"),
            )
        )

    def delete_release(self, tag: str) -> Result[bool, PipelineError]:
        cmd = ["gh", "release", "delete", tag, "--cleanup-tag", "--yes", *self._repo_args()]
        result = run_process(cmd, cwd=self.workspace_root, timeout=self.timeout)
        if isinstance(result, Err):
            msg = result.error.stderr.strip() or str(result.error)
            if _is_not_found(msg):
                return self._delete_tag_ref(tag)
            return _conflict(f"failed to delete release: {tag}", hint=msg)
        return Ok(True)

    def _delete_tag_ref(self, tag: str) -> Result[bool, PipelineError]:
        """Remove a tag left without a release. Ok(False) when it is already gone."""
        repo = self.repo or "{owner}/{repo}"
        cmd = ["gh", "api", "-X", "DELETE", f"repos/{repo}/git/refs/tags/{tag}"]
        result = run_process(cmd, cwd=self.workspace_root, timeout=self.timeout)
        if isinstance(result, Err):
            msg = result.error.stderr.strip() or str(result.error)
            if any(marker in msg for marker in _REF_GONE_MARKERS):
                return Ok(False)
            return _conflict(f"failed to delete tag: {tag}", hint=msg)
        return Ok(True)

    def create_release(
        self,
        *,
        tag: str,
        files: Sequence[Path],
        title: str,
        notes: str,
        prerelease: bool,
    ) -> Result[PublishedRelease, PipelineError]:
        cmd = ["gh", "release", "create", tag, *(str(f) for f in files)]
        cmd.extend(["--title", title, "--notes", notes])
        if prerelease:
            cmd.append("--prerelease")
        cmd.extend(self._repo_args())

        result = run_process(cmd, cwd=self.workspace_root, timeout=self.upload_timeout)
        if isinstance(result, Err):
            msg = result.error.stderr.strip() or str(result.error)
            return _conflict(f"failed to create release: {tag}", hint=msg)

        return Ok(
            PublishedRelease(
                tag=tag,
                prerelease=prerelease,
                files=tuple(sorted(f.name for f in files)),
                title=title,
            )
        )


RELEASE_METADATA = "release.json"


@dataclass(frozen=True, slots=True)
class LocalReleaseStore:
    """One directory per tag: `<root>/<tag>/` with the files and a release.json."""

    root: Path

    def _tag_dir(self, tag: str) -> Path:
        return self.root / tag

    def preflight(self) -> Result[None, PipelineError]:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return _conflict(f"release directory is not writable: {e}", hint=str(self.root))
        return Ok(None)

    def get_release(self, tag: str) -> Result[PublishedRelease | None, PipelineError]:
        meta = self._tag_dir(tag) / RELEASE_METADATA
        if not meta.exists():
            return Ok(None)

        try:
            obj: object = json.loads(meta.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return _conflict(f"unreadable release metadata: {e}", hint=str(meta))

        data = as_str_dict(obj)
        if data is None:
            return _conflict("invalid release metadata", hint=str(meta))

        return Ok(
            PublishedRelease(
                tag=get_str(data, "tag") or tag,
                prerelease=bool(get_bool(data, "prerelease")),
                files=get_str_list(data, "files") or (),
                title=get_str(data, "title"),
            )
        )

    def delete_release(self, tag: str) -> Result[bool, PipelineError]:
        tag_dir = self._tag_dir(tag)
        if not tag_dir.exists():
            return Ok(False)
        try:
            shutil.rmtree(tag_dir)
        except OSError as e:
            return _conflict(f"failed to delete release: {tag}", hint=str(e))
        return Ok(True)

    def create_release(
        self,
        *,
        tag: str,
        files: Sequence[Path],
        title: str,
        notes: str,
        prerelease: bool,
    ) -> Result[PublishedRelease, PipelineError]:
        tag_dir = self._tag_dir(tag)
        if tag_dir.exists():
            return _conflict(
                f"release already exists: {tag}", hint="Delete it before creating it again."
            )

        names = sorted(f.name for f in files)
        payload = {
            "tag": tag,
            "title": title,
            "notes": notes,
            "prerelease": prerelease,
            "files": names,
        }

        # Build the release next to its final place, then rename it in one step.
        tmp_dir = self.root / f".{tag}.{uuid.uuid4().hex}.tmp"
        try:
            tmp_dir.mkdir(parents=True)
            for f in files:
                shutil.copy2(f, tmp_dir / f.name)
            atomic_write_text(tmp_dir / RELEASE_METADATA, json.dumps(payload, indent=2) + "\n")
            tmp_dir.rename(tag_dir)
        except OSError as e:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            return _conflict(f"failed to create release: {tag}", hint=str(e))

        return Ok(PublishedRelease(tag=tag, prerelease=prerelease, files=tuple(names), title=title))


def make_store(
    config: Config, *, workspace_root: Path, kind: str | None = None
) -> Result[ReleaseStore, PipelineError]:
    """Store selected by `kind`, falling back to `release.store` from config."""
    selected = kind or config.release.store
    match selected:
        case "github":
            return Ok(GhReleaseStore(workspace_root=workspace_root, repo=config.release.repo))
        case "local":
            root = resolve_path(workspace_root, config.release.local_store_dir)
            return Ok(LocalReleaseStore(root=root))
    return Err(
        PipelineError(
            kind="invalid_input",
            message=f"unknown release store: {selected}",
            hint="Use one of: " + ", ".join(STORE_KINDS),
        )
    )
