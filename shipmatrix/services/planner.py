"""Matrix planning: catalog + run parameters -> ordered build jobs.

Planning is pure. The same catalog and parameters always give the same plan,
and every catalog mistake surfaces here, before a single job starts.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from shipmatrix.catalog.model import TargetDescriptor
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.services.packaging.naming import SIDE_FILE_BUNDLES, bundle_name


@dataclass(frozen=True, slots=True)
class RunParameters:
    version: str
    features: tuple[str, ...] = ()
    # Target ids to build; empty means every enabled target.
    selection: tuple[str, ...] = ()
    include_best_effort: bool = True


@dataclass(frozen=True, slots=True)
class BuildJob:
    descriptor: TargetDescriptor
    version: str
    features: tuple[str, ...]
    index: int

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def is_supported(self) -> bool:
        return self.descriptor.is_supported


@dataclass(frozen=True, slots=True)
class BuildPlan:
    project: str
    version: str
    jobs: tuple[BuildJob, ...]
    # The single job that also ships compressed completion/manpage bundles.
    side_files_target: str | None

    def job(self, job_id: str) -> BuildJob | None:
        for job in self.jobs:
            if job.id == job_id:
                return job
        return None

    def expected_bundle_names(self) -> frozenset[str]:
        names = {bundle_name(self.project, j.descriptor) for j in self.jobs}
        if self.side_files_target is not None:
            names.update(SIDE_FILE_BUNDLES)
        return frozenset(names)


def _planning_error(message: str, *, hint: str | None = None) -> Err[PipelineError]:
    return Err(PipelineError(kind="planning", message=message, hint=hint))


def _validate_catalog(
    catalog: Sequence[TargetDescriptor], *, project: str
) -> Result[None, PipelineError]:
    seen_ids: set[str] = set()
    seen_names: dict[str, str] = {}

    for d in catalog:
        if d.id in seen_ids:
            return _planning_error(f"duplicate target id: {d.id}")
        seen_ids.add(d.id)

        if d.variant == "distro-package" and not d.distro_arch:
            return _planning_error(
                f"distro package target has no declared architecture: {d.id}",
                hint="Set distro_arch (e.g. amd64, arm64, armhf).",
            )
        if d.variant == "distro-package" and d.cross and d.container is None:
            return _planning_error(
                f"cross-architecture distro package needs a container image: {d.id}"
            )
        if d.variant == "installer" and d.family != "windows":
            return _planning_error(f"installer targets must be windows: {d.id}")

        name = bundle_name(project, d)
        other = seen_names.get(name)
        if other is not None:
            return _planning_error(
                f"targets {other} and {d.id} produce the same bundle name: {name}",
                hint="Give one of them a distinct suffix.",
            )
        seen_names[name] = d.id

    return Ok(None)


def _is_active(d: TargetDescriptor, params: RunParameters) -> bool:
    if not d.enabled:
        return False
    if params.selection and d.id not in params.selection:
        return False
    if not params.include_best_effort and not d.is_supported:
        return False
    return True


def plan_matrix(
    catalog: Sequence[TargetDescriptor],
    params: RunParameters,
    *,
    project: str,
    side_files_triple: str | None = None,
) -> Result[BuildPlan, PipelineError]:
    """Expand the catalog into one build job per active target.

    Args:
        catalog: Target descriptors in their declared order.
        params: Version, features and target selection for this run.
        project: Project name used in bundle names.
        side_files_triple: Triple whose plain (non-container) archive job also
            produces the compressed side-file bundles; None disables them.
    """
    if not params.version.strip():
        return _planning_error("empty version", hint="Pass --version (e.g. nightly or 1.2.3).")

    validated = _validate_catalog(catalog, project=project)
    if isinstance(validated, Err):
        return validated

    known = {d.id for d in catalog}
    unknown = [s for s in params.selection if s not in known]
    if unknown:
        return _planning_error(
            "unknown target(s): " + ", ".join(unknown),
            hint="Run `shipmatrix targets` to list target ids.",
        )

    jobs: list[BuildJob] = []
    for d in catalog:
        if not _is_active(d, params):
            continue
        jobs.append(
            BuildJob(
                descriptor=d, version=params.version, features=params.features, index=len(jobs)
            )
        )

    if not jobs:
        return _planning_error("no active targets for this run")

    side_target: str | None = None
    if side_files_triple is not None:
        for job in jobs:
            d = job.descriptor
            plain = d.variant == "native-archive" and d.container is None
            if plain and d.triple == side_files_triple:
                side_target = job.id
                break

    return Ok(
        BuildPlan(
            project=project,
            version=params.version,
            jobs=tuple(jobs),
            side_files_target=side_target,
        )
    )
