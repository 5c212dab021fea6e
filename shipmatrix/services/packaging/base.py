from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol

from shipmatrix.catalog.model import TargetDescriptor
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Result

if TYPE_CHECKING:
    from shipmatrix.services.builder import BuildOutput, BuildSettings

BundleKind = Literal["archive", "installer", "distro-package", "side-files"]


@dataclass(frozen=True, slots=True)
class Bundle:
    """A distributable file deposited in the staging area."""

    name: str
    path: Path
    target_id: str
    kind: BundleKind


class Packager(Protocol):
    """Packaging strategy for one packaging variant.

    Writes its bundles into `out_dir` under their deterministic names.
    """

    def package(
        self,
        output: BuildOutput,
        descriptor: TargetDescriptor,
        settings: BuildSettings,
        out_dir: Path,
    ) -> Result[list[Bundle], PipelineError]:
        ...


def packaging_failed(
    descriptor: TargetDescriptor, message: str, hint: str | None = None
) -> Err[PipelineError]:
    return Err(
        PipelineError(kind="build_failed", message=message, hint=hint, target_id=descriptor.id)
    )
