from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PlatformFamily = Literal["linux", "macos", "windows", "freebsd"]
PackagingVariant = Literal["native-archive", "installer", "distro-package"]
SupportTier = Literal["supported", "best-effort"]

PLATFORM_FAMILIES: tuple[PlatformFamily, ...] = ("linux", "macos", "windows", "freebsd")
PACKAGING_VARIANTS: tuple[PackagingVariant, ...] = ("native-archive", "installer", "distro-package")
SUPPORT_TIERS: tuple[SupportTier, ...] = ("supported", "best-effort")


@dataclass(frozen=True, slots=True)
class TargetDescriptor:
    """One platform/architecture/packaging combination.

    `id` is the job key and must be unique within a catalog. Two descriptors
    may share a triple (a plain archive and a distro package of the same
    build, or a second archive built inside an older-glibc container).
    """

    id: str
    family: PlatformFamily
    triple: str
    variant: PackagingVariant = "native-archive"
    tier: SupportTier = "supported"
    cross: bool = False
    container: str | None = None
    # Appended verbatim to the bundle name, e.g. "2-17" or "_installer".
    suffix: str = ""
    # Declared package architecture (dpkg naming) for distro packages.
    distro_arch: str | None = None
    runner: str = "ubuntu-20.04"
    enabled: bool = True

    @property
    def is_supported(self) -> bool:
        return self.tier == "supported"

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self.family == "windows" else ""

    def exe_name(self, binary: str) -> str:
        return f"{binary}{self.exe_suffix}"
