"""Packaging strategy per variant."""

from __future__ import annotations

from shipmatrix.catalog.model import PackagingVariant, TargetDescriptor
from shipmatrix.services.packaging.archive import NativeArchivePackager
from shipmatrix.services.packaging.base import Packager
from shipmatrix.services.packaging.distro import DistroPackager
from shipmatrix.services.packaging.installer import InstallerPackager

PACKAGERS: dict[PackagingVariant, Packager] = {
    "native-archive": NativeArchivePackager(),
    "installer": InstallerPackager(),
    "distro-package": DistroPackager(),
}


def packager_for(descriptor: TargetDescriptor) -> Packager:
    return PACKAGERS[descriptor.variant]
