"""Deterministic bundle names.

`<project>_<triple>[<suffix>].<ext>`: a pure function of the project name and
the target descriptor. Re-running a plan always yields the same names, which
is what makes replacing a release safe.
"""

from __future__ import annotations

import re

from shipmatrix.catalog.model import TargetDescriptor

COMPLETION_BUNDLE = "completion.tar.gz"
MANPAGE_BUNDLE = "manpage.tar.gz"
SIDE_FILE_BUNDLES: tuple[str, ...] = (COMPLETION_BUNDLE, MANPAGE_BUNDLE)

_EXTENSIONS = ("zip", "tar.gz", "deb", "msi")


def bundle_extension(descriptor: TargetDescriptor) -> str:
    match descriptor.variant:
        case "installer":
            return "msi"
        case "distro-package":
            return "deb"
        case "native-archive":
            return "zip" if descriptor.family == "windows" else "tar.gz"
    raise AssertionError(f"unexpected packaging variant: {descriptor.variant}")


def bundle_name(project: str, descriptor: TargetDescriptor) -> str:
    return f"{project}_{descriptor.triple}{descriptor.suffix}.{bundle_extension(descriptor)}"


def bundle_name_pattern(project: str) -> re.Pattern[str]:
    exts = "|".join(re.escape(e) for e in _EXTENSIONS)
    return re.compile(rf"^{re.escape(project)}_[A-Za-z0-9][A-Za-z0-9_.-]*\.({exts})$")


def is_valid_bundle_name(project: str, name: str) -> bool:
    if name in SIDE_FILE_BUNDLES:
        return True
    return bundle_name_pattern(project).match(name) is not None
