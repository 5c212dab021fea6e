"""Built-in target catalog.

Mirrors the release matrix bottom ships today: plain binary archives
for every tier-1 and tier-2 triple, an MSI installer, and Debian packages for
the three architectures that have a cross packaging image.
"""

from __future__ import annotations

from shipmatrix.catalog.model import PlatformFamily, TargetDescriptor

_LINUX_RUNNER = "ubuntu-20.04"
_MACOS_RUNNER = "macos-12"
_WINDOWS_RUNNER = "windows-2019"

_DEB_IMAGE_PREFIX = "ghcr.io/clementtsang/cargo-deb-"


def infer_family(triple: str) -> PlatformFamily | None:
    """Guess the platform family from an architecture triple."""
    if "-windows-" in triple or triple.endswith("-windows"):
        return "windows"
    if "-apple-darwin" in triple:
        return "macos"
    if "-freebsd" in triple:
        return "freebsd"
    if "-linux" in triple:
        return "linux"
    return None


def _archive(
    triple: str,
    *,
    cross: bool = False,
    tier: str = "supported",
    container: str | None = None,
    suffix: str = "",
) -> TargetDescriptor:
    family = infer_family(triple)
    assert family is not None, triple
    runner = {"macos": _MACOS_RUNNER, "windows": _WINDOWS_RUNNER}.get(family, _LINUX_RUNNER)
    return TargetDescriptor(
        id=f"{triple}-{suffix}" if suffix else triple,
        family=family,
        triple=triple,
        variant="native-archive",
        tier="best-effort" if tier == "best-effort" else "supported",
        cross=cross,
        container=container,
        suffix=suffix,
        runner=runner,
    )


def _deb(triple: str, *, distro_arch: str, cross: bool) -> TargetDescriptor:
    return TargetDescriptor(
        id=f"{triple}-deb",
        family="linux",
        triple=triple,
        variant="distro-package",
        cross=cross,
        container=f"{_DEB_IMAGE_PREFIX}{triple}" if cross else None,
        distro_arch=distro_arch,
        runner=_LINUX_RUNNER,
    )


DEFAULT_TARGETS: tuple[TargetDescriptor, ...] = (
    # Supported: Linux
    _archive("x86_64-unknown-linux-gnu"),
    _archive(
        "x86_64-unknown-linux-gnu",
        container="quay.io/pypa/manylinux2014_x86_64",
        suffix="2-17",
    ),
    _archive("i686-unknown-linux-gnu", cross=True),
    _archive("x86_64-unknown-linux-musl"),
    _archive("i686-unknown-linux-musl", cross=True),
    _archive("aarch64-unknown-linux-gnu", cross=True),
    _archive("aarch64-unknown-linux-musl", cross=True),
    # Supported: macOS
    _archive("x86_64-apple-darwin"),
    # Supported: Windows
    _archive("x86_64-pc-windows-msvc"),
    _archive("i686-pc-windows-msvc"),
    _archive("x86_64-pc-windows-gnu"),
    # Best-effort
    _archive("armv7-unknown-linux-gnueabihf", cross=True, tier="best-effort"),
    _archive("armv7-unknown-linux-musleabihf", cross=True, tier="best-effort"),
    _archive("powerpc64le-unknown-linux-gnu", cross=True, tier="best-effort"),
    _archive("riscv64gc-unknown-linux-gnu", cross=True, tier="best-effort"),
    # Installer: separate toolchain, same aggregation.
    TargetDescriptor(
        id="x86_64-pc-windows-msvc-installer",
        family="windows",
        triple="x86_64-pc-windows-msvc",
        variant="installer",
        suffix="_installer",
        runner=_WINDOWS_RUNNER,
    ),
    # Debian packages
    _deb("x86_64-unknown-linux-gnu", distro_arch="amd64", cross=False),
    _deb("aarch64-unknown-linux-gnu", distro_arch="arm64", cross=True),
    _deb("armv7-unknown-linux-gnueabihf", distro_arch="armhf", cross=True),
)
