from __future__ import annotations

from collections.abc import Mapping

from shipmatrix.catalog.model import (
    PACKAGING_VARIANTS,
    PLATFORM_FAMILIES,
    SUPPORT_TIERS,
    TargetDescriptor,
)
from shipmatrix.catalog.targets import DEFAULT_TARGETS, infer_family
from shipmatrix.core.config import Config
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.core.structured import get_bool, get_str


def _catalog_error(index: int, message: str) -> Err[PipelineError]:
    return Err(
        PipelineError(
            kind="planning",
            message=f"targets[{index}]: {message}",
            hint="Check the [[targets]] tables in shipmatrix.toml.",
        )
    )


def parse_target(
    index: int, table: Mapping[str, object]
) -> Result[TargetDescriptor, PipelineError]:
    triple = get_str(table, "triple")
    if triple is None:
        return _catalog_error(index, "missing triple")

    family_raw = get_str(table, "family")
    family = infer_family(triple) if family_raw is None else family_raw
    if family not in PLATFORM_FAMILIES:
        return _catalog_error(index, f"unknown platform family: {family!r}")

    variant = get_str(table, "variant") or "native-archive"
    if variant not in PACKAGING_VARIANTS:
        return _catalog_error(index, f"unknown packaging variant: {variant!r}")

    tier = get_str(table, "tier") or "supported"
    if tier not in SUPPORT_TIERS:
        return _catalog_error(index, f"unknown support tier: {tier!r}")

    # Suffixes may legitimately start with "_", so they are not stripped.
    suffix_obj = table.get("suffix", "")
    if not isinstance(suffix_obj, str):
        return _catalog_error(index, "suffix must be a string")

    target_id = get_str(table, "id") or (f"{triple}-{suffix_obj}" if suffix_obj else triple)

    cross = get_bool(table, "cross")
    enabled = get_bool(table, "enabled")

    return Ok(
        TargetDescriptor(
            id=target_id,
            family=family,
            triple=triple,
            variant=variant,
            tier=tier,
            cross=bool(cross),
            container=get_str(table, "container"),
            suffix=suffix_obj,
            distro_arch=get_str(table, "distro_arch"),
            runner=get_str(table, "runner") or "ubuntu-20.04",
            enabled=True if enabled is None else enabled,
        )
    )


def load_catalog(config: Config) -> Result[tuple[TargetDescriptor, ...], PipelineError]:
    """Return the configured catalog, or the built-in one when none is configured."""
    if not config.targets:
        return Ok(DEFAULT_TARGETS)

    out: list[TargetDescriptor] = []
    for i, table in enumerate(config.targets):
        parsed = parse_target(i, table)
        if isinstance(parsed, Err):
            return parsed
        out.append(parsed.value)
    return Ok(tuple(out))
