"""Target catalog: every platform/architecture/packaging combination."""

from .loader import load_catalog, parse_target
from .model import PackagingVariant, PlatformFamily, SupportTier, TargetDescriptor
from .targets import DEFAULT_TARGETS, infer_family

__all__ = [
    "DEFAULT_TARGETS",
    "PackagingVariant",
    "PlatformFamily",
    "SupportTier",
    "TargetDescriptor",
    "infer_family",
    "load_catalog",
    "parse_target",
]
