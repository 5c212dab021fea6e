"""Typed configuration loading and access.

This module maps `shipmatrix.toml` onto frozen dataclasses. Every value has a
default so a workspace without a config file still runs with the built-in
catalog and release settings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "CONFIG_FILENAME",
    "BuildConfig",
    "ConcurrencyConfig",
    "Config",
    "ConfigError",
    "GateConfig",
    "ProjectConfig",
    "ReleaseConfig",
    "StagingConfig",
    "load_config",
    "load_config_or_default",
    "resolve_path",
]

CONFIG_FILENAME = "shipmatrix.toml"

# Build inputs; changes elsewhere (docs, assets) never trigger a release build.
DEFAULT_GATE_PATHS: tuple[str, ...] = (
    ".cargo/**",
    "src/**",
    "tests/**",
    "sample_configs/**",
    "build.rs",
    "Cargo.lock",
    "Cargo.toml",
    "Cross.toml",
)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    name: str = "bottom"
    binary: str = "btm"


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Toolchain settings handed to builders and packagers.

    `completion_subdir` and `manpage_subdir` are relative to each job's own
    target directory.
    """

    features: tuple[str, ...] = ("deploy",)
    generate: bool = True
    generate_env: str = "BTM_GENERATE"
    completion_subdir: str = "tmp/bottom/completion"
    manpage_subdir: str = "tmp/bottom/manpage"
    manpage_name: str = "btm.1"
    work_dir: str = "target/shipmatrix"
    side_files_triple: str = "x86_64-unknown-linux-gnu"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    tag: str = "nightly"
    prerelease: bool = True
    # owner/name; None lets `gh` resolve the repo from the workspace checkout.
    repo: str | None = None
    store: str = "github"
    local_store_dir: str = ".shipmatrix/releases"
    replace_pause_seconds: float = 10.0
    title: str | None = None


@dataclass(frozen=True, slots=True)
class GateConfig:
    paths: tuple[str, ...] = DEFAULT_GATE_PATHS
    ledger_path: str = ".shipmatrix/ledger.json"


@dataclass(frozen=True, slots=True)
class ConcurrencyConfig:
    max_workers: int = 4
    job_timeout_seconds: float = 3 * 60 * 60.0
    group: str = "release"
    state_dir: str = ".shipmatrix/groups"


@dataclass(frozen=True, slots=True)
class StagingConfig:
    dir: str = ".shipmatrix/staging"
    retention_days: int = 3


def _no_targets() -> tuple[StrDict, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container.

    `targets` keeps the raw `[[targets]]` tables; the catalog loader turns
    them into descriptors so config parsing stays free of catalog rules.
    """

    project: ProjectConfig = field(default_factory=ProjectConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    staging: StagingConfig = field(default_factory=StagingConfig)
    targets: tuple[StrDict, ...] = field(default_factory=_no_targets)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        project: StrDict = get_table(data, "project") or {}
        build: StrDict = get_table(data, "build") or {}
        release: StrDict = get_table(data, "release") or {}
        gate: StrDict = get_table(data, "gate") or {}
        concurrency: StrDict = get_table(data, "concurrency") or {}
        staging: StrDict = get_table(data, "staging") or {}

        targets: list[StrDict] = []
        raw_targets = get_list(data, "targets")
        if raw_targets is not None:
            for item in raw_targets:
                table = as_str_dict(item)
                if table is None:
                    raise ValueError("each [[targets]] entry must be a table")
                targets.append(table)

        b = BuildConfig()
        r = ReleaseConfig()
        c = ConcurrencyConfig()

        max_workers = get_int(concurrency, "max_workers")
        if max_workers is None:
            max_workers = c.max_workers
        if max_workers < 1:
            raise ValueError("concurrency.max_workers must be >= 1")

        job_timeout = get_float(concurrency, "job_timeout_seconds")
        if job_timeout is None:
            job_timeout = c.job_timeout_seconds
        if job_timeout <= 0:
            raise ValueError("concurrency.job_timeout_seconds must be > 0")

        retention_days = get_int(staging, "retention_days")
        if retention_days is None:
            retention_days = StagingConfig().retention_days
        if retention_days < 1:
            raise ValueError("staging.retention_days must be >= 1")

        pause = get_float(release, "replace_pause_seconds")
        if pause is not None and pause < 0:
            raise ValueError("release.replace_pause_seconds must be >= 0")

        features = get_str_list(build, "features")
        gate_paths = get_str_list(gate, "paths")

        return cls(
            project=ProjectConfig(
                name=get_str(project, "name") or "bottom",
                binary=get_str(project, "binary") or "btm",
            ),
            build=BuildConfig(
                features=features if features is not None else b.features,
                generate=_bool_or(build, "generate", b.generate),
                generate_env=get_str(build, "generate_env") or b.generate_env,
                completion_subdir=get_str(build, "completion_subdir") or b.completion_subdir,
                manpage_subdir=get_str(build, "manpage_subdir") or b.manpage_subdir,
                manpage_name=get_str(build, "manpage_name") or b.manpage_name,
                work_dir=get_str(build, "work_dir") or b.work_dir,
                side_files_triple=get_str(build, "side_files_triple") or b.side_files_triple,
            ),
            release=ReleaseConfig(
                tag=get_str(release, "tag") or r.tag,
                prerelease=_bool_or(release, "prerelease", r.prerelease),
                repo=get_str(release, "repo"),
                store=get_str(release, "store") or r.store,
                local_store_dir=get_str(release, "local_store_dir") or r.local_store_dir,
                replace_pause_seconds=pause if pause is not None else r.replace_pause_seconds,
                title=get_str(release, "title"),
            ),
            gate=GateConfig(
                paths=gate_paths if gate_paths is not None else DEFAULT_GATE_PATHS,
                ledger_path=get_str(gate, "ledger_path") or GateConfig().ledger_path,
            ),
            concurrency=ConcurrencyConfig(
                max_workers=max_workers,
                job_timeout_seconds=job_timeout,
                group=get_str(concurrency, "group") or c.group,
                state_dir=get_str(concurrency, "state_dir") or c.state_dir,
            ),
            staging=StagingConfig(
                dir=get_str(staging, "dir") or StagingConfig().dir,
                retention_days=retention_days,
            ),
            targets=tuple(targets),
        )


def resolve_path(workspace_root: Path, value: str) -> Path:
    """Config paths are relative to the workspace root unless absolute."""
    path = Path(value)
    return path if path.is_absolute() else workspace_root / path


def _bool_or(table: Mapping[str, object], key: str, default: bool) -> bool:
    value = get_bool(table, key)
    return default if value is None else value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to shipmatrix.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, otherwise return the defaults.

    A file that exists but cannot be parsed is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
