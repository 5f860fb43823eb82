from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Optional, Tuple

from .config import Configuration

LOG = logging.getLogger(__name__)

BACKUP_ROOT_TARGET = "/"
LATEST_SNAPSHOT = "latest"


@dataclasses.dataclass(frozen=True)
class GlobalOptions:
    """Settings shared by every operation kind."""

    repo: Optional[str] = None
    password_file: Optional[str] = None
    restic_binary: str = "restic"
    quiet: bool = False


@dataclasses.dataclass(frozen=True)
class BackupOptions:
    host: Optional[str] = None
    excludes: Tuple[str, ...] = ()
    ignore_inode: bool = False
    root: Optional[Path] = None


@dataclasses.dataclass(frozen=True)
class RestoreOptions:
    host: Optional[str] = None
    target: Optional[Path] = None


@dataclasses.dataclass(frozen=True)
class BackupParameters:
    global_options: GlobalOptions
    options: BackupOptions
    targets: Tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class RestoreParameters:
    global_options: GlobalOptions
    options: RestoreOptions
    snapshots: Tuple[str, ...]


def _resolve_global(config: Configuration, baseline: GlobalOptions) -> GlobalOptions:
    if config.remote:
        LOG.info("Using repository %s from configuration", config.remote)
        return dataclasses.replace(baseline, repo=config.remote)
    return baseline


def resolve_backup(
    config: Configuration,
    directory: Path,
    global_options: GlobalOptions,
    baseline: BackupOptions,
) -> BackupParameters:
    options = baseline
    if config.host:
        options = dataclasses.replace(options, host=config.host)
    if config.excludes:
        options = dataclasses.replace(options, excludes=tuple(config.excludes))
    options = dataclasses.replace(options, ignore_inode=True, root=Path(directory))

    return BackupParameters(
        global_options=_resolve_global(config, global_options),
        options=options,
        targets=(BACKUP_ROOT_TARGET,),
    )


def resolve_restore(
    config: Configuration,
    directory: Path,
    global_options: GlobalOptions,
    baseline: RestoreOptions,
) -> RestoreParameters:
    options = baseline
    if config.host:
        options = dataclasses.replace(options, host=config.host)
    options = dataclasses.replace(options, target=Path(directory))

    return RestoreParameters(
        global_options=_resolve_global(config, global_options),
        options=options,
        snapshots=(LATEST_SNAPSHOT,),
    )
