from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from .config import Configuration, ConfigurationError, load_config
from .errors import UpdownError
from .operations import StatusHandle, run_backup, run_restore
from .options import (
    BackupOptions,
    BackupParameters,
    GlobalOptions,
    RestoreOptions,
    RestoreParameters,
    resolve_backup,
    resolve_restore,
)
from .session import SessionSupervisor
from .status import TerminalStatus

LOG = logging.getLogger(__name__)

BackupOperation = Callable[[BackupParameters, StatusHandle], None]
RestoreOperation = Callable[[RestoreParameters], None]
StatusFactory = Callable[[GlobalOptions], TerminalStatus]


class UsageError(UpdownError):
    """Raised when a command receives the wrong number of arguments."""

    def __init__(self, count: int) -> None:
        super().__init__(f"need 0 or 1 args, not {count}")
        self.count = count


class CommandError(UpdownError):
    """Wraps a failure with the phase of the command it happened in."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        super().__init__(f"error while {phase}: {cause}")
        self.phase = phase
        self.cause = cause


def resolve_directory(args: Sequence[str]) -> Path:
    if len(args) == 0:
        return Path.cwd()
    if len(args) == 1:
        return Path(args[0])
    raise UsageError(len(args))


def _default_status(global_options: GlobalOptions) -> TerminalStatus:
    return TerminalStatus(quiet=global_options.quiet)


class CommandDispatcher:
    """Maps the ``up`` and ``down`` commands onto config loading and operations."""

    def __init__(
        self,
        global_options: Optional[GlobalOptions] = None,
        backup_options: Optional[BackupOptions] = None,
        restore_options: Optional[RestoreOptions] = None,
        *,
        backup_operation: BackupOperation = run_backup,
        restore_operation: RestoreOperation = run_restore,
        status_factory: StatusFactory = _default_status,
        strict_config: bool = False,
    ) -> None:
        self._global = global_options or GlobalOptions()
        self._backup_options = backup_options or BackupOptions()
        self._restore_options = restore_options or RestoreOptions()
        self._backup_operation = backup_operation
        self._restore_operation = restore_operation
        self._status_factory = status_factory
        self._strict_config = strict_config

    def up(self, args: Sequence[str]) -> BackupParameters:
        directory = resolve_directory(args)
        config = self._read_config(directory)
        params = resolve_backup(config, directory, self._global, self._backup_options)

        status = self._status_factory(params.global_options)
        supervisor = SessionSupervisor(status)
        supervisor.run(lambda: self._backup_operation(params, status))
        return params

    def down(self, args: Sequence[str]) -> RestoreParameters:
        directory = resolve_directory(args)
        config = self._read_config(directory)
        params = resolve_restore(config, directory, self._global, self._restore_options)

        self._restore_operation(params)
        return params

    def _read_config(self, directory: Path) -> Configuration:
        try:
            return load_config(directory, missing_ok=not self._strict_config)
        except ConfigurationError as exc:
            raise CommandError("reading config", exc) from exc
