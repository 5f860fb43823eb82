"""Tests for the up/down command dispatcher."""

from __future__ import annotations

from pathlib import Path
from typing import List
from unittest.mock import patch

import pytest

from updown.config import ConfigMalformed, ConfigUnreadable
from updown.dispatcher import CommandDispatcher, CommandError, UsageError, resolve_directory
from updown.operations import OperationFailure
from updown.options import BackupOptions, BackupParameters, GlobalOptions, RestoreOptions, RestoreParameters

FULL_CONFIG = 'remote: "s3:bucket/repo"\nhost: server1\nexcludes: ["*.tmp"]\n'


class Recorder:
    def __init__(self, status=None, error: Exception = None) -> None:
        self.status = status
        self.error = error
        self.backups: List[BackupParameters] = []
        self.restores: List[RestoreParameters] = []

    def backup(self, params: BackupParameters, status) -> None:
        assert status is self.status
        assert status.started.wait(timeout=5)
        self.backups.append(params)
        if self.error is not None:
            raise self.error

    def restore(self, params: RestoreParameters) -> None:
        self.restores.append(params)
        if self.error is not None:
            raise self.error


def _dispatcher(recorder: Recorder, **kwargs) -> CommandDispatcher:
    return CommandDispatcher(
        kwargs.pop("global_options", GlobalOptions()),
        kwargs.pop("backup_options", BackupOptions()),
        kwargs.pop("restore_options", RestoreOptions()),
        backup_operation=recorder.backup,
        restore_operation=recorder.restore,
        status_factory=lambda _options: recorder.status,
        **kwargs,
    )


class TestResolveDirectory:
    def test_defaults_to_cwd(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)

        assert resolve_directory([]) == Path.cwd()

    def test_single_argument(self) -> None:
        assert resolve_directory(["/data"]) == Path("/data")

    def test_too_many_arguments(self) -> None:
        with pytest.raises(UsageError) as excinfo:
            resolve_directory(["/a", "/b"])

        assert excinfo.value.count == 2
        assert "2" in str(excinfo.value)


class TestUp:
    def test_backup_with_full_config(self, write_config, recording_status) -> None:
        directory = write_config(FULL_CONFIG)
        recorder = Recorder(status=recording_status)

        params = _dispatcher(recorder).up([str(directory)])

        assert recorder.backups == [params]
        assert params.global_options.repo == "s3:bucket/repo"
        assert params.options.host == "server1"
        assert params.options.excludes == ("*.tmp",)
        assert params.options.ignore_inode is True
        assert params.options.root == directory
        assert params.targets == ("/",)
        assert recording_status.events == ["status started", "status stopped"]

    def test_missing_config_uses_baseline(self, tmp_path: Path, recording_status) -> None:
        recorder = Recorder(status=recording_status)
        dispatcher = _dispatcher(
            recorder,
            global_options=GlobalOptions(repo="/srv/repo"),
            backup_options=BackupOptions(host="laptop", excludes=("*.iso",)),
        )

        params = dispatcher.up([str(tmp_path)])

        assert params.global_options == GlobalOptions(repo="/srv/repo")
        assert params.options == BackupOptions(host="laptop", excludes=("*.iso",), ignore_inode=True, root=tmp_path)

    def test_missing_config_is_fatal_when_strict(self, tmp_path: Path, recording_status) -> None:
        recorder = Recorder(status=recording_status)

        with pytest.raises(CommandError) as excinfo:
            _dispatcher(recorder, strict_config=True).up([str(tmp_path)])

        assert excinfo.value.phase == "reading config"
        assert isinstance(excinfo.value.cause, ConfigUnreadable)
        assert recorder.backups == []

    def test_usage_error_reads_no_config(self, recording_status) -> None:
        recorder = Recorder(status=recording_status)

        with patch("updown.dispatcher.load_config") as load_config:
            with pytest.raises(UsageError, match="2"):
                _dispatcher(recorder).up(["/a", "/b"])

        load_config.assert_not_called()
        assert recording_status.events == []

    def test_malformed_config_is_wrapped(self, write_config, recording_status) -> None:
        directory = write_config("excludes: [oops\n")

        with pytest.raises(CommandError) as excinfo:
            _dispatcher(Recorder(status=recording_status)).up([str(directory)])

        assert isinstance(excinfo.value.__cause__, ConfigMalformed)
        assert "reading config" in str(excinfo.value)

    def test_operation_failure_propagates_unchanged(self, write_config, recording_status) -> None:
        error = OperationFailure("backup", "repository locked", 1)
        recorder = Recorder(status=recording_status, error=error)

        with pytest.raises(OperationFailure) as excinfo:
            _dispatcher(recorder).up([str(write_config(FULL_CONFIG))])

        assert excinfo.value is error
        assert recording_status.events == ["status started", "status stopped"]


class TestDown:
    def test_restore_latest_into_directory(self, tmp_path: Path) -> None:
        recorder = Recorder()

        params = _dispatcher(recorder, global_options=GlobalOptions(repo="s3:bucket/repo")).down([str(tmp_path)])

        assert recorder.restores == [params]
        assert params.global_options.repo == "s3:bucket/repo"
        assert params.options.target == tmp_path
        assert params.snapshots == ("latest",)

    def test_restore_uses_config_but_not_excludes(self, write_config) -> None:
        directory = write_config(FULL_CONFIG)

        params = _dispatcher(Recorder()).down([str(directory)])

        assert params.global_options.repo == "s3:bucket/repo"
        assert params.options == RestoreOptions(host="server1", target=directory)

    def test_restore_starts_no_status_task(self, tmp_path: Path) -> None:
        factory_calls = []
        dispatcher = CommandDispatcher(
            restore_operation=lambda params: None,
            status_factory=lambda options: factory_calls.append(options),
        )

        dispatcher.down([str(tmp_path)])

        assert factory_calls == []

    def test_usage_error(self) -> None:
        with pytest.raises(UsageError, match="3"):
            _dispatcher(Recorder()).down(["/a", "/b", "/c"])

    def test_operation_failure_propagates(self, tmp_path: Path) -> None:
        error = OperationFailure("restore", "no snapshot found", 1)

        with pytest.raises(OperationFailure) as excinfo:
            _dispatcher(Recorder(error=error)).down([str(tmp_path)])

        assert excinfo.value is error
