"""
Tests for the innobackupex client (engine/client.py).
"""
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from innobackup_runner.engine.client import Engine, _parse_output
from innobackup_runner.utils.config import ConnectionSettings, EngineSettings
from innobackup_runner.utils.datatypes import BackupMode
from innobackup_runner.utils.errors import PreconditionError

SUCCESS_OUTPUT = """\
InnoDB Backup Utility v1.5.1-xtrabackup; Copyright 2003, 2009 Innobase Oy
innobackupex: Created backup directory /backup/full/2024-01-08_03-00-01
xtrabackup: Transaction log of lsn (1597945) to (1597945) was copied.
innobackupex: Backup created in directory '/backup/full/2024-01-08_03-00-01'
innobackupex: MySQL binlog position: filename 'mysql-bin.000003', position 107
240108 03:00:09  innobackupex: completed OK!
"""


@pytest.fixture
def client():
    return Engine(
        EngineSettings(binary=Path('/usr/bin/innobackupex'),
                       defaults_file=Path('/etc/mysql/my.cnf'),
                       defaults_group='mysqld2', use_memory='2G'),
        ConnectionSettings(user='backup', password='secret', host='db1', port=3307),
    )


def completed(stdout, returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


class TestParseOutput:

    def test_success(self):
        result = _parse_output(SUCCESS_OUTPUT, 0)
        assert result.success
        assert not result.ambiguous
        assert result.artifact_path == Path('/backup/full/2024-01-08_03-00-01')
        assert result.diagnostics == SUCCESS_OUTPUT

    def test_marker_must_be_on_last_line(self):
        output = SUCCESS_OUTPUT + 'innobackupex: Error: something happened afterwards\n'
        assert not _parse_output(output, 0).success

    def test_exit_code_does_not_decide(self):
        assert not _parse_output('xtrabackup: error: cannot open ./ibdata1\n', 0).success
        assert _parse_output(SUCCESS_OUTPUT, 1).success

    def test_empty_output(self):
        result = _parse_output('', 0)
        assert not result.success
        assert result.artifact_path is None

    def test_success_without_path_is_ambiguous(self):
        result = _parse_output('innobackupex: completed OK!\n', 0)
        assert result.success
        assert result.ambiguous

    def test_unquoted_path_is_ambiguous(self):
        output = ('innobackupex: Backup created in directory /backup/full/x\n'
                  'innobackupex: completed OK!')
        assert _parse_output(output, 0).ambiguous

    def test_prepare_does_not_need_a_path(self):
        result = _parse_output('innobackupex: completed OK!\n', 0, expect_artifact=False)
        assert result.success
        assert result.artifact_path is None


class TestCommands:

    def test_full_backup_command(self, client):
        assert client._backup_command(BackupMode.FULL, Path('/backup/full')) == [
            '/usr/bin/innobackupex', '--defaults-file=/etc/mysql/my.cnf',
            '--defaults-group=mysqld2', '--user=backup', '--password=secret', '--host=db1',
            '--port=3307', '/backup/full',
        ]

    def test_incremental_backup_command(self, client):
        command = client._backup_command(BackupMode.INCREMENTAL, Path('/backup/incr/A'),
                                         Path('/backup/full/A'))
        assert command[-4:] == ['--incremental', '/backup/incr/A',
                                '--incremental-basedir', '/backup/full/A']

    def test_incremental_needs_base(self, client):
        with pytest.raises(ValueError):
            client._backup_command(BackupMode.INCREMENTAL, Path('/backup/incr/A'))

    def test_minimal_credentials(self):
        engine = Engine(EngineSettings(), ConnectionSettings(user='root'))
        assert engine._credential_options() == ['--user=root']

    @patch('innobackup_runner.engine.client.subprocess.run')
    def test_backup(self, mock_run, client):
        mock_run.return_value = completed(SUCCESS_OUTPUT)

        result = client.backup(BackupMode.FULL, Path('/backup/full'))

        assert result.success
        assert result.artifact_path == Path('/backup/full/2024-01-08_03-00-01')
        args, kwargs = mock_run.call_args
        assert args[0][-1] == '/backup/full'
        assert kwargs['stderr'] == subprocess.STDOUT

    @patch('innobackup_runner.engine.client.subprocess.run')
    def test_backup_failure(self, mock_run, client):
        mock_run.return_value = completed('xtrabackup: error: read-only\n', 1)
        result = client.backup(BackupMode.FULL, Path('/backup/full'))
        assert not result.success
        assert result.exit_status == 1
        assert 'read-only' in result.diagnostics

    @patch('innobackup_runner.engine.client.subprocess.run')
    def test_missing_binary(self, mock_run, client):
        mock_run.side_effect = FileNotFoundError('No such file')
        result = client.backup(BackupMode.FULL, Path('/backup/full'))
        assert not result.success
        assert result.exit_status == 127

    @patch('innobackup_runner.engine.client.subprocess.run')
    def test_prepare_and_copy_back(self, mock_run, client):
        mock_run.return_value = completed('innobackupex: completed OK!\n')

        assert client.prepare(Path('/backup/full/A'), Path('/backup/incr/A/A-1'),
                              redo_only=True).success
        assert client.copy_back(Path('/backup/full/A')).success

        prepare_args = mock_run.call_args_list[0][0][0]
        assert '--apply-log' in prepare_args
        assert '--redo-only' in prepare_args
        assert '--use-memory=2G' in prepare_args
        assert prepare_args[-1] == '--incremental-dir=/backup/incr/A/A-1'
        assert '--copy-back' in mock_run.call_args_list[1][0][0]


class TestPreconditions:

    def test_binary_not_executable(self, tmp_path):
        binary = tmp_path / 'innobackupex'
        binary.write_text('#!/bin/sh\n')
        binary.chmod(0o644)
        engine = Engine(EngineSettings(binary=binary), ConnectionSettings(user='root'))
        with pytest.raises(PreconditionError):
            engine.check_binary()

    def test_binary_executable(self, tmp_path):
        binary = tmp_path / 'innobackupex'
        binary.write_text('#!/bin/sh\n')
        binary.chmod(0o755)
        Engine(EngineSettings(binary=binary), ConnectionSettings(user='root')).check_binary()

    @patch('innobackup_runner.engine.client.subprocess.run')
    def test_service_running(self, mock_run, client):
        mock_run.return_value = completed('Uptime: 4711  Threads: 1  Questions: 12\n')
        client.check_service()
        assert mock_run.call_args[0][0][-1] == 'status'

    @patch('innobackup_runner.engine.client.subprocess.run')
    def test_service_down(self, mock_run, client):
        mock_run.return_value = completed("mysqladmin: connect to server at 'db1' failed\n", 1)
        with pytest.raises(PreconditionError, match='not appear to be running'):
            client.check_service()

    @patch('innobackup_runner.engine.client.subprocess.run')
    def test_credentials(self, mock_run, client):
        mock_run.return_value = completed('', 0)
        client.check_credentials()
        assert mock_run.call_args[1]['input'] == 'exit\n'

        mock_run.return_value = completed('ERROR 1045 (28000): Access denied\n', 1)
        with pytest.raises(PreconditionError, match='username or password'):
            client.check_credentials()

    def test_service_checks_can_be_disabled(self, tmp_path):
        binary = tmp_path / 'innobackupex'
        binary.write_text('#!/bin/sh\n')
        binary.chmod(0o755)
        engine = Engine(EngineSettings(binary=binary, check_service=False),
                        ConnectionSettings(user='root'))
        engine.check_service = MagicMock()
        engine.check_preconditions()
        engine.check_service.assert_not_called()
