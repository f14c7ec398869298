"""
innobackupex client / engine invocations and result parsing
"""
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

from innobackup_runner.utils.config import ConnectionSettings, EngineSettings
from innobackup_runner.utils.datatypes import BackupMode, EngineResult
from innobackup_runner.utils.errors import PreconditionError

COMPLETION_MARKER = 'completed OK!'
ARTIFACT_MARKER = 'Backup created in directory'


def _parse_output(output: str, exit_status: int, expect_artifact: bool = True) -> EngineResult:
    """
    Interpret the output of the engine.
    Success is read from the last line only. The exit status is informational.
    :param output: stdout and stderr of the engine
    :param exit_status: return code of the engine
    :param expect_artifact: whether the run should announce a backup directory
    :return: EngineResult
    """
    lines = output.rstrip('\n').splitlines()
    success = len(lines) > 0 and COMPLETION_MARKER in lines[-1]
    artifact_path = None
    if success and expect_artifact:
        for line in lines:
            if ARTIFACT_MARKER in line:
                parts = line.split("'")
                if len(parts) >= 3 and parts[1]:
                    artifact_path = Path(parts[1])
    if success and exit_status != 0:
        logger.warning(f'Engine reported "{COMPLETION_MARKER}" but exited with {exit_status}.')
    return EngineResult(success=success, diagnostics=output, exit_status=exit_status,
                        artifact_path=artifact_path)


class Engine:
    """
    Wrapper around innobackupex and the mysql client tools.
    """

    def __init__(self, settings: EngineSettings, connection: ConnectionSettings):
        """
        :param settings: engine binaries and options
        :param connection: credentials and connection options
        """
        self.settings = settings
        self.connection = connection

    def _credential_options(self) -> List[str]:
        options = []
        if self.connection.user:
            options.append(f'--user={self.connection.user}')
        if self.connection.password:
            options.append(f'--password={self.connection.password}')
        if self.connection.host:
            options.append(f'--host={self.connection.host}')
        if self.connection.port:
            options.append(f'--port={self.connection.port}')
        if self.connection.socket:
            options.append(f'--socket={self.connection.socket}')
        return options

    def _defaults_options(self) -> List[str]:
        options = [f'--defaults-file={self.settings.defaults_file}']
        if self.settings.defaults_group:
            options.append(f'--defaults-group={self.settings.defaults_group}')
        return options

    def _backup_command(self, mode: BackupMode, target_dir: Path,
                        base_dir: Optional[Path] = None) -> List[str]:
        """
        Command line of a backup run.
        :param mode: full or incremental
        :param target_dir: directory the engine creates the new set in
        :param base_dir: base of an incremental
        :return: argv
        """
        command = [str(self.settings.binary), *self._defaults_options(),
                   *self._credential_options()]
        if mode is BackupMode.INCREMENTAL:
            if not base_dir:
                raise ValueError('base_dir must be provided for incremental backups')
            command += ['--incremental', str(target_dir),
                        '--incremental-basedir', str(base_dir)]
        else:
            command.append(str(target_dir))
        return command

    def _run(self, command: List[str], stdin: Optional[str] = None) -> Tuple[str, int]:
        """
        Run a command and wait for it. No timeout.
        :return: 2-Tuple (combined output, exit status)
        """
        logger.debug(f'Running {command[0]}')
        try:
            process = subprocess.run(command, input=stdin, stdout=subprocess.PIPE,
                                     stderr=subprocess.STDOUT, text=True, errors='replace',
                                     check=False)
        except OSError as e:
            return f'{command[0]}: {e}\n', 127
        return process.stdout or '', process.returncode

    def backup(self, mode: BackupMode, target_dir: Path,
               base_dir: Optional[Path] = None) -> EngineResult:
        """
        Create a full or incremental backup.
        :param mode: full or incremental
        :param target_dir: full/ for full backups, incr/<full> for incrementals
        :param base_dir: base of an incremental
        :return: EngineResult
        """
        output, exit_status = self._run(self._backup_command(mode, target_dir, base_dir))
        return _parse_output(output, exit_status)

    def prepare(self, full_dir: Path, incremental_dir: Optional[Path] = None,
                redo_only: bool = False) -> EngineResult:
        """
        Replay the log of a full backup, optionally applying an incremental to it.
        """
        command = [str(self.settings.binary), *self._defaults_options(), '--apply-log']
        if redo_only:
            command.append('--redo-only')
        command += [f'--use-memory={self.settings.use_memory}', str(full_dir)]
        if incremental_dir:
            command.append(f'--incremental-dir={incremental_dir}')
        output, exit_status = self._run(command)
        return _parse_output(output, exit_status, expect_artifact=False)

    def copy_back(self, full_dir: Path) -> EngineResult:
        """
        Copy a prepared backup back to the data directory.
        """
        command = [str(self.settings.binary), *self._defaults_options(), '--copy-back',
                   str(full_dir)]
        output, exit_status = self._run(command)
        return _parse_output(output, exit_status, expect_artifact=False)

    def check_preconditions(self):
        """
        Engine executable, server running, credentials accepted.
        :raises PreconditionError: on the first failed check
        """
        self.check_binary()
        if self.settings.check_service:
            self.check_service()
            self.check_credentials()

    def check_binary(self):
        if not os.access(self.settings.binary, os.X_OK) or os.path.isdir(self.settings.binary):
            raise PreconditionError(f'{self.settings.binary} does not exist or is not executable.')

    def check_service(self):
        """
        mysqladmin status must report an uptime.
        """
        output, _ = self._run([str(self.settings.mysqladmin), *self._credential_options(),
                               'status'])
        if 'Uptime' not in output:
            raise PreconditionError('HALTED: MySQL does not appear to be running.')

    def check_credentials(self):
        output, exit_status = self._run([str(self.settings.mysql), '-s',
                                         *self._credential_options()], stdin='exit\n')
        if exit_status != 0:
            logger.debug(output)
            raise PreconditionError('HALTED: Supplied mysql username or password appears to be '
                                    'incorrect (not copied here for security).')
