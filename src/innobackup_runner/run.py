"""
Creates full and incremental MySQL backups with innobackupex and prunes old chains.
"""
import sys
import tempfile
import time
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from innobackup_runner.backends.base import Backend
from innobackup_runner.backends.disk import DiskBackend
from innobackup_runner.chain.decider import decide
from innobackup_runner.chain.locator import (load_chains, locate_latest_full,
                                             locate_latest_incremental)
from innobackup_runner.chain.restore import find_backup, restore
from innobackup_runner.chain.retention import prune
from innobackup_runner.engine.client import Engine
from innobackup_runner.utils.config import RunConfig, load_config, parse_config
from innobackup_runner.utils.datatypes import BackupMode, Decision, EngineResult, RunReport
from innobackup_runner.utils.errors import (BackupRunnerError, ExecutionError,
                                            ExtractionError, PreconditionError)
from innobackup_runner.utils.logging import setup_logging


class CtxArgs:
    """
    Cache object for arguments between click group and commands.
    """

    def __init__(self, config_folder: Path, config: RunConfig, backend: Backend,
                 engine: Engine, log_dir: Optional[Path]):
        self.config_folder = Path(config_folder)
        self.config = config
        self.backend = backend
        self.engine = engine
        self.log_dir = log_dir


def check_backup_dir(backend: Backend):
    """
    The backup root must exist and be writeable.
    """
    if not backend.exists(backend.backup_dir):
        raise PreconditionError(
            f'ERROR: Backup destination folder {backend.backup_dir} does not exist.')
    if not backend.is_writable(backend.backup_dir):
        raise PreconditionError(
            f'ERROR: Backup destination folder {backend.backup_dir} is not writeable.')


def save_diagnostics(result: EngineResult, log_dir: Optional[Path] = None) -> Path:
    """
    Write the complete engine output to a file for later inspection.
    :return: path of the file
    """
    with tempfile.NamedTemporaryFile('w', prefix='innobackup-runner.', suffix='.log',
                                     dir=log_dir, delete=False, encoding='utf-8') as f:
        f.write(result.diagnostics)
    return Path(f.name)


def run_backup(config: RunConfig, backend: Backend, engine: Engine,
               now: Optional[float] = None, force_full: bool = False,
               log_dir: Optional[Path] = None) -> RunReport:
    """
    Perform one backup run: preconditions, decision, engine, result check, pruning.
    :param config: run config
    :param backend: storage backend
    :param engine: engine client
    :param now: start of the run (epoch seconds). Defaults to the current time.
    :param force_full: ignore the chain and create a full backup
    :param log_dir: where the output of a failed engine run is saved
    :return: RunReport
    :raises PreconditionError: environment not usable
    :raises ExecutionError: the engine did not report success
    """
    now = time.time() if now is None else now
    check_backup_dir(backend)
    with backend.lock():
        engine.check_preconditions()
        backend.ensure_layout()

        latest_full = locate_latest_full(backend)
        latest_incremental = (locate_latest_incremental(backend, latest_full)
                              if latest_full else None)
        decision = decide(latest_full, now, config.policy, latest_incremental)
        if force_full and not decision.is_full:
            logger.info('Full backup forced.')
            decision = Decision(BackupMode.FULL)

        if decision.is_full:
            target_dir = backend.full_dir
            logger.info('Running new full backup.')
        else:
            target_dir = backend.chain_dir(decision.full.identifier)
            backend.make_dirs(target_dir)
            logger.info(f'Running new incremental backup using {decision.base.path} as base.')

        existing = set(backend.list_dirs(target_dir))
        result = engine.backup(decision.mode, target_dir,
                               None if decision.is_full else decision.base.path)
        if not result.success:
            for name in backend.list_dirs(target_dir):
                if name not in existing:
                    moved = backend.quarantine(target_dir / name)
                    logger.warning(f'Moved incomplete backup {target_dir / name} to {moved}')
            diagnostics_file = save_diagnostics(result, log_dir)
            logger.debug(result.diagnostics)
            raise ExecutionError(
                f'ERROR: the backup procedure has failed. More details on: {diagnostics_file}',
                result=result, diagnostics_file=diagnostics_file)

        report = RunReport(decision=decision, result=result)
        if result.ambiguous:
            report.warnings.append(ExtractionError(
                'Engine reported success but the backup directory could not be extracted '
                'from its output.'))
        else:
            logger.info(f'Databases backed up successfully to: {result.artifact_path}')

        report.pruned = prune(backend, config.policy, now)
    return report


@click.group()
@click.option(
    '-c',
    '--config-folder',
    help='Folder where the config files are stored. /etc/innobackup-runner by default.'
         ' Make sure that the user has read and write access to the folder.',
    default='/etc/innobackup-runner',
)
@click.option('-v', '--verbose', is_flag=True, default=False,
              help='Print all log messages to stderr.')
@click.pass_context
@click.version_option(package_name='innobackup_runner')
def main(ctx, config_folder, verbose):
    """
    Create, prune and restore full and incremental MySQL backups with innobackupex.
    """
    settings = parse_config(Path(config_folder))
    log_dir = settings.get('logging.dir', default=None)
    log_dir = Path(log_dir) if log_dir else None
    setup_logging(log_dir, settings.get('logging.level', default='INFO'), verbose)
    try:
        config = load_config(settings)
    except BackupRunnerError as e:
        logger.critical(f'Error during config parsing! {e}')
        sys.exit(1)

    backend = DiskBackend(config.backup_dir)
    engine = Engine(config.engine, config.connection)
    ctx.obj = CtxArgs(config_folder, config, backend, engine, log_dir)


@main.command('backup')
@click.option(
    '-f', '--force-full',
    is_flag=True, show_default=True, default=False,
    help='Force a full backup and ignore the lifetime of the latest full backup.'
)
@click.pass_context
def backup_command(ctx, force_full):
    """
    Perform a backup.
    Depending on the age of the latest full backup, this will create a full
    or an incremental backup. Expired chains are pruned afterwards.
    """
    args: CtxArgs = ctx.obj
    logger.info('innobackup-runner: backup started')
    try:
        report = run_backup(args.config, args.backend, args.engine,
                            force_full=force_full, log_dir=args.log_dir)
    except ExecutionError as e:
        logger.critical(str(e))
        sys.exit(1)
    except BackupRunnerError as e:
        logger.critical(f'Backup failed! {e}')
        sys.exit(1)

    for warning in report.warnings:
        logger.warning(str(warning))
    for error in report.pruned.errors:
        logger.error(f'Pruning error: {error}')
    if report.pruned.deleted:
        logger.info(f'Removed backup chains: {", ".join(report.pruned.deleted)}')
    logger.info('Backup completed.')


@main.command('prune')
@click.pass_context
def prune_command(ctx):
    """
    Remove expired backup chains without creating a backup.
    """
    args: CtxArgs = ctx.obj
    try:
        check_backup_dir(args.backend)
        with args.backend.lock():
            result = prune(args.backend, args.config.policy, time.time())
    except BackupRunnerError as e:
        logger.critical(str(e))
        sys.exit(1)
    for identifier in result.deleted:
        click.secho(f'Removed {identifier}', fg='yellow')
    for error in result.errors:
        click.secho(str(error), fg='red', file=sys.stderr)
    if result.errors:
        sys.exit(1)


@main.command('list')
@click.pass_context
def list_command(ctx):
    """
    List all existing backups.
    """
    args: CtxArgs = ctx.obj
    chains = load_chains(args.backend)
    if len(chains) == 0:
        click.secho('None! You have to create a backup first...', fg='red',
                    file=sys.stderr)
        sys.exit(1)
    output = click.style('Listing backups:\n', fg='green', bold=True)
    newest_backup = None
    for full_backup in chains:
        newest_backup = full_backup
        output += click.style(f'{full_backup.path} @ {full_backup.timestamp_str}\n\t', fg='cyan')
        if len(full_backup.incremental_backups) == 0:
            output += click.style('No incremental backups.', fg='red')
        else:
            output += click.style('Incremental backups:', fg='bright_green')
        for incremental_backup in full_backup.incremental_backups:
            newest_backup = incremental_backup
            output += click.style(
                f'\n\t\t{incremental_backup.path} @ {incremental_backup.timestamp_str}',
                fg='yellow'
            )
        output += '\n\n'
    output += (
        'Call the restore command with the path of a backup as the argument '
        'to prepare it and copy it back.\n'
        'E.g. for the newest one:\n'
    )
    output += click.style(
        f'innobackup-runner -c {args.config_folder} restore {newest_backup.path}',
        fg='green'
    )
    click.echo(output)


@main.command('restore')
@click.argument(
    'backup',
    required=True,
)
@click.pass_context
def restore_command(ctx, backup):
    """
    Prepare the given backup (and all incrementals up to it) and copy it back.
    MySQL must be stopped and its data directory empty.
    You can use the output of the list command to view available backups.
    """
    args: CtxArgs = ctx.obj
    try:
        check_backup_dir(args.backend)
        args.engine.check_binary()
        with args.backend.lock():
            backup_to_restore = find_backup(args.backend, backup)
            restore(args.backend, args.engine, backup_to_restore)
    except ExecutionError as e:
        diagnostics_file = save_diagnostics(e.result, args.log_dir)
        logger.critical(f'{e} More details on: {diagnostics_file}')
        sys.exit(1)
    except BackupRunnerError as e:
        logger.critical(str(e))
        sys.exit(1)

    click.secho('Backup restored successfully. You are able to start mysql now.\n'
                'Verify files ownership in mysql data dir.\n'
                "Run 'chown -R mysql:mysql /path/to/data/dir' if necessary.",
                fg='green')


def cli():
    """
    Console entry point. Usage errors exit with 1 like every other failure.
    """
    try:
        main(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(1)
    except click.Abort:
        click.echo('Aborted!', err=True)
        sys.exit(1)


if __name__ == '__main__':
    cli()
