"""
Prepare and restore a backup chain with the engine.
"""
from pathlib import Path
from typing import List

from loguru import logger

from innobackup_runner.backends.base import Backend
from innobackup_runner.chain.locator import load_chains
from innobackup_runner.engine.client import Engine
from innobackup_runner.utils.datatypes import AnyBackupSet, EngineResult, FullBackupSet
from innobackup_runner.utils.errors import ExecutionError, RestoreError


def find_backup(backend: Backend, backup: str) -> AnyBackupSet:
    """
    Resolve a path or identifier to a backup set.
    :param backend: storage backend
    :param backup: path of a set or its directory name
    :return: full or incremental backup set
    """
    candidate = Path(backup)
    for full_backup in load_chains(backend):
        if candidate in (full_backup.path, Path(full_backup.identifier)):
            return full_backup
        for inc in full_backup.incremental_backups:
            if candidate in (inc.path, Path(inc.identifier),
                             Path(inc.full_identifier) / inc.identifier):
                return inc
    if candidate.parent.parent == backend.incr_dir:
        raise RestoreError(f'Full backup {backend.full_dir / candidate.parent.name} '
                           'does not exist.')
    raise RestoreError(f'Backup to restore: {backup} does not exist.')


def _check(step: str, result: EngineResult) -> EngineResult:
    if not result.success:
        raise ExecutionError(f'{step} failed!', result=result)
    return result


def restore(backend: Backend, engine: Engine, backup: AnyBackupSet) -> List[EngineResult]:
    """
    Prepare the chain up to the given backup and copy it back.
    Incrementals are applied in order with --redo-only before the final prepare.
    :param backend: storage backend
    :param engine: engine client
    :param backup: full or incremental backup set to restore
    :return: results of all engine steps
    """
    results = []
    if isinstance(backup, FullBackupSet):
        full_backup = backup
        logger.info(f'Restore {full_backup.identifier}')
    else:
        full_backup = next(
            (x for x in load_chains(backend) if x.identifier == backup.full_identifier), None)
        if full_backup is None:
            raise RestoreError(f'Full backup {backup.full_identifier} does not exist.')
        logger.info(f'Restore {full_backup.identifier} up to incremental {backup.identifier}')

        logger.info('Replay committed transactions on full backup')
        results.append(_check('Prepare of the full backup',
                              engine.prepare(full_backup.path, redo_only=True)))
        for inc in full_backup.incremental_backups:
            logger.info(f'Applying {inc.identifier} to full ...')
            results.append(_check(f'Applying {inc.identifier}',
                                  engine.prepare(full_backup.path, incremental_dir=inc.path,
                                                 redo_only=True)))
            if inc.identifier == backup.identifier:
                break

    logger.info('Preparing ...')
    results.append(_check('Prepare', engine.prepare(full_backup.path)))
    logger.info('Restoring ...')
    results.append(_check('Copy back', engine.copy_back(full_backup.path)))
    logger.info('Backup restored successfully.')
    return results
