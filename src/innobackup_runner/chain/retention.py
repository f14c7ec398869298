"""
Remove backup chains that outlived the retention policy.
"""
from loguru import logger

from innobackup_runner.backends.base import Backend
from innobackup_runner.utils.converters import age_threshold_minutes
from innobackup_runner.utils.datatypes import PruneResult, RetentionPolicy
from innobackup_runner.utils.errors import PruneError


def _remove_chain(backend: Backend, identifier: str, result: PruneResult,
                  remove_full: bool = True):
    """
    Delete the incrementals of a chain and then its full backup.
    The full backup stays if its incrementals could not be deleted.
    """
    chain_dir = backend.chain_dir(identifier)
    try:
        if backend.exists(chain_dir):
            logger.info(f'removing: {chain_dir}')
            backend.remove(chain_dir)
    except OSError as e:
        logger.error(f'Could not delete {chain_dir}! {e}')
        result.errors.append(PruneError(identifier, chain_dir, e))
        return
    if remove_full:
        full_dir = backend.full_dir / identifier
        try:
            logger.info(f'removing: {full_dir}')
            backend.remove(full_dir)
        except OSError as e:
            logger.error(f'Could not delete {full_dir}! {e}')
            result.errors.append(PruneError(identifier, full_dir, e))
            return
    result.deleted.append(identifier)


def prune(backend: Backend, policy: RetentionPolicy, now: float) -> PruneResult:
    """
    Remove old backup chains.
    A full backup expires once its mtime is older than
    full_lifetime * keep minutes. Its incrementals are deleted first.
    Incremental chains without a full backup are deleted as well, and
    so are quarantined runs in failed/ older than the same threshold.
    A threshold of zero disables pruning.
    :param backend: storage backend
    :param policy: retention policy
    :param now: current time (epoch seconds)
    :return: deleted identifiers and collected errors
    """
    result = PruneResult()
    age_minutes = age_threshold_minutes(policy.full_lifetime, policy.keep)
    if age_minutes <= 0:
        logger.warning(f'Retention threshold is 0 minutes (keep={policy.keep}). '
                       'Pruning is disabled.')
        return result

    logger.info(f'Cleanup. Keeping only {policy.keep} full backups and its incrementals. '
                f'(max age {age_minutes} minutes)')
    threshold = now - age_minutes * 60
    full_backups = backend.get_full_backups()
    for identifier in full_backups:
        modified_at = backend.modified_at(backend.full_dir / identifier)
        if modified_at is None:
            logger.warning(f'Cannot read the metadata of full backup {identifier}. Skipping.')
            continue
        if modified_at < threshold:
            _remove_chain(backend, identifier, result)

    for owner in backend.get_chain_owners():
        if owner not in full_backups:
            logger.error(f'Full base backup {owner} is missing! Deleting its incrementals...')
            _remove_chain(backend, owner, result, remove_full=False)

    for name in backend.list_dirs(backend.failed_dir):
        path = backend.failed_dir / name
        modified_at = backend.modified_at(path)
        if modified_at is None or modified_at >= threshold:
            continue
        try:
            logger.info(f'removing: {path}')
            backend.remove(path)
        except OSError as e:
            logger.error(f'Could not delete {path}! {e}')
            result.errors.append(PruneError(f'failed/{name}', path, e))
            continue
        result.deleted.append(f'failed/{name}')
    return result
