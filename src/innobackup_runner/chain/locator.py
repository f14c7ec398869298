"""
Find backup chains in the backup root.
"""
from typing import List, Optional

from loguru import logger

from innobackup_runner.backends.base import Backend
from innobackup_runner.utils.datatypes import FullBackupSet, IncrementalBackupSet


def locate_latest_full(backend: Backend) -> Optional[FullBackupSet]:
    """
    Get the newest full backup.
    Identifiers are timestamps, so the greatest name is the newest backup.
    A backup without readable metadata counts as missing.
    :param backend: storage backend
    :return: FullBackupSet or None
    """
    identifiers = backend.get_full_backups()
    if len(identifiers) == 0:
        return None
    identifier = identifiers[-1]
    path = backend.full_dir / identifier
    created_at = backend.modified_at(path)
    if created_at is None:
        logger.warning(f'Cannot read the metadata of {path}. Treating it as missing.')
        return None
    return FullBackupSet(identifier, path, created_at)


def locate_latest_incremental(backend: Backend,
                              full_backup: FullBackupSet) -> Optional[IncrementalBackupSet]:
    """
    Get the newest incremental backup of the given full backup.
    None means the full backup itself is the base of the next incremental.
    :param backend: storage backend
    :param full_backup: owning full backup
    :return: IncrementalBackupSet or None
    """
    chain_dir = backend.chain_dir(full_backup.identifier)
    readable = []
    # newest first, skipping sets without metadata
    for identifier in reversed(backend.get_incremental_backups(full_backup.identifier)):
        path = chain_dir / identifier
        created_at = backend.modified_at(path)
        if created_at is None:
            logger.warning(f'Cannot read the metadata of {path}. Treating it as missing.')
            continue
        readable.append(IncrementalBackupSet(identifier, path, full_backup.identifier,
                                             created_at=created_at))
        if len(readable) == 2:
            break
    if len(readable) == 0:
        return None
    latest = readable[0]
    latest.base = readable[1] if len(readable) > 1 else full_backup
    return latest


def load_chains(backend: Backend) -> List[FullBackupSet]:
    """
    Load all full backups with their incremental backups.
    Each incremental is linked to its base.
    :param backend: storage backend
    :return: full backups sorted by identifier
    """
    chains: List[FullBackupSet] = []
    for identifier in backend.get_full_backups():
        path = backend.full_dir / identifier
        full_backup = FullBackupSet(identifier, path, backend.modified_at(path))
        base = full_backup
        for inc_identifier in backend.get_incremental_backups(identifier):
            inc_path = backend.chain_dir(identifier) / inc_identifier
            inc = IncrementalBackupSet(inc_identifier, inc_path, identifier, base=base,
                                       created_at=backend.modified_at(inc_path))
            full_backup.incremental_backups.append(inc)
            base = inc
        chains.append(full_backup)

    known = {x.identifier for x in chains}
    for owner in backend.get_chain_owners():
        if owner not in known:
            logger.warning(f'Full base backup {owner} for {backend.chain_dir(owner)} is missing!')
    return chains
