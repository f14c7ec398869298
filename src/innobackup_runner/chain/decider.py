"""
Decide whether the next backup is a full or an incremental one.
"""
from typing import Optional

from innobackup_runner.utils.datatypes import (BackupMode, Decision, FullBackupSet,
                                               IncrementalBackupSet, RetentionPolicy)

# skew tolerance between the directory mtime and the start of the run
GRACE_SECONDS = 5


def full_backup_expiry(full_backup: FullBackupSet, policy: RetentionPolicy) -> float:
    """
    Point in time after which the full backup no longer accepts incrementals.
    """
    return full_backup.created_at + policy.full_lifetime + GRACE_SECONDS


def decide(latest_full: Optional[FullBackupSet], now: float, policy: RetentionPolicy,
           latest_incremental: Optional[IncrementalBackupSet] = None) -> Decision:
    """
    Get the type and base of the next backup.
    :param latest_full: newest full backup or None
    :param now: current time (epoch seconds)
    :param policy: retention policy
    :param latest_incremental: newest incremental of latest_full or None
    :return: Decision
    """
    if latest_full is None or latest_full.created_at is None:
        return Decision(BackupMode.FULL)
    if now >= full_backup_expiry(latest_full, policy):
        return Decision(BackupMode.FULL)
    return Decision(BackupMode.INCREMENTAL, full=latest_full,
                    base=latest_incremental or latest_full)
