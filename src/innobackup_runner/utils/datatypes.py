"""
Contains classes representing backup sets, policies and engine results.
"""
from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from .converters import format_epoch


class BackupMode(Enum):
    """
    Kind of backup the engine is asked to produce.
    """
    FULL = 'full'
    INCREMENTAL = 'incremental'


class BackupSet(ABC):
    """
    Abstract base class for backup sets on disk.
    """

    def __init__(self, identifier: str, path: Path, created_at: Optional[float] = None):
        """
        :param identifier: directory name of the set. Sortable timestamp.
        :param path: absolute path of the set
        :param created_at: mtime of the directory (epoch seconds)
        """
        self.identifier = identifier
        self.path = Path(path)
        self.created_at = created_at

    def __str__(self):
        return f'Backup {self.identifier}'

    def __repr__(self):
        return f'<{type(self).__name__} {self.identifier}>'

    @property
    def timestamp_str(self) -> str:
        """
        creation time as string without seconds
        :return: timestamp as string
        """
        return format_epoch(self.created_at) if self.created_at is not None else 'unknown'


class FullBackupSet(BackupSet):
    """
    Represents full backups. Root of a chain.
    """

    def __init__(self, identifier: str, path: Path, created_at: Optional[float] = None):
        super().__init__(identifier, path, created_at)
        self.incremental_backups: List['IncrementalBackupSet'] = []

    def __str__(self):
        return f'Full Backup {self.identifier}'


class IncrementalBackupSet(BackupSet):
    """
    Represents incremental backups.
    """

    def __init__(self, identifier: str, path: Path, full_identifier: str,
                 base: Optional[BackupSet] = None, created_at: Optional[float] = None):
        """
        :param full_identifier: identifier of the owning full backup
        :param base: set this incremental was computed against
        """
        super().__init__(identifier, path, created_at)
        self.full_identifier = full_identifier
        self.base = base

    def __str__(self):
        return f'Incremental Backup {self.full_identifier}/{self.identifier}'


AnyBackupSet = Union[FullBackupSet, IncrementalBackupSet]


@dataclass(frozen=True)
class RetentionPolicy:
    full_lifetime: int = 604800
    keep: int = 1


@dataclass(frozen=True)
class Decision:
    """
    Output of the backup type decider.
    """
    mode: BackupMode
    full: Optional[FullBackupSet] = None
    base: Optional[BackupSet] = None

    @property
    def is_full(self) -> bool:
        return self.mode is BackupMode.FULL


@dataclass(frozen=True)
class EngineResult:
    """
    Outcome of one engine invocation.
    """
    success: bool
    diagnostics: str
    exit_status: int
    artifact_path: Optional[Path] = None

    @property
    def ambiguous(self) -> bool:
        """
        Engine reported success but the produced path could not be read.
        """
        return self.success and self.artifact_path is None


@dataclass
class PruneResult:
    deleted: List[str] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)


@dataclass
class RunReport:
    """
    Summary of one backup run.
    """
    decision: Decision
    result: EngineResult
    pruned: PruneResult = field(default_factory=PruneResult)
    warnings: List[Exception] = field(default_factory=list)
