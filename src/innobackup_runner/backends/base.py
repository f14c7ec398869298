from abc import ABC, abstractmethod
from pathlib import Path
from typing import ContextManager, List, Optional

FULL_DIR = 'full'
INCR_DIR = 'incr'
FAILED_DIR = 'failed'


class Backend(ABC):
    """
    ABC for backend implementations.
    Implements how the backup root is listed, inspected and cleaned.
    """

    def __init__(self, backup_dir: Path):
        """
        :param backup_dir: backup root
        """
        self.backup_dir = Path(backup_dir)

    @property
    def full_dir(self) -> Path:
        return self.backup_dir / FULL_DIR

    @property
    def incr_dir(self) -> Path:
        return self.backup_dir / INCR_DIR

    @property
    def failed_dir(self) -> Path:
        return self.backup_dir / FAILED_DIR

    def chain_dir(self, full_identifier: str) -> Path:
        """
        Directory holding the incrementals of the given full backup.
        """
        return self.incr_dir / full_identifier

    def get_full_backups(self) -> List[str]:
        """
        Identifiers of all full backups, sorted ascending.
        """
        return self.list_dirs(self.full_dir)

    def get_incremental_backups(self, full_identifier: str) -> List[str]:
        """
        Identifiers of all incrementals owned by the full backup, sorted ascending.
        """
        return self.list_dirs(self.chain_dir(full_identifier))

    def get_chain_owners(self) -> List[str]:
        """
        Full identifiers that have an incremental directory.
        """
        return self.list_dirs(self.incr_dir)

    @abstractmethod
    def list_dirs(self, directory: Path) -> List[str]:
        """
        Names of the immediate child directories, sorted ascending.
        A missing directory has no children.
        """

    @abstractmethod
    def modified_at(self, path: Path) -> Optional[float]:
        """
        mtime of the path or None if it cannot be read.
        """

    @abstractmethod
    def exists(self, path: Path) -> bool:
        pass

    @abstractmethod
    def make_dirs(self, path: Path) -> None:
        pass

    @abstractmethod
    def remove(self, path: Path) -> None:
        """
        Removes the directory and everything below it. Missing paths are ignored.
        """

    @abstractmethod
    def move(self, path: Path, destination: Path) -> None:
        pass

    @abstractmethod
    def is_writable(self, path: Path) -> bool:
        pass

    @abstractmethod
    def lock(self) -> ContextManager:
        """
        Exclusive lock on the backup root for the duration of a run.
        """

    def ensure_layout(self) -> None:
        """
        Create full/ and incr/ if they do not exist.
        """
        self.make_dirs(self.full_dir)
        self.make_dirs(self.incr_dir)

    def quarantine(self, path: Path) -> Path:
        """
        Move the output of a failed run to failed/ so it is never used as a base.
        :param path: directory to move
        :return: new location
        """
        self.make_dirs(self.failed_dir)
        destination = self.failed_dir / path.name
        suffix = 1
        while self.exists(destination):
            destination = self.failed_dir / f'{path.name}.{suffix}'
            suffix += 1
        self.move(path, destination)
        return destination
