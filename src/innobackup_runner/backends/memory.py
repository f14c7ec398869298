from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Set

from innobackup_runner.backends.base import Backend
from innobackup_runner.utils.errors import PreconditionError


class MemoryBackend(Backend):
    """
    In-memory backend. Holds a synthetic tree of directories and their mtimes
    so chain states can be built without touching the filesystem.
    """

    def __init__(self, backup_dir: Path = Path('/backup')):
        super().__init__(backup_dir)
        self.dirs: Dict[Path, Optional[float]] = {self.backup_dir: 0.0}
        # paths whose removal raises PermissionError
        self.protected: Set[Path] = set()
        self.read_only: Set[Path] = set()
        self.locked = False

    def add(self, path: Path, mtime: Optional[float] = 0.0) -> Path:
        """
        Create a directory (and its parents). mtime None simulates missing metadata.
        """
        path = Path(path)
        for parent in reversed(path.parents):
            if parent not in self.dirs and self.backup_dir in (parent, *parent.parents):
                self.dirs[parent] = 0.0
        self.dirs[path] = mtime
        return path

    def add_full(self, identifier: str, mtime: Optional[float] = 0.0) -> Path:
        return self.add(self.full_dir / identifier, mtime)

    def add_incremental(self, full_identifier: str, identifier: str,
                        mtime: Optional[float] = 0.0) -> Path:
        return self.add(self.chain_dir(full_identifier) / identifier, mtime)

    def list_dirs(self, directory: Path) -> List[str]:
        directory = Path(directory)
        return sorted(x.name for x in self.dirs if x.parent == directory and x != directory)

    def modified_at(self, path: Path) -> Optional[float]:
        return self.dirs.get(Path(path))

    def exists(self, path: Path) -> bool:
        return Path(path) in self.dirs

    def make_dirs(self, path: Path) -> None:
        if not self.exists(path):
            self.add(path)

    def _subtree(self, path: Path) -> List[Path]:
        return [x for x in self.dirs if x == path or path in x.parents]

    def remove(self, path: Path) -> None:
        path = Path(path)
        if path in self.protected:
            raise PermissionError(f'Permission denied: {path}')
        for entry in self._subtree(path):
            del self.dirs[entry]

    def is_writable(self, path: Path) -> bool:
        return self.exists(path) and Path(path) not in self.read_only

    @contextmanager
    def lock(self):
        if self.locked:
            raise PreconditionError(f'Another run holds the lock on {self.backup_dir}.')
        self.locked = True
        try:
            yield self.backup_dir
        finally:
            self.locked = False

    def move(self, path: Path, destination: Path) -> None:
        path = Path(path)
        destination = Path(destination)
        for entry in self._subtree(path):
            mtime = self.dirs.pop(entry)
            self.dirs[destination / entry.relative_to(path)] = mtime
