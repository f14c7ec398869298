import os
import shutil
from pathlib import Path
from typing import List, Optional

from innobackup_runner.backends.base import Backend
from innobackup_runner.utils.lock import run_lock


class DiskBackend(Backend):
    """
    Disk backend for backup sets stored as directories on a local filesystem.
    """

    def list_dirs(self, directory: Path) -> List[str]:
        try:
            entries = os.listdir(directory)
        except FileNotFoundError:
            return []
        return sorted(x for x in entries if os.path.isdir(Path(directory) / x))

    def modified_at(self, path: Path) -> Optional[float]:
        try:
            return os.stat(path).st_mtime
        except OSError:
            return None

    def exists(self, path: Path) -> bool:
        return os.path.exists(path)

    def make_dirs(self, path: Path) -> None:
        os.makedirs(path, exist_ok=True)

    def remove(self, path: Path) -> None:
        if not os.path.lexists(path):
            return
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)

    def move(self, path: Path, destination: Path) -> None:
        shutil.move(str(path), str(destination))

    def is_writable(self, path: Path) -> bool:
        return os.path.isdir(path) and os.access(path, os.W_OK | os.X_OK)

    def lock(self):
        return run_lock(self.backup_dir)
