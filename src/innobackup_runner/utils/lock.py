"""
Advisory lock so two runs never work on the same backup root at once.
"""
import fcntl
import os
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from .errors import PreconditionError

LOCK_FILE = '.lock'


@contextmanager
def run_lock(root: Path):
    """
    Hold an exclusive flock on <root>/.lock for the duration of the block.
    Fails immediately if another run holds it.
    :param root: backup root
    """
    lock_path = Path(root) / LOCK_FILE
    try:
        handle = open(lock_path, 'a+', encoding='utf-8')
    except OSError as e:
        raise PreconditionError(f'Cannot open lock file {lock_path}: {e}') from e
    try:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise PreconditionError(
                f'Another run holds {lock_path}. Refusing to run concurrently.') from e
        handle.seek(0)
        handle.truncate()
        handle.write(f'{os.getpid()}\n')
        handle.flush()
        logger.debug(f'Acquired lock {lock_path}')
        try:
            yield lock_path
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            logger.debug(f'Released lock {lock_path}')
    finally:
        handle.close()
