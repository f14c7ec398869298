import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_logging(log_dir: Optional[Path], log_level: str, verbose: bool = False):
    logger.remove()
    logger.add(sys.stderr,
               format='<level>{level: <8}</level> | {message}',
               level='DEBUG' if verbose else 'WARNING')
    if not log_dir:
        return
    if not os.path.isdir(log_dir):
        os.makedirs(log_dir, exist_ok=True)
    format_string = '{time:HH:mm:ss} | {level} | {message}'
    logger.add(Path(log_dir) / 'innobackup-runner.log',
               format=format_string,
               rotation='00:00',
               retention='14 days',
               level=log_level,
               backtrace=True,
               diagnose=True)
