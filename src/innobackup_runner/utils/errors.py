"""
Error types raised by the runner.
"""
from pathlib import Path
from typing import Optional

from .datatypes import EngineResult


class BackupRunnerError(Exception):
    """
    Base class for all runner errors.
    """


class ConfigurationError(BackupRunnerError):
    """
    A required setting is missing or invalid.
    """


class PreconditionError(BackupRunnerError):
    """
    The environment is not usable: engine, service, credentials, root or lock.
    """


class ExecutionError(BackupRunnerError):
    """
    The engine ran but did not report success.
    """

    def __init__(self, message: str, result: Optional[EngineResult] = None,
                 diagnostics_file: Optional[Path] = None):
        super().__init__(message)
        self.result = result
        self.diagnostics_file = diagnostics_file


class ExtractionError(BackupRunnerError):
    """
    The engine reported success but the produced path could not be extracted.
    """


class PruneError(BackupRunnerError):
    """
    An expired backup set could not be deleted.
    """

    def __init__(self, identifier: str, path: Path, cause: Exception):
        super().__init__(f'Could not delete {path}: {cause}')
        self.identifier = identifier
        self.path = path
        self.cause = cause


class RestoreError(BackupRunnerError):
    """
    The requested backup cannot be resolved to a restorable chain.
    """
