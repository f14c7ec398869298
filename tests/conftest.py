"""
Shared pytest fixtures for innobackup-runner tests.

This module provides fixtures for:
- In-memory backup roots with synthetic chains
- A fake engine that creates backup directories like innobackupex does
- Run configs with the default retention policy
"""
import time
from pathlib import Path

import pytest

from innobackup_runner.backends.memory import MemoryBackend
from innobackup_runner.utils.config import ConnectionSettings, EngineSettings, RunConfig
from innobackup_runner.utils.datatypes import EngineResult, RetentionPolicy

# 2023-11-14 22:13:20 UTC
T0 = 1_700_000_000


def identifier_at(epoch: float) -> str:
    """Directory name innobackupex would use for a backup started at epoch."""
    return time.strftime('%Y-%m-%d_%H-%M-%S', time.gmtime(epoch))


class FakeEngine:
    """
    Stands in for innobackupex. Creates the set directory in the memory
    backend with mtime = now and reports like the real engine.
    """

    def __init__(self, backend: MemoryBackend):
        self.backend = backend
        self.now = T0
        self.fail = False
        self.hide_artifact = False
        self.precondition_error = None
        self.calls = []

    def check_preconditions(self):
        if self.precondition_error:
            raise self.precondition_error

    def backup(self, mode, target_dir, base_dir=None):
        self.calls.append((mode, Path(target_dir), base_dir))
        path = self.backend.add(Path(target_dir) / identifier_at(self.now), self.now)
        if self.fail:
            return EngineResult(success=False, exit_status=1,
                                diagnostics='xtrabackup: error: log block numbers mismatch\n')
        output = (f"innobackupex: Backup created in directory '{path}'\n"
                  f"{identifier_at(self.now)} innobackupex: completed OK!\n")
        if self.hide_artifact:
            output = 'innobackupex: completed OK!\n'
        return EngineResult(success=True, exit_status=0, diagnostics=output,
                            artifact_path=None if self.hide_artifact else path)


@pytest.fixture
def backend():
    """Empty backup root at /backup."""
    return MemoryBackend(Path('/backup'))


@pytest.fixture
def engine(backend):
    return FakeEngine(backend)


@pytest.fixture
def policy():
    """One week full lifetime, one generation kept."""
    return RetentionPolicy(full_lifetime=604800, keep=1)


@pytest.fixture
def config(backend, policy):
    return RunConfig(
        backup_dir=backend.backup_dir,
        policy=policy,
        engine=EngineSettings(check_service=False),
        connection=ConnectionSettings(user='backup', password='secret'),
    )
