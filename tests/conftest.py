"""Pytest configuration helpers for test collection.

Ensure the project root is on sys.path so tests can import the package
without requiring PYTHONPATH to be set externally, and provide one fixture
per paste store so contract tests can run against all of them.
"""
import sys
from pathlib import Path

import pytest


def pytest_configure(config):
    # Insert repo root (one level up from tests/) to sys.path
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


@pytest.fixture(params=["database", "filesystem", "memory"])
def store(request, tmp_path):
    from paste_lib.storage import DatabaseStorage, FileStorageBackend, MemoryStorage

    if request.param == "database":
        backend = DatabaseStorage("sqlite://")
        yield backend
        backend.close()
    elif request.param == "filesystem":
        yield FileStorageBackend(data_dir=tmp_path / "data")
    else:
        yield MemoryStorage()
