"""Shared fixtures for the profile directory test suite."""

import pytest

from profiledir.backends import MemoryBackend, SqliteBackend
from profiledir.core.directory import DirectoryService

ALICE = "uhCAkAliceAgentPubKey000000000000000000000000"
BOB = "uhCAkBobAgentPubKey0000000000000000000000000000"
CAROL = "uhCAkCarolAgentPubKey00000000000000000000000000"


@pytest.fixture
def memory_store():
    """Provide an empty in-memory store."""
    return MemoryBackend()


@pytest.fixture
def sqlite_store(tmp_path):
    """Provide an empty SQLite store in a temporary directory."""
    return SqliteBackend(db_path=tmp_path / "profiledir_test.db")


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Provide each store backend in turn."""
    if request.param == "memory":
        return MemoryBackend()
    return SqliteBackend(db_path=tmp_path / "profiledir_test.db")


@pytest.fixture
def alice(store):
    """Directory acting for Alice."""
    return DirectoryService(store, ALICE)


@pytest.fixture
def bob(store):
    """Directory acting for Bob."""
    return DirectoryService(store, BOB)


@pytest.fixture
def carol(store):
    """Directory acting for Carol."""
    return DirectoryService(store, CAROL)
