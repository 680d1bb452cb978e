"""Shared pytest fixtures for iocwire tests."""

from pathlib import Path

import pytest

from iocwire.container import Container
from iocwire.lock_mode import LockMode
from iocwire.values import ValueSource

TESTDATA = Path(__file__).parent / "testdata"


@pytest.fixture()
def value_source() -> ValueSource:
    """Empty value source shared with the container fixture."""
    return ValueSource()


@pytest.fixture()
def container(value_source: ValueSource) -> Container:
    """Default thread-locked container reading ``value_source``."""
    return Container(value_source=value_source)


@pytest.fixture()
def unlocked_container() -> Container:
    """Container with locking disabled."""
    return Container(lock_mode=LockMode.NONE)


@pytest.fixture()
def testdata() -> Path:
    """Directory holding JSON and YAML value files."""
    return TESTDATA
