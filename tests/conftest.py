"""Shared fixtures for the locman test suite."""

from typing import Generator

import pytest

from fakes import LLAMA, FakeDaemon, build_client
from locman.client.registry import RegistryClient
from locman.client.transport import BodyBufferPool


@pytest.fixture
def daemon() -> FakeDaemon:
    return FakeDaemon([LLAMA])


@pytest.fixture
def pool() -> Generator[BodyBufferPool, None, None]:
    with BodyBufferPool() as buffers:
        yield buffers


@pytest.fixture
def client(daemon: FakeDaemon, pool: BodyBufferPool) -> RegistryClient:
    return build_client(daemon, pool)
