from __future__ import annotations

import os

import pytest

from identity_pool.core.ops_log import OpsLogger
from identity_pool.core.stores.memory import InMemoryStore

from .helpers.fakes import FakeClock, RecordingFatal


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore(poll_interval=0.05, wait_timeout=5)


@pytest.fixture
def ops_path(tmp_path):
    return os.path.join(str(tmp_path), "logs", "identity_pool.ops.jsonl")


@pytest.fixture
def ops(ops_path):
    return OpsLogger(path=ops_path)


@pytest.fixture
def fatal():
    return RecordingFatal()
