"""
Shared fixtures: deterministic clock and ids, in-memory storage
"""
import pytest

from ledger.ids import FrozenClock, SequentialIdGenerator
from ledger.persistence import MemoryKeyValueStore
from ledger.portfolio import PortfolioManager


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def ids():
    return SequentialIdGenerator()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def manager(store, ids, clock):
    return PortfolioManager(store=store, id_generator=ids, clock=clock)
