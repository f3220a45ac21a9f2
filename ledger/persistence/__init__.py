"""
Ledger Persistence

Versioned JSON documents stored through pluggable key-value backends.

Usage:
    store = SQLiteKeyValueStore("./data/portfolio/portfolio.db")
    manager = PortfolioManager(store=store)
"""

from .kv import (
    KeyValueStore,
    MemoryKeyValueStore,
    FileKeyValueStore,
    SQLiteKeyValueStore,
)
from .schema import (
    SCHEMA_VERSION,
    PORTFOLIO_KEY,
    TRADES_KEY,
    SNAPSHOTS_KEY,
    CONFIG_KEY,
    migrate,
    decode_document,
    encode_document,
)
from .store import PortfolioPersistence
from .factory import create_store

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "SQLiteKeyValueStore",
    "SCHEMA_VERSION",
    "PORTFOLIO_KEY",
    "TRADES_KEY",
    "SNAPSHOTS_KEY",
    "CONFIG_KEY",
    "migrate",
    "decode_document",
    "encode_document",
    "PortfolioPersistence",
    "create_store",
]
