"""
Backend selection from settings
"""
import os
from loguru import logger

from shared.config.settings import LedgerSettings
from .kv import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore


def create_store(config: LedgerSettings) -> KeyValueStore:
    """
    Build the configured key-value backend

    Args:
        config: Ledger settings (storage_backend, data_dir)

    Returns:
        KeyValueStore instance
    """
    if config.storage_backend == "sqlite":
        return SQLiteKeyValueStore(os.path.join(config.data_dir, config.sqlite_filename))

    if config.storage_backend == "memory":
        logger.warning("Using in-memory storage; nothing will survive this process")
        return MemoryKeyValueStore()

    return FileKeyValueStore(config.data_dir)
