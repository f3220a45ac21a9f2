"""
Portfolio Persistence

Loads and saves the ledger's documents through a KeyValueStore.

Loading never fails: a missing document yields None, a corrupt one is
logged and also yields None so the caller starts from an empty store.

Saving is fire-and-forget: encoded documents are queued, and every
save attempts to flush the whole queue. A failed write is logged and
the document stays queued until a later save succeeds.
"""
from typing import Dict, List, Optional
from loguru import logger

from ..exceptions import PersistenceError, SchemaError
from ..models import LedgerModel
from .kv import KeyValueStore
from .schema import decode_document, encode_document


class PortfolioPersistence:
    """Document load/save with retrying flush"""

    def __init__(self, store: KeyValueStore):
        """
        Initialize persistence

        Args:
            store: Backend holding the documents
        """
        self.store = store
        self._pending: Dict[str, str] = {}

        logger.info(f"Initialized PortfolioPersistence: {type(store).__name__}")

    def load(self, key: str) -> Optional[LedgerModel]:
        """
        Load a document

        Returns:
            The validated, migrated document, or None when absent or unusable
        """
        try:
            text = self.store.get(key)
        except PersistenceError as e:
            logger.error(f"Failed to read {key}, starting empty: {e}")
            return None

        if text is None:
            logger.debug(f"No stored document for {key}")
            return None

        try:
            document = decode_document(key, text)
        except SchemaError as e:
            logger.error(f"Discarding corrupt document, starting empty: {e}")
            return None

        logger.debug(f"Loaded {key}")
        return document

    def save(self, key: str, document: LedgerModel) -> bool:
        """
        Queue a document and flush

        Returns:
            True if everything queued was written
        """
        self._pending[key] = encode_document(document)
        return self.flush()

    def flush(self) -> bool:
        """Write every queued document; failures stay queued"""

        for key in list(self._pending):
            try:
                self.store.set(key, self._pending[key])
            except Exception as e:
                logger.error(f"Failed to persist {key}, will retry on next write: {e}")
                continue

            del self._pending[key]

        return not self._pending

    @property
    def pending_keys(self) -> List[str]:
        return sorted(self._pending)
