"""
Ledger exceptions

Only persistence problems are exceptions. Expected business outcomes
(validation failures, unknown ids, insufficient funds) are reported as
None/False return values by the ledger components.
"""


class LedgerError(Exception):
    """Base class for ledger errors"""


class PersistenceError(LedgerError):
    """A stored document could not be read or written"""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"{key}: {message}")


class SchemaError(PersistenceError):
    """A stored document is unparseable or does not match its schema"""
