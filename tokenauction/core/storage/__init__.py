"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Chain metadata and named deployments
- Contract storage
- Event logs and receipts
"""

from tokenauction.core.storage.sqlite_adapter import SQLiteAdapter, StaleChainError
from tokenauction.core.storage.chain_store import ChainStore

__all__ = ["SQLiteAdapter", "ChainStore", "StaleChainError"]
