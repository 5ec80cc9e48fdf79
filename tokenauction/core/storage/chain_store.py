import json
from pathlib import Path
from typing import List, Optional, Tuple

# Contract kinds register themselves on import
import tokenauction.core.auction  # noqa: F401
import tokenauction.core.token  # noqa: F401
from tokenauction.core.chain.events import LogEntry
from tokenauction.core.chain.runtime import Receipt
from tokenauction.core.storage.sqlite_adapter import CHAIN_META_KEY, SQLiteAdapter
from tokenauction.utils.logger import get_logger

logger = get_logger("storage.chain")

DEPLOYMENT_PREFIX = "deployment:"


class ChainStore:
    """
    Manages persistent storage for a local chain.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Chain metadata (height, timestamp, time offset, nonces)
    - Contract storage snapshots
    - Event logs and receipts
    - Named deployments (e.g. 'auction' -> address)
    """

    def __init__(self, data_dir: Path, db_name: str = "chain.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.debug(f"ChainStore initialized at {self.db_path}")

    # =========================================================================
    # Locking
    # =========================================================================

    def write_lock(self):
        """
        Exclusive write transaction. A Chain holds it from catching up with
        the stored head until its new block is persisted, so writers in
        different processes apply blocks one after another.
        """
        return self.adapter.transaction(write=True)

    def read_snapshot(self):
        """Consistent view of the store for loading."""
        return self.adapter.transaction(write=False)

    def stored_height(self) -> Optional[int]:
        return self.adapter.stored_height()

    # =========================================================================
    # Chain State
    # =========================================================================

    def load_meta(self) -> Optional[dict]:
        """Chain metadata, or None for a fresh store."""
        raw = self.adapter.get_chain_meta(CHAIN_META_KEY)
        return json.loads(raw) if raw else None

    def load_contracts(self) -> List[Tuple[str, str, dict]]:
        return self.adapter.get_all_contracts()

    def load_logs(self) -> List[LogEntry]:
        return [LogEntry.from_dict(row) for row in self.adapter.get_all_logs()]

    def load_receipts(self) -> List[Receipt]:
        return [Receipt.from_dict(data) for data in self.adapter.get_all_receipts()]

    def persist_block(self, chain, receipt=None):
        """
        Persist the chain's full state after a mined block.

        Raises:
            StaleChainError: if another writer extended the stored chain first
        """
        contracts = [(address, contract.KIND, contract.to_state()) for address, contract in chain.contracts.items()]
        logs = [log.to_dict() for log in receipt.logs] if receipt is not None else []
        self.adapter.persist_block(
            chain.meta(),
            contracts,
            logs,
            receipt.to_dict() if receipt is not None else None,
        )

    # =========================================================================
    # Deployments
    # =========================================================================

    def save_deployment(self, name: str, address: str):
        self.adapter.set_chain_meta(DEPLOYMENT_PREFIX + name, address)

    def get_deployment(self, name: str) -> Optional[str]:
        return self.adapter.get_chain_meta(DEPLOYMENT_PREFIX + name)

    def close(self):
        self.adapter.close()
