import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, List, Optional, Tuple

from tokenauction.utils.logger import get_logger

logger = get_logger("storage.sqlite")

SCHEMA = """
CREATE TABLE IF NOT EXISTS chain_state (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE TABLE IF NOT EXISTS contracts (
    address TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    state TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS logs (
    tx_hash TEXT NOT NULL,
    log_index INTEGER NOT NULL,
    block_number INTEGER NOT NULL,
    address TEXT NOT NULL,
    event TEXT NOT NULL,
    topic TEXT NOT NULL,
    args TEXT NOT NULL,
    PRIMARY KEY (tx_hash, log_index)
);
CREATE INDEX IF NOT EXISTS idx_logs_block ON logs(block_number);

CREATE TABLE IF NOT EXISTS receipts (
    tx_hash TEXT PRIMARY KEY,
    block_number INTEGER NOT NULL,
    data TEXT NOT NULL
);
"""

CHAIN_META_KEY = "chain"


class StaleChainError(Exception):
    """A block was built on a parent that is no longer the stored head."""


class SQLiteAdapter:
    """
    SQLite file behind a ChainStore.

    Tables:
    - chain_state: key/value metadata; the 'chain' row holds height,
      timestamp, time offset and nonces
    - contracts: one JSON document of storage per contract address
    - logs / receipts: append-only history

    JSON keeps Python's arbitrary-precision integers intact, so uint256
    balances never pass through SQLite's 64-bit INTEGER type.

    Connections run in autocommit mode; every multi-statement unit goes
    through ``transaction()``, so several processes can share one file.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()

        self._get_conn().executescript(SCHEMA)
        logger.debug(f"Opened chain database at {self.db_path}")

    def _get_conn(self) -> sqlite3.Connection:
        """One connection per thread."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            self._local.conn = conn
            self._local.depth = 0
        return conn

    @contextmanager
    def transaction(self, write: bool = True):
        """
        Run the block in one SQLite transaction.

        ``write=True`` takes the database write lock up front
        (BEGIN IMMEDIATE), so no other connection can commit until the
        block exits; a second writer waits up to the connection timeout.
        ``write=False`` gives a consistent read snapshot. Nested uses join
        the outermost transaction.
        """
        conn = self._get_conn()
        if self._local.depth:
            self._local.depth += 1
            try:
                yield conn
            finally:
                self._local.depth -= 1
            return

        conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
        self._local.depth = 1
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")
        finally:
            self._local.depth = 0

    # =========================================================================
    # Metadata
    # =========================================================================

    def set_chain_meta(self, key: str, value: str):
        with self.transaction() as conn:
            conn.execute("INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)", (key, value))

    def get_chain_meta(self, key: str) -> Optional[str]:
        row = self._get_conn().execute("SELECT value FROM chain_state WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def stored_height(self) -> Optional[int]:
        """Block number of the stored head, or None for an empty store."""
        raw = self.get_chain_meta(CHAIN_META_KEY)
        return json.loads(raw)["block_number"] if raw else None

    # =========================================================================
    # Contract Operations
    # =========================================================================

    def get_all_contracts(self) -> List[Tuple[str, str, Any]]:
        """Get all (address, kind, state)."""
        cursor = self._get_conn().execute("SELECT address, kind, state FROM contracts ORDER BY address")
        return [(row["address"], row["kind"], json.loads(row["state"])) for row in cursor]

    # =========================================================================
    # Log & Receipt Operations
    # =========================================================================

    def get_all_logs(self) -> List[dict]:
        """Get all logs in emission order."""
        cursor = self._get_conn().execute("SELECT * FROM logs ORDER BY block_number ASC, log_index ASC")
        return [
            {
                "tx_hash": row["tx_hash"],
                "log_index": row["log_index"],
                "block_number": row["block_number"],
                "address": row["address"],
                "event": row["event"],
                "topic": row["topic"],
                "args": json.loads(row["args"]),
            }
            for row in cursor
        ]

    def get_all_receipts(self) -> List[dict]:
        cursor = self._get_conn().execute("SELECT data FROM receipts ORDER BY block_number ASC")
        return [json.loads(row["data"]) for row in cursor]

    # =========================================================================
    # Block Persistence
    # =========================================================================

    def persist_block(
        self,
        meta: dict,
        contracts: List[Tuple[str, str, dict]],
        logs: List[dict],
        receipt: Optional[dict],
    ):
        """
        Atomically persist the chain after a block.

        Args:
            meta: Chain metadata (stored under the 'chain' key)
            contracts: List of (address, kind, state) for every contract
            logs: New log entries committed in the block
            receipt: Receipt of the block's transaction, if any

        Raises:
            StaleChainError: if the stored head is not the block's parent
        """
        with self.transaction() as conn:
            head = self.stored_height()
            if head is not None and head != meta["block_number"] - 1:
                raise StaleChainError(
                    f"Block {meta['block_number']} does not extend stored head {head}"
                )

            conn.execute(
                "INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)",
                (CHAIN_META_KEY, json.dumps(meta)),
            )

            # Full contract storage (replaces rolled-back or stale rows)
            conn.execute("DELETE FROM contracts")
            conn.executemany(
                "INSERT INTO contracts (address, kind, state) VALUES (?, ?, ?)",
                [(address, kind, json.dumps(state)) for address, kind, state in contracts],
            )

            conn.executemany(
                "INSERT INTO logs (tx_hash, log_index, block_number, address, event, topic, args) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        log["tx_hash"], log["log_index"], log["block_number"],
                        log["address"], log["event"], log["topic"], json.dumps(log["args"]),
                    )
                    for log in logs
                ],
            )

            if receipt is not None:
                conn.execute(
                    "INSERT INTO receipts (tx_hash, block_number, data) VALUES (?, ?, ?)",
                    (receipt["tx_hash"], receipt["block_number"], json.dumps(receipt)),
                )

    def close(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
