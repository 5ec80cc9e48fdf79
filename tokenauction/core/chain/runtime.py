"""
Chain - serialized transaction execution for TokenAuction contracts.

Conceptual Background:
---------------------
The Chain is a minimal, deterministic stand-in for an EVM node running
in auto-mine mode (the Hardhat local network):

1. **Blocks**: every transaction is mined in its own block. A block's
   timestamp is strictly greater than its parent's.
2. **Transactions**: execute one at a time, to completion. There is no
   interleaving between transactions.
3. **Message calls**: contracts call each other through ``message_call``.
   Each call runs in its own frame with its own ``msg_sender``.
4. **Reverts**: a ``Revert`` raised in a frame restores every contract's
   storage and drops every log emitted since the frame began, then
   propagates to the caller, which may catch it. A revert that reaches the
   top of a transaction yields a failed receipt.

Time:
----
Without a clock, block timestamps advance by one second per block and
``increase_time`` jumps ahead explicitly (deterministic, used in tests).
With a clock, the next block's timestamp is the later of ``parent + 1``
and ``clock() + time_offset``, and read-only calls see that pending
timestamp rather than the last mined one.

Shared storage:
--------------
With a ChainStore, each block is produced under the store's write lock:
the chain first catches up with any blocks another process persisted,
then executes, then persists. Blocks from different processes therefore
form one sequence.
"""

from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from tokenauction.core.chain.contract import Contract, contract_type, is_entry_point, is_view
from tokenauction.core.chain.errors import Revert, RevertReason, TransactionFailed
from tokenauction.core.chain.events import Event, LogEntry
from tokenauction.crypto import (
    ZERO_ADDRESS,
    bytes_to_hex,
    contract_address,
    is_valid_address,
    keccak256,
    normalize_address,
)
from tokenauction.utils.logger import get_logger

logger = get_logger("chain")

# 2023-11-14T22:13:20Z
DEFAULT_GENESIS_TIMESTAMP = 1_700_000_000


# =============================================================================
# Receipts
# =============================================================================


@dataclass
class Receipt:
    """
    Outcome of a mined transaction.

    A reverted transaction is still mined: it has a receipt, consumed the
    sender's nonce, and advanced the block number, but changed no state.
    """
    tx_hash: str
    block_number: int
    timestamp: int
    sender: str
    to: Optional[str]
    method: str
    success: bool
    revert_reason: Optional[RevertReason] = None
    revert_message: str = ""
    return_value: Any = None
    logs: List[LogEntry] = field(default_factory=list)
    contract_address: Optional[str] = None

    def events(self, name: str) -> List[LogEntry]:
        """Logs of a given event name emitted by this transaction."""
        return [log for log in self.logs if log.event == name]

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "sender": self.sender,
            "to": self.to,
            "method": self.method,
            "success": self.success,
            "revert_reason": self.revert_reason.value if self.revert_reason else None,
            "revert_message": self.revert_message,
            "return_value": self.return_value,
            "logs": [log.to_dict() for log in self.logs],
            "contract_address": self.contract_address,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Receipt":
        reason = data.get("revert_reason")
        return cls(
            tx_hash=data["tx_hash"],
            block_number=data["block_number"],
            timestamp=data["timestamp"],
            sender=data["sender"],
            to=data["to"],
            method=data["method"],
            success=data["success"],
            revert_reason=RevertReason(reason) if reason else None,
            revert_message=data.get("revert_message", ""),
            return_value=data.get("return_value"),
            logs=[LogEntry.from_dict(log) for log in data.get("logs", [])],
            contract_address=data.get("contract_address"),
        )


@dataclass
class _Frame:
    sender: str
    target: str
    static: bool = False


# =============================================================================
# Chain
# =============================================================================


class Chain:
    """
    Local chain hosting contracts and executing transactions serially.

    Attributes:
        contracts: Mapping of address to deployed contract
        nonces: Per-sender transaction count
        logs: All committed event logs, in order
        receipts: Receipts by transaction hash
        block_number: Latest block number
        block_timestamp: Timestamp of the latest block, or of the block
            being executed while a transaction is in progress
    """

    def __init__(
        self,
        genesis_timestamp: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
        storage=None,
    ):
        """
        Initialize the chain.

        Args:
            genesis_timestamp: Timestamp of block 0. Defaults to the clock,
                or a fixed timestamp when no clock is given.
            clock: Wall-clock source (e.g. ``time.time``). None = simulated time.
            storage: ChainStore for persistence. None = in-memory only.
        """
        self.clock = clock
        if genesis_timestamp is None:
            genesis_timestamp = int(clock()) if clock else DEFAULT_GENESIS_TIMESTAMP

        self.block_number = 0
        self.block_timestamp = genesis_timestamp
        self.time_offset = 0

        self.contracts: Dict[str, Contract] = {}
        self.nonces: Dict[str, int] = defaultdict(int)
        self.logs: List[LogEntry] = []
        self.receipts: Dict[str, Receipt] = {}

        # Execution state (only meaningful inside a transaction)
        self._frames: List[_Frame] = []
        self._pending_logs: List[LogEntry] = []
        self._tx_hash: Optional[str] = None

        self.storage = storage
        if storage:
            self._load_from_storage()

    # =========================================================================
    # Call Context
    # =========================================================================

    @property
    def msg_sender(self) -> str:
        """Sender of the innermost active call frame."""
        if not self._frames:
            raise RuntimeError("msg_sender read outside of a call frame")
        return self._frames[-1].sender

    @property
    def in_transaction(self) -> bool:
        return self._tx_hash is not None

    # =========================================================================
    # Time & Blocks
    # =========================================================================

    def _next_timestamp(self) -> int:
        timestamp = self.block_timestamp + 1
        if self.clock:
            timestamp = max(timestamp, int(self.clock()) + self.time_offset)
        return timestamp

    def _mine(self, timestamp: int) -> None:
        self.block_number += 1
        self.block_timestamp = timestamp
        logger.debug(f"Mined block {self.block_number} at {timestamp}")

    def mine(self) -> int:
        """Mine an empty block. Returns the new block number."""
        self._ensure_idle()
        with self._exclusive():
            self._mine(self._next_timestamp())
            self._persist(receipt=None)
        return self.block_number

    def increase_time(self, seconds: int) -> int:
        """
        Move time forward and mine an empty block ``seconds`` later.

        Returns:
            Timestamp of the new block
        """
        self._ensure_idle()
        if not isinstance(seconds, int) or seconds <= 0:
            raise ValueError(f"seconds must be a positive int, got {seconds!r}")

        with self._exclusive():
            self.time_offset += seconds
            timestamp = self.block_timestamp + seconds
            if self.clock:
                timestamp = max(timestamp, int(self.clock()) + self.time_offset)
            self._mine(timestamp)
            self._persist(receipt=None)
        return timestamp

    # =========================================================================
    # Transactions
    # =========================================================================

    def deploy(self, sender: str, contract_cls: Type[Contract], *args: Any) -> Receipt:
        """
        Deploy a contract in its own transaction.

        Returns:
            Receipt with ``contract_address`` set

        Raises:
            TransactionFailed: if the constructor reverts
        """
        sender = normalize_address(sender)

        def construct(address: str):
            self.contracts[address] = contract_cls(self, address, *args)

        receipt = self._execute(sender, None, f"deploy:{contract_cls.__name__}", args, construct, deploy=True)
        if not receipt.success:
            raise TransactionFailed(receipt)

        logger.info(f"Deployed {contract_cls.__name__} at {receipt.contract_address} (block {receipt.block_number})")
        return receipt

    def transact(self, sender: str, to: str, method: str, *args: Any) -> Receipt:
        """
        Execute a state-changing call as a transaction.

        Never raises for a revert: the returned receipt carries
        ``success=False`` and the revert reason instead.
        """
        sender = normalize_address(sender)

        def run():
            return self.message_call(sender, to, method, *args)

        return self._execute(sender, to, method, args, run)

    def _execute(
        self,
        sender: str,
        to: Optional[str],
        method: str,
        args: Tuple,
        body: Callable[..., Any],
        deploy: bool = False,
    ) -> Receipt:
        self._ensure_idle()
        with self._exclusive():
            self._mine(self._next_timestamp())

            nonce = self.nonces[sender]
            self.nonces[sender] += 1
            # After the sync, so the address follows the stored nonce
            deploy_to = contract_address(sender, nonce) if deploy else None
            tx_hash = self._compute_tx_hash(sender, to, method, args, nonce)

            self._tx_hash = tx_hash
            self._pending_logs = []
            receipt = Receipt(
                tx_hash=tx_hash,
                block_number=self.block_number,
                timestamp=self.block_timestamp,
                sender=sender,
                to=normalize_address(to) if to and is_valid_address(to) else to,
                method=method,
                success=False,
            )

            try:
                if deploy_to is not None:
                    receipt.return_value = self._run_frame(sender, deploy_to, lambda: body(deploy_to))
                else:
                    receipt.return_value = body()
            except Revert as exc:
                receipt.revert_reason = exc.reason
                receipt.revert_message = exc.message
                logger.warning(f"Tx {tx_hash[:10]}... {method} reverted: {exc}")
            else:
                receipt.success = True
                receipt.contract_address = deploy_to
                receipt.logs = list(self._pending_logs)
                self.logs.extend(self._pending_logs)
            finally:
                self._pending_logs = []
                self._tx_hash = None

            self.receipts[tx_hash] = receipt
            self._persist(receipt)

        if receipt.success:
            events = ", ".join(log.event for log in receipt.logs) or "no events"
            logger.info(f"Tx {tx_hash[:10]}... {method} committed in block {receipt.block_number} ({events})")
        return receipt

    def _compute_tx_hash(self, sender: str, to: Optional[str], method: str, args: Tuple, nonce: int) -> str:
        preimage = f"{sender}|{to}|{method}|{args!r}|{nonce}|{self.block_number}".encode("utf-8")
        return bytes_to_hex(keccak256(preimage))

    def _ensure_idle(self) -> None:
        if self.in_transaction:
            raise RuntimeError("Cannot start a transaction or mine while another is executing")

    # =========================================================================
    # Message Calls
    # =========================================================================

    def message_call(self, sender: str, target: str, method: str, *args: Any) -> Any:
        """
        Invoke an entry point of the contract at ``target``.

        Called for the top-level call of a transaction and for every
        contract-to-contract call. Reverts roll back this frame only.
        """
        contract = self._resolve(target, method)
        if self._frames and self._frames[-1].static and not is_view(contract, method):
            raise Revert(RevertReason.UNKNOWN_METHOD, f"State-changing call to {method} inside a view")
        return self._run_frame(sender, contract.address, lambda: getattr(contract, method)(*args))

    def call(self, to: str, method: str, *args: Any, sender: str = ZERO_ADDRESS) -> Any:
        """
        Read-only call evaluated against the latest state.

        With a clock, ``block_timestamp`` inside the call is the pending
        block's timestamp, i.e. what a transaction sent now would see.
        Any state touched during the call is discarded.

        Raises:
            Revert: if the called method reverts
        """
        self._ensure_idle()
        if self.storage:
            with self.storage.read_snapshot():
                self._sync()

        contract = self._resolve(to, method)
        if not is_view(contract, method):
            raise Revert(RevertReason.UNKNOWN_METHOD, f"{method} is not a view")

        mined_timestamp = self.block_timestamp
        if self.clock:
            self.block_timestamp = self._next_timestamp()

        snapshot = self._snapshot()
        self._frames.append(_Frame(sender=normalize_address(sender), target=contract.address, static=True))
        try:
            return getattr(contract, method)(*args)
        finally:
            self._frames.pop()
            self._restore(snapshot)
            self.block_timestamp = mined_timestamp

    def _resolve(self, target: str, method: str) -> Contract:
        if not is_valid_address(target):
            raise Revert(RevertReason.INVALID_ADDRESS, f"Invalid call target: {target!r}")
        contract = self.contracts.get(normalize_address(target))
        if contract is None:
            raise Revert(RevertReason.NO_CONTRACT_CODE, f"No contract at {target}")
        if not is_entry_point(contract, method):
            raise Revert(RevertReason.UNKNOWN_METHOD, f"{contract.KIND} has no entry point {method!r}")
        return contract

    def _run_frame(self, sender: str, target: str, body: Callable[[], Any]) -> Any:
        static = bool(self._frames) and self._frames[-1].static
        snapshot = self._snapshot()
        log_mark = len(self._pending_logs)
        self._frames.append(_Frame(sender=sender, target=target, static=static))
        try:
            return body()
        except Revert:
            self._restore(snapshot)
            del self._pending_logs[log_mark:]
            raise
        except TypeError as exc:
            # Wrong arity or argument types: the call cannot be decoded
            self._restore(snapshot)
            del self._pending_logs[log_mark:]
            raise Revert(RevertReason.INVALID_ARGUMENT, str(exc)) from exc
        except Exception:
            self._restore(snapshot)
            del self._pending_logs[log_mark:]
            raise
        finally:
            self._frames.pop()

    def _snapshot(self) -> Dict[str, Tuple[Contract, dict]]:
        return {address: (contract, contract.snapshot()) for address, contract in self.contracts.items()}

    def _restore(self, snapshot: Dict[str, Tuple[Contract, dict]]) -> None:
        # Contracts created after the snapshot are dropped
        self.contracts = {address: contract for address, (contract, _) in snapshot.items()}
        for contract, state in snapshot.values():
            contract.restore(state)

    # =========================================================================
    # Logs
    # =========================================================================

    def record_log(self, address: str, event: Event) -> None:
        """Record an event emitted by the contract at ``address``."""
        if not self.in_transaction:
            raise RuntimeError("Events can only be emitted inside a transaction")
        entry = LogEntry(
            block_number=self.block_number,
            tx_hash=self._tx_hash,
            log_index=len(self._pending_logs),
            address=address,
            event=event.name,
            topic=event.topic(),
            args=event.args(),
        )
        self._pending_logs.append(entry)

    def get_logs(
        self,
        address: Optional[str] = None,
        event: Optional[str] = None,
        from_block: int = 0,
    ) -> List[LogEntry]:
        """Committed logs, filtered by emitter, event name and block."""
        if address is not None:
            address = normalize_address(address)
        return [
            log for log in self.logs
            if (address is None or log.address == address)
            and (event is None or log.event == event)
            and log.block_number >= from_block
        ]

    def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        return self.receipts.get(tx_hash)

    def get_contract(self, address: str) -> Optional[Contract]:
        return self.contracts.get(normalize_address(address))

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_from_storage(self) -> None:
        """Replace in-memory state with the chain store's."""
        if not self.storage:
            return

        with self.storage.read_snapshot():
            meta = self.storage.load_meta()
            if meta is None:
                return

            self.block_number = meta["block_number"]
            self.block_timestamp = meta["block_timestamp"]
            self.time_offset = meta["time_offset"]
            self.nonces = defaultdict(int, meta["nonces"])

            self.contracts = {
                address: contract_type(kind).from_state(self, address, state)
                for address, kind, state in self.storage.load_contracts()
            }
            self.logs = self.storage.load_logs()
            self.receipts = {receipt.tx_hash: receipt for receipt in self.storage.load_receipts()}

        logger.info(f"Loaded chain: height={self.block_number}, contracts={len(self.contracts)}, logs={len(self.logs)}")

    def _sync(self) -> None:
        """Reload if another writer has moved the stored head."""
        height = self.storage.stored_height()
        if height is not None and height != self.block_number:
            logger.debug(f"Stored head is block {height}, local head {self.block_number}: reloading")
            self._load_from_storage()

    @contextmanager
    def _exclusive(self):
        """Hold the store's write lock for one block, starting from the stored head."""
        if not self.storage:
            yield
            return
        with self.storage.write_lock():
            self._sync()
            yield

    def _persist(self, receipt: Optional[Receipt]) -> None:
        if not self.storage:
            return
        self.storage.persist_block(self, receipt)

    def meta(self) -> dict:
        return {
            "block_number": self.block_number,
            "block_timestamp": self.block_timestamp,
            "time_offset": self.time_offset,
            "nonces": dict(self.nonces),
        }

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return f"Chain(height={self.block_number}, timestamp={self.block_timestamp}, contracts={len(self.contracts)})"

    def stats(self) -> dict:
        """Get chain statistics."""
        return {
            "block_number": self.block_number,
            "block_timestamp": self.block_timestamp,
            "contract_count": len(self.contracts),
            "log_count": len(self.logs),
            "receipt_count": len(self.receipts),
        }
