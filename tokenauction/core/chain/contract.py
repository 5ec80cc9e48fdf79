"""
Contract - base class for code hosted on the local chain.

Conceptual Background:
---------------------
A contract is a plain Python object whose attributes are its storage.
The chain drives every interaction with it:

1. **Entry points** are methods marked ``@external`` (state-changing) or
   ``@view`` (read-only). Nothing else can be invoked through the chain.
2. **Context** (``msg_sender``, ``block_timestamp``) is read from the
   chain's current call frame, never passed as an argument.
3. **Outbound calls** go through ``self.call`` so the chain can isolate
   and roll back the callee's frame.
4. **Storage snapshots** are deep copies of the instance attributes, which
   is what makes revert-with-rollback possible.

Modifiers:
---------
``non_reentrant`` and ``only_owner`` mirror the usual Solidity modifiers.
"""

import copy
import functools
from typing import Any, ClassVar, Dict, Type

from tokenauction.core.chain.errors import RevertReason, require

# kind -> class, for rebuilding contracts from persisted state
CONTRACT_TYPES: Dict[str, Type["Contract"]] = {}


# =============================================================================
# Entry point markers and modifiers
# =============================================================================


def external(fn):
    """Mark a method as a state-changing entry point."""
    fn.__external__ = True
    return fn


def view(fn):
    """Mark a method as a read-only entry point."""
    fn.__external__ = True
    fn.__view__ = True
    return fn


def non_reentrant(fn):
    """
    Reject calls that re-enter any guarded method of the same contract
    while a guarded method is still executing.
    """
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        require(not self._entered, RevertReason.REENTRANT_CALL, f"Reentrant call to {fn.__name__}")
        self._entered = True
        try:
            return fn(self, *args, **kwargs)
        finally:
            self._entered = False
    return wrapper


def only_owner(fn):
    """Restrict a method to the contract's ``_owner``."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        require(self.msg_sender == self._owner, RevertReason.NOT_OWNER, "Caller is not the owner")
        return fn(self, *args, **kwargs)
    return wrapper


def is_entry_point(contract: "Contract", method: str) -> bool:
    if method.startswith("_"):
        return False
    fn = getattr(type(contract), method, None)
    return callable(fn) and getattr(fn, "__external__", False)


def is_view(contract: "Contract", method: str) -> bool:
    fn = getattr(type(contract), method, None)
    return getattr(fn, "__view__", False)


# =============================================================================
# Contract
# =============================================================================


class Contract:
    """
    Base class for chain-hosted contracts.

    Attributes:
        chain: The hosting chain (not part of storage)
        address: Contract address
    """

    KIND: ClassVar[str] = "Contract"

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.KIND = cls.__name__
        CONTRACT_TYPES[cls.KIND] = cls

    def __init__(self, chain, address: str):
        self.chain = chain
        self.address = address
        self._entered = False

    # =========================================================================
    # Call context
    # =========================================================================

    @property
    def msg_sender(self) -> str:
        return self.chain.msg_sender

    @property
    def block_timestamp(self) -> int:
        return self.chain.block_timestamp

    def call(self, target: str, method: str, *args: Any) -> Any:
        """Message-call another contract with this contract as sender."""
        return self.chain.message_call(self.address, target, method, *args)

    def emit(self, event) -> None:
        self.chain.record_log(self.address, event)

    # =========================================================================
    # Storage
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of this contract's storage."""
        return copy.deepcopy({k: v for k, v in vars(self).items() if k != "chain"})

    def restore(self, state: Dict[str, Any]) -> None:
        """Replace storage with a previously taken snapshot."""
        chain = self.chain
        self.__dict__.clear()
        self.__dict__.update(copy.deepcopy(state))
        self.chain = chain

    def to_state(self) -> Dict[str, Any]:
        """JSON-serialisable storage, for persistence."""
        raise NotImplementedError

    def load_state(self, state: Dict[str, Any]) -> None:
        """Inverse of ``to_state``."""
        raise NotImplementedError

    @classmethod
    def from_state(cls, chain, address: str, state: Dict[str, Any]) -> "Contract":
        """Rebuild a contract from persisted storage without re-running its constructor."""
        contract = cls.__new__(cls)
        Contract.__init__(contract, chain, address)
        contract.load_state(state)
        return contract

    def __repr__(self) -> str:
        return f"{self.KIND}({self.address})"


def contract_type(kind: str) -> Type[Contract]:
    """Look up a contract class by its kind name."""
    if kind not in CONTRACT_TYPES:
        raise ValueError(f"Unknown contract kind: {kind}")
    return CONTRACT_TYPES[kind]
