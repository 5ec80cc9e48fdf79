"""Local chain runtime: contracts, message calls, reverts and event logs"""
from tokenauction.core.chain.errors import Revert, RevertReason, TransactionFailed, require
from tokenauction.core.chain.events import Event, LogEntry
from tokenauction.core.chain.contract import (
    Contract,
    external,
    view,
    non_reentrant,
    only_owner,
)
from tokenauction.core.chain.runtime import Chain, Receipt, DEFAULT_GENESIS_TIMESTAMP
from tokenauction.core.chain.client import ContractClient

__all__ = [
    "Revert",
    "RevertReason",
    "TransactionFailed",
    "require",
    "Event",
    "LogEntry",
    "Contract",
    "external",
    "view",
    "non_reentrant",
    "only_owner",
    "Chain",
    "Receipt",
    "DEFAULT_GENESIS_TIMESTAMP",
    "ContractClient",
]
