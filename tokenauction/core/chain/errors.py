"""
Revert semantics for the local chain.

A ``Revert`` is the Python rendition of a Solidity ``require``/``revert``:
raising it inside a contract call unwinds every state change made in that
call frame. ``RevertReason`` tags let callers and tests tell failures apart
without parsing messages.
"""

from enum import Enum


class RevertReason(str, Enum):
    """Tagged reasons a call can revert with."""

    # Bidding
    ZERO_AMOUNT = "ZeroAmount"
    EMPTY_RESOURCE_VALUE = "EmptyResourceValue"
    BID_NOT_HIGH_ENOUGH = "BidNotHighEnough"
    AUCTION_ENDED = "AuctionEnded"

    # Finalization
    AUCTION_STILL_ACTIVE = "AuctionStillActive"

    # Administration / construction
    NOT_OWNER = "NotOwner"
    ZERO_ADDRESS = "ZeroAddress"
    ZERO_DURATION = "ZeroDuration"
    EMPTY_RESOURCE_NAME = "EmptyResourceName"
    EMPTY_DEFAULT_VALUE = "EmptyDefaultValue"

    # Custody
    INSUFFICIENT_ALLOWANCE = "InsufficientAllowance"
    TOKEN_PULL_FAILED = "TokenPullFailed"
    TOKEN_REFUND_FAILED = "TokenRefundFailed"
    REENTRANT_CALL = "ReentrantCall"

    # Token / runtime
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_ADDRESS = "InvalidAddress"
    INVALID_ARGUMENT = "InvalidArgument"
    NO_CONTRACT_CODE = "NoContractCode"
    UNKNOWN_METHOD = "UnknownMethod"


class Revert(Exception):
    """
    Aborts the current call frame.

    Attributes:
        reason: Tag identifying the failed check
        message: Human-readable detail
    """

    def __init__(self, reason: RevertReason, message: str = ""):
        self.reason = reason
        self.message = message or reason.value
        super().__init__(f"{reason.value}: {self.message}")


class TransactionFailed(Exception):
    """Raised by deploy helpers and typed clients when a transaction reverts."""

    def __init__(self, receipt):
        self.receipt = receipt
        super().__init__(
            f"{receipt.method} reverted with {receipt.revert_reason.value}: {receipt.revert_message}"
        )

    @property
    def reason(self) -> RevertReason:
        return self.receipt.revert_reason


def require(condition: bool, reason: RevertReason, message: str = "") -> None:
    """Revert with ``reason`` unless ``condition`` holds."""
    if not condition:
        raise Revert(reason, message)
