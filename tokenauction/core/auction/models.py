"""
Auction data model: bid tuples, finalized outcomes and events.
"""

from dataclasses import dataclass
from typing import NamedTuple

from tokenauction.core.chain import Event
from tokenauction.crypto import ZERO_ADDRESS


class Bid(NamedTuple):
    """Leading bid of an auction epoch."""
    bidder: str
    amount: int
    resource_value: str

    @property
    def is_empty(self) -> bool:
        return self.bidder == ZERO_ADDRESS


class AuctionResult(NamedTuple):
    """Outcome of a finalized epoch (the last-winner record)."""
    winner: str
    amount: int
    resource_value: str

    @property
    def has_winner(self) -> bool:
        return self.winner != ZERO_ADDRESS


EMPTY_BID = Bid(ZERO_ADDRESS, 0, "")
NO_RESULT = AuctionResult(ZERO_ADDRESS, 0, "")


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class BidPlaced(Event):
    SIGNATURE = "BidPlaced(uint256,address,uint256,string)"
    auction_id: int
    bidder: str
    amount: int
    resource_value: str


@dataclass(frozen=True)
class AuctionEnded(Event):
    SIGNATURE = "AuctionEnded(uint256,address,uint256,string)"
    auction_id: int
    winner: str
    amount: int
    resource_value: str


@dataclass(frozen=True)
class BiddingTokenUpdated(Event):
    SIGNATURE = "BiddingTokenUpdated(address,address)"
    previous_token: str
    new_token: str


@dataclass(frozen=True)
class AuctionDurationUpdated(Event):
    SIGNATURE = "AuctionDurationUpdated(uint256,uint256)"
    previous_duration: int
    new_duration: int


@dataclass(frozen=True)
class DefaultResourceValueUpdated(Event):
    SIGNATURE = "DefaultResourceValueUpdated(string,string)"
    previous_value: str
    new_value: str
