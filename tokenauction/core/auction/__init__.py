"""Ascending ERC-20 auction engine"""
from tokenauction.core.auction.models import (
    Bid,
    AuctionResult,
    EMPTY_BID,
    NO_RESULT,
    BidPlaced,
    AuctionEnded,
    BiddingTokenUpdated,
    AuctionDurationUpdated,
    DefaultResourceValueUpdated,
)
from tokenauction.core.auction.engine import TokenAuction, DEFAULT_AUCTION_DURATION
from tokenauction.core.auction.client import AuctionClient, AuctionStatus

__all__ = [
    "Bid",
    "AuctionResult",
    "EMPTY_BID",
    "NO_RESULT",
    "BidPlaced",
    "AuctionEnded",
    "BiddingTokenUpdated",
    "AuctionDurationUpdated",
    "DefaultResourceValueUpdated",
    "TokenAuction",
    "DEFAULT_AUCTION_DURATION",
    "AuctionClient",
    "AuctionStatus",
]
