"""
AuctionClient - typed call surface of a deployed TokenAuction.

This is how the CLI (and any script or UI glue) talks to the engine:
writes return receipts and raise ``TransactionFailed`` on revert, reads
return the engine's own types.
"""

from dataclasses import dataclass
from typing import List

from tokenauction.core.auction.engine import TokenAuction
from tokenauction.core.auction.models import AuctionResult, Bid
from tokenauction.core.chain import Chain, ContractClient, LogEntry, Receipt


@dataclass
class AuctionStatus:
    """Point-in-time view of the open epoch, as a front end would poll it."""
    auction_id: int
    time_remaining: int
    end_time: int
    active: bool
    current_bid: Bid
    last_winner: AuctionResult
    bidding_token: str
    resource_name: str
    default_resource_value: str
    auction_duration: int


class AuctionClient(ContractClient):
    """Reads and writes a TokenAuction."""

    @classmethod
    def deploy(
        cls,
        chain: Chain,
        deployer: str,
        bidding_token: str,
        resource_name: str,
        default_resource_value: str,
    ) -> "AuctionClient":
        receipt = chain.deploy(deployer, TokenAuction, bidding_token, resource_name, default_resource_value)
        return cls(chain, receipt.contract_address, deployer)

    # =========================================================================
    # Writes
    # =========================================================================

    def place_bid(self, amount: int, resource_value: str) -> Receipt:
        return self._transact("place_bid", amount, resource_value)

    def finalize_auction(self) -> Receipt:
        return self._transact("finalize_auction")

    def set_bidding_token(self, new_token: str) -> Receipt:
        return self._transact("set_bidding_token", new_token)

    def set_auction_duration(self, seconds: int) -> Receipt:
        return self._transact("set_auction_duration", seconds)

    def set_default_resource_value(self, value: str) -> Receipt:
        return self._transact("set_default_resource_value", value)

    # =========================================================================
    # Reads
    # =========================================================================

    def current_auction_id(self) -> int:
        return self._call("current_auction_id")

    def get_bid(self, auction_id: int) -> Bid:
        return self._call("get_bid", auction_id)

    def get_time_remaining(self) -> int:
        return self._call("get_time_remaining")

    def get_last_auction_winner(self) -> AuctionResult:
        return self._call("get_last_auction_winner")

    def get_auction_end_time(self) -> int:
        return self._call("get_auction_end_time")

    def is_auction_active(self) -> bool:
        return self._call("is_auction_active")

    def auction_start_time(self) -> int:
        return self._call("auction_start_time")

    def bidding_token(self) -> str:
        return self._call("bidding_token")

    def resource_name(self) -> str:
        return self._call("resource_name")

    def default_resource_value(self) -> str:
        return self._call("default_resource_value")

    def auction_duration(self) -> int:
        return self._call("auction_duration")

    def owner(self) -> str:
        return self._call("owner")

    def status(self) -> AuctionStatus:
        auction_id = self.current_auction_id()
        return AuctionStatus(
            auction_id=auction_id,
            time_remaining=self.get_time_remaining(),
            end_time=self.get_auction_end_time(),
            active=self.is_auction_active(),
            current_bid=self.get_bid(auction_id),
            last_winner=self.get_last_auction_winner(),
            bidding_token=self.bidding_token(),
            resource_name=self.resource_name(),
            default_resource_value=self.default_resource_value(),
            auction_duration=self.auction_duration(),
        )

    # =========================================================================
    # Events
    # =========================================================================

    def bid_events(self, from_block: int = 0) -> List[LogEntry]:
        return self.chain.get_logs(self.address, "BidPlaced", from_block)

    def ended_events(self, from_block: int = 0) -> List[LogEntry]:
        return self.chain.get_logs(self.address, "AuctionEnded", from_block)
