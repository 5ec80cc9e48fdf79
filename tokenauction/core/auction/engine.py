"""
TokenAuction - ascending ERC-20 auction that rolls over into a new epoch
every time it is finalized.

Lifecycle:
---------
Each epoch is identified by ``current_auction_id`` (starting at 1) and is:

1. **Open** while ``now < auction_start_time + auction_duration``.
   Bids must strictly exceed the current highest bid.
2. **Ended** once that window has elapsed. Bids are rejected, the epoch's
   data is still readable under its ID.
3. **Finalized** by anyone calling ``finalize_auction``: the outcome is
   recorded as the last winner, ``AuctionEnded`` is emitted and the next
   epoch opens at the current block time.

Nothing fires at expiry; the Open -> Ended transition is a computed
predicate on the block timestamp.

Custody:
-------
The engine holds exactly the leading bid of the open epoch (plus the
winning bids of finalized epochs, which stay in custody). A new bid pulls
the bidder's tokens first, then refunds the previous leader, then records
the new leader. Both transfers must succeed or the whole call reverts.
A bidder raising their own bid goes through the same refund + pull path.

Re-entrancy:
-----------
``place_bid`` and ``finalize_auction`` share one re-entrancy lock. The
token is called while the lock is held and before the new leader is
written, so a token calling back in sees the previous, consistent state
and is rejected if it tries to mutate anything.
"""

from typing import Dict

from tokenauction.core.auction.models import (
    AuctionDurationUpdated,
    AuctionEnded,
    AuctionResult,
    Bid,
    BidPlaced,
    BiddingTokenUpdated,
    DefaultResourceValueUpdated,
    EMPTY_BID,
    NO_RESULT,
)
from tokenauction.core.chain import (
    Contract,
    Revert,
    RevertReason,
    external,
    non_reentrant,
    only_owner,
    require,
    view,
)
from tokenauction.crypto import ZERO_ADDRESS, is_zero_address, normalize_address
from tokenauction.utils.logger import get_logger
from tokenauction.utils.validation import validate_address, validate_amount, validate_integer

logger = get_logger("engine")

DEFAULT_AUCTION_DURATION = 24 * 60 * 60  # one day


def _checked_string(value, name: str) -> str:
    require(isinstance(value, str), RevertReason.INVALID_ARGUMENT, f"{name} must be str")
    return value


class TokenAuction(Contract):
    """
    Ascending auction for a single published resource (e.g. a URL),
    paid in an ERC-20 bidding token.

    Storage:
        _owner: Deployer; the only account allowed to reconfigure
        _bidding_token: ERC-20 used for every transfer, read at call time
        _resource_name: Immutable label of what is being auctioned
        _default_resource_value: Published when an epoch ends without bids
        _auction_duration: Epoch length in seconds (> 0)
        _current_auction_id: ID of the open epoch
        _auction_start_time: Block timestamp the open epoch started at
        _bids: Leading bid per epoch ID; never-written IDs read as empty
        _last_winner: Outcome of the most recently finalized epoch
    """

    def __init__(self, chain, address: str, bidding_token: str, resource_name: str, default_resource_value: str):
        super().__init__(chain, address)

        valid, error = validate_address(bidding_token, "bidding_token")
        require(valid, RevertReason.INVALID_ADDRESS, error)
        require(not is_zero_address(bidding_token), RevertReason.ZERO_ADDRESS, "Bidding token cannot be the zero address")
        require(_checked_string(resource_name, "resource_name") != "", RevertReason.EMPTY_RESOURCE_NAME)
        require(
            _checked_string(default_resource_value, "default_resource_value") != "",
            RevertReason.EMPTY_DEFAULT_VALUE,
        )

        self._owner = self.msg_sender
        self._bidding_token = normalize_address(bidding_token)
        self._resource_name = resource_name
        self._default_resource_value = default_resource_value
        self._auction_duration = DEFAULT_AUCTION_DURATION

        self._current_auction_id = 1
        self._auction_start_time = self.block_timestamp
        self._bids: Dict[int, Bid] = {}
        self._last_winner = NO_RESULT

        logger.debug(
            f"TokenAuction for '{resource_name}' created: token={self._bidding_token}, "
            f"owner={self._owner}, start={self._auction_start_time}"
        )

    # =========================================================================
    # Bidding
    # =========================================================================

    @external
    @non_reentrant
    def place_bid(self, amount: int, resource_value: str) -> None:
        """
        Become the leading bidder of the open epoch.

        Reverts with ZERO_AMOUNT, EMPTY_RESOURCE_VALUE, AUCTION_ENDED,
        BID_NOT_HIGH_ENOUGH, INSUFFICIENT_ALLOWANCE, TOKEN_PULL_FAILED or
        TOKEN_REFUND_FAILED. A revert leaves every balance and the auction
        state exactly as before.
        """
        valid, error = validate_amount(amount)
        require(valid, RevertReason.INVALID_AMOUNT, error)
        require(amount > 0, RevertReason.ZERO_AMOUNT, "Bid amount must be greater than zero")
        require(
            _checked_string(resource_value, "resource_value") != "",
            RevertReason.EMPTY_RESOURCE_VALUE,
            "Resource value cannot be empty",
        )
        require(
            self.block_timestamp < self._auction_end_time(),
            RevertReason.AUCTION_ENDED,
            f"Auction {self._current_auction_id} has ended",
        )

        auction_id = self._current_auction_id
        previous = self._bids.get(auction_id, EMPTY_BID)
        require(
            amount > previous.amount,
            RevertReason.BID_NOT_HIGH_ENOUGH,
            f"Bid {amount} must exceed current highest bid {previous.amount}",
        )

        bidder = self.msg_sender
        self._pull(bidder, amount)
        if not previous.is_empty:
            self._refund(previous)

        self._bids[auction_id] = Bid(bidder, amount, resource_value)
        self.emit(BidPlaced(auction_id, bidder, amount, resource_value))

        logger.debug(f"Bid placed: auction={auction_id}, bidder={bidder[:10]}..., amount={amount}")

    def _pull(self, bidder: str, amount: int) -> None:
        """Move ``amount`` of the bidding token from ``bidder`` into custody."""
        token = self._bidding_token

        try:
            allowance = self.call(token, "allowance", bidder, self.address)
        except Revert as exc:
            raise Revert(RevertReason.TOKEN_PULL_FAILED, f"Allowance query failed: {exc.message}") from exc
        require(
            isinstance(allowance, int) and not isinstance(allowance, bool),
            RevertReason.TOKEN_PULL_FAILED,
            f"Allowance query returned {allowance!r}",
        )
        require(
            allowance >= amount,
            RevertReason.INSUFFICIENT_ALLOWANCE,
            f"Allowance {allowance} is below bid amount {amount}",
        )

        try:
            ok = self.call(token, "transfer_from", bidder, self.address, amount)
        except Revert as exc:
            raise Revert(RevertReason.TOKEN_PULL_FAILED, f"transfer_from reverted: {exc.message}") from exc
        require(bool(ok), RevertReason.TOKEN_PULL_FAILED, "transfer_from returned false")

    def _refund(self, previous: Bid) -> None:
        """Return an outbid leader's escrow, in the token configured now."""
        try:
            ok = self.call(self._bidding_token, "transfer", previous.bidder, previous.amount)
        except Revert as exc:
            raise Revert(RevertReason.TOKEN_REFUND_FAILED, f"Refund reverted: {exc.message}") from exc
        require(bool(ok), RevertReason.TOKEN_REFUND_FAILED, "Refund transfer returned false")

        logger.debug(f"Refunded {previous.amount} to {previous.bidder[:10]}...")

    # =========================================================================
    # Finalization
    # =========================================================================

    @external
    @non_reentrant
    def finalize_auction(self) -> AuctionResult:
        """
        Close the ended epoch and open the next one. Callable by anyone.

        Returns:
            The recorded outcome (the default resource value and the zero
            address when nobody bid)
        """
        end_time = self._auction_end_time()
        require(
            self.block_timestamp >= end_time,
            RevertReason.AUCTION_STILL_ACTIVE,
            f"Auction {self._current_auction_id} still active for {end_time - self.block_timestamp}s",
        )

        auction_id = self._current_auction_id
        bid = self._bids.get(auction_id, EMPTY_BID)
        if bid.is_empty:
            result = AuctionResult(ZERO_ADDRESS, 0, self._default_resource_value)
        else:
            result = AuctionResult(bid.bidder, bid.amount, bid.resource_value)

        self._last_winner = result
        self.emit(AuctionEnded(auction_id, result.winner, result.amount, result.resource_value))

        self._current_auction_id = auction_id + 1
        self._auction_start_time = self.block_timestamp

        logger.debug(
            f"Auction {auction_id} finalized: winner={result.winner[:10]}..., "
            f"amount={result.amount}, next auction={self._current_auction_id}"
        )
        return result

    def _auction_end_time(self) -> int:
        # Derived on every read so a duration change applies to the open epoch
        return self._auction_start_time + self._auction_duration

    # =========================================================================
    # Administration
    # =========================================================================

    @external
    @only_owner
    def set_bidding_token(self, new_token: str) -> None:
        """
        Switch the bidding token. Applies to every later transfer,
        including the refund of a bid escrowed in the previous token.
        """
        valid, error = validate_address(new_token, "new_token")
        require(valid, RevertReason.INVALID_ADDRESS, error)
        new_token = normalize_address(new_token)
        require(new_token != ZERO_ADDRESS, RevertReason.ZERO_ADDRESS, "Bidding token cannot be the zero address")

        previous = self._bidding_token
        self._bidding_token = new_token
        self.emit(BiddingTokenUpdated(previous, new_token))
        logger.debug(f"Bidding token changed: {previous} -> {new_token}")

    @external
    @only_owner
    def set_auction_duration(self, new_duration: int) -> None:
        """Change the epoch length; the open epoch's end moves immediately."""
        valid, error = validate_amount(new_duration, "new_duration")
        require(valid, RevertReason.INVALID_ARGUMENT, error)
        require(new_duration > 0, RevertReason.ZERO_DURATION, "Auction duration must be greater than zero")

        previous = self._auction_duration
        self._auction_duration = new_duration
        self.emit(AuctionDurationUpdated(previous, new_duration))
        logger.debug(f"Auction duration changed: {previous}s -> {new_duration}s")

    @external
    @only_owner
    def set_default_resource_value(self, new_value: str) -> None:
        require(
            _checked_string(new_value, "new_value") != "",
            RevertReason.EMPTY_DEFAULT_VALUE,
            "Default resource value cannot be empty",
        )

        previous = self._default_resource_value
        self._default_resource_value = new_value
        self.emit(DefaultResourceValueUpdated(previous, new_value))
        logger.debug(f"Default resource value changed: {previous!r} -> {new_value!r}")

    # =========================================================================
    # Views
    # =========================================================================

    @view
    def current_auction_id(self) -> int:
        return self._current_auction_id

    @view
    def get_bid(self, auction_id: int) -> Bid:
        valid, error = validate_integer(auction_id, "auction_id")
        require(valid, RevertReason.INVALID_ARGUMENT, error)
        return self._bids.get(auction_id, EMPTY_BID)

    @view
    def get_time_remaining(self) -> int:
        """Seconds until the open epoch stops accepting bids, never negative."""
        return max(0, self._auction_end_time() - self.block_timestamp)

    @view
    def get_last_auction_winner(self) -> AuctionResult:
        return self._last_winner

    @view
    def get_auction_end_time(self) -> int:
        return self._auction_end_time()

    @view
    def is_auction_active(self) -> bool:
        return self.block_timestamp < self._auction_end_time()

    @view
    def auction_start_time(self) -> int:
        return self._auction_start_time

    @view
    def bidding_token(self) -> str:
        return self._bidding_token

    @view
    def resource_name(self) -> str:
        return self._resource_name

    @view
    def default_resource_value(self) -> str:
        return self._default_resource_value

    @view
    def auction_duration(self) -> int:
        return self._auction_duration

    @view
    def owner(self) -> str:
        return self._owner

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_state(self) -> dict:
        return {
            "owner": self._owner,
            "bidding_token": self._bidding_token,
            "resource_name": self._resource_name,
            "default_resource_value": self._default_resource_value,
            "auction_duration": self._auction_duration,
            "current_auction_id": self._current_auction_id,
            "auction_start_time": self._auction_start_time,
            # JSON object keys are strings
            "bids": {str(auction_id): list(bid) for auction_id, bid in self._bids.items()},
            "last_winner": list(self._last_winner),
        }

    def load_state(self, state: dict) -> None:
        self._owner = state["owner"]
        self._bidding_token = state["bidding_token"]
        self._resource_name = state["resource_name"]
        self._default_resource_value = state["default_resource_value"]
        self._auction_duration = state["auction_duration"]
        self._current_auction_id = state["current_auction_id"]
        self._auction_start_time = state["auction_start_time"]
        self._bids = {int(auction_id): Bid(*bid) for auction_id, bid in state["bids"].items()}
        self._last_winner = AuctionResult(*state["last_winner"])
