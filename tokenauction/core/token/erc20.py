"""
ERC-20 tokens for the local chain.

ERC20Token follows the OpenZeppelin behaviour bidders meet on mainnet:
failed transfers revert. FalseReturningToken models the older style of
token that reports failure by returning ``False`` and leaves state alone.
"""

from dataclasses import dataclass
from typing import Dict

from tokenauction.core.chain import (
    Contract,
    Event,
    RevertReason,
    external,
    only_owner,
    require,
    view,
)
from tokenauction.crypto import ZERO_ADDRESS, normalize_address
from tokenauction.utils.logger import get_logger
from tokenauction.utils.validation import validate_address, validate_amount

logger = get_logger("token")


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class Transfer(Event):
    SIGNATURE = "Transfer(address,address,uint256)"
    sender: str
    recipient: str
    value: int


@dataclass(frozen=True)
class Approval(Event):
    SIGNATURE = "Approval(address,address,uint256)"
    owner: str
    spender: str
    value: int


# =============================================================================
# ERC-20
# =============================================================================


def _checked_address(address, name: str) -> str:
    valid, error = validate_address(address, name)
    require(valid, RevertReason.INVALID_ADDRESS, error)
    return normalize_address(address)


def _checked_amount(amount) -> int:
    valid, error = validate_amount(amount)
    require(valid, RevertReason.INVALID_AMOUNT, error)
    return amount


class ERC20Token(Contract):
    """
    Mintable ERC-20 token. The deployer is the owner and receives the
    initial supply.
    """

    def __init__(self, chain, address: str, name: str, symbol: str, initial_supply: int, decimals: int = 18):
        super().__init__(chain, address)
        _checked_amount(initial_supply)

        self._name = name
        self._symbol = symbol
        self._decimals = decimals
        self._owner = self.msg_sender
        self._total_supply = 0
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[str, Dict[str, int]] = {}

        self._mint(self._owner, initial_supply)

    # =========================================================================
    # Views
    # =========================================================================

    @view
    def name(self) -> str:
        return self._name

    @view
    def symbol(self) -> str:
        return self._symbol

    @view
    def decimals(self) -> int:
        return self._decimals

    @view
    def owner(self) -> str:
        return self._owner

    @view
    def total_supply(self) -> int:
        return self._total_supply

    @view
    def balance_of(self, account: str) -> int:
        return self._balances.get(_checked_address(account, "account"), 0)

    @view
    def allowance(self, owner: str, spender: str) -> int:
        owner = _checked_address(owner, "owner")
        spender = _checked_address(spender, "spender")
        return self._allowances.get(owner, {}).get(spender, 0)

    # =========================================================================
    # Transfers
    # =========================================================================

    @external
    def transfer(self, recipient: str, amount: int) -> bool:
        self._transfer(self.msg_sender, _checked_address(recipient, "recipient"), _checked_amount(amount))
        return True

    @external
    def approve(self, spender: str, amount: int) -> bool:
        spender = _checked_address(spender, "spender")
        require(spender != ZERO_ADDRESS, RevertReason.INVALID_ADDRESS, "Approve to the zero address")
        self._allowances.setdefault(self.msg_sender, {})[spender] = _checked_amount(amount)
        self.emit(Approval(self.msg_sender, spender, amount))
        return True

    @external
    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        sender = _checked_address(sender, "sender")
        recipient = _checked_address(recipient, "recipient")
        _checked_amount(amount)
        self._spend_allowance(sender, self.msg_sender, amount)
        self._transfer(sender, recipient, amount)
        return True

    @external
    @only_owner
    def mint(self, to: str, amount: int) -> None:
        self._mint(_checked_address(to, "to"), _checked_amount(amount))

    # =========================================================================
    # Internals
    # =========================================================================

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        require(sender != ZERO_ADDRESS, RevertReason.INVALID_ADDRESS, "Transfer from the zero address")
        require(recipient != ZERO_ADDRESS, RevertReason.INVALID_ADDRESS, "Transfer to the zero address")
        balance = self._balances.get(sender, 0)
        require(balance >= amount, RevertReason.INSUFFICIENT_BALANCE, f"Balance {balance} < {amount}")

        self._balances[sender] = balance - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        self.emit(Transfer(sender, recipient, amount))

    def _spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        current = self._allowances.get(owner, {}).get(spender, 0)
        require(current >= amount, RevertReason.INSUFFICIENT_ALLOWANCE, f"Allowance {current} < {amount}")
        self._allowances.setdefault(owner, {})[spender] = current - amount

    def _mint(self, to: str, amount: int) -> None:
        require(to != ZERO_ADDRESS, RevertReason.INVALID_ADDRESS, "Mint to the zero address")
        self._total_supply += amount
        self._balances[to] = self._balances.get(to, 0) + amount
        self.emit(Transfer(ZERO_ADDRESS, to, amount))
        logger.debug(f"Minted {amount} {self._symbol} to {to}")

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_state(self) -> dict:
        return {
            "name": self._name,
            "symbol": self._symbol,
            "decimals": self._decimals,
            "owner": self._owner,
            "total_supply": self._total_supply,
            "balances": dict(self._balances),
            "allowances": {owner: dict(spenders) for owner, spenders in self._allowances.items()},
        }

    def load_state(self, state: dict) -> None:
        self._name = state["name"]
        self._symbol = state["symbol"]
        self._decimals = state["decimals"]
        self._owner = state["owner"]
        self._total_supply = state["total_supply"]
        self._balances = dict(state["balances"])
        self._allowances = {owner: dict(spenders) for owner, spenders in state["allowances"].items()}


class FalseReturningToken(ERC20Token):
    """
    Token that signals failed transfers by returning False instead of
    reverting. Nothing is moved when it returns False.
    """

    @external
    def transfer(self, recipient: str, amount: int) -> bool:
        if self._balances.get(self.msg_sender, 0) < amount:
            return False
        return super().transfer(recipient, amount)

    @external
    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        sender = _checked_address(sender, "sender")
        if self._allowances.get(sender, {}).get(self.msg_sender, 0) < amount:
            return False
        if self._balances.get(sender, 0) < amount:
            return False
        return super().transfer_from(sender, recipient, amount)
