"""Typed client for ERC-20 tokens on the local chain."""

from typing import Type

from tokenauction.core.chain import Chain, ContractClient, Receipt
from tokenauction.core.token.erc20 import ERC20Token


class TokenClient(ContractClient):
    """Reads and writes an ERC-20 token."""

    @classmethod
    def deploy(
        cls,
        chain: Chain,
        deployer: str,
        name: str,
        symbol: str,
        initial_supply: int,
        decimals: int = 18,
        token_cls: Type[ERC20Token] = ERC20Token,
    ) -> "TokenClient":
        receipt = chain.deploy(deployer, token_cls, name, symbol, initial_supply, decimals)
        return cls(chain, receipt.contract_address, deployer)

    # Reads

    def name(self) -> str:
        return self._call("name")

    def symbol(self) -> str:
        return self._call("symbol")

    def decimals(self) -> int:
        return self._call("decimals")

    def owner(self) -> str:
        return self._call("owner")

    def total_supply(self) -> int:
        return self._call("total_supply")

    def balance_of(self, account: str) -> int:
        return self._call("balance_of", account)

    def allowance(self, owner: str, spender: str) -> int:
        return self._call("allowance", owner, spender)

    # Writes

    def transfer(self, recipient: str, amount: int) -> Receipt:
        return self._transact("transfer", recipient, amount)

    def approve(self, spender: str, amount: int) -> Receipt:
        return self._transact("approve", spender, amount)

    def transfer_from(self, sender: str, recipient: str, amount: int) -> Receipt:
        return self._transact("transfer_from", sender, recipient, amount)

    def mint(self, to: str, amount: int) -> Receipt:
        return self._transact("mint", to, amount)
