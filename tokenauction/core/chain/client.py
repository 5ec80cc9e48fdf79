"""
ContractClient - typed access to a deployed contract.

Clients are what scripts and the CLI use instead of raw
``chain.transact``/``chain.call``: writes raise ``TransactionFailed`` on
revert, reads return plain Python values.
"""

from typing import Any, Optional

from tokenauction.core.chain.errors import TransactionFailed
from tokenauction.core.chain.runtime import Chain, Receipt
from tokenauction.crypto import normalize_address


class ContractClient:
    """
    Binds a chain, a contract address and (optionally) a sending account.
    """

    def __init__(self, chain: Chain, address: str, account: Optional[str] = None):
        self.chain = chain
        self.address = normalize_address(address)
        self.account = normalize_address(account) if account else None

    def as_account(self, account: str):
        """Same contract, different sender."""
        return type(self)(self.chain, self.address, account)

    def _transact(self, method: str, *args: Any) -> Receipt:
        if self.account is None:
            raise ValueError(f"{type(self).__name__} has no sending account for {method}")
        receipt = self.chain.transact(self.account, self.address, method, *args)
        if not receipt.success:
            raise TransactionFailed(receipt)
        return receipt

    def _call(self, method: str, *args: Any) -> Any:
        return self.chain.call(self.address, method, *args)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self.address}, account={self.account})"
