"""ERC-20 bidding tokens"""
from tokenauction.core.token.erc20 import (
    ERC20Token,
    FalseReturningToken,
    Transfer,
    Approval,
)
from tokenauction.core.token.client import TokenClient

__all__ = [
    "ERC20Token",
    "FalseReturningToken",
    "Transfer",
    "Approval",
    "TokenClient",
]
