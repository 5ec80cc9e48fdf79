"""
TokenAuction

A local-chain implementation of a rolling, single-resource ascending
auction paid in an ERC-20 token:
- In-process EVM-style chain with reverts, event logs and block time
- Mintable ERC-20 bidding tokens
- The TokenAuction engine (bid escrow, refunds, epoch finalization)
- SQLite persistence and a command line interface
"""

__version__ = "0.1.0"
