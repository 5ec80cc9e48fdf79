"""
Shared fixtures: a fresh simulated-time chain with a mock bidding token
and a TokenAuction deployed on it.
"""

import pytest

from tokenauction.core.auction import AuctionClient
from tokenauction.core.chain import Chain
from tokenauction.core.token import TokenClient
from tokenauction.crypto import generate_keypair

ONE_TOKEN = 10**18


@pytest.fixture
def chain():
    """In-memory chain with deterministic, simulated time."""
    return Chain()


@pytest.fixture
def owner():
    return generate_keypair().address


@pytest.fixture
def alice():
    return generate_keypair().address


@pytest.fixture
def bob():
    return generate_keypair().address


@pytest.fixture
def carol():
    return generate_keypair().address


@pytest.fixture
def token(chain, owner):
    """Mock Token (MTK) with 1,000,000 tokens minted to the owner."""
    return TokenClient.deploy(chain, owner, "Mock Token", "MTK", 1_000_000 * ONE_TOKEN)


@pytest.fixture
def auction(chain, owner, token):
    """TokenAuction owned by ``owner``, bidding in ``token``."""
    return AuctionClient.deploy(chain, owner, token.address, "QR Destination URL", "https://qrcoin.fun")


@pytest.fixture
def funded(token, auction, alice, bob, carol):
    """Alice, Bob and Carol each hold 1000 tokens and approved the auction for all of it."""
    for bidder in (alice, bob, carol):
        token.transfer(bidder, 1000 * ONE_TOKEN)
        token.as_account(bidder).approve(auction.address, 1000 * ONE_TOKEN)
    return token


@pytest.fixture
def advance_to(chain):
    """Move time so the next transaction executes at exactly ``timestamp``."""
    def _advance(timestamp: int):
        gap = timestamp - 1 - chain.block_timestamp
        if gap > 0:
            chain.increase_time(gap)
        assert chain.block_timestamp == timestamp - 1
    return _advance
