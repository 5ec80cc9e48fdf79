"""
Unit tests for SQLite persistence of the chain.
"""

import pytest

from tokenauction.core.auction import AuctionClient, AuctionResult, Bid
from tokenauction.core.chain import Chain, RevertReason
from tokenauction.core.storage import ChainStore, SQLiteAdapter, StaleChainError
from tokenauction.core.token import TokenClient
from tokenauction.crypto import generate_keypair

ONE = 10**18
DAY = 24 * 60 * 60


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "chain_data"
    path.mkdir()
    return path


@pytest.fixture
def accounts():
    return [generate_keypair().address for _ in range(3)]


def build_chain(data_dir, accounts):
    """Deploy token + auction, place two bids and finalize one epoch."""
    owner, alice, bob = accounts
    store = ChainStore(data_dir)
    chain = Chain(storage=store)

    token = TokenClient.deploy(chain, owner, "Mock Token", "MTK", 1_000_000 * ONE)
    auction = AuctionClient.deploy(chain, owner, token.address, "QR Destination URL", "https://qrcoin.fun")
    for bidder in (alice, bob):
        token.transfer(bidder, 1000 * ONE)
        token.as_account(bidder).approve(auction.address, 1000 * ONE)

    auction.as_account(alice).place_bid(100 * ONE, "https://alice.example")
    auction.as_account(bob).place_bid(150 * ONE, "https://bob.example")
    chain.increase_time(DAY)
    auction.as_account(alice).finalize_auction()
    auction.as_account(alice).place_bid(5 * ONE, "https://epoch-two.example")

    store.save_deployment("token", token.address)
    store.save_deployment("auction", auction.address)
    return chain, store, token, auction


class TestChainStore:
    """Tests for chain persistence across restarts."""

    def test_fresh_store_has_no_meta(self, data_dir):
        store = ChainStore(data_dir)
        assert store.load_meta() is None
        assert store.load_contracts() == []
        assert store.get_deployment("auction") is None

    def test_round_trip(self, data_dir, accounts):
        owner, alice, bob = accounts
        chain_a, store_a, token_a, auction_a = build_chain(data_dir, accounts)
        store_a.close()

        store_b = ChainStore(data_dir)
        chain_b = Chain(storage=store_b)
        token_b = TokenClient(chain_b, store_b.get_deployment("token"))
        auction_b = AuctionClient(chain_b, store_b.get_deployment("auction"))

        assert chain_b.block_number == chain_a.block_number
        assert chain_b.block_timestamp == chain_a.block_timestamp
        assert dict(chain_b.nonces) == dict(chain_a.nonces)
        assert len(chain_b.logs) == len(chain_a.logs)
        assert set(chain_b.receipts) == set(chain_a.receipts)

        # Balances above 2**63 survive
        assert token_b.total_supply() == 1_000_000 * ONE
        assert token_b.balance_of(owner) == token_a.balance_of(owner)
        assert token_b.balance_of(auction_b.address) == 155 * ONE
        assert token_b.allowance(alice, auction_b.address) == token_a.allowance(alice, auction_a.address)

        assert auction_b.current_auction_id() == 2
        assert auction_b.get_bid(1) == Bid(bob, 150 * ONE, "https://bob.example")
        assert auction_b.get_bid(2) == Bid(alice, 5 * ONE, "https://epoch-two.example")
        assert auction_b.get_last_auction_winner() == AuctionResult(bob, 150 * ONE, "https://bob.example")
        assert auction_b.owner() == owner
        assert auction_b.auction_start_time() == auction_a.auction_start_time()

        # Deploy receipts keep the created address
        deploys_a = {r.tx_hash: r.contract_address for r in chain_a.receipts.values() if r.method.startswith("deploy:")}
        deploys_b = {r.tx_hash: r.contract_address for r in chain_b.receipts.values() if r.method.startswith("deploy:")}
        assert deploys_b == deploys_a
        assert set(deploys_b.values()) == {token_a.address, auction_a.address}

    def test_reloaded_chain_keeps_working(self, data_dir, accounts):
        owner, alice, bob = accounts
        _, store_a, token_a, _ = build_chain(data_dir, accounts)
        store_a.close()

        chain_b = Chain(storage=ChainStore(data_dir))
        auction_b = AuctionClient(chain_b, ChainStore(data_dir).get_deployment("auction"))
        token_b = TokenClient(chain_b, token_a.address)

        auction_b.as_account(bob).place_bid(6 * ONE, "https://bob-again.example")

        # Alice's epoch-two escrow went back to her
        assert token_b.balance_of(alice) == 1000 * ONE
        assert token_b.balance_of(bob) == 844 * ONE
        assert auction_b.get_bid(2).bidder == bob

        # Ownership survives the reload
        receipt = chain_b.transact(alice, auction_b.address, "set_auction_duration", 10)
        assert receipt.revert_reason == RevertReason.NOT_OWNER

    def test_failed_receipt_persisted(self, data_dir, accounts):
        chain_a, store_a, _, auction_a = build_chain(data_dir, accounts)
        receipt = chain_a.transact(accounts[1], auction_a.address, "place_bid", 1, "too low")
        store_a.close()

        chain_b = Chain(storage=ChainStore(data_dir))
        reloaded = chain_b.get_receipt(receipt.tx_hash)

        assert reloaded is not None
        assert not reloaded.success
        assert reloaded.revert_reason == RevertReason.BID_NOT_HIGH_ENOUGH

    def test_logs_reload_in_order(self, data_dir, accounts):
        chain_a, store_a, _, auction_a = build_chain(data_dir, accounts)
        store_a.close()

        chain_b = Chain(storage=ChainStore(data_dir))
        events_a = [(log.block_number, log.log_index, log.event) for log in chain_a.logs]
        events_b = [(log.block_number, log.log_index, log.event) for log in chain_b.logs]

        assert events_b == events_a
        assert [log.event for log in chain_b.get_logs(auction_a.address)] == [
            "BidPlaced",
            "BidPlaced",
            "AuctionEnded",
            "BidPlaced",
        ]

    def test_deployments(self, data_dir):
        store = ChainStore(data_dir)
        address = generate_keypair().address
        store.save_deployment("auction", address)
        assert store.get_deployment("auction") == address


class TestSharedStore:
    """Several chains on one data directory, as with separate CLI processes."""

    def open_pair(self, data_dir, accounts):
        _, store, _, _ = build_chain(data_dir, accounts)
        auction = store.get_deployment("auction")
        store.close()
        return Chain(storage=ChainStore(data_dir)), Chain(storage=ChainStore(data_dir)), auction

    def test_writers_apply_blocks_in_sequence(self, data_dir, accounts):
        owner, alice, bob = accounts
        chain_1, chain_2, auction = self.open_pair(data_dir, accounts)
        height = chain_1.block_number
        assert chain_2.block_number == height

        AuctionClient(chain_1, auction, alice).place_bid(10 * ONE, "a")
        # chain_2 loaded before Alice's bid; 7 only beats the stale leader (5)
        receipt = chain_2.transact(bob, auction, "place_bid", 7 * ONE, "b")

        assert not receipt.success
        assert receipt.revert_reason == RevertReason.BID_NOT_HIGH_ENOUGH
        assert receipt.block_number == height + 2

        reloaded = Chain(storage=ChainStore(data_dir))
        assert reloaded.block_number == height + 2
        assert AuctionClient(reloaded, auction).get_bid(2) == Bid(alice, 10 * ONE, "a")
        placed = [
            (log.args["bidder"], log.args["amount"])
            for log in reloaded.get_logs(auction, "BidPlaced")
            if log.args["auction_id"] == 2
        ]
        assert placed == [(alice, 5 * ONE), (alice, 10 * ONE)]

    def test_second_writer_outbids_current_leader(self, data_dir, accounts):
        owner, alice, bob = accounts
        chain_1, chain_2, auction = self.open_pair(data_dir, accounts)

        AuctionClient(chain_1, auction, alice).place_bid(10 * ONE, "a")
        AuctionClient(chain_2, auction, bob).place_bid(12 * ONE, "b")

        token = TokenClient(chain_1, AuctionClient(chain_1, auction).bidding_token())
        # Alice's 10 was refunded by Bob's bid even though chain_2 never saw it locally
        assert token.balance_of(alice) == 1000 * ONE
        assert token.balance_of(auction) == 150 * ONE + 12 * ONE

    def test_deploys_from_both_writers_get_distinct_addresses(self, data_dir, accounts):
        owner, alice, bob = accounts
        chain_1, chain_2, auction = self.open_pair(data_dir, accounts)

        first = TokenClient.deploy(chain_1, owner, "First", "ONE", 10 * ONE)
        second = TokenClient.deploy(chain_2, owner, "Second", "TWO", 20 * ONE)
        assert first.address != second.address

        reloaded = Chain(storage=ChainStore(data_dir))
        assert TokenClient(reloaded, first.address).symbol() == "ONE"
        assert TokenClient(reloaded, second.address).symbol() == "TWO"
        deployed = [r.contract_address for r in reloaded.receipts.values() if r.method == "deploy:ERC20Token"]
        assert deployed[-2:] == [first.address, second.address]

    def test_views_follow_other_writers(self, data_dir, accounts):
        owner, alice, bob = accounts
        chain_1, chain_2, auction = self.open_pair(data_dir, accounts)
        reader = AuctionClient(chain_1, auction)
        assert reader.get_bid(2).bidder == alice

        AuctionClient(chain_2, auction, bob).place_bid(20 * ONE, "b")

        assert reader.get_bid(2) == Bid(bob, 20 * ONE, "b")
        assert chain_1.block_number == chain_2.block_number


class TestSQLiteAdapter:
    """Tests for the raw adapter."""

    def test_chain_meta(self, data_dir):
        adapter = SQLiteAdapter(data_dir / "test.db")
        adapter.set_chain_meta("key", "value")
        assert adapter.get_chain_meta("key") == "value"
        assert adapter.get_chain_meta("missing") is None

    def test_persist_block_replaces_contracts(self, data_dir):
        adapter = SQLiteAdapter(data_dir / "test.db")
        meta = {"block_number": 1, "block_timestamp": 10, "time_offset": 0, "nonces": {}}

        adapter.persist_block(meta, [("0x" + "01" * 20, "ERC20Token", {"balance": 2**200})], [], None)
        adapter.persist_block({**meta, "block_number": 2}, [("0x" + "02" * 20, "ERC20Token", {})], [], None)

        contracts = adapter.get_all_contracts()
        assert contracts == [("0x" + "02" * 20, "ERC20Token", {})]

    def test_creates_parent_directory(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "nested" / "dir" / "chain.db")
        assert (tmp_path / "nested" / "dir").is_dir()
        adapter.close()

    def test_persist_block_requires_parent_head(self, data_dir):
        adapter = SQLiteAdapter(data_dir / "test.db")
        meta = {"block_number": 1, "block_timestamp": 10, "time_offset": 0, "nonces": {}}
        adapter.persist_block(meta, [], [], None)

        with pytest.raises(StaleChainError):
            adapter.persist_block(meta, [("0x" + "03" * 20, "ERC20Token", {})], [], None)

        assert adapter.stored_height() == 1
        assert adapter.get_all_contracts() == []
