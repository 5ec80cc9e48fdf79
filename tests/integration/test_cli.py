"""
CLI tests: each invocation reopens the persisted chain in --data-dir.
"""

import json

import pytest
from click.testing import CliRunner

from tokenauction.cli.main import cli
from tokenauction.crypto import to_checksum_address


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "tokenauction"


@pytest.fixture
def run(data_dir):
    runner = CliRunner()

    def _run(*args):
        return runner.invoke(cli, ["--data-dir", str(data_dir), *args])

    return _run


@pytest.fixture
def deployed(run, data_dir):
    """Owner, Alice and Bob accounts; token and auction deployed; bidders funded."""
    for name in ("owner", "alice", "bob"):
        assert run("account", "create", name).exit_code == 0

    result = run("deploy", "--from", "owner", "--duration", "3600")
    assert result.exit_code == 0, result.output

    for name in ("alice", "bob"):
        assert run("token", "mint", name, "500", "--from", "owner").exit_code == 0
    return run


def address_of(data_dir, name):
    return json.loads((data_dir / "accounts" / f"{name}.json").read_text())["address"]


class TestAccounts:
    """Tests for local account commands."""

    def test_create_and_list(self, run, data_dir):
        result = run("account", "create", "alice")
        assert result.exit_code == 0
        assert "Account created: alice" in result.output

        address = address_of(data_dir, "alice")
        listing = run("account", "list")
        assert f"alice: {to_checksum_address(address)}" in listing.output

    def test_account_file_has_no_private_key(self, run, data_dir):
        run("account", "create", "alice")
        data = json.loads((data_dir / "accounts" / "alice.json").read_text())
        assert set(data) == {"name", "address", "public_key"}

    def test_duplicate_account_rejected(self, run):
        run("account", "create", "alice")
        result = run("account", "create", "alice")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_empty_list(self, run):
        assert "No accounts found." in run("account", "list").output


class TestDeploy:
    """Tests for deployment."""

    def test_status_before_deploy(self, run):
        result = run("status")
        assert result.exit_code == 1
        assert "No auction deployed" in result.output

    def test_deploy_output(self, deployed):
        result = deployed("status")
        assert result.exit_code == 0, result.output
        assert "Auction #1: QR Destination URL" in result.output
        assert "Highest bid: none" in result.output
        assert "Default value: https://qrcoin.fun" in result.output

    def test_deploy_twice_rejected(self, deployed):
        result = deployed("deploy", "--from", "owner")
        assert result.exit_code == 1
        assert "already deployed" in result.output

    def test_deploy_rejects_invalid_duration(self, run):
        run("account", "create", "owner")
        result = run("deploy", "--from", "owner", "--duration", "0")
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_deploy_unknown_account(self, run):
        result = run("deploy", "--from", "nobody")
        assert result.exit_code == 1
        assert "Account 'nobody' not found" in result.output


class TestAuctionFlow:
    """Tests for bidding and finalizing through the CLI."""

    def test_bid_status_finalize_winner(self, deployed, data_dir):
        run = deployed
        alice = to_checksum_address(address_of(data_dir, "alice"))

        result = run("bid", "100", "https://alice.example", "--from", "alice", "--approve")
        assert result.exit_code == 0, result.output
        assert "Bid placed on auction #1: 100 MTK" in result.output

        status = run("status").output
        assert "Highest bid: 100 MTK" in status
        assert f"Bidder: {alice}" in status
        assert "Status: active" in status

        result = run("finalize", "--from", "bob")
        assert result.exit_code == 1
        assert "AuctionStillActive" in result.output

        assert run("time", "advance", "3600").exit_code == 0
        result = run("finalize", "--from", "bob")
        assert result.exit_code == 0, result.output
        assert "Auction #1 finalized" in result.output

        winner = run("winner").output
        assert f"Winner: {alice}" in winner
        assert "Amount: 100" in winner
        assert "Value: https://alice.example" in winner

        assert "Balance: 400 MTK" in run("token", "balance", "alice").output
        assert "Auction #2:" in run("status").output

    def test_underbid_rejected(self, deployed):
        run = deployed
        run("bid", "100", "https://alice.example", "--from", "alice", "--approve")

        result = run("bid", "50", "https://bob.example", "--from", "bob", "--approve")

        assert result.exit_code == 1
        assert "BidNotHighEnough" in result.output

    def test_bid_without_approval(self, deployed):
        result = deployed("bid", "10", "https://alice.example", "--from", "alice")
        assert result.exit_code == 1
        assert "InsufficientAllowance" in result.output

    def test_approve_then_bid(self, deployed):
        run = deployed
        assert run("token", "approve", "25", "--from", "alice").exit_code == 0
        result = run("bid", "25", "https://alice.example", "--from", "alice")
        assert result.exit_code == 0, result.output

    def test_fractional_amounts(self, deployed):
        run = deployed
        result = run("bid", "1.5", "https://alice.example", "--from", "alice", "--approve")
        assert result.exit_code == 0, result.output
        assert "Highest bid: 1.5 MTK" in run("status").output

    def test_malformed_amount(self, deployed):
        result = deployed("bid", "lots", "https://alice.example", "--from", "alice")
        assert result.exit_code == 2

    def test_bid_info_and_events(self, deployed):
        run = deployed
        run("bid", "10", "https://alice.example", "--from", "alice", "--approve")
        run("bid", "20", "https://bob.example", "--from", "bob", "--approve")

        info = run("bid-info", "1").output
        assert "Amount: 20" in info
        assert "Value: https://bob.example" in info
        assert "no bids" in run("bid-info", "2").output

        events = run("events").output
        assert events.count("BidPlaced(") == 2

    def test_winner_before_any_finalize(self, deployed):
        assert "No auction finalized yet." in deployed("winner").output

    def test_winner_of_empty_auction(self, deployed):
        run = deployed
        assert run("time", "advance", "3600").exit_code == 0
        result = run("finalize", "--from", "bob")
        assert result.exit_code == 0, result.output

        winner = run("winner").output
        assert "Winner: none" in winner
        assert "Amount:" not in winner
        assert "Value: https://qrcoin.fun" in winner

    def test_data_dir_layout(self, deployed, data_dir):
        assert (data_dir / "logs").is_dir()
        assert (data_dir / "accounts" / "alice.json").is_file()
        assert list(data_dir.glob("*.db"))


class TestAdmin:
    """Tests for owner-only commands."""

    def test_owner_can_configure(self, deployed):
        run = deployed
        assert run("admin", "set-default", "https://fallback.example", "--from", "owner").exit_code == 0
        assert run("admin", "set-duration", "7200", "--from", "owner").exit_code == 0

        status = run("status").output
        assert "Default value: https://fallback.example" in status

        events = run("events").output
        assert "DefaultResourceValueUpdated(" in events
        assert "AuctionDurationUpdated(" in events

    def test_non_owner_rejected(self, deployed):
        result = deployed("admin", "set-default", "https://evil.example", "--from", "alice")
        assert result.exit_code == 1
        assert "NotOwner" in result.output

    def test_mint_is_owner_only(self, deployed):
        result = deployed("token", "mint", "alice", "1", "--from", "alice")
        assert result.exit_code == 1
        assert "NotOwner" in result.output


def test_time_advance_rejects_zero(run):
    result = run("time", "advance", "0")
    assert result.exit_code == 1


def test_demo(run):
    result = run("demo")
    assert result.exit_code == 0, result.output
    assert "Rejected: BidNotHighEnough" in result.output
    assert "Published default value: https://qrcoin.fun" in result.output
    assert "Demo complete!" in result.output
