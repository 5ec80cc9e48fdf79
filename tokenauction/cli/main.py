"""
TokenAuction CLI - Command Line Interface for the local auction chain

Main entry point for all CLI commands. State persists in the data
directory (SQLite chain database plus named accounts), so successive
invocations act on the same chain.
"""

import functools
import json
import time
from pathlib import Path
from typing import Optional

import click

from tokenauction import __version__
from tokenauction.core.chain import Revert, TransactionFailed
from tokenauction.crypto import ZERO_ADDRESS, is_valid_address, normalize_address, to_checksum_address
from tokenauction.utils.logger import get_logger, setup_logging
from tokenauction.utils.units import format_time_remaining, format_units, parse_units

logger = get_logger("cli")


def handle_reverts(fn):
    """Turn reverted transactions and bad input into a clean CLI error."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except TransactionFailed as exc:
            receipt = exc.receipt
            raise click.ClickException(
                f"Transaction reverted: {receipt.revert_reason.value} ({receipt.revert_message})"
            )
        except Revert as exc:
            raise click.ClickException(f"Call reverted: {exc.reason.value} ({exc.message})")
        except ValueError as exc:
            raise click.ClickException(str(exc))
    return wrapper


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default="~/.tokenauction", help="Data directory")
@click.option("--log-file", is_flag=True, help="Also write logs to <data-dir>/logs")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, data_dir, log_file):
    """TokenAuction - ascending ERC-20 auction on a local chain"""
    import logging

    from tokenauction.core.config import AuctionConfig

    data_dir = Path(data_dir).expanduser()
    config = AuctionConfig(data_dir=data_dir, log_dir=data_dir / "logs")
    config.ensure_dirs()

    ctx.ensure_object(dict)
    ctx.obj["config"] = config

    level = logging.DEBUG if debug else logging.WARNING
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=log_file)


# =============================================================================
# Helpers
# =============================================================================


def _open_chain(ctx):
    """Open the persistent chain once per invocation."""
    if "chain" not in ctx.obj:
        from tokenauction.core.chain import Chain
        from tokenauction.core.storage import ChainStore

        store = ChainStore(ctx.obj["config"].data_dir)
        ctx.call_on_close(store.close)
        ctx.obj["store"] = store
        ctx.obj["chain"] = Chain(clock=time.time, storage=store)
    return ctx.obj["chain"], ctx.obj["store"]


def _accounts_dir(ctx) -> Path:
    return ctx.obj["config"].data_dir / "accounts"


def _resolve_account(ctx, name_or_address: str) -> str:
    """Account name from ``account create``, or a raw 0x address."""
    if is_valid_address(name_or_address):
        return normalize_address(name_or_address)

    account_path = _accounts_dir(ctx) / f"{name_or_address}.json"
    if not account_path.exists():
        raise click.ClickException(
            f"Account '{name_or_address}' not found. Create with: tokenauction account create {name_or_address}"
        )
    return json.loads(account_path.read_text())["address"]


def _auction(ctx, account: Optional[str] = None):
    from tokenauction.core.auction import AuctionClient

    chain, store = _open_chain(ctx)
    address = store.get_deployment("auction")
    if address is None:
        raise click.ClickException("No auction deployed. Run: tokenauction deploy --from NAME")
    return AuctionClient(chain, address, _resolve_account(ctx, account) if account else None)


def _token(ctx, account: Optional[str] = None):
    """Client for the token the auction currently bids in."""
    from tokenauction.core.token import TokenClient

    chain, store = _open_chain(ctx)
    if store.get_deployment("auction"):
        address = _auction(ctx).bidding_token()
    else:
        address = store.get_deployment("token")
    if address is None:
        raise click.ClickException("No token deployed. Run: tokenauction deploy --from NAME")
    return TokenClient(chain, address, _resolve_account(ctx, account) if account else None)


def _amount(value: str, decimals: int) -> int:
    try:
        return parse_units(value, decimals)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="AMOUNT")


def _short(address: str) -> str:
    if address == ZERO_ADDRESS:
        return "(none)"
    return to_checksum_address(address)


# =============================================================================
# Account Commands
# =============================================================================


@cli.group()
def account():
    """Local account management commands"""
    pass


@account.command("create")
@click.argument("name")
@click.pass_context
def account_create(ctx, name):
    """Create a new named account"""
    from tokenauction.crypto import bytes_to_hex, generate_keypair

    account_path = _accounts_dir(ctx) / f"{name}.json"
    if account_path.exists():
        raise click.ClickException(f"Account '{name}' already exists")

    kp = generate_keypair()
    account_path.parent.mkdir(parents=True, exist_ok=True)
    account_data = {
        "name": name,
        "address": kp.address,
        "public_key": bytes_to_hex(kp.public_key),
    }
    account_path.write_text(json.dumps(account_data, indent=2))

    click.echo(f"✓ Account created: {name}")
    click.echo(f"  Address: {to_checksum_address(kp.address)}")
    click.echo(f"  Saved to: {account_path}")


@account.command("list")
@click.pass_context
def account_list(ctx):
    """List all accounts"""
    accounts_dir = _accounts_dir(ctx)
    account_files = sorted(accounts_dir.glob("*.json")) if accounts_dir.exists() else []
    if not account_files:
        click.echo("No accounts found.")
        return

    for account_file in account_files:
        data = json.loads(account_file.read_text())
        click.echo(f"  {data['name']}: {to_checksum_address(data['address'])}")


# =============================================================================
# Deployment
# =============================================================================


@cli.command("deploy")
@click.option("--from", "from_account", required=True, help="Deployer account (becomes the owner)")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="JSON config file")
@click.option("--token", "token_address", default=None, help="Existing bidding token address")
@click.option("--duration", type=int, default=None, help="Auction duration in seconds")
@click.option("--resource-name", default=None, help="Name of the auctioned resource")
@click.option("--default-value", default=None, help="Resource value published when nobody bids")
@click.pass_context
@handle_reverts
def deploy(ctx, from_account, config_path, token_address, duration, resource_name, default_value):
    """Deploy the bidding token (unless --token) and the auction"""
    from tokenauction.core.auction import DEFAULT_AUCTION_DURATION, AuctionClient
    from tokenauction.core.config import load_config
    from tokenauction.core.token import TokenClient

    base = ctx.obj["config"]
    config = load_config(
        config_path,
        data_dir=base.data_dir,
        log_dir=base.log_dir,
        bidding_token_address=token_address,
        auction_duration=duration,
        resource_name=resource_name,
        default_resource_value=default_value,
    )
    chain, store = _open_chain(ctx)
    deployer = _resolve_account(ctx, from_account)

    if store.get_deployment("auction"):
        raise click.ClickException(f"Auction already deployed at {store.get_deployment('auction')}")

    token_address = config.bidding_token_address
    if token_address is None:
        token = TokenClient.deploy(
            chain,
            deployer,
            config.token_name,
            config.token_symbol,
            config.token_initial_supply,
            config.token_decimals,
        )
        token_address = token.address
        store.save_deployment("token", token_address)
        click.echo(f"✓ Token deployed: {config.token_name} ({config.token_symbol})")
        click.echo(f"  Address: {to_checksum_address(token_address)}")

    auction = AuctionClient.deploy(
        chain, deployer, token_address, config.resource_name, config.default_resource_value
    )
    if config.auction_duration != DEFAULT_AUCTION_DURATION:
        auction.set_auction_duration(config.auction_duration)
    store.save_deployment("auction", auction.address)

    click.echo(f"✓ Auction deployed: {config.resource_name}")
    click.echo(f"  Address: {to_checksum_address(auction.address)}")
    click.echo(f"  Owner: {to_checksum_address(deployer)}")
    click.echo(f"  Duration: {config.auction_duration}s")


# =============================================================================
# Token Commands
# =============================================================================


@cli.group()
def token():
    """Bidding token commands"""
    pass


@token.command("mint")
@click.argument("to")
@click.argument("amount")
@click.option("--from", "from_account", required=True, help="Token owner account")
@click.pass_context
@handle_reverts
def token_mint(ctx, to, amount, from_account):
    """Mint AMOUNT whole tokens to TO (token owner only)"""
    client = _token(ctx, from_account)
    decimals = client.decimals()
    recipient = _resolve_account(ctx, to)
    client.mint(recipient, _amount(amount, decimals))
    click.echo(f"✓ Minted {amount} {client.symbol()} to {_short(recipient)}")


@token.command("approve")
@click.argument("amount")
@click.option("--from", "from_account", required=True, help="Approving account")
@click.option("--spender", default=None, help="Spender (defaults to the auction)")
@click.pass_context
@handle_reverts
def token_approve(ctx, amount, from_account, spender):
    """Approve AMOUNT whole tokens for the auction"""
    client = _token(ctx, from_account)
    spender = _resolve_account(ctx, spender) if spender else _auction(ctx).address
    client.approve(spender, _amount(amount, client.decimals()))
    click.echo(f"✓ Approved {amount} {client.symbol()} for {_short(spender)}")


@token.command("balance")
@click.argument("account_name")
@click.pass_context
@handle_reverts
def token_balance(ctx, account_name):
    """Show the bidding token balance of an account"""
    client = _token(ctx)
    address = _resolve_account(ctx, account_name)
    balance = client.balance_of(address)
    click.echo(f"Address: {to_checksum_address(address)}")
    click.echo(f"Balance: {format_units(balance, client.decimals())} {client.symbol()}")


# =============================================================================
# Auction Commands
# =============================================================================


@cli.command("bid")
@click.argument("amount")
@click.argument("value")
@click.option("--from", "from_account", required=True, help="Bidding account")
@click.option("--approve", "approve_first", is_flag=True, help="Approve the exact amount before bidding")
@click.pass_context
@handle_reverts
def bid(ctx, amount, value, from_account, approve_first):
    """Bid AMOUNT whole tokens to publish VALUE"""
    auction = _auction(ctx, from_account)
    token_client = _token(ctx, from_account)
    decimals = token_client.decimals()
    raw_amount = _amount(amount, decimals)

    if approve_first:
        token_client.approve(auction.address, raw_amount)

    receipt = auction.place_bid(raw_amount, value)
    auction_id = receipt.events("BidPlaced")[0].args["auction_id"]
    click.echo(f"✓ Bid placed on auction #{auction_id}: {amount} {token_client.symbol()}")
    click.echo(f"  Value: {value}")
    click.echo(f"  Block: {receipt.block_number}")


@cli.command("finalize")
@click.option("--from", "from_account", required=True, help="Any account")
@click.pass_context
@handle_reverts
def finalize(ctx, from_account):
    """Finalize the ended auction and open the next one"""
    auction = _auction(ctx, from_account)
    decimals = _token(ctx).decimals()
    receipt = auction.finalize_auction()
    ended = receipt.events("AuctionEnded")[0].args

    click.echo(f"✓ Auction #{ended['auction_id']} finalized")
    click.echo(f"  Winner: {_short(ended['winner'])}")
    click.echo(f"  Amount: {format_units(ended['amount'], decimals)}")
    click.echo(f"  Value: {ended['resource_value']}")


@cli.command("status")
@click.pass_context
@handle_reverts
def status(ctx):
    """Show the open auction"""
    auction = _auction(ctx)
    token_client = _token(ctx)
    decimals = token_client.decimals()
    symbol = token_client.symbol()
    info = auction.status()

    click.echo(f"Auction #{info.auction_id}: {info.resource_name}")
    click.echo("-" * 40)
    click.echo(f"  Status: {'active' if info.active else 'ended (awaiting finalize)'}")
    click.echo(f"  Time remaining: {format_time_remaining(info.time_remaining)}")
    click.echo(f"  Ends at: {info.end_time}")
    if info.current_bid.is_empty:
        click.echo("  Highest bid: none")
    else:
        click.echo(f"  Highest bid: {format_units(info.current_bid.amount, decimals)} {symbol}")
        click.echo(f"  Bidder: {_short(info.current_bid.bidder)}")
        click.echo(f"  Value: {info.current_bid.resource_value}")
    click.echo(f"  Bidding token: {_short(info.bidding_token)} ({symbol})")
    click.echo(f"  Default value: {info.default_resource_value}")


@cli.command("winner")
@click.pass_context
@handle_reverts
def winner(ctx):
    """Show the outcome of the last finalized auction"""
    from tokenauction.core.auction import NO_RESULT

    auction = _auction(ctx)
    result = auction.get_last_auction_winner()
    if result == NO_RESULT:
        click.echo("No auction finalized yet.")
        return

    if result.has_winner:
        click.echo(f"Winner: {_short(result.winner)}")
        click.echo(f"Amount: {format_units(result.amount, _token(ctx).decimals())}")
    else:
        click.echo("Winner: none (no bids, default value published)")
    click.echo(f"Value: {result.resource_value}")


@cli.command("bid-info")
@click.argument("auction_id", type=int)
@click.pass_context
@handle_reverts
def bid_info(ctx, auction_id):
    """Show the leading bid of an auction"""
    auction = _auction(ctx)
    leading = auction.get_bid(auction_id)
    if leading.is_empty:
        click.echo(f"Auction #{auction_id}: no bids")
        return

    click.echo(f"Auction #{auction_id}")
    click.echo(f"  Bidder: {_short(leading.bidder)}")
    click.echo(f"  Amount: {format_units(leading.amount, _token(ctx).decimals())}")
    click.echo(f"  Value: {leading.resource_value}")


@cli.command("events")
@click.option("--from-block", default=0, type=int, help="First block to include")
@click.pass_context
@handle_reverts
def events(ctx, from_block):
    """List events emitted by the auction"""
    auction = _auction(ctx)
    logs = auction.chain.get_logs(auction.address, from_block=from_block)
    if not logs:
        click.echo("No events.")
        return

    for log in logs:
        args = ", ".join(f"{key}={value}" for key, value in log.args.items())
        click.echo(f"  [{log.block_number}] {log.event}({args})")


# =============================================================================
# Admin Commands
# =============================================================================


@cli.group()
def admin():
    """Owner-only auction configuration"""
    pass


@admin.command("set-token")
@click.argument("address")
@click.option("--from", "from_account", required=True, help="Owner account")
@click.pass_context
@handle_reverts
def admin_set_token(ctx, address, from_account):
    """Switch the bidding token"""
    _auction(ctx, from_account).set_bidding_token(address)
    click.echo(f"✓ Bidding token set to {_short(address)}")


@admin.command("set-duration")
@click.argument("seconds", type=int)
@click.option("--from", "from_account", required=True, help="Owner account")
@click.pass_context
@handle_reverts
def admin_set_duration(ctx, seconds, from_account):
    """Change the auction duration"""
    _auction(ctx, from_account).set_auction_duration(seconds)
    click.echo(f"✓ Auction duration set to {seconds}s")


@admin.command("set-default")
@click.argument("value")
@click.option("--from", "from_account", required=True, help="Owner account")
@click.pass_context
@handle_reverts
def admin_set_default(ctx, value, from_account):
    """Change the resource value published when nobody bids"""
    _auction(ctx, from_account).set_default_resource_value(value)
    click.echo(f"✓ Default resource value set to {value}")


# =============================================================================
# Time Commands
# =============================================================================


@cli.group("time")
def time_group():
    """Chain time commands"""
    pass


@time_group.command("advance")
@click.argument("seconds", type=int)
@click.pass_context
@handle_reverts
def time_advance(ctx, seconds):
    """Move chain time forward by SECONDS"""
    chain, _ = _open_chain(ctx)
    timestamp = chain.increase_time(seconds)
    click.echo(f"✓ Block {chain.block_number} mined at {timestamp}")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
def demo():
    """Run a scripted auction on an in-memory chain"""
    from tokenauction.core.auction import AuctionClient
    from tokenauction.core.chain import Chain
    from tokenauction.core.config import AuctionConfig
    from tokenauction.core.token import TokenClient
    from tokenauction.crypto import generate_keypair

    config = AuctionConfig()

    click.echo("=" * 60)
    click.echo("  TOKEN AUCTION - DEMO")
    click.echo("=" * 60)
    click.echo()

    # Setup
    click.echo("📦 Deploying contracts...")
    owner = generate_keypair().address
    alice = generate_keypair().address
    bob = generate_keypair().address

    chain = Chain()
    token_client = TokenClient.deploy(
        chain, owner, config.token_name, config.token_symbol, config.token_initial_supply, config.token_decimals
    )
    auction = AuctionClient.deploy(
        chain, owner, token_client.address, config.resource_name, config.default_resource_value
    )
    symbol = config.token_symbol
    click.echo(f"  ✓ Token: {to_checksum_address(token_client.address)}")
    click.echo(f"  ✓ Auction: {to_checksum_address(auction.address)}")
    click.echo()

    click.echo("💸 Funding bidders...")
    for bidder in (alice, bob):
        token_client.transfer(bidder, parse_units("1000"))
        token_client.as_account(bidder).approve(auction.address, parse_units("1000"))
    click.echo(f"  ✓ Alice and Bob hold 1000 {symbol} each and approved the auction")
    click.echo()

    def balances():
        return (
            f"Alice={format_units(token_client.balance_of(alice))}, "
            f"Bob={format_units(token_client.balance_of(bob))}, "
            f"Auction={format_units(token_client.balance_of(auction.address))}"
        )

    click.echo("🎯 Alice bids 100 for https://alice.example ...")
    auction.as_account(alice).place_bid(parse_units("100"), "https://alice.example")
    click.echo(f"  ✓ {balances()}")

    click.echo("🎯 Bob outbids with 150 for https://bob.example ...")
    auction.as_account(bob).place_bid(parse_units("150"), "https://bob.example")
    click.echo(f"  ✓ Alice refunded: {balances()}")

    click.echo("🎯 Alice tries 120 ...")
    try:
        auction.as_account(alice).place_bid(parse_units("120"), "https://alice.example")
    except TransactionFailed as exc:
        click.echo(f"  ✓ Rejected: {exc.reason.value}")
    click.echo()

    click.echo(f"⏳ Time remaining: {format_time_remaining(auction.get_time_remaining())}, advancing...")
    chain.increase_time(config.auction_duration)

    click.echo("⚖️  Finalizing auction #1...")
    auction.as_account(alice).finalize_auction()
    result = auction.get_last_auction_winner()
    click.echo(f"  ✓ Winner: {to_checksum_address(result.winner)} ({format_units(result.amount)} {symbol})")
    click.echo(f"  ✓ Published value: {result.resource_value}")
    click.echo()

    click.echo("⚖️  Auction #2 ends with no bids...")
    chain.increase_time(config.auction_duration)
    auction.as_account(bob).finalize_auction()
    result = auction.get_last_auction_winner()
    click.echo(f"  ✓ Published default value: {result.resource_value}")
    click.echo()

    click.echo("📊 Final Statistics:")
    click.echo(f"  Chain: {chain.stats()}")
    click.echo(f"  Balances: {balances()}")
    click.echo(f"  Open auction: #{auction.current_auction_id()}")
    click.echo()
    click.echo("✅ Demo complete!")


if __name__ == "__main__":
    cli()
