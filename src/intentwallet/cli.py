"""
Intent wallet CLI: local management of an intent settlement account.

Commands:
    intent-wallet deploy           Deploy entry point, wallet, and optional test token
    intent-wallet setup            One-time owner and threshold initialization
    intent-wallet add-owner        Add an owner (owner only)
    intent-wallet approve-settler  Approve or revoke a settler on a network (owner only)
    intent-wallet is-approved      Check a settler's approval on a network
    intent-wallet create-intent    Create an outbound intent (owner only)
    intent-wallet execute-intent   Execute an intent as an approved settler
    intent-wallet order-id         Compute an order identifier offline
    intent-wallet status           Show wallet state
    intent-wallet audit            View the audit trail
    intent-wallet demo             Run a full in-memory demo flow
"""

from __future__ import annotations

import logging
import subprocess
import sys
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import click
from click.core import ParameterSource
from eth_account import Account
from eth_utils import keccak

from . import __version__
from .abi import compute_order_id, encode_call, encode_origin_data, normalize_address
from .audit import AuditTrail
from .chain import Chain
from .chain_store import LocalChainStore
from .config import WalletConfig, resolve_entry_point, uses_mock_entry_point
from .entry_point import EntryPoint
from .errors import ConfigError, IntentWalletError, ReplayError, WebhookDeliveryError
from .events import EventBuffer, EventType
from .token import ERC20Token
from .wallet import IntentWallet
from .webhook import WebhookSink


# ── Helpers ───────────────────────────────────────────────────────

def _fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


def _config() -> WalletConfig:
    try:
        return WalletConfig.from_env()
    except ConfigError as exc:
        _fail(str(exc))
        raise


@contextmanager
def _session(config: WalletConfig, create: bool = False) -> Iterator[Chain]:
    """Open the persisted chain; audit and webhook see events only after the save.

    A webhook failure is reported as a warning: the operation is already
    committed and retrying it would be rejected.
    """
    store = LocalChainStore(config.state_path)
    trail = AuditTrail(path=config.audit_path, key_path=config.audit_key_path)
    webhook = WebhookSink(config.webhook_url) if config.webhook_url else None
    committed = EventBuffer()
    with store.session(create=create, chain_id=config.chain_id) as chain:
        chain.journal.subscribe(committed)
        yield chain
    committed.release(*[s for s in (trail, webhook) if s is not None])
    if webhook is not None:
        try:
            webhook.flush()
        except WebhookDeliveryError as exc:
            click.echo(f"⚠️  Changes saved, but notifications were not delivered: {exc}", err=True)


def _wallet(chain: Chain) -> IntentWallet:
    ref = click.get_current_context().find_root().params.get("wallet") or "wallet"
    contract = chain.resolve(ref)
    if not isinstance(contract, IntentWallet):
        raise KeyError(f"{ref} is not an intent wallet")
    return contract


def _resolve_private_key(key_input: str) -> str:
    candidate = key_input.strip()
    if candidate.startswith("op://"):
        result = subprocess.run(
            ["op", "read", candidate],
            capture_output=True,
            text=True,
            timeout=10,
        )
        if result.returncode != 0:
            raise RuntimeError(f"Failed to read key from 1Password reference: {result.stderr.strip()}")
        candidate = result.stdout.strip()

    if candidate.startswith("0x"):
        candidate = candidate[2:]
    if len(candidate) != 64:
        raise ValueError("Private key must be a 32-byte hex string or valid op:// reference")
    int(candidate, 16)
    return "0x" + candidate


def _caller_address(caller_key: str, unsafe_allow_key_arg: bool) -> str:
    ctx = click.get_current_context(silent=True)
    key_from_argv = (
        ctx is not None
        and ctx.get_parameter_source("caller_key") == ParameterSource.COMMANDLINE
    )
    if key_from_argv and not unsafe_allow_key_arg:
        _fail(
            "Refusing --caller-key from argv. Re-run with prompt input or pass "
            "--unsafe-allow-key-arg to acknowledge the risk."
        )
    try:
        return Account.from_key(_resolve_private_key(caller_key)).address
    except (RuntimeError, ValueError) as exc:
        _fail(f"Invalid caller key: {exc}")
        raise


def _caller_options(fn):
    fn = click.option(
        "--unsafe-allow-key-arg",
        is_flag=True,
        default=False,
        help="Allow passing --caller-key via argv (unsafe; can leak in shell/process history).",
    )(fn)
    return click.option("--caller-key", prompt=True, hide_input=True,
                        help="Caller private key hex or op:// reference")(fn)


def _parse_hex(value: str, label: str) -> bytes:
    raw = value.strip()
    if raw.lower().startswith("0x"):
        raw = raw[2:]
    try:
        return bytes.fromhex(raw)
    except ValueError:
        _fail(f"{label} must be hex-encoded bytes")
        raise


# ── CLI ───────────────────────────────────────────────────────────

@click.group()
@click.version_option(version=__version__)
@click.option("--wallet", default=None, help="Wallet address or label (default: the deployed wallet)")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging")
def main(wallet: Optional[str], verbose: bool):
    """Intent wallet: owner-gated intents settled by trusted settlers."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--test-token-supply", type=int, default=0,
              help="Deploy a test token and mint this many base units to the wallet")
@click.option("--token-symbol", default="TEST", help="Symbol for the test token")
def deploy(test_token_supply: int, token_symbol: str):
    """Deploy the entry point, the wallet, and optionally a funded test token."""
    config = _config()
    try:
        with _session(config, create=True) as chain:
            if uses_mock_entry_point(config.network):
                entry_point = chain.deploy(EntryPoint(), label="entry_point").address
                click.echo(f"📝 Deployed local EntryPoint: {entry_point}")
            else:
                entry_point = resolve_entry_point(config.network)
                click.echo(f"📝 Using existing EntryPoint at: {entry_point}")

            wallet = chain.deploy(IntentWallet(entry_point), label="wallet")
            click.echo(f"✅ Wallet deployed to: {wallet.address}")

            if test_token_supply > 0:
                token = chain.deploy(ERC20Token(symbol=token_symbol), label="token")
                token.mint(wallet.address, test_token_supply)
                click.echo(f"✅ Test token {token_symbol} at {token.address} ({test_token_supply} units to wallet)")
    except IntentWalletError as exc:
        _fail(f"Failed to deploy: {exc}")

    click.echo(f"   Network:   {config.network} ({config.chain_id})")
    click.echo(f"   State:     {config.state_path}")


@main.command()
@click.option("--owner", "owners", multiple=True, required=True, help="Owner address (repeatable)")
@click.option("--threshold", type=int, required=True, help="Setup threshold (1..number of owners)")
def setup(owners: tuple[str, ...], threshold: int):
    """Initialize owners and threshold. Runs exactly once per wallet."""
    config = _config()
    try:
        with _session(config) as chain:
            wallet = _wallet(chain)
            wallet.setup(list(owners), threshold)
    except (IntentWalletError, KeyError) as exc:
        _fail(f"Setup failed: {exc}")

    click.echo(f"✅ Wallet set up with {len(owners)} owner(s), threshold {threshold}")


@main.command("add-owner")
@click.option("--owner", required=True, help="Address to add as owner")
@_caller_options
def add_owner(owner: str, caller_key: str, unsafe_allow_key_arg: bool):
    """Add an owner. Owners are never removed."""
    config = _config()
    caller = _caller_address(caller_key, unsafe_allow_key_arg)
    try:
        with _session(config) as chain:
            _wallet(chain).add_owner(owner, sender=caller)
    except (IntentWalletError, KeyError) as exc:
        _fail(f"Failed to add owner: {exc}")

    click.echo(f"✅ Owner added: {owner}")


@main.command("approve-settler")
@click.option("--network-id", type=int, required=True, help="Origin/destination chain id")
@click.option("--settler", required=True, help="Settler address")
@click.option("--allow/--revoke", default=True, help="Approve (default) or revoke")
@_caller_options
def approve_settler(network_id: int, settler: str, allow: bool, caller_key: str, unsafe_allow_key_arg: bool):
    """Approve or revoke a settler for one network."""
    config = _config()
    caller = _caller_address(caller_key, unsafe_allow_key_arg)
    try:
        with _session(config) as chain:
            _wallet(chain).set_settler_approval(network_id, settler, allow, sender=caller)
    except (IntentWalletError, KeyError) as exc:
        _fail(f"Failed to update settler approval: {exc}")

    verb = "approved" if allow else "revoked"
    click.echo(f"✅ Settler {settler} {verb} on network {network_id}")


@main.command("is-approved")
@click.option("--network-id", type=int, required=True, help="Chain id")
@click.option("--settler", required=True, help="Settler address")
def is_approved(network_id: int, settler: str):
    """Report whether a settler is approved on a network."""
    config = _config()
    try:
        with _session(config) as chain:
            approved = _wallet(chain).is_approved(network_id, settler)
    except (IntentWalletError, KeyError, ValueError) as exc:
        _fail(str(exc))
        return

    click.echo(f"{'✅ approved' if approved else '❌ not approved'}: {settler} on network {network_id}")


@main.command("create-intent")
@click.option("--network-id", type=int, required=True, help="Destination chain id")
@click.option("--token", default="token", help="Token address or label (default: deployed test token)")
@click.option("--amount", type=int, required=True, help="Amount in token base units")
@click.option("--target", required=True, help="Approved settler that receives the allowance")
@click.option("--call-data", default="", help="Hex call data carried with the intent")
@_caller_options
def create_intent(
    network_id: int,
    token: str,
    amount: int,
    target: str,
    call_data: str,
    caller_key: str,
    unsafe_allow_key_arg: bool,
):
    """Create an outbound intent and grant the settler a spend allowance."""
    config = _config()
    caller = _caller_address(caller_key, unsafe_allow_key_arg)
    data = _parse_hex(call_data, "--call-data")
    try:
        with _session(config) as chain:
            token_address = chain.labels.get(token, token)
            order_id = _wallet(chain).create_intent(
                network_id, token_address, amount, target, data, sender=caller
            )
    except (IntentWalletError, KeyError) as exc:
        _fail(f"Failed to create intent: {exc}")
        return

    click.echo(f"✅ Intent created: {order_id}")
    click.echo(f"   Network:  {network_id}")
    click.echo(f"   Amount:   {amount}")
    click.echo(f"   Settler:  {target}")


@main.command("execute-intent")
@click.option("--order-id", required=True, help="32-byte order identifier (hex)")
@click.option("--origin-network-id", type=int, required=True, help="Network the settler is approved for")
@click.option("--target", default=None, help="Call target (encoded with --payload)")
@click.option("--payload", default="", help="Hex payload for --target")
@click.option("--origin-data", default=None, help="Pre-encoded (address,bytes) origin data, hex")
@click.option("--proof", default="", help="Hex proof (accepted, not verified)")
@_caller_options
def execute_intent(
    order_id: str,
    origin_network_id: int,
    target: Optional[str],
    payload: str,
    origin_data: Optional[str],
    proof: str,
    caller_key: str,
    unsafe_allow_key_arg: bool,
):
    """Execute an intent as an approved settler, at most once per order id."""
    if (target is None) == (origin_data is None):
        _fail("Pass exactly one of --target or --origin-data")
    config = _config()
    caller = _caller_address(caller_key, unsafe_allow_key_arg)
    try:
        if origin_data is not None:
            encoded = _parse_hex(origin_data, "--origin-data")
        else:
            encoded = encode_origin_data(target, _parse_hex(payload, "--payload"))
        with _session(config) as chain:
            result = _wallet(chain).execute_intent(
                order_id, origin_network_id, encoded, _parse_hex(proof, "--proof"), sender=caller
            )
    except (IntentWalletError, KeyError, ValueError) as exc:
        _fail(f"Failed to execute intent: {exc}")
        return

    click.echo(f"✅ Intent executed: {result.order_id}")
    click.echo(f"   Target: {result.target}")


@main.command("order-id")
@click.option("--network-id", type=int, required=True, help="Destination chain id")
@click.option("--token", required=True, help="Token address")
@click.option("--amount", type=int, required=True, help="Amount in base units")
@click.option("--target", required=True, help="Settler address")
@click.option("--call-data", default="", help="Hex call data")
@click.option("--timestamp", type=int, default=None, help="Creation timestamp (default: now)")
def order_id(network_id: int, token: str, amount: int, target: str, call_data: str, timestamp: Optional[int]):
    """Compute the order identifier an intent would get."""
    try:
        value = compute_order_id(
            destination_network_id=network_id,
            token=token,
            amount=amount,
            target=target,
            call_data=_parse_hex(call_data, "--call-data"),
            created_at=timestamp if timestamp is not None else int(time.time()),
        )
    except ValueError as exc:
        _fail(str(exc))
        return
    click.echo(value)


@main.command()
def status():
    """Show owners, threshold, approvals, and executed intents."""
    config = _config()
    try:
        with _session(config) as chain:
            wallet = _wallet(chain)
            approvals = wallet.registry.entries()
            executed = wallet.state.executed.dump()
            token = chain.contracts.get(chain.labels.get("token", ""))
            balance = token.balance_of(wallet.address) if isinstance(token, ERC20Token) else None
    except (IntentWalletError, KeyError) as exc:
        _fail(str(exc))
        return

    click.echo(f"📊 Wallet {wallet.address}")
    click.echo(f"   EntryPoint: {wallet.entry_point}")
    click.echo(f"   Threshold:  {wallet.threshold}")
    click.echo(f"   Owners:     {', '.join(wallet.owners) or '(not set up)'}")
    for network_id, settler, approved in approvals:
        click.echo(f"   Settler:    {settler} on {network_id}: {'approved' if approved else 'revoked'}")
    click.echo(f"   Executed:   {len(executed)} intent(s)")
    if balance is not None:
        click.echo(f"   Token:      {balance} {token.symbol}")


@main.command()
@click.option("--order-id", default=None, help="Filter by order id")
@click.option("--limit", type=int, default=20, help="Number of events")
def audit(order_id: Optional[str], limit: int):
    """View the audit trail of committed notifications."""
    config = _config()
    trail = AuditTrail(path=config.audit_path, key_path=config.audit_key_path)
    try:
        events = trail.read_events(order_id=order_id, limit=limit)
    except RuntimeError as exc:
        _fail(str(exc))
        return

    if not events:
        click.echo("No audit events found.")
        return

    for event in events:
        ts = time.strftime("%H:%M:%S", time.localtime(event.timestamp))
        ref = f" {event.order_id[:18]}…" if event.order_id else ""
        click.echo(f"  {ts} {event.event_type}{ref}")


@main.command()
def demo():
    """Run the full create → approve → execute → replay flow in memory."""
    click.echo("🎬 Intent Wallet Demo: Create, Settle, Replay")
    click.echo("=" * 50)

    click.echo("\n1️⃣  Generating accounts and deploying contracts...")
    owner = Account.create()
    settler = Account.create()
    chain = Chain()
    entry_point = chain.deploy(EntryPoint(), label="entry_point")
    wallet = chain.deploy(IntentWallet(entry_point.address), label="wallet")
    token = chain.deploy(ERC20Token(), label="token")
    token.mint(wallet.address, 1000 * 10**18)
    click.echo(f"   Owner:   {owner.address}")
    click.echo(f"   Settler: {settler.address}")
    click.echo(f"   Wallet:  {wallet.address}")

    click.echo("\n2️⃣  Setting up wallet and approving settler on Optimism (10)...")
    wallet.setup([owner.address], 1)
    wallet.set_settler_approval(10, settler.address, True, sender=owner.address)

    click.echo("\n3️⃣  Creating intent for 100 base units...")
    created = wallet.create_intent(10, token.address, 100, settler.address, b"", sender=owner.address)
    click.echo(f"   ✅ Order: {created}")
    click.echo(f"   Allowance: {token.allowance(wallet.address, settler.address)}")

    click.echo("\n4️⃣  Settler executes a token transfer on 31337...")
    wallet.set_settler_approval(31337, settler.address, True, sender=owner.address)
    execution_id = "0x" + keccak(text="demo-execution").hex()
    transfer = encode_call("transfer(address,uint256)", [settler.address, 10**18])
    origin_data = encode_origin_data(token.address, transfer)
    wallet.execute_intent(execution_id, 31337, origin_data, b"", sender=settler.address)
    click.echo(f"   ✅ Executed {execution_id[:18]}…")
    click.echo(f"   Settler balance: {token.balance_of(settler.address)}")

    click.echo("\n5️⃣  Replaying the same order id...")
    try:
        wallet.execute_intent(execution_id, 31337, origin_data, b"", sender=settler.address)
        click.echo("   ❌ Replay was accepted")
    except ReplayError as exc:
        click.echo(f"   ✅ Rejected: {exc}")

    click.echo("\n6️⃣  Notifications...")
    for event in chain.journal.events:
        click.echo(f"   {event.event_type.value}")
    executed = len(chain.journal.events_of(EventType.INTENT_EXECUTED))

    click.echo("\n" + "=" * 50)
    click.echo(f"🎉 Demo complete! {executed} execution(s), replay blocked.")
    click.echo(f"   Settler {normalize_address(settler.address)} only ever acted where approved.")


if __name__ == "__main__":
    main()
