"""
stellarvault CLI: custodial Stellar accounts with policy-checked payments.

Commands:
    stellarvault accounts create   Create (or re-create) a named account
    stellarvault accounts read     Show an account's address and policy
    stellarvault accounts list     List stored account names
    stellarvault pay               Build a signed payment (optionally submit it)
    stellarvault submit            Submit a signed transaction envelope
    stellarvault audit             View audit trail
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

import click

from . import __version__
from .audit import AuditTrail
from .config import LedgerConfig, home_dir
from .engine import Backend, Operation, Response
from .storage import FileStore


# ── Wiring ────────────────────────────────────────────────────────

def _backend() -> Backend:
    home = home_dir()
    store = FileStore(home / "store")
    audit = AuditTrail(path=home / "audit.jsonl")
    return Backend.from_config(store, config=LedgerConfig.from_env(), audit=audit)


def _emit(response: Optional[Response], not_found: str = "Not found") -> None:
    if response is None:
        click.echo(f"❌ {not_found}", err=True)
        sys.exit(1)
    if response.is_error:
        error = response.error or {}
        click.echo(f"❌ {error.get('message', 'request failed')} [{error.get('code')}]", err=True)
        sys.exit(1)
    click.echo(json.dumps(response.data, indent=2, sort_keys=True))


# ── CLI ───────────────────────────────────────────────────────────

@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """stellarvault: custodial Stellar accounts with transfer policy."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.group("accounts")
def accounts_group():
    """Manage custodial accounts."""
    pass


@accounts_group.command("create")
@click.argument("name")
@click.option("--xlm-balance", default=None, help="(Optional) Initial starting balance of XLM")
@click.option("--tx-spend-limit", default="0",
              help="Maximum amount sent in a single transaction (0 = unlimited)")
@click.option("--whitelist", default="", help="Comma-separated addresses this account may pay")
@click.option("--blacklist", default="", help="Comma-separated addresses this account may never pay")
def accounts_create(name: str, xlm_balance: Optional[str], tx_spend_limit: str,
                    whitelist: str, blacklist: str):
    """Create an account; an existing NAME is overwritten."""
    data = {"tx_spend_limit": tx_spend_limit, "whitelist": whitelist, "blacklist": blacklist}
    if xlm_balance is not None:
        data["xlm_balance"] = xlm_balance
    _emit(_backend().handle_request(Operation.CREATE_ACCOUNT, data, name=name))


@accounts_group.command("read")
@click.argument("name")
def accounts_read(name: str):
    """Show an account's public details."""
    _emit(
        _backend().handle_request(Operation.READ_ACCOUNT, name=name),
        not_found=f"Account not found: {name}",
    )


@accounts_group.command("list")
def accounts_list():
    """List stored account names."""
    response = _backend().handle_request(Operation.LIST_ACCOUNTS)
    if response is None or response.is_error:
        _emit(response)
        return
    keys = (response.data or {}).get("keys", [])
    if not keys:
        click.echo("No accounts found")
        return
    for key in keys:
        click.echo(key)


@main.command()
@click.option("--source", required=True, help="Source account name")
@click.option("--destination", required=True, help="Destination account name")
@click.option("--amount", required=True, help="Amount to send")
@click.option("--asset-code", default="native", help="Asset code ('native' for XLM)")
@click.option("--asset-issuer", default=None, help="Issuer address for non-native assets")
@click.option("--payment-channel", default=None, help="(Optional) Account paying fee and sequence")
@click.option("--additional-signers", default=None, help="(Optional) Comma-separated co-signer accounts")
@click.option("--memo", default=None, help="(Optional) Text memo")
@click.option("--submit", is_flag=True, default=False, help="Submit the signed transaction")
def pay(source: str, destination: str, amount: str, asset_code: str, asset_issuer: Optional[str],
        payment_channel: Optional[str], additional_signers: Optional[str], memo: Optional[str],
        submit: bool):
    """Build and sign a policy-checked payment."""
    data = {
        "source": source,
        "destination": destination,
        "amount": amount,
        "assetCode": asset_code,
    }
    optional = {
        "assetIssuer": asset_issuer,
        "paymentChannel": payment_channel,
        "additionalSigners": additional_signers,
        "memo": memo,
    }
    data.update({k: v for k, v in optional.items() if v})

    backend = _backend()
    response = backend.handle_request(Operation.CREATE_PAYMENT, data)
    _emit(response)
    if not submit:
        return

    signed = (response.data or {})["signed_transaction"]
    click.echo("Submitting transaction...")
    _emit(backend.handle_request(Operation.SUBMIT_TRANSACTION, {"signed_transaction": signed}))


@main.command()
@click.argument("signed_transaction")
def submit(signed_transaction: str):
    """Submit a base64 signed transaction envelope."""
    _emit(_backend().handle_request(
        Operation.SUBMIT_TRANSACTION, {"signed_transaction": signed_transaction},
    ))


@main.command()
@click.option("--account", default=None, help="Filter by account name")
@click.option("--limit", default=20, help="Number of events")
@click.option("--summary", "show_summary", is_flag=True, help="Show summary only")
def audit(account: Optional[str], limit: int, show_summary: bool):
    """View the audit trail."""
    trail = AuditTrail(path=home_dir() / "audit.jsonl")
    try:
        if show_summary:
            click.echo(json.dumps(trail.summary(account=account), indent=2))
            return
        events = trail.read_events(account=account, limit=limit)
    except RuntimeError as exc:
        click.echo(f"❌ {exc}", err=True)
        sys.exit(1)

    if not events:
        click.echo("No audit events")
        return
    for event in events:
        status = "✓" if event.success else "✗"
        line = f"{status} {event.event_type}"
        if event.account:
            line += f" account={event.account}"
        if event.destination:
            line += f" destination={event.destination}"
        if event.amount:
            line += f" amount={event.amount}"
        if event.reason:
            line += f": {event.reason}"
        click.echo(line)


if __name__ == "__main__":
    main()
