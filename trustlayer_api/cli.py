"""
Terminal panels for TrustLayer.

Each command is a stateless request/response view over the HTTP API:
status, registration, proof verification, swap checks and admin actions.
"""

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

import httpx
import structlog
import typer
from dotenv import load_dotenv

from .client import ApiClientError, TrustLayerClient
from .display import (
    format_address,
    format_amount,
    format_fee,
    format_tier,
    require_text,
    validate_amount,
    validate_eth_address,
    validate_expiry,
    validate_score,
)

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

app = typer.Typer(
    name="trustlayer",
    help="TrustLayer credentials: verify Aleo tier proofs and manage hook registrations",
    add_completion=False,
)
admin_app = typer.Typer(help="Issuer/admin actions (require API access to the admin key)")
app.add_typer(admin_app, name="admin")

T = TypeVar("T")


def main() -> None:
    """Entry point."""
    load_dotenv()
    app()


@app.callback()
def configure(
    ctx: typer.Context,
    api_url: str = typer.Option(
        "http://127.0.0.1:3001", "--api-url", envvar="TRUSTLAYER_API_URL", help="TrustLayer API base URL"
    ),
    api_token: Optional[str] = typer.Option(
        None, "--api-token", envvar="API_TOKEN", help="Token sent as X-API-Key for write endpoints"
    ),
) -> None:
    ctx.obj = {"api_url": api_url, "api_token": api_token}


def _client(ctx: typer.Context) -> TrustLayerClient:
    obj = ctx.obj or {}
    return TrustLayerClient(obj.get("api_url", "http://127.0.0.1:3001"), api_token=obj.get("api_token"))


@contextmanager
def _api(ctx: typer.Context) -> Iterator[TrustLayerClient]:
    """Open a client and turn request failures into a clean exit."""
    client = _client(ctx)
    try:
        yield client
    except ApiClientError as e:
        typer.echo(f"Error: {e.error}", err=True)
        if e.hint:
            typer.echo(f"Hint: {e.hint}", err=True)
        raise typer.Exit(1)
    except httpx.HTTPError as e:
        typer.echo(f"Error: could not reach API ({e})", err=True)
        raise typer.Exit(1)
    finally:
        client.close()


def _validated(fn: Callable[..., T], *args: Any) -> T:
    try:
        return fn(*args)
    except ValueError as e:
        raise typer.BadParameter(str(e))


# ============================================================================
# Status
# ============================================================================


@app.command()
def health(ctx: typer.Context) -> None:
    """Show API health and configuration."""
    with _api(ctx) as client:
        data = client.health()
        typer.echo(f"Status:      {data['status']}")
        typer.echo(f"Program:     {data['program']}")
        typer.echo(f"ETH enabled: {data['ethEnabled']}")
        typer.echo(f"Aleo RPC:    {'reachable' if data.get('aleoRpc') else 'unreachable'}")
        if data.get("ethRpc") is not None:
            typer.echo(f"EVM RPC:     {'reachable' if data['ethRpc'] else 'unreachable'}")
        try:
            height = client.get_block_height()["blockHeight"]
            typer.echo(f"Aleo block:  {height}")
        except ApiClientError as e:
            typer.echo(f"Aleo block:  unavailable ({e.error})")


@app.command()
def status(ctx: typer.Context, address: str = typer.Argument(..., help="Trader EVM address")) -> None:
    """Show a trader's registration on the hook."""
    trader = _validated(validate_eth_address, address)

    with _api(ctx) as client:
        info = client.get_trader_info(trader)
        typer.echo(f"Trader: {format_address(trader)}")
        if not info.get("isRegistered"):
            typer.echo("Not registered. Prove your tier on Aleo, then run `trustlayer register`.")
            return

        typer.echo(f"  Tier:          {format_tier(info['tier'])}")
        typer.echo(f"  Registered at: block {info['registeredAt']}")
        typer.echo(f"  Expires at:    block {info['expiry']}")
        if not info.get("isActive", True):
            typer.echo(f"  Status:        expired (current block {info['currentBlock']})")
        typer.echo(f"  Commitment:    {info['commitment']}")

        config = client.get_tier_config(info["tier"])
        typer.echo(f"  Swap fee:      {format_fee(config['feeBps'])}")
        typer.echo(f"  Max trade:     {format_amount(config['maxTradeSizeFormatted'])}")
        typer.echo(f"  Tier enabled:  {'yes' if config['enabled'] else 'no'}")


# ============================================================================
# Proof verification / registration
# ============================================================================


@app.command()
def verify(ctx: typer.Context, tx_id: str = typer.Argument(..., help="prove_tier transaction ID")) -> None:
    """Verify a prove_tier transaction."""
    tx_id = _validated(require_text, tx_id, "Transaction ID")

    with _api(ctx) as client:
        result = client.verify_proof(tx_id)
        typer.echo(result["message"])
        typer.echo(f"  Tier:       {result['tierName']} ({result['tier']})")
        typer.echo(f"  Commitment: {result['commitment']}")
        if result.get("currentBlock") is not None:
            typer.echo(f"  Proved at:  block {result['currentBlock']}")
        typer.echo(f"  Issued:     {'yes' if result['wasIssued'] else 'no'}")
        typer.echo(f"  Revoked:    {'yes' if result['isRevoked'] else 'no'}")
        if not result["isValid"]:
            raise typer.Exit(2)


@app.command()
def register(
    ctx: typer.Context,
    aleo_tx_id: str = typer.Argument(..., help="prove_tier transaction ID"),
    eth_address: str = typer.Argument(..., help="Trader EVM address"),
    expiry_blocks: int = typer.Option(100000, "--expiry-blocks", min=1, help="Blocks until expiry"),
) -> None:
    """Register a trader on the hook from an Aleo tier proof."""
    aleo_tx_id = _validated(require_text, aleo_tx_id, "Aleo transaction ID")
    trader = _validated(validate_eth_address, eth_address)

    with _api(ctx) as client:
        typer.echo(f"Registering {format_address(trader)} from {aleo_tx_id}...")
        result = client.register_trader(aleo_tx_id, trader, expiry_blocks)
        typer.echo(result["message"])
        typer.echo(f"  ETH tx:  {result['ethTxHash']}")
        typer.echo(f"  Block:   {result['blockNumber']}")
        typer.echo(f"  Expiry:  block {result['expiry']}")


# ============================================================================
# Swap
# ============================================================================


@app.command()
def tiers(ctx: typer.Context) -> None:
    """Show swap parameters for every tier."""
    with _api(ctx) as client:
        for tier in (1, 2, 3):
            config = client.get_tier_config(tier)
            enabled = "" if config["enabled"] else "  (disabled)"
            typer.echo(
                f"{format_tier(tier):<22} fee {format_fee(config['feeBps']):>6}"
                f"  max {format_amount(config['maxTradeSizeFormatted'])}{enabled}"
            )


@app.command("can-swap")
def can_swap(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Trader EVM address"),
    amount: str = typer.Argument(..., help="Trade size in ether units"),
) -> None:
    """Check whether a trader may swap ``amount``."""
    trader = _validated(validate_eth_address, address)
    amount = _validated(validate_amount, amount)

    with _api(ctx) as client:
        result = client.check_can_swap(trader, amount)
        if result["canSwap"]:
            typer.echo(f"Allowed: {format_address(trader)} can swap {format_amount(amount)}")
        else:
            typer.echo(f"Blocked: {result['reason']}")
            raise typer.Exit(2)


# ============================================================================
# Tier proofs
# ============================================================================


@app.command("fetch-credential")
def fetch_credential(
    ctx: typer.Context,
    tx_id: str = typer.Argument(..., help="Transaction that issued the credential"),
    view_key: Optional[str] = typer.Option(None, "--view-key", envvar="ALEO_VIEW_KEY", help="Owner view key"),
) -> None:
    """Decrypt the Credential records created by a transaction."""
    tx_id = _validated(require_text, tx_id, "Transaction ID")
    with _api(ctx) as client:
        result = client.fetch_credential(tx_id, view_key)
        for record in result["records"]:
            typer.echo(f"# {record.get('function')} ({record.get('transitionId')})")
            typer.echo(record["plaintext"])


@app.command()
def prove(ctx: typer.Context, record: str = typer.Argument(..., help="Credential record plaintext")) -> None:
    """Generate and broadcast a prove_tier proof (may take minutes)."""
    record = _validated(require_text, record, "Record")
    with _api(ctx) as client:
        typer.echo("Generating proof...")
        result = client.prove_tier(record)
        typer.echo(result["message"])
        typer.echo(f"  Aleo tx: {result.get('txId') or 'unknown'}")
        typer.echo(f"  Block:   {result['blockHeight']}")


# ============================================================================
# Admin
# ============================================================================


@admin_app.command("issue")
def admin_issue(
    ctx: typer.Context,
    recipient: str = typer.Argument(..., help="Aleo address of the credential owner"),
    score: int = typer.Argument(..., help="Credit score (0-1000)"),
    expiry: int = typer.Argument(..., help="Expiry Aleo block height"),
    nonce: str = typer.Argument(..., help="Uniqueness nonce"),
) -> None:
    """Issue a credential."""
    recipient = _validated(require_text, recipient, "Recipient")
    score = _validated(validate_score, score)
    expiry = _validated(validate_expiry, expiry)
    nonce = _validated(require_text, nonce, "Nonce")

    with _api(ctx) as client:
        result = client.issue_credential(recipient, score, expiry, nonce)
        typer.echo(result["message"])
        typer.echo(f"  Aleo tx: {result.get('txId') or 'unknown'}")


@admin_app.command("add-issuer")
def admin_add_issuer(ctx: typer.Context, issuer: str = typer.Argument(..., help="Issuer Aleo address")) -> None:
    """Approve an issuer."""
    issuer = _validated(require_text, issuer, "Issuer address")
    with _api(ctx) as client:
        typer.echo(client.add_issuer(issuer)["message"])


@admin_app.command("remove-issuer")
def admin_remove_issuer(ctx: typer.Context, issuer: str = typer.Argument(..., help="Issuer Aleo address")) -> None:
    """Remove an issuer."""
    issuer = _validated(require_text, issuer, "Issuer address")
    with _api(ctx) as client:
        typer.echo(client.remove_issuer(issuer)["message"])


@admin_app.command("check-issuer")
def admin_check_issuer(ctx: typer.Context, issuer: str = typer.Argument(..., help="Issuer Aleo address")) -> None:
    """Check whether an address is an approved issuer."""
    issuer = _validated(require_text, issuer, "Issuer address")
    with _api(ctx) as client:
        approved = client.check_issuer(issuer)["isApproved"]
        typer.echo(f"{issuer}: {'approved' if approved else 'not approved'}")


@admin_app.command("verify")
def admin_verify(ctx: typer.Context, commitment: str = typer.Argument(..., help="Credential commitment")) -> None:
    """Check a credential commitment."""
    commitment = _validated(require_text, commitment, "Commitment")
    with _api(ctx) as client:
        result = client.check_commitment(commitment)
        typer.echo(f"Issued:  {'yes' if result['wasIssued'] else 'no'}")
        typer.echo(f"Revoked: {'yes' if result['isRevoked'] else 'no'}")
        typer.echo(f"Valid:   {'active' if result['isValid'] else 'invalid'}")


@admin_app.command("revoke")
def admin_revoke(ctx: typer.Context, commitment: str = typer.Argument(..., help="Credential commitment")) -> None:
    """Revoke a credential on Aleo."""
    commitment = _validated(require_text, commitment, "Commitment")
    with _api(ctx) as client:
        typer.echo(client.revoke_credential(commitment)["message"])


@admin_app.command("revoke-trader")
def admin_revoke_trader(
    ctx: typer.Context,
    eth_address: str = typer.Argument(..., help="Trader EVM address"),
    commitment: Optional[str] = typer.Option(
        None, "--commitment", help="Require this commitment to be revoked on Aleo first"
    ),
) -> None:
    """Remove a trader from the hook."""
    trader = _validated(validate_eth_address, eth_address)
    with _api(ctx) as client:
        result = client.revoke_trader(trader, commitment)
        typer.echo(result["message"])
        typer.echo(f"  ETH tx: {result['ethTxHash']}")


# ============================================================================
# Server
# ============================================================================


@app.command()
def serve() -> None:
    """Run the API server."""
    from .main import run

    run()


if __name__ == "__main__":
    main()
