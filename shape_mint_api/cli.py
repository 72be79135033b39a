"""
CLI entry point for Shape Mint API.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
import structlog
from pydantic import ValidationError

from .config import Settings, get_settings
from .errors import ConfigurationError, MintError, MintPendingError
from .evm import NFTReader, NFTWriter
from .minting import InFlightGuard, Minter
from .models import MintNftRequest

# Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

app = typer.Typer(
    name="shape-mint",
    help="Shape Mint API server and operator tools",
    add_completion=False,
)


def _load_settings(env_file: Optional[Path]) -> Settings:
    if env_file:
        return Settings(_env_file=env_file)
    return get_settings()


def _checked_address(address: str) -> str:
    try:
        return MintNftRequest(address=address).address
    except ValidationError:
        typer.echo(f"Invalid Ethereum address format: {address}", err=True)
        raise typer.Exit(code=1)


def _reader(settings: Settings) -> NFTReader:
    if not settings.nft_contract_address:
        typer.echo("NFT_CONTRACT_ADDRESS is not configured", err=True)
        raise typer.Exit(code=1)
    try:
        return NFTReader(settings.rpc_url, settings.chain_id, settings.nft_contract_address)
    except ValueError as e:
        typer.echo(f"✗ Invalid contract address: {e}", err=True)
        raise typer.Exit(code=1)


ENV_FILE_OPTION = typer.Option(
    None,
    "--env-file",
    "-e",
    help="Path to .env configuration file",
)


@app.command()
def serve() -> None:
    """
    Start the HTTP API (uvicorn).
    """
    from .main import run

    run()


@app.command()
def status(
    address: str = typer.Argument(..., help="Wallet address to check"),
    env_file: Optional[Path] = ENV_FILE_OPTION,
) -> None:
    """
    Show whether an address already owns a token (read-only).
    """
    address = _checked_address(address)
    settings = _load_settings(env_file)
    reader = _reader(settings)

    async def _read() -> tuple[int, int]:
        return await reader.balance_of(address), await reader.total_supply()

    balance, supply = asyncio.run(_read())

    typer.echo(f"Contract: {settings.nft_contract_address}")
    typer.echo(f"Address: {address}")
    typer.echo(f"Balance: {balance}")
    typer.echo(f"Total supply: {supply}")
    typer.echo("Eligible to mint: " + ("no" if balance > 0 else "yes"))


@app.command("token-uri")
def token_uri(
    token_id: int = typer.Argument(..., min=0, help="Token id"),
    env_file: Optional[Path] = ENV_FILE_OPTION,
) -> None:
    """
    Print tokenURI(tokenId).
    """
    reader = _reader(_load_settings(env_file))
    typer.echo(asyncio.run(reader.token_uri(token_id)))


@app.command()
def mint(
    address: str = typer.Argument(..., help="Recipient wallet address"),
    env_file: Optional[Path] = ENV_FILE_OPTION,
) -> None:
    """
    Mint a token to ADDRESS from the configured minter account,
    with the same checks as POST /mint-nft.
    """
    address = _checked_address(address)
    settings = _load_settings(env_file)

    if not settings.is_minting_configured:
        typer.echo(f"✗ {ConfigurationError().error}", err=True)
        raise typer.Exit(code=1)

    try:
        writer = NFTWriter(
            settings.rpc_url,
            settings.chain_id,
            settings.nft_contract_address,
            settings.minter_private_key,
            gas_limit=settings.mint_gas_limit,
        )
        reader = _reader(settings)
    except ValueError as e:
        typer.echo(f"✗ Invalid contract address or private key: {e}", err=True)
        raise typer.Exit(code=1)

    minter = Minter(
        reader=reader,
        writer=writer,
        contract_address=settings.nft_contract_address,
        image_url=settings.nft_image_url,
        receipt_timeout=settings.receipt_timeout_seconds,
        guard=InFlightGuard(),
    )

    try:
        result = asyncio.run(minter.mint(address))
    except MintPendingError as e:
        typer.echo(f"… Pending: {e.tx_hash} (no receipt after {e.timeout}s)")
        raise typer.Exit(code=2)
    except MintError as e:
        typer.echo(f"✗ {e.to_payload()}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"✓ Minted token {result.token_id} to {result.recipient}")
    typer.echo(f"  Tx: {result.transaction_hash}")
    typer.echo(f"  Block: {result.block_number}")


@app.command()
def version() -> None:
    """Show the API version."""
    from shape_mint_api import __version__
    typer.echo(f"shape-mint-api v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
