"""
Shape Mint API - HTTP endpoint that mints one collection NFT per address.

Provides REST endpoints for:
- Minting a token to a wallet address (POST /mint-nft)
- Health checks (GET /health)
"""

import uvicorn
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from . import __version__
from .config import Settings, get_settings
from .errors import ConfigurationError, InvalidRequestError, MintError
from .evm import ChainClients, NFTReader
from .minting import InFlightGuard, Minter
from .models import (
    ErrorResponse,
    HealthResponse,
    MintNftRequest,
    MintNftResponse,
    MintPendingResponse,
    flatten_field_errors,
    is_valid_address,
)

# Configure logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


# Addresses with a mint in progress (shared by all requests in this process)
_inflight = InFlightGuard()

# Chain clients (one HTTP session per provider, closed at shutdown)
_chain_clients = ChainClients()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()

    if not settings.is_minting_configured:
        logger.warning(
            "Minting not configured; POST /mint-nft will fail",
            contract_address=settings.nft_contract_address,
            minter_key_set=bool(settings.minter_private_key),
        )
    else:
        # Initialize EVM clients
        try:
            _chain_clients.reader(settings)
            _chain_clients.writer(settings)
        except ValueError as e:
            logger.error("Invalid minting configuration", error=str(e))

    logger.info(
        "API started",
        version=__version__,
        host=settings.host,
        port=settings.port,
        evm_rpc=settings.rpc_url,
        chain_id=settings.chain_id,
        contract_address=settings.nft_contract_address,
    )

    yield

    # Cleanup
    await _chain_clients.close()

    logger.info("API stopped")


# Create FastAPI app
app = FastAPI(
    title="Shape Mint API",
    description="Mints one collection NFT per wallet address",
    version=__version__,
    lifespan=lifespan,
)


# Add CORS middleware
_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MintError)
async def mint_error_handler(request: Request, exc: MintError) -> JSONResponse:
    """Render any MintError with its own status code and payload."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


# ============================================================================
# Dependencies
# ============================================================================


def get_chain_reader(settings: Settings = Depends(get_settings)) -> Optional[NFTReader]:
    """Read-only client, or None when no usable contract address is configured."""
    if not settings.nft_contract_address or not is_valid_address(settings.nft_contract_address):
        return None
    return _chain_clients.reader(settings)


def get_minter(settings: Settings = Depends(get_settings)) -> Minter:
    """
    Build the mint flow for one request.

    Runs before the request body is read, so a missing contract address or
    minter key fails every request with 500 and no chain client is created.
    Clients are shared across requests through _chain_clients.
    """
    if not settings.is_minting_configured:
        raise ConfigurationError()

    try:
        reader = _chain_clients.reader(settings)
        writer = _chain_clients.writer(settings)
    except ValueError as e:
        logger.error("Invalid minting configuration", error=str(e))
        raise ConfigurationError(
            "Server configuration error: Invalid contract address or private key"
        ) from e

    return Minter(
        reader=reader,
        writer=writer,
        contract_address=settings.nft_contract_address,
        image_url=settings.nft_image_url,
        receipt_timeout=settings.receipt_timeout_seconds,
        guard=_inflight,
    )


async def read_mint_request(request: Request) -> MintNftRequest:
    """Parse and validate the JSON body of POST /mint-nft."""
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError({"body": ["Request body must be valid JSON"]})

    try:
        return MintNftRequest.model_validate(body)
    except ValidationError as e:
        raise InvalidRequestError(flatten_field_errors(e))


# ============================================================================
# Health Check
# ============================================================================


@app.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_settings),
    reader: Optional[NFTReader] = Depends(get_chain_reader),
) -> HealthResponse:
    """
    Check API health and connectivity.

    Returns service status, EVM RPC connectivity and whether minting is
    configured. The minter key itself is never returned.
    """
    evm_ok = False

    if reader:
        evm_ok = await reader.check_connectivity()

    return HealthResponse(
        status="ok" if (evm_ok and settings.is_minting_configured) else "degraded",
        version=__version__,
        evm_rpc=evm_ok,
        chain_id=settings.chain_id,
        contract_address=settings.nft_contract_address,
        minter_configured=settings.is_minting_configured,
    )


# ============================================================================
# Mint
# ============================================================================


@app.post(
    "/mint-nft",
    response_model=MintNftResponse,
    responses={
        202: {"model": MintPendingResponse, "description": "Broadcast, not yet confirmed"},
        400: {"model": ErrorResponse, "description": "Invalid address, already owned, or no gas funds"},
        403: {"model": ErrorResponse, "description": "Minter lacks permission"},
        409: {"model": ErrorResponse, "description": "Mint already in progress for address"},
        500: {"model": ErrorResponse, "description": "Configuration or chain failure"},
    },
    # Body is parsed by hand so validation failures answer 400 instead of 422
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": MintNftRequest.model_json_schema()}},
        }
    },
)
async def mint_nft(
    request: Request,
    minter: Minter = Depends(get_minter),
) -> MintNftResponse:
    """
    Mint a collection NFT to the given address.

    Refuses addresses that already hold a token, then sends mint(address)
    from the server's minter account and waits for the receipt.
    """
    mint_request = await read_mint_request(request)
    result = await minter.mint(mint_request.address)

    return MintNftResponse(
        token_id=str(result.token_id),
        contract_address=result.contract_address,
        image_url=result.image_url,
        recipient=result.recipient,
        transaction_hash=result.transaction_hash,
        block_number=str(result.block_number),
    )


# ============================================================================
# Entry Point
# ============================================================================


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "shape_mint_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
