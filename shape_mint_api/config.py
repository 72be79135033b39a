"""
Configuration for Shape Mint API.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    API configuration settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    # API Server
    host: str = Field(
        default="127.0.0.1",
        description="API host (127.0.0.1 for local only, 0.0.0.0 for external)",
        alias="HOST",
    )
    # Hosting platforms inject PORT
    port: int = Field(
        default=8000,
        description="API port",
        alias="PORT",
    )
    debug: bool = Field(default=False, description="Enable debug mode", alias="DEBUG")
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="CORS allowed origins",
        alias="ALLOWED_ORIGINS",
    )

    # EVM
    rpc_url: str = Field(
        default="https://eth-sepolia.public.blastapi.io",
        description="EVM JSON-RPC URL",
        alias="RPC_URL",
    )
    chain_id: int = Field(
        default=11011,
        description="EVM chain ID (Shape Sepolia)",
        alias="CHAIN_ID",
    )
    minter_private_key: Optional[str] = Field(
        default=None,
        description="Private key of the account allowed to mint",
        alias="MINTER_PRIVATE_KEY",
    )
    receipt_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Max seconds to wait for a mint receipt before answering 'pending'",
        alias="RECEIPT_TIMEOUT_SECONDS",
    )
    mint_gas_limit: Optional[int] = Field(
        default=None,
        gt=0,
        description="Fixed gas limit for mint(); estimated when unset",
        alias="MINT_GAS_LIMIT",
    )

    # Collection
    nft_contract_address: Optional[str] = Field(
        default=None,
        description="NFT collection contract address",
        alias="NFT_CONTRACT_ADDRESS",
    )
    nft_image_url: str = Field(
        default="/shape-wiz.png",
        description="Image path returned with every minted token",
        alias="NFT_IMAGE_URL",
    )

    @property
    def is_minting_configured(self) -> bool:
        """True when both the contract address and the minter key are set."""
        return bool(self.nft_contract_address) and bool(self.minter_private_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
