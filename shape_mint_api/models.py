"""
Pydantic models for API requests and responses.
"""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from web3 import Web3


ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


def is_valid_address(value: str) -> bool:
    """0x + 40 hex digits; mixed case must also be a valid EIP-55 checksum."""
    if not ADDRESS_RE.fullmatch(value):
        return False
    # All-lower or all-upper hex carries no checksum
    digits = value[2:]
    if digits == digits.lower() or digits == digits.upper():
        return True
    return Web3.is_checksum_address(value)


# ============================================================================
# Mint NFT
# ============================================================================

class MintNftRequest(BaseModel):
    """Request to mint a collection token to an address."""

    address: str = Field(..., description="Recipient EVM address (0x + 40 hex digits)")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "address": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
                }
            ]
        }
    }

    @field_validator("address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        if not is_valid_address(value):
            raise ValueError("Invalid Ethereum address format")
        return value


def flatten_field_errors(exc: ValidationError) -> dict[str, list[str]]:
    """Group pydantic errors by top-level field, keeping only the messages."""
    fields: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("body",)
        name = str(loc[0])
        message = err["msg"]
        # Strip pydantic's "Value error, " prefix for custom validators
        if err["type"] == "value_error":
            message = str(err.get("ctx", {}).get("error", message))
        fields.setdefault(name, []).append(message)
    return fields


class MintNftResponse(BaseModel):
    """Successful mint. All chain integers are decimal strings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = Field(True, description="Always true for a completed mint")
    message: str = Field("NFT minted successfully!", description="Human readable status")
    token_id: str = Field(..., pattern=r"^[0-9]+$", description="Minted token id")
    contract_address: str = Field(..., description="Collection contract address")
    image_url: str = Field(..., description="Token image path")
    recipient: str = Field(..., description="Address the token was minted to")
    transaction_hash: str = Field(..., description="Mint transaction hash (0x...)")
    block_number: str = Field(..., pattern=r"^[0-9]+$", description="Inclusion block number")


class ErrorResponse(BaseModel):
    """Error payload returned for any non-2xx response."""

    error: str = Field(..., description="Error summary")
    details: Optional[Any] = Field(None, description="Field errors or raw failure message")
    message: Optional[str] = Field(None, description="Extra explanation")
    balance: Optional[str] = Field(None, description="Current balance (ownership conflict only)")


class MintPendingResponse(BaseModel):
    """Mint broadcast but not confirmed before the receipt timeout."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = Field(False)
    pending: bool = Field(True)
    message: str = Field(..., description="Human readable status")
    transaction_hash: str = Field(..., description="Broadcast transaction hash (0x...)")


# ============================================================================
# Health Check
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    evm_rpc: bool = Field(..., description="EVM RPC connectivity")
    chain_id: int = Field(..., description="Configured chain ID")
    contract_address: Optional[str] = Field(None, description="Configured NFT contract address")
    minter_configured: bool = Field(..., description="Contract address and minter key are both set")
