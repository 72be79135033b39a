"""
Error types for the mint flow.

Every error knows the HTTP status it maps to and how to render itself as a
JSON payload, so the API layer needs a single exception handler.

Chain errors coming out of web3 are not typed consistently across RPC
providers, so they are classified by looking for known markers in the
error text (see CHAIN_ERROR_MARKERS).
"""

from typing import Any, Optional


class MintError(Exception):
    """Base class for errors surfaced by POST /mint-nft."""

    status_code: int = 500
    error: str = "Failed to mint NFT"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.error)

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error}


class ConfigurationError(MintError):
    """Contract address or minter key missing from the environment."""

    status_code = 500
    error = "Server configuration error: Missing contract address or private key"

    def __init__(self, error: Optional[str] = None):
        if error:
            self.error = error
        super().__init__(self.error)


class InvalidRequestError(MintError):
    """Request body is not JSON or does not carry a valid address."""

    status_code = 400
    error = "Invalid address"

    def __init__(self, field_errors: dict[str, list[str]]):
        super().__init__(f"{self.error}: {field_errors}")
        self.field_errors = field_errors

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error, "details": self.field_errors}


class AlreadyOwnsError(MintError):
    """Recipient already holds a token from the collection."""

    status_code = 400
    error = "Address already owns an NFT"
    message = "This address already has an NFT from this collection"

    def __init__(self, address: str, balance: int):
        super().__init__(f"{address} already owns {balance} token(s)")
        self.address = address
        self.balance = balance

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "balance": str(self.balance),
        }


class MintInProgressError(MintError):
    """Another request is already minting for the same address."""

    status_code = 409
    error = "Mint already in progress for this address"


class PermissionDeniedError(MintError):
    """Minter account lacks the role required by mint()."""

    status_code = 403
    error = "Minting permission denied"


class InsufficientFundsError(MintError):
    """Minter account cannot pay for gas."""

    status_code = 400
    error = "Insufficient funds for gas"


class MintFailedError(MintError):
    """Any other failure while talking to the chain."""

    status_code = 500
    error = "Failed to mint NFT"

    def __init__(self, details: str):
        super().__init__(details)
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error, "details": self.details}


class TransactionRevertedError(MintFailedError):
    """Mint transaction was mined with a failure status."""

    def __init__(self, tx_hash: str):
        super().__init__("Transaction failed")
        self.tx_hash = tx_hash


class MintPendingError(MintError):
    """Mint was broadcast but no receipt arrived before the timeout."""

    status_code = 202
    error = "Mint transaction pending"
    message = "Transaction submitted but not yet confirmed"

    def __init__(self, tx_hash: str, timeout: float):
        super().__init__(f"No receipt for {tx_hash} after {timeout}s")
        self.tx_hash = tx_hash
        self.timeout = timeout

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": False,
            "pending": True,
            "message": self.message,
            "transactionHash": self.tx_hash,
        }


# Ordered: first marker found wins.
CHAIN_ERROR_MARKERS: tuple[tuple[str, type[MintError]], ...] = (
    ("AccessControl", PermissionDeniedError),
    ("insufficient funds", InsufficientFundsError),
)


def _error_messages(exc: BaseException) -> list[str]:
    """Collect str() of the exception and everything it was raised from."""
    messages = []
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        messages.append(str(current))
        current = current.__cause__ or current.__context__
    return messages


def classify_chain_error(exc: Exception) -> MintError:
    """
    Map an exception raised by web3 (or the RPC node) to a MintError.

    MintError instances are returned unchanged. Anything not matching a
    known marker becomes MintFailedError carrying the raw message.
    """
    if isinstance(exc, MintError):
        return exc

    messages = _error_messages(exc)
    for marker, error_cls in CHAIN_ERROR_MARKERS:
        if any(marker in message for message in messages):
            return error_cls()

    return MintFailedError(str(exc) or type(exc).__name__)
