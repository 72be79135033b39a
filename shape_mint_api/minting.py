"""
Mint flow for POST /mint-nft.

One request runs strictly in order:

    check balance -> read supply -> send mint -> wait for receipt

and ends either with a MintResult or a MintError. The chain clients are
injected so the flow can run against fakes in tests.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Protocol

import structlog
from web3.exceptions import TimeExhausted

from .errors import (
    AlreadyOwnsError,
    MintError,
    MintFailedError,
    MintInProgressError,
    MintPendingError,
    TransactionRevertedError,
    classify_chain_error,
)
from .evm import MintReceipt

logger = structlog.get_logger()


class ChainReader(Protocol):
    """Protocol for read-only collection access (real or fake)."""

    async def balance_of(self, owner: str) -> int: ...
    async def total_supply(self) -> int: ...
    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> MintReceipt: ...


class ChainWriter(Protocol):
    """Protocol for the signing side (real or fake)."""

    async def mint(self, to: str) -> str: ...


@dataclass
class MintResult:
    """Outcome of a confirmed mint."""

    token_id: int
    contract_address: str
    image_url: str
    recipient: str
    transaction_hash: str
    block_number: int


class InFlightGuard:
    """
    Tracks addresses with a mint currently running in this process.

    A second request for an address already in the set is refused instead of
    racing the first one through the balance check.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._addresses: set[str] = set()

    @contextmanager
    def hold(self, address: str) -> Iterator[None]:
        key = address.lower()
        with self._lock:
            if key in self._addresses:
                raise MintInProgressError()
            self._addresses.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._addresses.discard(key)


class Minter:
    """
    Mints one collection token per address.
    """

    def __init__(
        self,
        reader: ChainReader,
        writer: ChainWriter,
        contract_address: str,
        image_url: str,
        receipt_timeout: float,
        guard: InFlightGuard,
    ):
        self.reader = reader
        self.writer = writer
        self.contract_address = contract_address
        self.image_url = image_url
        self.receipt_timeout = receipt_timeout
        self.guard = guard

    async def mint(self, address: str) -> MintResult:
        """
        Mint a token to address unless it already owns one.

        Raises:
            MintError: every failure, already classified for the HTTP layer
        """
        with self.guard.hold(address):
            try:
                return await self._mint(address)
            except MintError as e:
                if isinstance(e, MintFailedError):
                    logger.error("Failed to mint NFT", error=str(e), address=address)
                raise
            except Exception as e:
                error = classify_chain_error(e)
                logger.error(
                    "Failed to mint NFT",
                    error=str(e),
                    address=address,
                    classified_as=type(error).__name__,
                )
                raise error from e

    async def _mint(self, address: str) -> MintResult:
        logger.info("Mint requested", address=address)

        balance = await self.reader.balance_of(address)
        if balance > 0:
            logger.info("Address already owns NFT", address=address, balance=balance)
            raise AlreadyOwnsError(address, balance)

        # Best-effort: only right if no other mint lands before ours
        predicted_token_id = await self.reader.total_supply() + 1

        tx_hash = await self.writer.mint(address)
        logger.info("Mint submitted", address=address, tx_hash=tx_hash)

        try:
            receipt = await self.reader.wait_for_receipt(tx_hash, self.receipt_timeout)
        except TimeExhausted:
            logger.warning(
                "Mint receipt timed out",
                address=address,
                tx_hash=tx_hash,
                timeout=self.receipt_timeout,
            )
            raise MintPendingError(tx_hash, self.receipt_timeout)

        if not receipt.succeeded:
            raise TransactionRevertedError(tx_hash)

        token_id = receipt.token_id_for(address)
        if token_id is None:
            token_id = predicted_token_id
        elif token_id != predicted_token_id:
            logger.warning(
                "Minted token id differs from prediction",
                address=address,
                token_id=token_id,
                predicted=predicted_token_id,
            )

        logger.info(
            "NFT minted",
            address=address,
            token_id=token_id,
            tx_hash=tx_hash,
            block_number=receipt.block_number,
        )

        return MintResult(
            token_id=token_id,
            contract_address=self.contract_address,
            image_url=self.image_url,
            recipient=address,
            transaction_hash=tx_hash,
            block_number=receipt.block_number,
        )
