"""
Fake chain clients shared by the tests.
"""

from shape_mint_api.evm import MintReceipt

CONTRACT = "0x1234567890123456789012345678901234567890"
MINTER_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
RECIPIENT = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
TX_HASH = "0x" + "fe" * 32


class FakeReader:
    """In-memory stand-in for NFTReader."""

    def __init__(
        self,
        balance: int = 0,
        supply: int = 41,
        receipt: MintReceipt | None = None,
        receipt_error: Exception | None = None,
    ):
        self.balance = balance
        self.supply = supply
        self.receipt = receipt or MintReceipt(
            transaction_hash=TX_HASH, block_number=12345, succeeded=True
        )
        self.receipt_error = receipt_error
        self.calls: list[str] = []

    async def balance_of(self, owner: str) -> int:
        self.calls.append("balanceOf")
        return self.balance

    async def total_supply(self) -> int:
        self.calls.append("totalSupply")
        return self.supply

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> MintReceipt:
        self.calls.append("waitForReceipt")
        if self.receipt_error:
            raise self.receipt_error
        return self.receipt


class FakeWriter:
    """In-memory stand-in for NFTWriter."""

    def __init__(self, tx_hash: str = TX_HASH, error: Exception | None = None):
        self.tx_hash = tx_hash
        self.error = error
        self.minted_to: list[str] = []

    async def mint(self, to: str) -> str:
        self.minted_to.append(to)
        if self.error:
            raise self.error
        return self.tx_hash
