"""
Tests for the mint flow outside of HTTP.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from shape_mint_api.errors import (
    AlreadyOwnsError,
    InsufficientFundsError,
    MintFailedError,
    MintInProgressError,
    PermissionDeniedError,
    TransactionRevertedError,
)
from shape_mint_api.evm import MintedToken, MintReceipt
from shape_mint_api.minting import InFlightGuard, Minter

from fakes import CONTRACT, RECIPIENT, TX_HASH, FakeReader, FakeWriter


def make_minter(reader: FakeReader, writer: FakeWriter, guard: InFlightGuard | None = None) -> Minter:
    return Minter(
        reader=reader,
        writer=writer,
        contract_address=CONTRACT,
        image_url="/shape-wiz.png",
        receipt_timeout=1.0,
        guard=guard or InFlightGuard(),
    )


class BlockingWriter(FakeWriter):
    """Writer that parks inside mint() until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def mint(self, to: str) -> str:
        self.entered.set()
        await self.release.wait()
        return await super().mint(to)


class TestMinter:
    """Tests for Minter.mint()."""

    @pytest.mark.asyncio
    async def test_success_predicts_next_token(self) -> None:
        reader = FakeReader(balance=0, supply=41)
        writer = FakeWriter()

        result = await make_minter(reader, writer).mint(RECIPIENT)

        assert result.token_id == 42
        assert result.recipient == RECIPIENT
        assert result.transaction_hash == TX_HASH
        assert result.block_number == 12345
        assert result.contract_address == CONTRACT

    @pytest.mark.asyncio
    async def test_transfer_event_for_other_recipient_ignored(self) -> None:
        """Only a Transfer to our recipient replaces the prediction."""
        reader = FakeReader(
            supply=9,
            receipt=MintReceipt(
                transaction_hash=TX_HASH,
                block_number=1,
                succeeded=True,
                minted=[MintedToken(recipient="0x" + "11" * 20, token_id=3)],
            ),
        )

        result = await make_minter(reader, FakeWriter()).mint(RECIPIENT)

        assert result.token_id == 10

    @pytest.mark.asyncio
    async def test_owner_rejected_before_supply_read(self) -> None:
        reader = FakeReader(balance=2)
        writer = FakeWriter()

        with pytest.raises(AlreadyOwnsError) as exc_info:
            await make_minter(reader, writer).mint(RECIPIENT)

        assert exc_info.value.balance == 2
        assert reader.calls == ["balanceOf"]
        assert writer.minted_to == []

    @pytest.mark.asyncio
    async def test_reverted_receipt_raises(self) -> None:
        reader = FakeReader(
            receipt=MintReceipt(transaction_hash=TX_HASH, block_number=5, succeeded=False)
        )

        with pytest.raises(TransactionRevertedError) as exc_info:
            await make_minter(reader, FakeWriter()).mint(RECIPIENT)

        assert exc_info.value.tx_hash == TX_HASH
        assert isinstance(exc_info.value, MintFailedError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("AccessControl: account is missing role", PermissionDeniedError),
            ("insufficient funds for gas * price + value", InsufficientFundsError),
            ("nonce too low", MintFailedError),
        ],
    )
    async def test_write_errors_classified(self, message, expected) -> None:
        writer = FakeWriter(error=RuntimeError(message))

        with pytest.raises(expected) as exc_info:
            await make_minter(FakeReader(), writer).mint(RECIPIENT)

        # Original exception stays attached for debugging
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_same_address_refused_while_in_flight(self) -> None:
        guard = InFlightGuard()
        writer = BlockingWriter()
        minter = make_minter(FakeReader(), writer, guard)

        first = asyncio.create_task(minter.mint(RECIPIENT))
        await writer.entered.wait()

        with pytest.raises(MintInProgressError):
            await minter.mint(RECIPIENT.lower())

        writer.release.set()
        result = await first

        assert result.token_id == 42
        assert writer.minted_to == [RECIPIENT]
        assert not guard._addresses

    @pytest.mark.asyncio
    async def test_other_addresses_not_blocked(self) -> None:
        guard = InFlightGuard()
        writer = BlockingWriter()
        minter = make_minter(FakeReader(), writer, guard)
        other = "0x" + "ab" * 20

        first = asyncio.create_task(minter.mint(RECIPIENT))
        await writer.entered.wait()

        second_minter = make_minter(FakeReader(), FakeWriter(), guard)
        result = await second_minter.mint(other)
        assert result.recipient == other

        writer.release.set()
        await first


class TestInFlightGuard:
    """Tests for InFlightGuard."""

    def test_hold_is_case_insensitive(self) -> None:
        guard = InFlightGuard()

        with guard.hold(RECIPIENT):
            assert guard._addresses == {RECIPIENT.lower()}
            with pytest.raises(MintInProgressError):
                with guard.hold(RECIPIENT.lower()):
                    pass

        assert not guard._addresses

    def test_released_on_exception(self) -> None:
        guard = InFlightGuard()

        with pytest.raises(RuntimeError):
            with guard.hold(RECIPIENT):
                raise RuntimeError("boom")

        assert not guard._addresses

    def test_refuses_from_another_thread(self) -> None:
        """The guard is not tied to an event loop; other threads see the hold."""
        guard = InFlightGuard()

        def enter_from_thread() -> None:
            with guard.hold(RECIPIENT.lower()):
                pass

        with guard.hold(RECIPIENT):
            with ThreadPoolExecutor(max_workers=1) as pool:
                with pytest.raises(MintInProgressError):
                    pool.submit(enter_from_thread).result()

        assert not guard._addresses
