"""
EVM clients for the NFT collection contract.

NFTReader wraps the read-only side (view calls, receipts) and NFTWriter
holds the minter account and sends mint() transactions. Both talk to the
same JSON-RPC endpoint through AsyncWeb3.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from eth_account import Account
from web3 import AsyncWeb3, AsyncHTTPProvider, Web3
from web3.logs import DISCARD
from web3.types import TxReceipt

from .config import Settings

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Collection ABI (minimal)
NFT_ABI = [
    {
        "inputs": [{"name": "to", "type": "address"}],
        "name": "mint",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "tokenURI",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": True, "name": "tokenId", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
]


@dataclass
class MintedToken:
    """A Transfer from the zero address found in a receipt."""

    recipient: str
    token_id: int


@dataclass
class MintReceipt:
    """The parts of a mint receipt the API cares about."""

    transaction_hash: str
    block_number: int
    succeeded: bool
    minted: list[MintedToken] = field(default_factory=list)

    def token_id_for(self, recipient: str) -> Optional[int]:
        """Token id minted to recipient in this transaction, if the event was emitted."""
        for token in self.minted:
            if token.recipient.lower() == recipient.lower():
                return token.token_id
        return None


def _collection(w3: AsyncWeb3, contract_address: str) -> Any:
    return w3.eth.contract(
        address=Web3.to_checksum_address(contract_address),
        abi=NFT_ABI,
    )


class NFTReader:
    """
    Read-only access to the collection contract.
    """

    def __init__(self, rpc_url: str, chain_id: int, contract_address: str):
        self.chain_id = chain_id
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.contract = _collection(self.w3, contract_address)

    async def check_connectivity(self) -> bool:
        """Check if EVM RPC is reachable."""
        try:
            await self.w3.eth.block_number
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """Close the provider's HTTP session."""
        await self.w3.provider.disconnect()

    async def balance_of(self, owner: str) -> int:
        """Call balanceOf(owner)."""
        return await self.contract.functions.balanceOf(
            Web3.to_checksum_address(owner)
        ).call()

    async def total_supply(self) -> int:
        """Call totalSupply()."""
        return await self.contract.functions.totalSupply().call()

    async def token_uri(self, token_id: int) -> str:
        """Call tokenURI(tokenId)."""
        return await self.contract.functions.tokenURI(token_id).call()

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> MintReceipt:
        """
        Block until tx_hash is mined.

        Raises web3.exceptions.TimeExhausted if no receipt shows up
        within timeout seconds.
        """
        receipt = await self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout
        )
        return self.parse_receipt(receipt)

    def parse_receipt(self, receipt: TxReceipt) -> MintReceipt:
        """Reduce a raw receipt to status, block and minted token ids."""
        minted = []
        # ERC-20 Transfer shares the topic but not the indexed layout; DISCARD drops it
        for event in self.contract.events.Transfer().process_receipt(receipt, errors=DISCARD):
            if event["address"].lower() != self.contract.address.lower():
                continue
            if event["args"]["from"] != ZERO_ADDRESS:
                continue
            minted.append(
                MintedToken(recipient=event["args"]["to"], token_id=event["args"]["tokenId"])
            )

        return MintReceipt(
            transaction_hash=Web3.to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
            succeeded=receipt["status"] == 1,
            minted=minted,
        )


class NFTWriter:
    """
    Sends state-changing calls signed by the minter account.
    """

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        contract_address: str,
        private_key: str,
        gas_limit: Optional[int] = None,
    ):
        self.chain_id = chain_id
        self.gas_limit = gas_limit
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.account = Account.from_key(private_key)
        self.contract = _collection(self.w3, contract_address)

    @property
    def address(self) -> str:
        """Get minter account address."""
        return self.account.address

    async def close(self) -> None:
        """Close the provider's HTTP session."""
        await self.w3.provider.disconnect()

    async def mint(self, to: str) -> str:
        """
        Sign and broadcast mint(to).

        Gas and fee fields are filled in by web3 unless a fixed gas limit is
        configured. Returns the transaction hash (0x...).
        """
        params: dict[str, Any] = {
            "chainId": self.chain_id,
            "from": self.address,
            "nonce": await self.w3.eth.get_transaction_count(self.address, "pending"),
        }
        if self.gas_limit:
            params["gas"] = self.gas_limit

        tx = await self.contract.functions.mint(
            Web3.to_checksum_address(to)
        ).build_transaction(params)

        signed = self.account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)


class ChainClients:
    """
    Readers and writers shared across requests.

    One client per distinct configuration, created on first use and kept
    until close(), so each provider opens a single HTTP session.
    """

    def __init__(self) -> None:
        self._readers: dict[tuple, NFTReader] = {}
        self._writers: dict[tuple, NFTWriter] = {}

    def __len__(self) -> int:
        return len(self._readers) + len(self._writers)

    def reader(self, settings: Settings) -> NFTReader:
        """Get (or create) the reader for settings' RPC, chain and contract."""
        if not settings.nft_contract_address:
            raise ValueError("NFT_CONTRACT_ADDRESS not configured")
        key = (settings.rpc_url, settings.chain_id, settings.nft_contract_address)
        if key not in self._readers:
            self._readers[key] = NFTReader(*key)
        return self._readers[key]

    def writer(self, settings: Settings) -> NFTWriter:
        """Get (or create) the writer for settings' RPC, chain, contract and key."""
        if not settings.nft_contract_address or not settings.minter_private_key:
            raise ValueError("NFT_CONTRACT_ADDRESS or MINTER_PRIVATE_KEY not configured")
        key = (
            settings.rpc_url,
            settings.chain_id,
            settings.nft_contract_address,
            settings.minter_private_key,
            settings.mint_gas_limit,
        )
        if key not in self._writers:
            self._writers[key] = NFTWriter(*key[:4], gas_limit=key[4])
        return self._writers[key]

    async def close(self) -> None:
        """Close every provider session and forget the clients."""
        clients: list[NFTReader | NFTWriter] = [*self._readers.values(), *self._writers.values()]
        self._readers.clear()
        self._writers.clear()
        for client in clients:
            await client.close()
