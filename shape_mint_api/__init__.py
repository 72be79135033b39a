"""
Shape Mint API - mints one collection NFT per wallet address.

Provides REST endpoints for:
- Minting a token to an address (POST /mint-nft)
- Health checks (GET /health)
"""

__version__ = "0.1.0"
