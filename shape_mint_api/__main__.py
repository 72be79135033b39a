"""
Entry point for running the CLI as a module.

Usage:
    python -m shape_mint_api
"""

from shape_mint_api.cli import main

if __name__ == "__main__":
    main()
