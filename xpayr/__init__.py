"""XPayr dispatch: USDC rebalancing across merchant wallets over CCTP."""

__version__ = "0.1.0"
