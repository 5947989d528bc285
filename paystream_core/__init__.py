"""
Paystream - stream XRP between two test wallets while a call is active.

Key features:
- Incremental payment channels: one off-chain claim per tick, redeemed on hang-up
- Direct payment mode with a short pending/completed/failed history
- secp256k1 claim signing and verification
- rippled JSON-RPC gateway plus an in-process ledger simulator
- Single-flight tick scheduling and an explicit call session object
"""

__version__ = "0.3.0"
__all__ = [
    "precision",
    "errors",
    "config",
    "logging_config",
    "crypto_utils",
    "wallet",
    "tx_metadata",
    "payment_channel",
    "gateway",
    "local_gateway",
    "controller",
    "payments",
    "scheduler",
    "session",
    "storage",
]
