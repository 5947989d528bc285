"""
TOML-based configuration for Paystream.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from paystream_core.config import load_config
    cfg = load_config("paystream.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from paystream_core.precision import xrp_to_drops

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib  # type: ignore[import]
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[import,no-redef]


GATEWAY_MODES = ("local", "rpc")
CALL_MODES = ("channel", "payment")


@dataclass
class GatewayConfig:
    """Where the ledger lives and how to talk to it."""
    mode: str = "local"                     # "local" simulator or "rpc"
    url: str = "https://s.altnet.rippletest.net:51234"
    faucet_url: str = "https://faucet.altnet.rippletest.net/accounts"
    timeout_seconds: float = 0.0            # 0 = no timeout on gateway calls
    poll_interval: float = 1.0              # seconds between tx validation polls
    max_polls: int = 20                     # give up waiting for validation after this
    # Local simulator only
    latency_seconds: float = 0.0
    faucet_amount_xrp: float = 1000.0


@dataclass
class ChannelConfig:
    """Payment channel funding and growth."""
    reserve_xrp: float = 10.0
    increment_xrp: float = 1.0
    settle_delay: int = 86400
    # Close the channel even when the final claim could not be redeemed.
    close_on_failed_claim: bool = True

    @property
    def reserve_drops(self) -> int:
        return xrp_to_drops(self.reserve_xrp)

    @property
    def increment_drops(self) -> int:
        return xrp_to_drops(self.increment_xrp)


@dataclass
class CallConfig:
    """Call session timing and streaming mode."""
    mode: str = "channel"          # "channel" or "payment"
    transfer_interval: float = 5.0
    timer_interval: float = 1.0
    max_transactions: int = 4
    payment_xrp: float = 1.0

    @property
    def payment_drops(self) -> int:
        return xrp_to_drops(self.payment_xrp)


@dataclass
class StorageConfig:
    """Persistence of test wallets and transfer history."""
    enabled: bool = False
    path: str = "data/paystream.db"
    passphrase: str = ""            # encrypts stored wallet secrets


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class PaystreamConfig:
    """Top-level configuration container."""
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    call: CallConfig = field(default_factory=CallConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Raise ``ValueError`` on settings the session cannot run with."""
        if self.gateway.mode not in GATEWAY_MODES:
            raise ValueError(f"gateway.mode must be one of {GATEWAY_MODES}, got {self.gateway.mode!r}")
        if self.call.mode not in CALL_MODES:
            raise ValueError(f"call.mode must be one of {CALL_MODES}, got {self.call.mode!r}")
        if self.call.transfer_interval <= 0 or self.call.timer_interval <= 0:
            raise ValueError("call intervals must be positive")
        if self.call.max_transactions < 1:
            raise ValueError("call.max_transactions must be at least 1")
        if self.channel.increment_drops <= 0:
            raise ValueError("channel.increment_xrp must be positive")
        if self.channel.increment_drops > self.channel.reserve_drops:
            raise ValueError("channel.increment_xrp cannot exceed channel.reserve_xrp")
        if self.channel.settle_delay < 0:
            raise ValueError("channel.settle_delay must be non-negative")


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under) and not isinstance(getattr(type(dc), key_under, None), property):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> PaystreamConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        PAYSTREAM_GATEWAY_MODE -> gateway.mode
        PAYSTREAM_GATEWAY_URL  -> gateway.url
        PAYSTREAM_CALL_MODE    -> call.mode
        PAYSTREAM_INTERVAL     -> call.transfer_interval
        PAYSTREAM_LOG_LEVEL    -> logging.level
        PAYSTREAM_LOG_FMT      -> logging.format
        PAYSTREAM_DB_PATH      -> storage.path (enables storage)
        PAYSTREAM_PASSPHRASE   -> storage.passphrase
    """
    cfg = PaystreamConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("gateway", cfg.gateway),
                ("channel", cfg.channel),
                ("call", cfg.call),
                ("storage", cfg.storage),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("PAYSTREAM_GATEWAY_MODE"):
        cfg.gateway.mode = v.lower()
    if v := os.environ.get("PAYSTREAM_GATEWAY_URL"):
        cfg.gateway.url = v
    if v := os.environ.get("PAYSTREAM_CALL_MODE"):
        cfg.call.mode = v.lower()
    if v := os.environ.get("PAYSTREAM_INTERVAL"):
        cfg.call.transfer_interval = float(v)
    if v := os.environ.get("PAYSTREAM_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("PAYSTREAM_LOG_FMT"):
        cfg.logging.format = v
    if v := os.environ.get("PAYSTREAM_DB_PATH"):
        cfg.storage.path = v
        cfg.storage.enabled = True
    if v := os.environ.get("PAYSTREAM_PASSPHRASE"):
        cfg.storage.passphrase = v

    return cfg
