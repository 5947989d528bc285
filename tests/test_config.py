"""
Tests for paystream_core.config — TOML configuration and environment overrides.

Covers:
  - Default values for all dataclass sections
  - TOML parsing and section merging
  - Environment variable overrides (precedence over TOML)
  - Derived drop amounts
  - validate() errors
  - _merge helper edge cases
"""

from __future__ import annotations

import os
import textwrap
import unittest
from unittest.mock import patch

from paystream_core.config import (
    CallConfig,
    ChannelConfig,
    GatewayConfig,
    LoggingConfig,
    PaystreamConfig,
    StorageConfig,
    _merge,
    load_config,
)

# ═══════════════════════════════════════════════════════════════════
#  Defaults
# ═══════════════════════════════════════════════════════════════════

class TestDefaults(unittest.TestCase):

    def test_gateway_defaults(self):
        g = GatewayConfig()
        self.assertEqual(g.mode, "local")
        self.assertIn("altnet", g.url)
        self.assertEqual(g.timeout_seconds, 0.0)
        self.assertEqual(g.faucet_amount_xrp, 1000.0)

    def test_channel_defaults(self):
        c = ChannelConfig()
        self.assertEqual(c.reserve_drops, 10_000_000)
        self.assertEqual(c.increment_drops, 1_000_000)
        self.assertEqual(c.settle_delay, 86400)
        self.assertTrue(c.close_on_failed_claim)

    def test_call_defaults(self):
        c = CallConfig()
        self.assertEqual(c.mode, "channel")
        self.assertEqual(c.transfer_interval, 5.0)
        self.assertEqual(c.timer_interval, 1.0)
        self.assertEqual(c.max_transactions, 4)
        self.assertEqual(c.payment_drops, 1_000_000)

    def test_storage_defaults(self):
        s = StorageConfig()
        self.assertFalse(s.enabled)
        self.assertEqual(s.passphrase, "")

    def test_logging_defaults(self):
        lg = LoggingConfig()
        self.assertEqual(lg.level, "INFO")
        self.assertEqual(lg.format, "human")
        self.assertIsNone(lg.file)

    def test_defaults_validate(self):
        PaystreamConfig().validate()


# ═══════════════════════════════════════════════════════════════════
#  Validation
# ═══════════════════════════════════════════════════════════════════

class TestValidate(unittest.TestCase):

    def _bad(self, mutate):
        cfg = PaystreamConfig()
        mutate(cfg)
        with self.assertRaises(ValueError):
            cfg.validate()

    def test_unknown_gateway_mode(self):
        self._bad(lambda c: setattr(c.gateway, "mode", "ws"))

    def test_unknown_call_mode(self):
        self._bad(lambda c: setattr(c.call, "mode", "escrow"))

    def test_non_positive_interval(self):
        self._bad(lambda c: setattr(c.call, "transfer_interval", 0))
        self._bad(lambda c: setattr(c.call, "timer_interval", -1))

    def test_zero_history(self):
        self._bad(lambda c: setattr(c.call, "max_transactions", 0))

    def test_increment_above_reserve(self):
        self._bad(lambda c: setattr(c.channel, "increment_xrp", 20.0))

    def test_zero_increment(self):
        self._bad(lambda c: setattr(c.channel, "increment_xrp", 0))

    def test_negative_settle_delay(self):
        self._bad(lambda c: setattr(c.channel, "settle_delay", -5))


# ═══════════════════════════════════════════════════════════════════
#  TOML loading
# ═══════════════════════════════════════════════════════════════════

class TestLoadToml(unittest.TestCase):

    def _write(self, tmpdir, body):
        path = os.path.join(tmpdir, "paystream.toml")
        with open(path, "w") as f:
            f.write(textwrap.dedent(body))
        return path

    def test_missing_file_gives_defaults(self):
        cfg = load_config("/nonexistent/paystream.toml")
        self.assertEqual(cfg.call.mode, "channel")

    def test_none_path(self):
        cfg = load_config(None)
        self.assertIsInstance(cfg, PaystreamConfig)

    def test_sections_merged(self):
        import tempfile
        with tempfile.TemporaryDirectory() as d:
            path = self._write(d, """
                [gateway]
                mode = "rpc"
                url = "http://localhost:5005"
                poll-interval = 0.5

                [channel]
                reserve_xrp = 25
                increment_xrp = 0.5

                [call]
                mode = "payment"
                transfer_interval = 2.0

                [logging]
                level = "DEBUG"
            """)
            cfg = load_config(path)
        self.assertEqual(cfg.gateway.mode, "rpc")
        self.assertEqual(cfg.gateway.url, "http://localhost:5005")
        self.assertEqual(cfg.gateway.poll_interval, 0.5)
        self.assertEqual(cfg.channel.reserve_drops, 25_000_000)
        self.assertEqual(cfg.channel.increment_drops, 500_000)
        self.assertEqual(cfg.call.mode, "payment")
        self.assertEqual(cfg.call.transfer_interval, 2.0)
        self.assertEqual(cfg.logging.level, "DEBUG")
        # untouched sections keep defaults
        self.assertFalse(cfg.storage.enabled)


# ═══════════════════════════════════════════════════════════════════
#  Environment overrides
# ═══════════════════════════════════════════════════════════════════

class TestEnvOverrides(unittest.TestCase):

    @patch.dict(os.environ, {
        "PAYSTREAM_GATEWAY_MODE": "RPC",
        "PAYSTREAM_GATEWAY_URL": "http://node:5005",
        "PAYSTREAM_CALL_MODE": "Payment",
        "PAYSTREAM_INTERVAL": "2.5",
        "PAYSTREAM_LOG_LEVEL": "debug",
        "PAYSTREAM_LOG_FMT": "json",
    })
    def test_env_values(self):
        cfg = load_config()
        self.assertEqual(cfg.gateway.mode, "rpc")
        self.assertEqual(cfg.gateway.url, "http://node:5005")
        self.assertEqual(cfg.call.mode, "payment")
        self.assertEqual(cfg.call.transfer_interval, 2.5)
        self.assertEqual(cfg.logging.level, "DEBUG")
        self.assertEqual(cfg.logging.format, "json")

    @patch.dict(os.environ, {"PAYSTREAM_DB_PATH": "/tmp/x.db", "PAYSTREAM_PASSPHRASE": "s3cret"})
    def test_db_path_enables_storage(self):
        cfg = load_config()
        self.assertTrue(cfg.storage.enabled)
        self.assertEqual(cfg.storage.path, "/tmp/x.db")
        self.assertEqual(cfg.storage.passphrase, "s3cret")

    def test_env_beats_toml(self):
        import tempfile
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "p.toml")
            with open(path, "w") as f:
                f.write('[call]\nmode = "channel"\n')
            with patch.dict(os.environ, {"PAYSTREAM_CALL_MODE": "payment"}):
                cfg = load_config(path)
        self.assertEqual(cfg.call.mode, "payment")


# ═══════════════════════════════════════════════════════════════════
#  _merge
# ═══════════════════════════════════════════════════════════════════

class TestMerge(unittest.TestCase):

    def test_unknown_keys_ignored(self):
        g = GatewayConfig()
        _merge(g, {"bogus": 1, "mode": "rpc"})
        self.assertEqual(g.mode, "rpc")
        self.assertFalse(hasattr(g, "bogus"))

    def test_hyphenated_keys(self):
        g = GatewayConfig()
        _merge(g, {"max-polls": 3})
        self.assertEqual(g.max_polls, 3)

    def test_properties_not_overwritten(self):
        c = ChannelConfig()
        _merge(c, {"reserve_drops": 5})
        self.assertEqual(c.reserve_drops, 10_000_000)
