"""
Tests for the command line runner (run_call.py).
"""

from __future__ import annotations

import pytest

import run_call
from paystream_core.config import PaystreamConfig


class TestArgs:
    def test_flags_override_config(self):
        args = run_call.parse_args([
            "--gateway", "rpc", "--url", "http://localhost:5005",
            "--mode", "payment", "--interval", "2", "--db", "x.db", "--log-level", "debug",
        ])
        cfg = run_call.apply_args(PaystreamConfig(), args)
        assert cfg.gateway.mode == "rpc"
        assert cfg.gateway.url == "http://localhost:5005"
        assert cfg.call.mode == "payment"
        assert cfg.call.transfer_interval == 2.0
        assert cfg.storage.enabled
        assert cfg.storage.path == "x.db"
        assert cfg.logging.level == "DEBUG"

    def test_no_flags_keeps_config(self):
        cfg = run_call.apply_args(PaystreamConfig(), run_call.parse_args([]))
        assert cfg.gateway.mode == "local"
        assert cfg.call.mode == "channel"
        assert not cfg.storage.enabled

    def test_bad_choice_exits(self):
        with pytest.raises(SystemExit):
            run_call.parse_args(["--mode", "escrow"])


class TestTimedCall:
    @pytest.mark.asyncio
    async def test_timed_call_settles(self, capsys):
        code = await run_call.main(["--interval", "0.1", "--duration", "1", "--log-level", "WARNING"])
        assert code == 0
        out = capsys.readouterr().out
        assert "Call ended" in out
        assert "destination" in out
