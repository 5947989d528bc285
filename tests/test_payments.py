"""
Tests for direct payment streaming (payments.py).

Covers:
  - Bounded newest-first transaction history
  - PaymentStream ticks: completed, failed, outage
  - on_settled callback
"""

from __future__ import annotations

import pytest

from paystream_core.errors import GatewayUnavailable
from paystream_core.payments import (
    COMPLETED,
    FAILED,
    MAX_TRANSACTIONS,
    PENDING,
    PaymentStream,
    TransactionHistory,
    TransactionRecord,
)

XRP = 1_000_000


def _record(i: int) -> TransactionRecord:
    return TransactionRecord(id=f"tx_{i}", amount=i, source="rA", destination="rB")


class TestTransactionHistory:
    def test_newest_first(self):
        h = TransactionHistory()
        h.push(_record(1))
        h.push(_record(2))
        assert [r.id for r in h.records()] == ["tx_2", "tx_1"]

    def test_bounded(self):
        h = TransactionHistory()
        for i in range(10):
            h.push(_record(i))
        assert len(h) == MAX_TRANSACTIONS == 4
        assert [r.id for r in h.records()] == ["tx_9", "tx_8", "tx_7", "tx_6"]

    def test_update(self):
        h = TransactionHistory()
        h.push(_record(1))
        rec = h.update("tx_1", status=COMPLETED, tx_hash="AB")
        assert rec.status == COMPLETED
        assert h.records()[0].tx_hash == "AB"
        assert h.update("missing", status=FAILED) is None

    def test_clear(self):
        h = TransactionHistory(limit=2)
        h.push(_record(1))
        h.clear()
        assert h.records() == []

    def test_record_defaults(self):
        rec = _record(1)
        assert rec.status == PENDING
        assert rec.kind == "payment"
        assert rec.to_dict()["amount"] == 1


class TestPaymentStream:
    @pytest.mark.asyncio
    async def test_completed_payment(self, funded, alice, bob):
        stream = PaymentStream(funded, alice, bob, 1 * XRP)
        assert await stream.tick()
        rec = stream.history.records()[0]
        assert rec.status == COMPLETED
        assert rec.tx_hash
        assert rec.result_code == "tesSUCCESS"
        assert stream.total_transferred == 1 * XRP
        assert funded.balances[bob.address] == 1001 * XRP

    @pytest.mark.asyncio
    async def test_failed_payment(self, funded, alice, bob):
        stream = PaymentStream(funded, alice, bob, 5000 * XRP)
        assert not await stream.tick()
        rec = stream.history.records()[0]
        assert rec.status == FAILED
        assert rec.result_code == "tecUNFUNDED_PAYMENT"
        assert stream.total_transferred == 0

    @pytest.mark.asyncio
    async def test_outage_marks_failed_and_raises(self, funded, alice, bob):
        stream = PaymentStream(funded, alice, bob, 1 * XRP)
        funded.available = False
        with pytest.raises(GatewayUnavailable):
            await stream.tick()
        assert stream.history.records()[0].status == FAILED

    @pytest.mark.asyncio
    async def test_history_keeps_last_four(self, funded, alice, bob):
        stream = PaymentStream(funded, alice, bob, 1 * XRP)
        for _ in range(6):
            await stream.tick()
        assert len(stream.history) == 4
        assert stream.total_transferred == 6 * XRP

    @pytest.mark.asyncio
    async def test_on_settled(self, funded, alice, bob):
        settled = []
        stream = PaymentStream(funded, alice, bob, 1 * XRP, on_settled=settled.append)
        await stream.tick()
        assert len(settled) == 1
        assert settled[0].status == COMPLETED

    def test_amount_must_be_positive(self, funded, alice, bob):
        with pytest.raises(ValueError):
            PaymentStream(funded, alice, bob, 0)

    @pytest.mark.asyncio
    async def test_snapshot(self, funded, alice, bob):
        stream = PaymentStream(funded, alice, bob, 2 * XRP)
        await stream.tick()
        snap = stream.snapshot()
        assert snap["total_transferred"] == 2 * XRP
        assert "2.000000 XRP" in snap["status"]
