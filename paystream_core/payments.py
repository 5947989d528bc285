"""
Direct payment streaming.

The simpler of the two call modes: every tick sends one on-ledger
``Payment`` from source to destination and records it in a short,
newest-first history with ``pending`` / ``completed`` / ``failed`` status.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional

from paystream_core.errors import GatewayUnavailable, PaystreamError
from paystream_core.gateway import LedgerGateway
from paystream_core.precision import format_amount
from paystream_core.wallet import Wallet

logger = logging.getLogger("paystream.payments")

PENDING = "pending"
AUTHORIZED = "authorized"   # off-chain claim signed, not yet redeemed
COMPLETED = "completed"
FAILED = "failed"

MAX_TRANSACTIONS = 4


@dataclass
class TransactionRecord:
    """One streamed transfer as shown in the call's history."""
    id: str
    amount: int
    source: str
    destination: str
    kind: str = "payment"   # "payment" or "claim"
    status: str = PENDING
    timestamp: float = field(default_factory=time.time)
    tx_hash: str = ""
    result_code: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


class TransactionHistory:
    """Bounded, newest-first list of :class:`TransactionRecord`."""

    def __init__(self, limit: int = MAX_TRANSACTIONS):
        self.limit = limit
        self._records: deque[TransactionRecord] = deque(maxlen=limit)

    def push(self, record: TransactionRecord) -> None:
        self._records.appendleft(record)

    def update(self, record_id: str, **changes) -> Optional[TransactionRecord]:
        for rec in self._records:
            if rec.id == record_id:
                for key, value in changes.items():
                    setattr(rec, key, value)
                return rec
        return None

    def clear(self) -> None:
        self._records.clear()

    def records(self) -> list[TransactionRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)


class PaymentStream:
    """Sends a fixed payment per tick and tracks it in a history."""

    def __init__(
        self,
        gateway: LedgerGateway,
        source: Wallet,
        destination: Wallet,
        amount: int,
        history: TransactionHistory | None = None,
        on_settled: Callable[[TransactionRecord], None] | None = None,
    ):
        if amount <= 0:
            raise ValueError("payment amount must be positive")
        self.gateway = gateway
        self.source = source
        self.destination = destination
        self.amount = amount
        self.history = history or TransactionHistory()
        self.on_settled = on_settled
        self.total_transferred = 0
        self.status = "Idle"

    def _new_record(self) -> TransactionRecord:
        return TransactionRecord(
            id=f"tx_{time.time_ns()}",
            amount=self.amount,
            source=self.source.address,
            destination=self.destination.address,
        )

    async def tick(self) -> bool:
        """Send one payment. True when it validated with tesSUCCESS."""
        record = self._new_record()
        self.history.push(record)
        try:
            result = await self.gateway.send_payment(self.source, self.destination.address, self.amount)
        except GatewayUnavailable:
            self.history.update(record.id, status=FAILED, result_code="unavailable")
            self.status = "Error during transfer"
            raise
        except PaystreamError as exc:
            self.history.update(record.id, status=FAILED, result_code=type(exc).__name__)
            self.status = "Error during transfer"
            logger.warning(f"Transfer error: {exc}")
            self._settled(record)
            return False

        if result.succeeded:
            self.history.update(record.id, status=COMPLETED, tx_hash=result.tx_hash,
                                result_code=result.result_code)
            self.total_transferred += self.amount
            self.status = f"Sent {format_amount(self.amount)}"
            logger.info(f"Payment {result.tx_hash[:12]} completed: {format_amount(self.amount)}")
        else:
            self.history.update(record.id, status=FAILED, tx_hash=result.tx_hash,
                                result_code=result.result_code)
            self.status = "Transaction failed"
            logger.warning(f"Payment {result.tx_hash[:12]} failed: {result.result_code}")
        self._settled(record)
        return result.succeeded

    def _settled(self, record: TransactionRecord) -> None:
        if self.on_settled is not None:
            self.on_settled(record)

    def snapshot(self) -> dict:
        return {
            "amount": self.amount,
            "total_transferred": self.total_transferred,
            "status": self.status,
        }
