"""
Payment channel types for Paystream.

Two views of the same thing live here:

  - :class:`Channel` and :class:`Claim` are what the controller holds for
    one call session: the ledger-assigned id, the funded reserve and the
    lifecycle state.
  - :class:`PaymentChannel` and :class:`PaymentChannelManager` are the
    ledger-side records kept by the local simulator, following the XRP
    Ledger's PayChannel rules (monotonic claim balance, settle delay on a
    source-initiated close).

All amounts are integer drops.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class ChannelState(Enum):
    UNOPENED = "unopened"
    OPENING = "opening"
    OPEN = "open"
    CLAIMING = "claiming"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class Claim:
    """Source's signed promise that destination may redeem up to ``amount``."""
    channel_id: str
    amount: int
    signature: str

    def to_dict(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "amount": self.amount,
            "signature": self.signature,
        }


@dataclass
class Channel:
    """The controller's view of the channel it opened."""
    channel_id: str
    source: str
    destination: str
    reserve: int
    settle_delay: int
    public_key: str
    state: ChannelState = ChannelState.OPEN
    opened_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "source": self.source,
            "destination": self.destination,
            "reserve": self.reserve,
            "settle_delay": self.settle_delay,
            "public_key": self.public_key,
            "state": self.state.value,
            "opened_at": self.opened_at,
        }


@dataclass
class PaymentChannel:
    """Ledger entry for a unidirectional payment channel."""
    channel_id: str
    account: str            # channel creator / funder
    destination: str        # channel recipient
    amount: int             # total drops deposited into channel
    balance: int            # drops already claimed by destination
    settle_delay: int       # seconds after close request before channel settles
    public_key: str         # hex pubkey authorised to sign claims
    cancel_after: int = 0   # absolute expiration (0 = no expiration)
    create_time: float = field(default_factory=time.time)
    close_requested: bool = False
    close_request_time: float = 0.0
    closed: bool = False

    @property
    def available(self) -> int:
        """Drops remaining in the channel that can be claimed."""
        return max(0, self.amount - self.balance)

    def can_claim(self, claim_balance: int, now: float | None = None) -> tuple[bool, str]:
        """Check if a claim for new balance is valid."""
        if self.closed:
            return False, "tecNO_ENTRY"
        if now is None:
            now = time.time()
        if self.cancel_after > 0 and now >= self.cancel_after:
            return False, "tecEXPIRED"
        if claim_balance <= self.balance:
            return False, "tecUNFUNDED_PAYMENT"
        if claim_balance > self.amount:
            return False, "tecUNFUNDED_PAYMENT"
        return True, "tesSUCCESS"

    def can_close(self, requester: str, now: float | None = None) -> tuple[bool, str]:
        """Check if the channel can be closed by ``requester``."""
        if self.closed:
            return False, "tecNO_ENTRY"
        if requester not in (self.account, self.destination):
            return False, "tecNO_PERMISSION"
        return True, "tesSUCCESS"

    def to_dict(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "account": self.account,
            "destination": self.destination,
            "amount": self.amount,
            "balance": self.balance,
            "settle_delay": self.settle_delay,
            "public_key": self.public_key,
            "cancel_after": self.cancel_after,
            "create_time": self.create_time,
            "close_requested": self.close_requested,
            "closed": self.closed,
            "available": self.available,
        }


class PaymentChannelManager:
    """All payment channels held by the simulated ledger."""

    def __init__(self):
        self.channels: dict[str, PaymentChannel] = {}

    def create_channel(
        self,
        channel_id: str,
        account: str,
        destination: str,
        amount: int,
        settle_delay: int,
        public_key: str = "",
        cancel_after: int = 0,
        now: float | None = None,
    ) -> PaymentChannel:
        if channel_id in self.channels:
            raise ValueError(f"Channel {channel_id} already exists")
        ch = PaymentChannel(
            channel_id=channel_id,
            account=account,
            destination=destination,
            amount=amount,
            balance=0,
            settle_delay=settle_delay,
            public_key=public_key,
            cancel_after=cancel_after,
            create_time=now if now is not None else time.time(),
        )
        self.channels[channel_id] = ch
        return ch

    def claim(
        self, channel_id: str, new_balance: int, now: float | None = None,
    ) -> tuple[PaymentChannel, int, str]:
        """Process a claim. Returns (channel, drops_paid_out, result_code)."""
        ch = self.channels.get(channel_id)
        if ch is None:
            raise KeyError(f"Channel {channel_id} not found")
        ok, code = ch.can_claim(new_balance, now)
        if not ok:
            return ch, 0, code
        payout = new_balance - ch.balance
        ch.balance = new_balance
        return ch, payout, code

    def request_close(
        self, channel_id: str, requester: str, now: float | None = None,
    ) -> tuple[PaymentChannel, bool, str]:
        """Request or finalise channel closure. Returns (channel, is_closed, result_code).

        The destination, an emptied channel, or an elapsed settle delay
        close immediately; otherwise a source request starts the delay.
        """
        ch = self.channels.get(channel_id)
        if ch is None:
            raise KeyError(f"Channel {channel_id} not found")
        if now is None:
            now = time.time()
        ok, code = ch.can_close(requester, now)
        if not ok:
            return ch, False, code
        if requester == ch.destination or ch.available == 0:
            ch.closed = True
            return ch, True, code
        if ch.close_requested and now >= ch.close_request_time + ch.settle_delay:
            ch.closed = True
            return ch, True, code
        if not ch.close_requested:
            ch.close_requested = True
            ch.close_request_time = now
            if ch.settle_delay == 0:
                ch.closed = True
                return ch, True, code
        return ch, False, code

    def get_channel(self, channel_id: str) -> PaymentChannel | None:
        return self.channels.get(channel_id)

    def get_channels_for_account(self, account: str) -> list[PaymentChannel]:
        return [c for c in self.channels.values()
                if (c.account == account or c.destination == account)
                and not c.closed]

    def total_locked(self) -> int:
        return sum(c.amount - c.balance for c in self.channels.values()
                   if not c.closed)
