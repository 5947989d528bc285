"""
Incremental payment channel controller.

Opens one unidirectional channel from ``source`` to ``destination``, grows
an off-chain claim by a fixed increment on every tick, and redeems the
highest claim before closing the channel when the call ends.

Lifecycle::

    UNOPENED -> OPENING -> OPEN <-> CLAIMING
                   |         |
                   v         v
                UNOPENED  CLOSING -> CLOSED

``total_transferred`` only moves on a tick whose claim was both signed and
verified, and never beyond the funded reserve.  Tick failures are logged
no-ops; the next tick retries the same increment.  ``GatewayUnavailable``
is never swallowed here: the session decides what a dead gateway means.
"""

from __future__ import annotations

import logging

from paystream_core.errors import (
    AuthorizationFailed,
    ChannelCreationFailed,
    ChannelStateError,
    GatewayUnavailable,
    ReserveExceeded,
    SubmissionRejected,
    VerificationFailed,
)
from paystream_core.gateway import LedgerGateway
from paystream_core.payment_channel import Channel, ChannelState, Claim
from paystream_core.precision import format_amount
from paystream_core.tx_metadata import created_channel_id
from paystream_core.wallet import Wallet

logger = logging.getLogger("paystream.controller")


class PaymentChannelController:
    """Owns one channel and its claim counters for a single call session."""

    def __init__(
        self,
        gateway: LedgerGateway,
        source: Wallet,
        destination: Wallet,
        increment: int,
        close_on_failed_claim: bool = True,
    ):
        if increment <= 0:
            raise ValueError("increment must be a positive number of drops")
        self.gateway = gateway
        self.source = source
        self.destination = destination
        self.increment = increment
        self.close_on_failed_claim = close_on_failed_claim

        self.channel: Channel | None = None
        self.state = ChannelState.UNOPENED
        self.total_transferred = 0
        self.last_authorized_amount = 0
        self.stranded_amount = 0
        self.status = "No channel"

    def _ctx(self) -> dict:
        return {"channel_id": self.channel.channel_id if self.channel else None}

    def _set_state(self, state: ChannelState) -> None:
        self.state = state
        if self.channel is not None:
            self.channel.state = state

    # ── Open ────────────────────────────────────────────────────

    async def open(
        self,
        source: Wallet,
        destination: Wallet,
        reserve: int,
        settle_delay: int,
    ) -> str:
        """Create and fund the channel; returns the ledger-assigned id."""
        if self.state not in (ChannelState.UNOPENED, ChannelState.CLOSED):
            raise ChannelStateError(f"Cannot open a channel while {self.state.value}")
        if reserve < self.increment:
            raise ValueError("reserve must cover at least one increment")

        self.source = source
        self.destination = destination
        self.channel = None
        self.total_transferred = 0
        self.last_authorized_amount = 0
        self.stranded_amount = 0
        self._set_state(ChannelState.OPENING)
        self.status = "Opening payment channel..."
        logger.info(
            f"Opening channel {source.address} -> {destination.address} "
            f"reserve {format_amount(reserve)}, settle delay {settle_delay}s"
        )

        try:
            result = await self.gateway.open_channel(
                source, destination.address, reserve, settle_delay, source.public_key,
            )
        except GatewayUnavailable:
            self._set_state(ChannelState.UNOPENED)
            self.status = "Gateway unavailable while opening channel"
            raise

        if not result.succeeded:
            self._set_state(ChannelState.UNOPENED)
            self.status = f"Channel creation failed: {result.result_code}"
            raise ChannelCreationFailed(f"PaymentChannelCreate rejected: {result.result_code}")

        channel_id = created_channel_id(result.meta)
        if channel_id is None:
            self._set_state(ChannelState.UNOPENED)
            self.status = "Channel creation failed: no channel in metadata"
            raise ChannelCreationFailed(f"No PayChannel created by {result.tx_hash}")

        self.channel = Channel(
            channel_id=channel_id,
            source=source.address,
            destination=destination.address,
            reserve=reserve,
            settle_delay=settle_delay,
            public_key=source.public_key,
        )
        self._set_state(ChannelState.OPEN)
        self.status = "Channel open"
        logger.info(f"Channel open: {channel_id}", extra=self._ctx())
        return channel_id

    # ── Claims ──────────────────────────────────────────────────

    async def authorize_claim(self, channel_id: str, amount: int) -> Claim:
        """Have the source sign a cumulative claim. Never touches the ledger."""
        if amount < 0:
            raise ReserveExceeded(amount, self.channel.reserve if self.channel else 0)
        if self.channel is not None and channel_id == self.channel.channel_id and amount > self.channel.reserve:
            raise ReserveExceeded(amount, self.channel.reserve)

        signature = await self.gateway.authorize_offchain(channel_id, amount, self.source.secret)
        if not signature:
            raise AuthorizationFailed(f"No signature for claim of {amount} drops")
        return Claim(channel_id=channel_id, amount=amount, signature=signature)

    async def verify_claim(self, claim: Claim) -> bool:
        """Check ``claim`` against the channel's public key. False is not an error."""
        public_key = self.channel.public_key if self.channel else self.source.public_key
        return await self.gateway.verify_signature(
            claim.channel_id, claim.signature, public_key, claim.amount,
        )

    async def tick(self) -> bool:
        """Grow the authorized total by one increment. True if it moved."""
        if self.state is not ChannelState.OPEN or self.channel is None:
            logger.info(f"Tick skipped: channel is {self.state.value}")
            return False

        next_amount = self.total_transferred + self.increment
        if next_amount > self.channel.reserve:
            self.status = "Channel reserve exhausted"
            logger.warning(
                f"Tick refused: {next_amount} drops would exceed reserve {self.channel.reserve}",
                extra=self._ctx(),
            )
            return False

        self._set_state(ChannelState.CLAIMING)
        try:
            claim = await self.authorize_claim(self.channel.channel_id, next_amount)
            if not await self.verify_claim(claim):
                raise VerificationFailed(f"Claim of {next_amount} drops did not verify")
        except (AuthorizationFailed, VerificationFailed) as exc:
            self.status = f"Claim failed: {exc}"
            logger.warning(f"Tick no-op: {exc}", extra=self._ctx())
            return False
        finally:
            if self.state is ChannelState.CLAIMING:
                self._set_state(ChannelState.OPEN)

        self.total_transferred = next_amount
        self.last_authorized_amount = next_amount
        self.status = f"Authorized {format_amount(next_amount)}"
        logger.info(f"Claim authorized for {format_amount(next_amount)}", extra=self._ctx())
        return True

    # ── Settle ──────────────────────────────────────────────────

    async def _redeem(self, channel: Channel, amount: int) -> None:
        claim = await self.authorize_claim(channel.channel_id, amount)
        if not await self.verify_claim(claim):
            raise VerificationFailed(f"Final claim of {amount} drops did not verify")
        result = await self.gateway.submit_claim(
            channel.channel_id, amount, claim.signature, channel.public_key, self.destination,
        )
        if not result.succeeded:
            raise SubmissionRejected(result.result_code, "PaymentChannelClaim")
        self.last_authorized_amount = amount
        logger.info(f"Redeemed {format_amount(amount)} ({result.tx_hash[:12]})", extra=self._ctx())

    async def settle_and_close(self, channel_id: str | None = None) -> bool:
        """Redeem the highest claim, then close. False if the claim was not redeemed."""
        channel = self.channel
        if channel is None or self.state in (ChannelState.CLOSED, ChannelState.UNOPENED):
            logger.info("Nothing to settle: no open channel")
            return True
        if channel_id is not None and channel_id != channel.channel_id:
            raise ChannelStateError(f"Unknown channel {channel_id}")
        if self.state is not ChannelState.OPEN:
            raise ChannelStateError(f"Cannot close a channel while {self.state.value}")

        self._set_state(ChannelState.CLOSING)
        self.status = "Closing payment channel..."
        amount = self.total_transferred
        redeemed = True
        if amount > 0:
            try:
                await self._redeem(channel, amount)
            except (AuthorizationFailed, VerificationFailed, SubmissionRejected) as exc:
                redeemed = False
                self.stranded_amount = amount
                logger.warning(
                    f"Final claim not redeemed, {format_amount(amount)} stranded: {exc}",
                    extra=self._ctx(),
                )
            except GatewayUnavailable:
                self._set_state(ChannelState.OPEN)
                self.status = "Gateway unavailable while settling"
                raise
            if not redeemed and not self.close_on_failed_claim:
                self._set_state(ChannelState.OPEN)
                self.status = "Final claim failed; channel left open"
                return False

        try:
            result = await self.gateway.close_channel(channel.channel_id, self.source)
        except GatewayUnavailable:
            self._set_state(ChannelState.OPEN)
            self.status = "Gateway unavailable while closing"
            raise
        if not result.succeeded:
            self._set_state(ChannelState.OPEN)
            self.status = f"Channel close rejected: {result.result_code}"
            raise SubmissionRejected(result.result_code, "Channel close")

        self._set_state(ChannelState.CLOSED)
        self.total_transferred = 0
        self.last_authorized_amount = 0
        self.status = "Channel closed" if redeemed else "Channel closed; final claim not redeemed"
        logger.info(self.status, extra=self._ctx())
        return redeemed

    # ── Views ───────────────────────────────────────────────────

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "channel": self.channel.to_dict() if self.channel else None,
            "total_transferred": self.total_transferred,
            "last_authorized_amount": self.last_authorized_amount,
            "stranded_amount": self.stranded_amount,
            "increment": self.increment,
            "status": self.status,
        }
