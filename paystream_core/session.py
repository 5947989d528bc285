"""
Call session: the one object the views drive.

A :class:`CallSession` owns the gateway, both test wallets, the streaming
driver for the configured mode (a :class:`PaymentChannelController` or a
:class:`PaymentStream`), the transfer and display schedulers, the elapsed
time, balances and status line.  Views call the command methods and read
:meth:`CallSession.snapshot`; listeners get a fresh snapshot after every
change.

A ``GatewayUnavailable`` raised by a transfer tick halts the call: both
schedulers stop and the status says why.  Nothing retries automatically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from paystream_core.config import PaystreamConfig
from paystream_core.controller import PaymentChannelController
from paystream_core.errors import GatewayUnavailable, PaystreamError
from paystream_core.gateway import LedgerGateway, RPCGateway
from paystream_core.local_gateway import LocalGateway
from paystream_core.payment_channel import ChannelState
from paystream_core.payments import (
    AUTHORIZED,
    COMPLETED,
    FAILED,
    PaymentStream,
    TransactionHistory,
    TransactionRecord,
)
from paystream_core.precision import format_amount, xrp_to_drops
from paystream_core.scheduler import TickScheduler
from paystream_core.storage import SessionStore
from paystream_core.wallet import Wallet

logger = logging.getLogger("paystream.session")

SOURCE = "source"
DESTINATION = "destination"


def format_elapsed(seconds: float) -> str:
    """``HH:MM:SS`` for a number of seconds."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def build_gateway(config: PaystreamConfig) -> LedgerGateway:
    """The gateway selected by ``config.gateway.mode``."""
    g = config.gateway
    if g.mode == "local":
        return LocalGateway(
            faucet_amount=xrp_to_drops(g.faucet_amount_xrp),
            latency=g.latency_seconds,
        )
    if g.mode == "rpc":
        return RPCGateway(
            g.url,
            faucet_url=g.faucet_url,
            timeout_seconds=g.timeout_seconds,
            poll_interval=g.poll_interval,
            max_polls=g.max_polls,
        )
    raise ValueError(f"Unknown gateway mode: {g.mode!r}")


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a call session."""
    active: bool
    elapsed: float
    elapsed_text: str
    status: str
    transfer_status: str
    mode: str
    source_address: str
    destination_address: str
    source_balance: Optional[int]
    destination_balance: Optional[int]
    channel_id: Optional[str]
    channel_state: Optional[str]
    reserve: int
    total_transferred: int
    last_authorized_amount: int
    stranded_amount: int
    transactions: tuple
    ticks: dict
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "active": self.active,
            "elapsed": self.elapsed_text,
            "status": self.status,
            "transfer_status": self.transfer_status,
            "mode": self.mode,
            "source": {"address": self.source_address, "balance": self.source_balance},
            "destination": {"address": self.destination_address, "balance": self.destination_balance},
            "channel_id": self.channel_id,
            "channel_state": self.channel_state,
            "reserve": self.reserve,
            "total_transferred": self.total_transferred,
            "last_authorized_amount": self.last_authorized_amount,
            "stranded_amount": self.stranded_amount,
            "transactions": [t.to_dict() for t in self.transactions],
            "ticks": dict(self.ticks),
            "error": self.error,
        }


Listener = Callable[[SessionSnapshot], None]


class CallSession:
    """Explicit state for one demo call between two test wallets."""

    def __init__(
        self,
        config: PaystreamConfig,
        gateway: LedgerGateway | None = None,
        store: SessionStore | None = None,
    ):
        config.validate()
        self.config = config
        self.gateway = gateway if gateway is not None else build_gateway(config)
        self.store = store
        self.mode = config.call.mode

        self.source: Wallet | None = None
        self.destination: Wallet | None = None
        self.controller: PaymentChannelController | None = None
        self.stream: PaymentStream | None = None
        self.history = TransactionHistory(config.call.max_transactions)
        self.balances: dict[str, int] = {}

        self.active = False
        self.elapsed = 0.0
        self.status = "Not initialized"
        self.error: str | None = None
        self._halt_task: asyncio.Task | None = None
        self._claims: list[TransactionRecord] = []
        self._listeners: list[Listener] = []

        self.transfer = TickScheduler(
            self._transfer_tick, config.call.transfer_interval,
            name="transfer", on_error=self._on_tick_error,
        )
        self.clock = TickScheduler(self._clock_tick, config.call.timer_interval, name="timer")

    # ── Listeners ───────────────────────────────────────────────

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    def _set_status(self, status: str) -> None:
        self.status = status
        logger.info(status)
        self._notify()

    # ── Setup ───────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Connect, load or fund both wallets, and read their balances."""
        self._set_status("Connecting...")
        await self.gateway.connect()

        source, destination = self._load_wallets()
        if source is None or destination is None:
            self._set_status("Funding test wallets...")
            source = await self.gateway.fund_wallet()
            destination = await self.gateway.fund_wallet()
            if self.store is not None:
                self.store.save_wallet(SOURCE, source, self.config.storage.passphrase)
                self.store.save_wallet(DESTINATION, destination, self.config.storage.passphrase)
        else:
            await self.gateway.ensure_account(source)
            await self.gateway.ensure_account(destination)
            logger.info(f"Loaded stored wallets {source.address}, {destination.address}")

        self.source = source
        self.destination = destination
        self._build_driver()
        await self.refresh_balances()
        self._set_status("Ready to start call")

    def _load_wallets(self) -> tuple[Wallet | None, Wallet | None]:
        if self.store is None:
            return None, None
        passphrase = self.config.storage.passphrase
        return self.store.load_wallet(SOURCE, passphrase), self.store.load_wallet(DESTINATION, passphrase)

    def _build_driver(self) -> None:
        if self.mode == "channel":
            self.controller = PaymentChannelController(
                self.gateway,
                self.source,
                self.destination,
                self.config.channel.increment_drops,
                close_on_failed_claim=self.config.channel.close_on_failed_claim,
            )
        else:
            self.stream = PaymentStream(
                self.gateway,
                self.source,
                self.destination,
                self.config.call.payment_drops,
                history=self.history,
                on_settled=self._on_payment_settled,
            )

    def _require_wallets(self) -> tuple[Wallet, Wallet]:
        if self.source is None or self.destination is None:
            raise PaystreamError("Session is not initialized")
        return self.source, self.destination

    # ── Commands ────────────────────────────────────────────────

    async def refresh_balances(self) -> dict[str, int]:
        source, destination = self._require_wallets()
        self.balances[source.address] = await self.gateway.get_balance(source.address)
        self.balances[destination.address] = await self.gateway.get_balance(destination.address)
        self._notify()
        return dict(self.balances)

    async def start_call(self) -> bool:
        """Begin streaming. False when a call is already active."""
        if self.active:
            logger.warning("start_call ignored: call already active")
            return False
        source, destination = self._require_wallets()
        self.history.clear()
        self.error = None
        self.elapsed = 0.0

        if self.controller is not None:
            self._set_status("Opening payment channel...")
            try:
                channel_id = await self.controller.open(
                    source, destination,
                    self.config.channel.reserve_drops,
                    self.config.channel.settle_delay,
                )
            except PaystreamError as exc:
                self.error = str(exc)
                self._set_status(f"Failed to start call: {exc}")
                raise
            if self.store is not None:
                self.store.set("last_channel_id", channel_id)

        self.active = True
        self.transfer.start()
        self.clock.start()
        self._set_status("Call active")
        return True

    async def end_call(self) -> bool:
        """Stop streaming and settle. Returns the settlement outcome."""
        channel_open = self.controller is not None and self.controller.state not in (
            ChannelState.UNOPENED, ChannelState.CLOSED,
        )
        if not self.active and not channel_open:
            logger.info("end_call ignored: no call in progress")
            return True

        self.active = False
        await self.transfer.stop()
        await self.clock.stop()
        await self.transfer.drain()

        settled = True
        if self.controller is not None:
            self._set_status("Settling payment channel...")
            try:
                settled = await self.controller.settle_and_close()
            except PaystreamError as exc:
                self.error = str(exc)
                self._set_status(f"Failed to close channel: {exc}")
                raise
            if settled:
                self._finish_claims(COMPLETED)
            elif self.controller.state is ChannelState.CLOSED:
                self._finish_claims(FAILED)
        self.error = None if settled else self.controller.status

        await self.refresh_balances()
        self.elapsed = 0.0
        self._set_status("Call ended")
        return settled

    async def shutdown(self) -> None:
        """End any call in progress and release the gateway."""
        try:
            await self.end_call()
        except PaystreamError as exc:
            logger.error(f"Could not settle on shutdown: {exc}")
        finally:
            await self.transfer.stop()
            await self.clock.stop()
            await self.gateway.close()

    # ── Ticks ───────────────────────────────────────────────────

    async def _transfer_tick(self) -> bool:
        if not self.active:
            return False
        if self.controller is not None:
            moved = await self.controller.tick()
            if moved:
                self._record_claim()
            self._notify()
            return moved
        ok = await self.stream.tick()
        if ok:
            await self.refresh_balances()
        return ok

    def _clock_tick(self) -> None:
        if self.active:
            self.elapsed += self.clock.interval
            self._notify()

    def _record_claim(self) -> None:
        # ids must stay unique across runs sharing one database
        record = TransactionRecord(
            id=f"claim_{time.time_ns()}",
            amount=self.controller.increment,
            source=self.source.address,
            destination=self.destination.address,
            kind="claim",
            status=AUTHORIZED,
        )
        self._claims.append(record)
        self.history.push(record)
        if self.store is not None:
            self.store.save_transaction(record)

    def _finish_claims(self, status: str) -> None:
        """Mark this call's authorized claims redeemed or stranded."""
        for record in self._claims:
            record.status = status
            if self.store is not None:
                self.store.save_transaction(record)
        self._claims.clear()

    def _on_payment_settled(self, record: TransactionRecord) -> None:
        if self.store is not None:
            self.store.save_transaction(record)
        self._notify()

    def _on_tick_error(self, exc: BaseException) -> None:
        if not self.active:
            # end_call reports settle failures itself
            self.error = str(exc)
            logger.warning(f"Transfer tick failed after the call ended: {exc}")
        elif isinstance(exc, GatewayUnavailable):
            self._halt_task = asyncio.get_running_loop().create_task(self._halt(exc))
        else:
            self.error = str(exc)
            self._set_status(f"Transfer error: {exc}")

    async def _halt(self, exc: BaseException) -> None:
        self.active = False
        await self.transfer.stop()
        await self.clock.stop()
        self.error = str(exc)
        self._set_status(f"Call halted: gateway unavailable ({exc})")

    # ── Views ───────────────────────────────────────────────────

    def snapshot(self) -> SessionSnapshot:
        src = self.source.address if self.source else ""
        dst = self.destination.address if self.destination else ""
        ctrl = self.controller
        channel = ctrl.channel if ctrl else None
        driver_status = ctrl.status if ctrl else (self.stream.status if self.stream else "")
        total = ctrl.total_transferred if ctrl else (self.stream.total_transferred if self.stream else 0)
        return SessionSnapshot(
            active=self.active,
            elapsed=self.elapsed,
            elapsed_text=format_elapsed(self.elapsed),
            status=self.status,
            transfer_status=driver_status,
            mode=self.mode,
            source_address=src,
            destination_address=dst,
            source_balance=self.balances.get(src),
            destination_balance=self.balances.get(dst),
            channel_id=channel.channel_id if channel else None,
            channel_state=ctrl.state.value if ctrl else None,
            reserve=channel.reserve if channel else self.config.channel.reserve_drops,
            total_transferred=total,
            last_authorized_amount=ctrl.last_authorized_amount if ctrl else 0,
            stranded_amount=ctrl.stranded_amount if ctrl else 0,
            transactions=tuple(replace(r) for r in self.history.records()),
            ticks=self.transfer.stats(),
            error=self.error,
        )

    def describe(self) -> str:
        """One status line for the command line runner."""
        snap = self.snapshot()
        return (
            f"[{snap.elapsed_text}] {snap.status} | {snap.transfer_status} | "
            f"streamed {format_amount(snap.total_transferred)}"
        )
