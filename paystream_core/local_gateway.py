"""
In-process ledger simulator implementing :class:`LedgerGateway`.

Runs the whole demo without a network: accounts and balances in drops,
XRPL-style payment channels (via :class:`PaymentChannelManager`), a flat
transaction fee, and real secp256k1 claim signatures.  Every transaction
is validated immediately and returns full metadata, so the controller
sees the same shapes it gets from a real node.

Knobs for demos and tests:
  - ``latency``: seconds every call sleeps before answering
  - ``available``: set False to make every call raise GatewayUnavailable
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time

from ecdsa.errors import MalformedPointError

from paystream_core.crypto_utils import generate_tx_id, sha512_half, verify_claim
from paystream_core.errors import GatewayUnavailable
from paystream_core.gateway import SUCCESS, LedgerGateway, TxResult
from paystream_core.payment_channel import PaymentChannelManager
from paystream_core.tx_metadata import MetadataBuilder
from paystream_core.wallet import Wallet

logger = logging.getLogger("paystream.local_gateway")

DEFAULT_FEE = 12  # drops
DEFAULT_FAUCET_AMOUNT = 1_000_000_000  # 1000 XRP

# Namespace prefix for channel ids (XRPL's 'x' space key).
_CHANNEL_SPACE = b"\x00x"


class LocalGateway(LedgerGateway):
    """Simulated ledger. Every transaction validates in the same call."""

    def __init__(
        self,
        faucet_amount: int = DEFAULT_FAUCET_AMOUNT,
        fee: int = DEFAULT_FEE,
        latency: float = 0.0,
    ):
        self.faucet_amount = faucet_amount
        self.fee = fee
        self.latency = latency
        self.available = True
        self.balances: dict[str, int] = {}
        self.sequences: dict[str, int] = {}
        self.channels = PaymentChannelManager()
        self.history: list[TxResult] = []
        self._tx_counter = itertools.count(1)

    # ── Plumbing ────────────────────────────────────────────────

    async def _io(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if not self.available:
            raise GatewayUnavailable("Local gateway is offline")

    def _next_sequence(self, address: str) -> int:
        seq = self.sequences.get(address, 1)
        self.sequences[address] = seq + 1
        return seq

    def _begin(self, tx_type: str, account: str) -> tuple[str, MetadataBuilder]:
        index = next(self._tx_counter)
        tx_hash = generate_tx_id(f"{tx_type}:{account}:{index}:{time.time()}".encode())
        return tx_hash, MetadataBuilder(tx_hash, tx_index=index)

    def _finish(self, builder: MetadataBuilder, tx_hash: str, code: str) -> TxResult:
        builder.set_result(code)
        result = TxResult(tx_hash, code, validated=True, meta=builder.build())
        self.history.append(result)
        logger.debug(f"tx {tx_hash[:12]} -> {code}")
        return result

    def _charge_fee(self, address: str) -> str:
        """Deduct the fee and bump the sequence. Returns a result code."""
        if address not in self.balances:
            return "terNO_ACCOUNT"
        if self.balances[address] < self.fee:
            return "terINSUF_FEE_B"
        self._next_sequence(address)
        self.balances[address] -= self.fee
        return SUCCESS

    def _move(self, builder: MetadataBuilder, changes: dict[str, int]) -> None:
        for addr, delta in changes.items():
            prev = self.balances[addr]
            self.balances[addr] = prev + delta
            builder.record_balance(addr, prev, prev + delta)

    # ── Accounts ────────────────────────────────────────────────

    def create_account(self, wallet: Wallet, balance: int) -> None:
        """Register ``wallet`` with ``balance`` drops (no fee, no tx)."""
        self.balances[wallet.address] = balance
        self.sequences.setdefault(wallet.address, 1)

    async def fund_wallet(self) -> Wallet:
        await self._io()
        wallet = Wallet.create()
        self.create_account(wallet, self.faucet_amount)
        logger.info(f"Faucet funded {wallet.address} with {self.faucet_amount} drops")
        return wallet

    async def ensure_account(self, wallet: Wallet) -> None:
        await self._io()
        # A fresh simulator has never seen wallets restored from storage
        if wallet.address not in self.balances:
            self.create_account(wallet, self.faucet_amount)
            logger.info(f"Re-funded stored wallet {wallet.address}")

    async def get_balance(self, address: str) -> int:
        await self._io()
        return self.balances.get(address, 0)

    async def send_payment(self, source: Wallet, destination: str, amount: int) -> TxResult:
        await self._io()
        tx_hash, b = self._begin("Payment", source.address)
        code = self._charge_fee(source.address)
        if code != SUCCESS:
            return self._finish(b, tx_hash, code)
        if destination not in self.balances:
            return self._finish(b, tx_hash, "tecNO_DST")
        if amount <= 0:
            return self._finish(b, tx_hash, "temBAD_AMOUNT")
        if self.balances[source.address] < amount:
            return self._finish(b, tx_hash, "tecUNFUNDED_PAYMENT")
        self._move(b, {source.address: -amount, destination: amount})
        b.set_delivered_amount(amount)
        return self._finish(b, tx_hash, SUCCESS)

    # ── Channels ────────────────────────────────────────────────

    def channel_id_for(self, account: str, destination: str, sequence: int) -> str:
        """Deterministic channel id from owner, destination and sequence."""
        blob = _CHANNEL_SPACE + account.encode() + destination.encode() + sequence.to_bytes(4, "big")
        return sha512_half(blob).hex().upper()

    async def open_channel(self, source, destination, amount, settle_delay, public_key) -> TxResult:
        await self._io()
        tx_hash, b = self._begin("PaymentChannelCreate", source.address)
        sequence = self.sequences.get(source.address, 1)
        code = self._charge_fee(source.address)
        if code != SUCCESS:
            return self._finish(b, tx_hash, code)
        if destination not in self.balances:
            return self._finish(b, tx_hash, "tecNO_DST")
        if destination == source.address or amount <= 0:
            return self._finish(b, tx_hash, "temBAD_AMOUNT")
        if self.balances[source.address] < amount:
            return self._finish(b, tx_hash, "tecUNFUNDED")

        channel_id = self.channel_id_for(source.address, destination, sequence)
        self.channels.create_channel(
            channel_id, source.address, destination, amount, settle_delay, public_key,
        )
        self._move(b, {source.address: -amount})
        b.record_channel_create(channel_id, {
            "Account": source.address,
            "Destination": destination,
            "Amount": str(amount),
            "SettleDelay": settle_delay,
            "PublicKey": public_key,
        })
        return self._finish(b, tx_hash, SUCCESS)

    async def authorize_offchain(self, channel_id: str, amount: int, secret: str) -> str | None:
        await self._io()
        try:
            wallet = Wallet.from_private_key(bytes.fromhex(secret))
            return wallet.sign_claim(channel_id, amount)
        except (MalformedPointError, ValueError) as exc:
            logger.warning(f"channel_authorize refused: {exc}")
            return None

    async def verify_signature(self, channel_id, signature, public_key, amount) -> bool:
        await self._io()
        return verify_claim(public_key, channel_id, amount, signature)

    async def submit_claim(self, channel_id, amount, signature, public_key, destination) -> TxResult:
        await self._io()
        tx_hash, b = self._begin("PaymentChannelClaim", destination.address)
        code = self._charge_fee(destination.address)
        if code != SUCCESS:
            return self._finish(b, tx_hash, code)
        ch = self.channels.get_channel(channel_id)
        if ch is None or ch.closed:
            return self._finish(b, tx_hash, "tecNO_ENTRY")
        if destination.address != ch.destination:
            return self._finish(b, tx_hash, "tecNO_PERMISSION")
        if public_key.upper() != ch.public_key.upper() or not verify_claim(
            public_key, channel_id, amount, signature,
        ):
            return self._finish(b, tx_hash, "temBAD_SIGNATURE")
        prev_balance = ch.balance
        ch, payout, code = self.channels.claim(channel_id, amount)
        if code != SUCCESS:
            return self._finish(b, tx_hash, code)
        self._move(b, {destination.address: payout})
        b.record_channel_modify(channel_id, {"Balance": str(prev_balance)}, {"Balance": str(ch.balance)})
        return self._finish(b, tx_hash, SUCCESS)

    async def close_channel(self, channel_id: str, source: Wallet) -> TxResult:
        await self._io()
        tx_hash, b = self._begin("PaymentChannelClaim", source.address)
        code = self._charge_fee(source.address)
        if code != SUCCESS:
            return self._finish(b, tx_hash, code)
        if self.channels.get_channel(channel_id) is None:
            return self._finish(b, tx_hash, "tecNO_ENTRY")
        ch, closed, code = self.channels.request_close(channel_id, source.address)
        if code != SUCCESS:
            return self._finish(b, tx_hash, code)
        if closed:
            # Unclaimed drops go back to the channel owner
            if ch.available:
                self._move(b, {ch.account: ch.available})
            b.record_channel_delete(channel_id, ch.to_dict())
        else:
            b.record_channel_modify(
                channel_id, {}, {"Expiration": int(ch.close_request_time + ch.settle_delay)},
            )
        return self._finish(b, tx_hash, SUCCESS)

