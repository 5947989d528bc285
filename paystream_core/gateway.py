"""
Ledger gateway contract and the JSON-RPC gateway.

:class:`LedgerGateway` is everything Paystream needs from a ledger:
faucet funding, balances, payments, and the payment-channel operations
(create, off-chain authorize/verify, claim, close).

:class:`RPCGateway` speaks rippled's JSON-RPC over HTTP with ``aiohttp``:

    submit             sign-and-submit with the party's secret
    tx                 polled until the transaction is validated
    channel_authorize  off-chain claim signature
    channel_verify     claim signature check
    account_info       balance
    wallet_propose     public key for a faucet-issued seed

Sign-and-submit and ``wallet_propose`` need a node that allows them (a
local or private rippled); public servers refuse both.

Connection-level failures become :class:`GatewayUnavailable`; error
responses become :class:`RPCError`.  No timeout is applied unless one is
configured.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from paystream_core.errors import GatewayUnavailable, RPCError
from paystream_core.tx_metadata import TransactionMetadata
from paystream_core.wallet import Wallet

logger = logging.getLogger("paystream.gateway")

SUCCESS = "tesSUCCESS"

# PaymentChannelClaim flag requesting the channel be closed.
TF_CLOSE = 0x00020000


@dataclass
class TxResult:
    """Outcome of a submitted transaction."""
    tx_hash: str
    result_code: str
    validated: bool = True
    meta: TransactionMetadata = field(default_factory=TransactionMetadata)

    @property
    def succeeded(self) -> bool:
        return self.result_code == SUCCESS

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "result_code": self.result_code,
            "validated": self.validated,
            "meta": self.meta.to_dict(),
        }


class LedgerGateway(abc.ABC):
    """What the controller and the session need from a ledger."""

    async def connect(self) -> None:
        """Open any underlying connection. Default: nothing to do."""

    async def close(self) -> None:
        """Release any underlying connection. Default: nothing to do."""

    async def ensure_account(self, wallet: Wallet) -> None:
        """Make a previously stored wallet usable. Default: nothing to do."""

    @abc.abstractmethod
    async def fund_wallet(self) -> Wallet:
        """Create and fund a fresh test wallet."""

    @abc.abstractmethod
    async def get_balance(self, address: str) -> int:
        """Balance of ``address`` in drops."""

    @abc.abstractmethod
    async def send_payment(self, source: Wallet, destination: str, amount: int) -> TxResult:
        ...

    @abc.abstractmethod
    async def open_channel(
        self,
        source: Wallet,
        destination: str,
        amount: int,
        settle_delay: int,
        public_key: str,
    ) -> TxResult:
        """Submit a channel-create transaction and wait for its confirmation."""

    @abc.abstractmethod
    async def authorize_offchain(self, channel_id: str, amount: int, secret: str) -> str | None:
        """Claim signature for ``amount`` drops, or None if none was produced."""

    @abc.abstractmethod
    async def verify_signature(
        self, channel_id: str, signature: str, public_key: str, amount: int,
    ) -> bool:
        ...

    @abc.abstractmethod
    async def submit_claim(
        self,
        channel_id: str,
        amount: int,
        signature: str,
        public_key: str,
        destination: Wallet,
    ) -> TxResult:
        """Redeem a claim; submitted by (and paid to) the destination."""

    @abc.abstractmethod
    async def close_channel(self, channel_id: str, source: Wallet) -> TxResult:
        ...


class RPCGateway(LedgerGateway):
    """rippled JSON-RPC client over a shared ``aiohttp.ClientSession``."""

    def __init__(
        self,
        url: str,
        faucet_url: str = "",
        timeout_seconds: float = 0.0,
        poll_interval: float = 1.0,
        max_polls: int = 20,
    ):
        self.url = url
        self.faucet_url = faucet_url
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._session: aiohttp.ClientSession | None = None

    # ── Lifecycle ───────────────────────────────────────────────

    async def connect(self) -> None:
        if self._session is not None and not self._session.closed:
            return
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds or None)
        self._session = aiohttp.ClientSession(timeout=timeout)
        # server_info doubles as a reachability check
        info = await self.request("server_info")
        logger.info(
            f"Connected to {self.url} "
            f"(build {info.get('info', {}).get('build_version', '?')})"
        )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    # ── Transport ───────────────────────────────────────────────

    async def _post(self, url: str, payload: dict) -> Any:
        if self._session is None:
            raise GatewayUnavailable("Gateway is not connected")
        try:
            async with self._session.post(url, json=payload) as resp:
                if resp.status >= 500:
                    raise GatewayUnavailable(f"{url} answered HTTP {resp.status}")
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise GatewayUnavailable(f"{url}: {exc or type(exc).__name__}") from exc

    async def request(self, method: str, **params: Any) -> dict:
        """One JSON-RPC call; returns ``result`` or raises :class:`RPCError`."""
        data = await self._post(self.url, {"method": method, "params": [params]})
        result = data.get("result", {}) if isinstance(data, dict) else {}
        if result.get("status") == "error" or "error" in result:
            raise RPCError(result.get("error", "unknown_error"), result.get("error_message", ""))
        return result

    # ── Transactions ────────────────────────────────────────────

    async def submit_and_wait(self, tx_json: dict, secret: str) -> TxResult:
        """Sign-and-submit, then poll ``tx`` until validated or out of polls."""
        result = await self.request("submit", tx_json=tx_json, secret=secret)
        engine_result = result.get("engine_result", "")
        tx_hash = result.get("tx_json", {}).get("hash", "")
        logger.debug(f"{tx_json['TransactionType']} submitted: {engine_result} {tx_hash[:12]}")
        # tem/tef/tel codes never make it into a ledger
        if engine_result[:3] in ("tem", "tef", "tel") or not tx_hash:
            return TxResult(tx_hash, engine_result, validated=False)

        for _ in range(self.max_polls):
            await asyncio.sleep(self.poll_interval)
            try:
                tx = await self.request("tx", transaction=tx_hash, binary=False)
            except RPCError as exc:
                if exc.error == "txnNotFound":
                    continue
                raise
            if tx.get("validated"):
                meta = TransactionMetadata.from_rippled(tx.get("meta", {}), tx_hash)
                return TxResult(tx_hash, meta.result_name, validated=True, meta=meta)

        logger.warning(f"{tx_hash[:12]} not validated after {self.max_polls} polls")
        return TxResult(tx_hash, engine_result, validated=False)

    async def send_payment(self, source: Wallet, destination: str, amount: int) -> TxResult:
        return await self.submit_and_wait({
            "TransactionType": "Payment",
            "Account": source.address,
            "Destination": destination,
            "Amount": str(amount),
        }, source.secret)

    async def open_channel(self, source, destination, amount, settle_delay, public_key) -> TxResult:
        return await self.submit_and_wait({
            "TransactionType": "PaymentChannelCreate",
            "Account": source.address,
            "Destination": destination,
            "Amount": str(amount),
            "SettleDelay": settle_delay,
            "PublicKey": public_key,
        }, source.secret)

    async def submit_claim(self, channel_id, amount, signature, public_key, destination) -> TxResult:
        return await self.submit_and_wait({
            "TransactionType": "PaymentChannelClaim",
            "Account": destination.address,
            "Channel": channel_id,
            "Balance": str(amount),
            "Amount": str(amount),
            "Signature": signature,
            "PublicKey": public_key,
        }, destination.secret)

    async def close_channel(self, channel_id: str, source: Wallet) -> TxResult:
        return await self.submit_and_wait({
            "TransactionType": "PaymentChannelClaim",
            "Account": source.address,
            "Channel": channel_id,
            "Flags": TF_CLOSE,
        }, source.secret)

    # ── Off-chain claims ────────────────────────────────────────

    async def authorize_offchain(self, channel_id: str, amount: int, secret: str) -> str | None:
        try:
            result = await self.request(
                "channel_authorize", channel_id=channel_id, secret=secret, amount=str(amount),
            )
        except RPCError as exc:
            logger.warning(f"channel_authorize failed: {exc}")
            return None
        return result.get("signature") or None

    async def verify_signature(self, channel_id, signature, public_key, amount) -> bool:
        try:
            result = await self.request(
                "channel_verify",
                channel_id=channel_id,
                signature=signature,
                public_key=public_key,
                amount=str(amount),
            )
        except RPCError as exc:
            logger.warning(f"channel_verify failed: {exc}")
            return False
        return bool(result.get("signature_verified"))

    # ── Accounts ────────────────────────────────────────────────

    async def get_balance(self, address: str) -> int:
        result = await self.request("account_info", account=address, ledger_index="validated")
        return int(result["account_data"]["Balance"])

    async def fund_wallet(self) -> Wallet:
        if not self.faucet_url:
            raise GatewayUnavailable("No faucet configured")
        data = await self._post(self.faucet_url, {})
        account = data.get("account", {}) if isinstance(data, dict) else {}
        address = account.get("classicAddress") or account.get("address")
        seed = data.get("seed") or account.get("secret")
        if not address or not seed:
            raise RPCError("faucet_error", f"unexpected faucet response: {data!r}")
        proposal = await self.request("wallet_propose", seed=seed)
        wallet = Wallet.from_secret(address, proposal["public_key_hex"], seed)

        # The faucet payment lands a ledger or two later
        for _ in range(self.max_polls):
            try:
                await self.get_balance(address)
                break
            except RPCError as exc:
                if exc.error != "actNotFound":
                    raise
                await asyncio.sleep(self.poll_interval)
        logger.info(f"Faucet funded {address}")
        return wallet
