"""
Tests for the in-process ledger simulator (local_gateway.py).

Covers:
  - Faucet funding, balances and fees
  - Payments and their failure codes
  - Channel create / authorize / verify / claim / close with metadata
  - Simulated outages
"""

from __future__ import annotations

import pytest

from paystream_core.errors import GatewayUnavailable
from paystream_core.local_gateway import DEFAULT_FEE, LocalGateway
from paystream_core.tx_metadata import NodeAction, PAY_CHANNEL, created_channel_id
from paystream_core.wallet import Wallet

XRP = 1_000_000


async def _open(gw, alice, bob, amount=10 * XRP, settle_delay=3600):
    result = await gw.open_channel(alice, bob.address, amount, settle_delay, alice.public_key)
    assert result.succeeded, result.result_code
    return created_channel_id(result.meta)


# ═══════════════════════════════════════════════════════════════════
#  Accounts and payments
# ═══════════════════════════════════════════════════════════════════

class TestAccounts:
    @pytest.mark.asyncio
    async def test_fund_wallet(self):
        gw = LocalGateway(faucet_amount=50 * XRP)
        w = await gw.fund_wallet()
        assert await gw.get_balance(w.address) == 50 * XRP

    @pytest.mark.asyncio
    async def test_unknown_balance_is_zero(self, gateway):
        assert await gateway.get_balance("rNobody") == 0

    @pytest.mark.asyncio
    async def test_ensure_account_refunds_unknown_wallet(self, gateway):
        w = Wallet.create()
        await gateway.ensure_account(w)
        assert await gateway.get_balance(w.address) == gateway.faucet_amount
        gateway.balances[w.address] = 5
        await gateway.ensure_account(w)
        assert await gateway.get_balance(w.address) == 5


class TestPayments:
    @pytest.mark.asyncio
    async def test_payment(self, funded, alice, bob):
        result = await funded.send_payment(alice, bob.address, 1 * XRP)
        assert result.succeeded
        assert result.meta.delivered_amount == 1 * XRP
        assert funded.balances[alice.address] == 999 * XRP - DEFAULT_FEE
        assert funded.balances[bob.address] == 1001 * XRP

    @pytest.mark.asyncio
    async def test_no_destination(self, funded, alice):
        result = await funded.send_payment(alice, "rNowhere", 1)
        assert result.result_code == "tecNO_DST"
        # the fee is still claimed
        assert funded.balances[alice.address] == 1000 * XRP - DEFAULT_FEE

    @pytest.mark.asyncio
    async def test_unfunded(self, funded, alice, bob):
        result = await funded.send_payment(alice, bob.address, 5000 * XRP)
        assert result.result_code == "tecUNFUNDED_PAYMENT"

    @pytest.mark.asyncio
    async def test_unknown_source(self, funded, bob):
        result = await funded.send_payment(Wallet.create(), bob.address, 1)
        assert result.result_code == "terNO_ACCOUNT"

    @pytest.mark.asyncio
    async def test_sequence_advances(self, funded, alice, bob):
        await funded.send_payment(alice, bob.address, 1)
        await funded.send_payment(alice, bob.address, 1)
        assert funded.sequences[alice.address] == 3


# ═══════════════════════════════════════════════════════════════════
#  Channels
# ═══════════════════════════════════════════════════════════════════

class TestChannels:
    @pytest.mark.asyncio
    async def test_open_locks_reserve(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob)
        assert len(channel_id) == 64
        assert funded.balances[alice.address] == 990 * XRP - DEFAULT_FEE
        ch = funded.channels.get_channel(channel_id)
        assert ch.amount == 10 * XRP
        assert ch.public_key == alice.public_key

    @pytest.mark.asyncio
    async def test_channel_ids_differ_per_sequence(self, funded, alice, bob):
        assert await _open(funded, alice, bob) != await _open(funded, alice, bob)

    @pytest.mark.asyncio
    async def test_open_rejections(self, funded, alice, bob):
        r = await funded.open_channel(alice, "rNowhere", 1, 0, alice.public_key)
        assert r.result_code == "tecNO_DST"
        r = await funded.open_channel(alice, alice.address, 1, 0, alice.public_key)
        assert r.result_code == "temBAD_AMOUNT"
        r = await funded.open_channel(alice, bob.address, 5000 * XRP, 0, alice.public_key)
        assert r.result_code == "tecUNFUNDED"
        assert created_channel_id(r.meta) is None

    @pytest.mark.asyncio
    async def test_authorize_and_verify(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob)
        sig = await funded.authorize_offchain(channel_id, 3 * XRP, alice.secret)
        assert sig
        assert await funded.verify_signature(channel_id, sig, alice.public_key, 3 * XRP)
        assert not await funded.verify_signature(channel_id, sig, alice.public_key, 4 * XRP)
        assert not await funded.verify_signature(channel_id, sig, bob.public_key, 3 * XRP)

    @pytest.mark.asyncio
    async def test_authorize_with_bad_secret(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob)
        assert await funded.authorize_offchain(channel_id, 1, "sNotAHexKey") is None

    @pytest.mark.asyncio
    async def test_claim_pays_destination(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob)
        sig = alice.sign_claim(channel_id, 3 * XRP)
        result = await funded.submit_claim(channel_id, 3 * XRP, sig, alice.public_key, bob)
        assert result.succeeded
        assert funded.balances[bob.address] == 1003 * XRP - DEFAULT_FEE
        assert funded.channels.get_channel(channel_id).balance == 3 * XRP
        assert result.meta.nodes_of(NodeAction.MODIFIED, PAY_CHANNEL)

    @pytest.mark.asyncio
    async def test_claim_bad_signature(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob)
        sig = alice.sign_claim(channel_id, 2 * XRP)
        result = await funded.submit_claim(channel_id, 3 * XRP, sig, alice.public_key, bob)
        assert result.result_code == "temBAD_SIGNATURE"

    @pytest.mark.asyncio
    async def test_claim_by_stranger(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob)
        eve = Wallet.create()
        funded.create_account(eve, 10 * XRP)
        sig = alice.sign_claim(channel_id, 1)
        result = await funded.submit_claim(channel_id, 1, sig, alice.public_key, eve)
        assert result.result_code == "tecNO_PERMISSION"

    @pytest.mark.asyncio
    async def test_claim_above_reserve(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob)
        sig = alice.sign_claim(channel_id, 11 * XRP)
        result = await funded.submit_claim(channel_id, 11 * XRP, sig, alice.public_key, bob)
        assert result.result_code == "tecUNFUNDED_PAYMENT"

    @pytest.mark.asyncio
    async def test_claim_unknown_channel(self, funded, alice, bob):
        result = await funded.submit_claim("00" * 32, 1, "00", alice.public_key, bob)
        assert result.result_code == "tecNO_ENTRY"

    @pytest.mark.asyncio
    async def test_close_with_zero_settle_delay_refunds(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob, settle_delay=0)
        before = funded.balances[alice.address]
        result = await funded.close_channel(channel_id, alice)
        assert result.succeeded
        assert funded.channels.get_channel(channel_id).closed
        assert funded.balances[alice.address] == before - DEFAULT_FEE + 10 * XRP
        assert result.meta.nodes_of(NodeAction.DELETED, PAY_CHANNEL)

    @pytest.mark.asyncio
    async def test_close_with_settle_delay_only_requests(self, funded, alice, bob):
        channel_id = await _open(funded, alice, bob)
        result = await funded.close_channel(channel_id, alice)
        assert result.succeeded
        ch = funded.channels.get_channel(channel_id)
        assert ch.close_requested and not ch.closed

    @pytest.mark.asyncio
    async def test_close_unknown(self, funded, alice):
        result = await funded.close_channel("00" * 32, alice)
        assert result.result_code == "tecNO_ENTRY"

    @pytest.mark.asyncio
    async def test_history_records_every_tx(self, funded, alice, bob):
        await _open(funded, alice, bob)
        await funded.send_payment(alice, bob.address, 1)
        assert len(funded.history) == 2


class TestOutage:
    @pytest.mark.asyncio
    async def test_unavailable_raises(self, funded, alice, bob):
        funded.available = False
        with pytest.raises(GatewayUnavailable):
            await funded.send_payment(alice, bob.address, 1)
        with pytest.raises(GatewayUnavailable):
            await funded.get_balance(alice.address)
        assert funded.history == []

    @pytest.mark.asyncio
    async def test_latency(self, alice):
        gw = LocalGateway(latency=0.01)
        gw.create_account(alice, 10)
        assert await gw.get_balance(alice.address) == 10
