"""
Shared pytest fixtures for the Paystream test suite.
"""

import os
import sys

import pytest

# run_call.py lives at the project root, outside any package
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from paystream_core.config import PaystreamConfig  # noqa: E402
from paystream_core.controller import PaymentChannelController  # noqa: E402
from paystream_core.local_gateway import LocalGateway  # noqa: E402
from paystream_core.wallet import Wallet  # noqa: E402

XRP = 1_000_000


@pytest.fixture
def gateway():
    """Fresh local ledger simulator."""
    return LocalGateway()


@pytest.fixture
def alice():
    """Channel source."""
    return Wallet.create()


@pytest.fixture
def bob():
    """Channel destination."""
    return Wallet.create()


@pytest.fixture
def funded(gateway, alice, bob):
    """Gateway with alice and bob holding 1000 XRP each."""
    gateway.create_account(alice, 1000 * XRP)
    gateway.create_account(bob, 1000 * XRP)
    return gateway


@pytest.fixture
def controller(funded, alice, bob):
    """Controller streaming 1 XRP per tick from alice to bob."""
    return PaymentChannelController(funded, alice, bob, increment=1 * XRP)


@pytest.fixture
def config():
    """Default config against the local simulator, fast intervals."""
    cfg = PaystreamConfig()
    cfg.gateway.mode = "local"
    cfg.call.transfer_interval = 0.05
    cfg.call.timer_interval = 0.05
    return cfg
