#!/usr/bin/env python3
"""
Paystream call runner — streams XRP between two test wallets from a terminal.

  - Funds (or reloads) a source and a destination wallet
  - Channel mode: opens a payment channel and authorizes a growing claim
    every interval, redeeming it and closing the channel when the call ends
  - Payment mode: sends one direct payment every interval

Usage:
    python run_call.py                          # interactive, local simulator
    python run_call.py --duration 30            # one 30 s call, then exit
    python run_call.py --gateway rpc --url http://localhost:5005 --db data/paystream.db

Environment variables (alternative to flags):
    PAYSTREAM_GATEWAY_MODE, PAYSTREAM_GATEWAY_URL, PAYSTREAM_CALL_MODE,
    PAYSTREAM_INTERVAL, PAYSTREAM_DB_PATH, PAYSTREAM_PASSPHRASE
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from paystream_core.config import PaystreamConfig, load_config  # noqa: E402
from paystream_core.errors import PaystreamError  # noqa: E402
from paystream_core.logging_config import setup_logging  # noqa: E402
from paystream_core.precision import format_amount  # noqa: E402
from paystream_core.session import CallSession  # noqa: E402
from paystream_core.storage import SessionStore  # noqa: E402

logger = logging.getLogger("paystream.cli")


# ===================================================================
#  Interactive CLI
# ===================================================================

def print_balances(session: CallSession) -> None:
    snap = session.snapshot()
    for label, addr, bal in (
        ("source", snap.source_address, snap.source_balance),
        ("destination", snap.destination_address, snap.destination_balance),
    ):
        shown = format_amount(bal) if bal is not None else "?"
        print(f"  {label:<12} {addr}  {shown}")


def print_history(session: CallSession) -> None:
    records = session.snapshot().transactions
    if not records:
        print("  No transactions yet")
        return
    for rec in records:
        print(f"  {rec.status:<9} {rec.kind:<7} {format_amount(rec.amount)}  {rec.tx_hash[:16]}")


async def interactive_cli(session: CallSession) -> None:
    """Simple async CLI for driving one session."""
    loop = asyncio.get_running_loop()

    def print_help():
        print("""
╔══════════════════════════════════════════════════════════════╗
║  Paystream Call CLI                                          ║
╠══════════════════════════════════════════════════════════════╣
║  start           - Start a call                              ║
║  end             - End the call and settle                   ║
║  status          - Show session status                       ║
║  balance         - Refresh and show both balances            ║
║  history         - Show the recent transfers                 ║
║  json            - Dump the full session snapshot            ║
║  help            - Show this help                            ║
║  quit            - End any call and exit                     ║
╚══════════════════════════════════════════════════════════════╝
""")

    print_help()

    while True:
        try:
            line = await loop.run_in_executor(None, lambda: input(f"\n[{session.mode}] > "))
            parts = line.strip().split()
            if not parts:
                continue
            cmd = parts[0].lower()

            if cmd == "help":
                print_help()

            elif cmd == "start":
                if await session.start_call():
                    print(f"  {session.status}")
                else:
                    print("  A call is already active")

            elif cmd == "end":
                settled = await session.end_call()
                print(f"  {session.status}" + ("" if settled else " (final claim not redeemed)"))
                print_balances(session)

            elif cmd == "status":
                print(f"  {session.describe()}")

            elif cmd == "balance":
                await session.refresh_balances()
                print_balances(session)

            elif cmd == "history":
                print_history(session)

            elif cmd == "json":
                print(json.dumps(session.snapshot().to_dict(), indent=2, default=str))

            elif cmd in ("quit", "exit", "q"):
                print("Shutting down...")
                break

            else:
                print(f"  Unknown command: {cmd}. Type 'help'.")

        except (EOFError, KeyboardInterrupt):
            print("\nShutting down...")
            break
        except PaystreamError as e:
            print(f"  Error: {e}")


async def timed_call(session: CallSession, duration: float) -> bool:
    """Run one call for ``duration`` seconds, printing a line every second."""
    await session.start_call()
    remaining = duration
    while remaining > 0 and session.active:
        await asyncio.sleep(1)
        remaining -= 1
        print(f"  {session.describe()}")
    settled = await session.end_call()
    print(f"  {session.status}")
    print_balances(session)
    return settled


# ===================================================================
#  Main entry point
# ===================================================================

def parse_args(argv: list[str] | None = None):
    p = argparse.ArgumentParser(description="Paystream call runner")
    p.add_argument("--config", default=None, help="Path to paystream.toml config file")
    p.add_argument("--gateway", choices=("local", "rpc"), default=None,
                   help="Ledger gateway: in-process simulator or rippled JSON-RPC")
    p.add_argument("--url", default=None, help="rippled JSON-RPC URL (rpc gateway)")
    p.add_argument("--mode", choices=("channel", "payment"), default=None,
                   help="Streaming mode")
    p.add_argument("--interval", type=float, default=None,
                   help="Seconds between transfers")
    p.add_argument("--duration", type=float, default=0.0,
                   help="Run a single call for this many seconds instead of the CLI")
    p.add_argument("--db", default=None, help="Store wallets and history in this SQLite file")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    return p.parse_args(argv)


def apply_args(cfg: PaystreamConfig, args) -> PaystreamConfig:
    """CLI flags override config file and environment."""
    if args.gateway:
        cfg.gateway.mode = args.gateway
    if args.url:
        cfg.gateway.url = args.url
    if args.mode:
        cfg.call.mode = args.mode
    if args.interval:
        cfg.call.transfer_interval = args.interval
    if args.db:
        cfg.storage.enabled = True
        cfg.storage.path = args.db
    if args.log_level:
        cfg.logging.level = args.log_level.upper()
    cfg.validate()
    return cfg


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cfg = apply_args(load_config(args.config), args)
    setup_logging(level=cfg.logging.level, fmt=cfg.logging.format, log_file=cfg.logging.file)

    store = SessionStore(cfg.storage.path) if cfg.storage.enabled else None
    session = CallSession(cfg, store=store)
    try:
        await session.initialize()
        print(f"  {session.status}")
        print_balances(session)
        if args.duration > 0:
            settled = await timed_call(session, args.duration)
            return 0 if settled else 1
        await interactive_cli(session)
        return 0
    except PaystreamError as exc:
        logger.error(f"Call failed: {exc}")
        return 1
    finally:
        await session.shutdown()
        if store is not None:
            store.close()


def main_sync():
    """Synchronous entry point for console_scripts."""
    with contextlib.suppress(KeyboardInterrupt):
        raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    main_sync()
