"""
SQLite-based persistence for Paystream.

Keeps the two test wallets (secrets encrypted with the store passphrase),
a small key/value table for session state such as the last channel id,
and the streamed transfer history, so a restarted demo reuses its funded
wallets instead of hitting the faucet again.

Usage:
    with SessionStore("data/paystream.db") as store:
        store.save_wallet("source", wallet, passphrase)
        wallet = store.load_wallet("source", passphrase)
        store.set("last_channel_id", channel_id)
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from paystream_core.payments import TransactionRecord
from paystream_core.wallet import Wallet

logger = logging.getLogger("paystream.storage")


class SessionStore:
    """Thin SQLite wrapper for wallets, session state and transfer history."""

    CURRENT_SCHEMA_VERSION = 1

    def __init__(self, db_path: str = "data/paystream.db"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA busy_timeout = 5000")
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._create_tables()
        self._ensure_schema_version()
        logger.info(f"Storage opened: {db_path}")

    # ── schema ───────────────────────────────────────────────────

    def _create_tables(self) -> None:
        c = self._conn
        c.execute("""
            CREATE TABLE IF NOT EXISTS wallets (
                role       TEXT PRIMARY KEY,
                address    TEXT NOT NULL,
                public_key TEXT NOT NULL,
                encrypted  TEXT NOT NULL
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                id          TEXT PRIMARY KEY,
                kind        TEXT NOT NULL,
                amount      INTEGER NOT NULL,
                source      TEXT NOT NULL,
                destination TEXT NOT NULL,
                status      TEXT NOT NULL,
                tx_hash     TEXT,
                result_code TEXT,
                timestamp   REAL NOT NULL
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                id      INTEGER PRIMARY KEY CHECK (id = 1),
                version INTEGER NOT NULL
            )
        """)
        c.commit()

    def _ensure_schema_version(self) -> None:
        row = self._conn.execute(
            "SELECT version FROM schema_version WHERE id = 1"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO schema_version (id, version) VALUES (1, ?)",
                (self.CURRENT_SCHEMA_VERSION,),
            )
            self._conn.commit()
        elif row["version"] > self.CURRENT_SCHEMA_VERSION:
            raise RuntimeError(
                f"Database schema v{row['version']} is newer than this software "
                f"(v{self.CURRENT_SCHEMA_VERSION}).  Upgrade Paystream."
            )

    # ── wallets ──────────────────────────────────────────────────

    def save_wallet(self, role: str, wallet: Wallet, passphrase: str) -> None:
        """Store ``wallet`` under ``role`` ("source" / "destination")."""
        if not passphrase:
            logger.warning(f"Storing {role} wallet with an empty passphrase")
        blob = json.dumps(wallet.export_encrypted(passphrase))
        self._conn.execute(
            """INSERT OR REPLACE INTO wallets (role, address, public_key, encrypted)
               VALUES (?, ?, ?, ?)""",
            (role, wallet.address, wallet.public_key, blob),
        )
        self._conn.commit()

    def load_wallet(self, role: str, passphrase: str) -> Wallet | None:
        """The wallet stored under ``role``, or None. ValueError on a wrong passphrase."""
        row = self._conn.execute(
            "SELECT encrypted FROM wallets WHERE role = ?", (role,)
        ).fetchone()
        if row is None:
            return None
        return Wallet.import_encrypted(json.loads(row["encrypted"]), passphrase)

    def wallet_roles(self) -> list[str]:
        rows = self._conn.execute("SELECT role FROM wallets ORDER BY role").fetchall()
        return [r["role"] for r in rows]

    # ── key / value ──────────────────────────────────────────────

    def set(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value)
        )
        self._conn.commit()

    def get(self, key: str, default: str | None = None) -> str | None:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    # ── transactions ─────────────────────────────────────────────

    def save_transaction(self, record: TransactionRecord) -> None:
        """Insert or update one history record (keyed by its id)."""
        self._conn.execute(
            """INSERT OR REPLACE INTO transactions
               (id, kind, amount, source, destination, status,
                tx_hash, result_code, timestamp)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (record.id, record.kind, record.amount, record.source, record.destination,
             record.status, record.tx_hash, record.result_code, record.timestamp),
        )
        self._conn.commit()

    def load_recent_transactions(self, limit: int = 50) -> list[dict[str, Any]]:
        """Newest first."""
        rows = self._conn.execute(
            "SELECT * FROM transactions ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]

    def transaction_count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]

    # ── lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
