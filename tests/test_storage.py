"""
Tests for SQLite persistence layer (storage.py).

Covers:
  - Schema creation and version guard
  - Encrypted wallet roundtrip, wrong passphrase
  - Key/value state
  - Transfer history persistence, newest first
  - Context manager lifecycle
"""

from __future__ import annotations

import os

import pytest

from paystream_core.payments import COMPLETED, FAILED, TransactionRecord
from paystream_core.storage import SessionStore
from paystream_core.wallet import Wallet


@pytest.fixture
def store(tmp_path):
    """Fresh SessionStore in a temp directory."""
    s = SessionStore(str(tmp_path / "test.db"))
    yield s
    s.close()


# ═══════════════════════════════════════════════════════════════════
#  Schema
# ═══════════════════════════════════════════════════════════════════

class TestSchema:
    def test_tables_created(self, store):
        tables = store._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
        names = {r["name"] for r in tables}
        assert {"wallets", "kv", "transactions", "schema_version"} <= names

    def test_wal_mode_enabled(self, store):
        mode = store._conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode == "wal"

    def test_directory_created_if_missing(self, tmp_path):
        deep_path = str(tmp_path / "a" / "b" / "test.db")
        s = SessionStore(deep_path)
        assert os.path.isfile(deep_path)
        s.close()

    def test_in_memory(self):
        with SessionStore(":memory:") as s:
            assert s.transaction_count() == 0

    def test_schema_version_recorded(self, store):
        row = store._conn.execute("SELECT version FROM schema_version").fetchone()
        assert row["version"] == SessionStore.CURRENT_SCHEMA_VERSION

    def test_newer_schema_rejected(self, tmp_path):
        path = str(tmp_path / "future.db")
        s = SessionStore(path)
        s._conn.execute("UPDATE schema_version SET version = 99")
        s._conn.commit()
        s.close()
        with pytest.raises(RuntimeError, match="newer"):
            SessionStore(path)


# ═══════════════════════════════════════════════════════════════════
#  Wallets
# ═══════════════════════════════════════════════════════════════════

class TestWallets:
    def test_roundtrip(self, store):
        w = Wallet.create()
        store.save_wallet("source", w, "hunter2")
        loaded = store.load_wallet("source", "hunter2")
        assert loaded.address == w.address
        assert loaded.public_key == w.public_key
        assert loaded.secret == w.secret

    def test_missing_role(self, store):
        assert store.load_wallet("destination", "x") is None

    def test_wrong_passphrase(self, store):
        store.save_wallet("source", Wallet.create(), "right")
        with pytest.raises(ValueError):
            store.load_wallet("source", "wrong")

    def test_secret_not_stored_in_clear(self, store):
        w = Wallet.create()
        store.save_wallet("source", w, "pw")
        blob = store._conn.execute("SELECT encrypted FROM wallets").fetchone()[0]
        assert w.secret not in blob

    def test_replace_and_roles(self, store):
        store.save_wallet("source", Wallet.create(), "pw")
        second = Wallet.create()
        store.save_wallet("source", second, "pw")
        store.save_wallet("destination", Wallet.create(), "pw")
        assert store.wallet_roles() == ["destination", "source"]
        assert store.load_wallet("source", "pw").address == second.address

    def test_empty_passphrase_allowed(self, store):
        w = Wallet.create()
        store.save_wallet("source", w, "")
        assert store.load_wallet("source", "").address == w.address


# ═══════════════════════════════════════════════════════════════════
#  Key / value
# ═══════════════════════════════════════════════════════════════════

class TestKeyValue:
    def test_set_get(self, store):
        store.set("last_channel_id", "AB" * 32)
        assert store.get("last_channel_id") == "AB" * 32

    def test_default(self, store):
        assert store.get("nothing") is None
        assert store.get("nothing", "fallback") == "fallback"

    def test_overwrite(self, store):
        store.set("k", "1")
        store.set("k", "2")
        assert store.get("k") == "2"


# ═══════════════════════════════════════════════════════════════════
#  Transactions
# ═══════════════════════════════════════════════════════════════════

class TestTransactions:
    def _rec(self, i, ts, status=COMPLETED):
        return TransactionRecord(
            id=f"tx_{i}", amount=i * 1_000_000, source="rSrc", destination="rDst",
            status=status, timestamp=ts, tx_hash=f"{i:064X}", result_code="tesSUCCESS",
        )

    def test_newest_first(self, store):
        store.save_transaction(self._rec(1, 100.0))
        store.save_transaction(self._rec(2, 300.0))
        store.save_transaction(self._rec(3, 200.0))
        ids = [r["id"] for r in store.load_recent_transactions()]
        assert ids == ["tx_2", "tx_3", "tx_1"]

    def test_limit(self, store):
        for i in range(5):
            store.save_transaction(self._rec(i, float(i)))
        assert len(store.load_recent_transactions(limit=2)) == 2
        assert store.transaction_count() == 5

    def test_update_in_place(self, store):
        store.save_transaction(self._rec(1, 1.0))
        store.save_transaction(self._rec(1, 1.0, status=FAILED))
        rows = store.load_recent_transactions()
        assert len(rows) == 1
        assert rows[0]["status"] == FAILED
        assert rows[0]["amount"] == 1_000_000


# ═══════════════════════════════════════════════════════════════════
#  Lifecycle
# ═══════════════════════════════════════════════════════════════════

class TestLifecycle:
    def test_context_manager(self, tmp_path):
        path = str(tmp_path / "ctx.db")
        with SessionStore(path) as s:
            s.set("a", "b")
        with SessionStore(path) as s:
            assert s.get("a") == "b"

    def test_persists_across_reopen(self, tmp_path):
        path = str(tmp_path / "re.db")
        w = Wallet.create()
        with SessionStore(path) as s:
            s.save_wallet("destination", w, "pw")
        with SessionStore(path) as s:
            assert s.load_wallet("destination", "pw").address == w.address
