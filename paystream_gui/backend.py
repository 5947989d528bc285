"""
Async backend bridge — runs a :class:`CallSession` on a background asyncio
loop and exposes a signal-based API that Qt widgets can safely connect to.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Coroutine

from PyQt6.QtCore import QObject, pyqtSignal

from paystream_core.config import PaystreamConfig, load_config
from paystream_core.session import CallSession, SessionSnapshot
from paystream_core.storage import SessionStore

logger = logging.getLogger("paystream_gui.backend")


class CallBackend(QObject):
    """
    Owns the session and its event loop thread.

    Commands are scheduled onto the loop with ``run_coroutine_threadsafe``;
    session listeners fire on the loop thread and are re-emitted as Qt
    signals, which Qt queues onto the GUI thread.
    """

    # ── Signals (thread-safe updates to the GUI) ────────────────────────
    snapshot_updated = pyqtSignal(object)      # SessionSnapshot
    log_message = pyqtSignal(str)              # log line
    error_occurred = pyqtSignal(str)           # error message
    busy_changed = pyqtSignal(bool)            # a command is running

    def __init__(
        self,
        config: PaystreamConfig | None = None,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.config = config or load_config("paystream.toml")
        self.store = SessionStore(self.config.storage.path) if self.config.storage.enabled else None
        self.session = CallSession(self.config, store=self.store)
        self.session.add_listener(self._on_snapshot)

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="paystream-loop", daemon=True)
        self._pending = 0
        self._pending_lock = threading.Lock()

    # ── Lifecycle ───────────────────────────────────────────────────────

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def start(self) -> None:
        self._thread.start()
        self._log(f"Starting in {self.config.call.mode} mode ({self.config.gateway.mode} gateway)")
        self._submit(self.session.initialize(), "initialize")

    def stop(self, timeout: float = 30.0) -> None:
        """End any call, release the gateway and stop the loop thread."""
        if not self._thread.is_alive():
            return
        future = asyncio.run_coroutine_threadsafe(self.session.shutdown(), self._loop)
        try:
            future.result(timeout=timeout)
        except Exception as exc:
            logger.error(f"Shutdown did not complete: {exc}")
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        if self.store is not None:
            self.store.close()
        self._log("Backend stopped")

    # ── Commands ────────────────────────────────────────────────────────

    def start_call(self) -> Future:
        return self._submit(self.session.start_call(), "start call")

    def end_call(self) -> Future:
        return self._submit(self.session.end_call(), "end call")

    def refresh_balances(self) -> Future:
        return self._submit(self.session.refresh_balances(), "refresh balances")

    def snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()

    # ── Internals ───────────────────────────────────────────────────────

    def _submit(self, coro: Coroutine[Any, Any, Any], label: str) -> Future:
        with self._pending_lock:
            self._pending += 1
        self.busy_changed.emit(True)
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        future.add_done_callback(lambda f: self._on_done(label, f))
        return future

    def _on_done(self, label: str, future: Future) -> None:
        with self._pending_lock:
            self._pending -= 1
            idle = self._pending == 0
        if idle:
            self.busy_changed.emit(False)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"{label} failed: {exc}")
            self.error_occurred.emit(f"{label} failed: {exc}")

    def _on_snapshot(self, snap: SessionSnapshot) -> None:
        self.snapshot_updated.emit(snap)

    def _log(self, msg: str) -> None:
        logger.info(msg)
        self.log_message.emit(msg)
