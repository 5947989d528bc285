"""
Call screen — timer, start/end controls, wallet balances, channel state
and the recent transfer history.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QAbstractItemView,
    QGroupBox,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QPlainTextEdit,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from paystream_core.precision import format_amount
from paystream_core.session import SessionSnapshot
from paystream_gui.theme import STATUS_COLORS
from paystream_gui.widgets import (
    balance_text,
    make_danger_button,
    make_stat_card,
    make_success_button,
    short_address,
)

if TYPE_CHECKING:
    from paystream_gui.backend import CallBackend

HISTORY_COLUMNS = ("Time", "Kind", "Amount", "Status", "Hash")


class CallTab(QWidget):
    def __init__(self, backend: CallBackend, parent: QWidget | None = None):
        super().__init__(parent)
        self.backend = backend
        self._busy = False
        self._active = False
        self._ready = False
        self._build_ui()
        self._connect_signals()

    # ── UI construction ─────────────────────────────────────────────────

    def _build_ui(self):
        root = QVBoxLayout(self)
        root.setContentsMargins(24, 20, 24, 16)
        root.setSpacing(16)

        # Header row
        header = QHBoxLayout()
        title = QLabel("Streaming Call")
        title.setProperty("class", "heading")
        header.addWidget(title)
        header.addStretch()
        self._lbl_mode = QLabel("")
        self._lbl_mode.setProperty("class", "mono")
        header.addWidget(self._lbl_mode)
        root.addLayout(header)

        # ── Timer + controls ────────────────────────────────────────────
        call_box = QGroupBox("Call")
        call_lay = QVBoxLayout(call_box)
        self._lbl_timer = QLabel("00:00:00")
        self._lbl_timer.setProperty("class", "timer")
        call_lay.addWidget(self._lbl_timer)

        self._lbl_status = QLabel("Not initialized")
        self._lbl_status.setWordWrap(True)
        call_lay.addWidget(self._lbl_status)

        self._lbl_transfer = QLabel("")
        self._lbl_transfer.setProperty("class", "mono")
        call_lay.addWidget(self._lbl_transfer)

        buttons = QHBoxLayout()
        self._btn_start = make_success_button("Start Call")
        self._btn_end = make_danger_button("End Call")
        buttons.addWidget(self._btn_start)
        buttons.addWidget(self._btn_end)
        buttons.addStretch()
        call_lay.addLayout(buttons)
        root.addWidget(call_box)

        # ── Balances and channel ────────────────────────────────────────
        stats_row = QHBoxLayout()
        stats_row.setSpacing(12)
        card, self._lbl_src_balance = make_stat_card("Sender")
        self._lbl_src_addr = self._address_label(card)
        stats_row.addWidget(card)
        card, self._lbl_dst_balance = make_stat_card("Receiver")
        self._lbl_dst_addr = self._address_label(card)
        stats_row.addWidget(card)
        card, self._lbl_streamed = make_stat_card("Streamed")
        stats_row.addWidget(card)
        card, self._lbl_channel = make_stat_card("Channel")
        stats_row.addWidget(card)
        root.addLayout(stats_row)

        # ── History ─────────────────────────────────────────────────────
        hist_box = QGroupBox("Recent Transfers")
        hist_lay = QVBoxLayout(hist_box)
        self._table = QTableWidget(0, len(HISTORY_COLUMNS))
        self._table.setHorizontalHeaderLabels(HISTORY_COLUMNS)
        self._table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self._table.verticalHeader().setVisible(False)
        self._table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        hist_lay.addWidget(self._table)
        root.addWidget(hist_box, 1)

        # ── Activity Log ────────────────────────────────────────────────
        log_box = QGroupBox("Activity Log")
        log_lay = QVBoxLayout(log_box)
        self._log_view = QPlainTextEdit()
        self._log_view.setReadOnly(True)
        self._log_view.setMaximumBlockCount(500)
        self._log_view.setMinimumHeight(100)
        log_lay.addWidget(self._log_view)
        root.addWidget(log_box)

        self._update_buttons()

    @staticmethod
    def _address_label(card: QWidget) -> QLabel:
        lbl = QLabel("—")
        lbl.setProperty("class", "mono")
        card.layout().addWidget(lbl)
        return lbl

    # ── Signal wiring ───────────────────────────────────────────────────

    def _connect_signals(self):
        self.backend.snapshot_updated.connect(self.apply_snapshot)
        self.backend.log_message.connect(self._on_log)
        self.backend.error_occurred.connect(self._on_error)
        self.backend.busy_changed.connect(self._on_busy)

        self._btn_start.clicked.connect(lambda: self.backend.start_call())
        self._btn_end.clicked.connect(lambda: self.backend.end_call())

    # ── Slots ───────────────────────────────────────────────────────────

    def apply_snapshot(self, snap: SessionSnapshot):
        self._active = snap.active or snap.channel_state == "open"
        self._ready = bool(snap.source_address and snap.destination_address)
        self._lbl_mode.setText(f"{snap.mode} mode")
        self._lbl_timer.setText(snap.elapsed_text)
        self._lbl_status.setText(snap.status)
        self._lbl_transfer.setText(snap.transfer_status)

        self._lbl_src_balance.setText(balance_text(snap.source_balance))
        self._lbl_dst_balance.setText(balance_text(snap.destination_balance))
        self._lbl_src_addr.setText(short_address(snap.source_address) or "—")
        self._lbl_dst_addr.setText(short_address(snap.destination_address) or "—")
        self._lbl_streamed.setText(format_amount(snap.total_transferred))
        if snap.channel_id:
            self._lbl_channel.setText(f"{snap.channel_state}  {snap.channel_id[:8]}")
        else:
            self._lbl_channel.setText(snap.channel_state or "—")

        self._fill_history(snap)
        self._update_buttons()

    def _fill_history(self, snap: SessionSnapshot):
        self._table.setRowCount(len(snap.transactions))
        for row, rec in enumerate(snap.transactions):
            cells = (
                datetime.fromtimestamp(rec.timestamp).strftime("%H:%M:%S"),
                rec.kind,
                format_amount(rec.amount),
                rec.status,
                rec.tx_hash[:12] or "—",
            )
            for col, text in enumerate(cells):
                item = QTableWidgetItem(text)
                if col == 3 and rec.status in STATUS_COLORS:
                    item.setForeground(QColor(STATUS_COLORS[rec.status]))
                self._table.setItem(row, col, item)

    def _on_busy(self, busy: bool):
        self._busy = busy
        self._update_buttons()

    def _update_buttons(self):
        self._btn_start.setEnabled(self._ready and not self._active and not self._busy)
        self._btn_end.setEnabled(self._active and not self._busy)

    def _on_log(self, msg: str):
        ts = datetime.now().strftime("%H:%M:%S")
        self._log_view.appendPlainText(f"[{ts}] {msg}")

    def _on_error(self, msg: str):
        ts = datetime.now().strftime("%H:%M:%S")
        self._log_view.appendPlainText(f"[{ts}] ❌ {msg}")
