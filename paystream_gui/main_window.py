"""
Paystream GUI — Main Window.

Hosts the call screen, status bar, menu bar, and the backend bridge.
"""

from __future__ import annotations

import sys

from PyQt6.QtCore import QSize
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from paystream_core import __version__
from paystream_core.config import PaystreamConfig
from paystream_core.logging_config import setup_logging
from paystream_core.session import SessionSnapshot
from paystream_gui.backend import CallBackend
from paystream_gui.tab_call import CallTab
from paystream_gui.theme import build_stylesheet


class MainWindow(QMainWindow):
    """Top-level Paystream window."""

    def __init__(self, config: PaystreamConfig | None = None):
        super().__init__()

        self.setWindowTitle("Paystream — Streaming Payments")
        self.setMinimumSize(QSize(900, 680))
        self.resize(1100, 800)

        # ── Backend ─────────────────────────────────────────────────────
        self.backend = CallBackend(config, self)

        central = QWidget()
        self.setCentralWidget(central)
        root_layout = QVBoxLayout(central)
        root_layout.setContentsMargins(0, 0, 0, 0)
        root_layout.setSpacing(0)

        # ── Top banner ──────────────────────────────────────────────────
        banner = QWidget()
        banner.setStyleSheet(
            "background: #0d1117; border-bottom: 1px solid #30363d;"
        )
        banner_lay = QHBoxLayout(banner)
        banner_lay.setContentsMargins(24, 10, 24, 10)

        logo_label = QLabel("◆  Paystream")
        logo_label.setStyleSheet("font-size: 20px; font-weight: 800; color: #39d2c0;")
        banner_lay.addWidget(logo_label)
        version_label = QLabel(f"v{__version__}")
        version_label.setStyleSheet("font-size: 11px; color: #6e7681; margin-left: 8px;")
        banner_lay.addWidget(version_label)
        banner_lay.addStretch()

        gw = self.backend.config.gateway
        where = "Local Simulation" if gw.mode == "local" else gw.url
        self._banner_status = QLabel(f"● {where}")
        self._banner_status.setStyleSheet("font-size: 12px; color: #3fb950; font-weight: 600;")
        banner_lay.addWidget(self._banner_status)
        root_layout.addWidget(banner)

        # ── Call screen ─────────────────────────────────────────────────
        self.tab_call = CallTab(self.backend)
        root_layout.addWidget(self.tab_call, 1)

        self._build_status_bar()
        self._build_menu_bar()

        # ── Start backend ───────────────────────────────────────────────
        self.backend.snapshot_updated.connect(self._on_snapshot)
        self.backend.start()

    # ── Menu bar ────────────────────────────────────────────────────────

    def _build_menu_bar(self):
        menu = self.menuBar()

        file_menu = menu.addMenu("File")
        quit_action = QAction("Quit", self)
        quit_action.setShortcut("Ctrl+Q")
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        call_menu = menu.addMenu("Call")
        start = QAction("Start Call", self)
        start.setShortcut("Ctrl+S")
        start.triggered.connect(lambda: self.backend.start_call())
        call_menu.addAction(start)
        end = QAction("End Call", self)
        end.setShortcut("Ctrl+E")
        end.triggered.connect(lambda: self.backend.end_call())
        call_menu.addAction(end)
        call_menu.addSeparator()
        refresh = QAction("Refresh Balances", self)
        refresh.setShortcut("Ctrl+R")
        refresh.triggered.connect(lambda: self.backend.refresh_balances())
        call_menu.addAction(refresh)

        help_menu = menu.addMenu("Help")
        about = QAction("About Paystream", self)
        about.triggered.connect(self._show_about)
        help_menu.addAction(about)

    def _build_status_bar(self):
        sb = QStatusBar()
        self.setStatusBar(sb)

        self._sb_ticks = QLabel("Ticks: 0")
        self._sb_skipped = QLabel("Skipped: 0")
        self._sb_failed = QLabel("Failed: 0")
        for lbl in (self._sb_ticks, self._sb_skipped, self._sb_failed):
            lbl.setStyleSheet("margin-right: 16px;")
            sb.addPermanentWidget(lbl)

    def _on_snapshot(self, snap: SessionSnapshot):
        self._sb_ticks.setText(f"Ticks: {snap.ticks.get('ticks_started', 0)}")
        self._sb_skipped.setText(f"Skipped: {snap.ticks.get('ticks_skipped', 0)}")
        self._sb_failed.setText(f"Failed: {snap.ticks.get('ticks_failed', 0)}")

    def _show_about(self):
        QMessageBox.about(
            self,
            "About Paystream",
            f"<h2>Paystream v{__version__}</h2>"
            "<p>Streams XRP between two test wallets while a call is active, "
            "through an incremental payment channel or direct payments.</p>"
            "<p>Built with Python, aiohttp, ecdsa and PyQt6.</p>",
        )

    def closeEvent(self, event):
        self.backend.stop()
        super().closeEvent(event)


def main():
    """Entry point for the Paystream GUI application."""
    setup_logging(level="INFO")
    app = QApplication(sys.argv)
    app.setApplicationName("Paystream")
    app.setApplicationVersion(__version__)
    app.setStyleSheet(build_stylesheet())

    window = MainWindow()
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
