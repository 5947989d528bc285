"""
Reusable widget helpers for the Paystream call screen.
"""

from __future__ import annotations

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import (
    QFrame,
    QLabel,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from paystream_core.precision import format_amount


def make_stat_card(label: str, initial: str = "—") -> tuple[QWidget, QLabel]:
    """
    Return (card_widget, value_label) for a balance or counter.
    """
    card = QFrame()
    card.setObjectName("statCard")
    card.setStyleSheet("""
        QFrame#statCard {
            background: #1c2128;
            border: 1px solid #30363d;
            border-radius: 10px;
        }
    """)
    lay = QVBoxLayout(card)
    lay.setSpacing(4)
    lay.setContentsMargins(16, 14, 16, 14)

    val = QLabel(initial)
    val.setProperty("class", "stat-value")
    lay.addWidget(val)

    lbl = QLabel(label.upper())
    lbl.setProperty("class", "stat-label")
    lay.addWidget(lbl)

    return card, val


def _button(text: str, kind: str) -> QPushButton:
    btn = QPushButton(text)
    btn.setProperty("class", kind)
    btn.setCursor(Qt.CursorShape.PointingHandCursor)
    btn.setMinimumHeight(42)
    return btn


def make_success_button(text: str) -> QPushButton:
    return _button(text, "success")


def make_danger_button(text: str) -> QPushButton:
    return _button(text, "danger")


def short_address(addr: str, n: int = 6) -> str:
    """``rAbCdE...xYz123``: first and last ``n`` characters."""
    if len(addr) <= n * 2 + 3:
        return addr
    return f"{addr[:n]}...{addr[-n:]}"


def balance_text(drops: int | None) -> str:
    return "—" if drops is None else format_amount(drops)
