"""
Dark theme stylesheet and colour palette for the Paystream call screen.
"""

from __future__ import annotations

# ── Colour palette ──────────────────────────────────────────────────────
COLORS = {
    "bg_primary": "#0d1117",
    "bg_secondary": "#161b22",
    "bg_card": "#1c2128",
    "border": "#30363d",
    "text_primary": "#e6edf3",
    "text_secondary": "#8b949e",
    "text_muted": "#6e7681",
    "accent_blue": "#58a6ff",
    "accent_green": "#3fb950",
    "accent_red": "#f85149",
    "accent_orange": "#d29922",
    "accent_cyan": "#39d2c0",
    "hover": "#292e36",
}

# Transfer status -> colour in the history table
STATUS_COLORS = {
    "pending": COLORS["accent_orange"],
    "authorized": COLORS["accent_blue"],
    "completed": COLORS["accent_green"],
    "failed": COLORS["accent_red"],
}

# ── Fonts ───────────────────────────────────────────────────────────────
FONT_FAMILY = '"SF Pro Display", "Segoe UI", "Helvetica Neue", Arial, sans-serif'
MONO_FONT = '"SF Mono", "Fira Code", "Cascadia Code", Menlo, Consolas, monospace'


def build_stylesheet() -> str:
    """Return the full application QSS stylesheet."""
    c = COLORS
    return f"""
    QMainWindow, QDialog {{
        background-color: {c["bg_primary"]};
        color: {c["text_primary"]};
        font-family: {FONT_FAMILY};
        font-size: 13px;
    }}
    QWidget {{
        color: {c["text_primary"]};
        font-family: {FONT_FAMILY};
    }}
    QGroupBox {{
        background: {c["bg_secondary"]};
        border: 1px solid {c["border"]};
        border-radius: 10px;
        margin-top: 14px;
        padding: 14px 12px 10px 12px;
        font-weight: 600;
    }}
    QGroupBox::title {{
        subcontrol-origin: margin;
        left: 12px;
        color: {c["text_secondary"]};
    }}
    QLabel[class="heading"] {{
        font-size: 18px;
        font-weight: 700;
    }}
    QLabel[class="timer"] {{
        font-family: {MONO_FONT};
        font-size: 44px;
        font-weight: 700;
        color: {c["accent_cyan"]};
    }}
    QLabel[class="mono"] {{
        font-family: {MONO_FONT};
        color: {c["text_secondary"]};
    }}
    QLabel[class="stat-value"] {{
        font-size: 22px;
        font-weight: 700;
    }}
    QLabel[class="stat-label"] {{
        font-size: 11px;
        color: {c["text_muted"]};
        letter-spacing: 1px;
    }}
    QPushButton {{
        background: {c["bg_card"]};
        border: 1px solid {c["border"]};
        border-radius: 6px;
        padding: 8px 18px;
        font-weight: 600;
    }}
    QPushButton:hover {{
        background: {c["hover"]};
    }}
    QPushButton:disabled {{
        color: {c["text_muted"]};
    }}
    QPushButton[class="success"] {{
        background: #238636;
        border-color: #2ea043;
        color: white;
    }}
    QPushButton[class="danger"] {{
        background: #da3633;
        border-color: {c["accent_red"]};
        color: white;
    }}
    QTableWidget {{
        background: {c["bg_card"]};
        border: 1px solid {c["border"]};
        border-radius: 8px;
        gridline-color: {c["border"]};
    }}
    QHeaderView::section {{
        background: {c["bg_secondary"]};
        color: {c["text_secondary"]};
        border: none;
        padding: 6px;
        font-weight: 600;
    }}
    QStatusBar {{
        background: {c["bg_secondary"]};
        color: {c["text_secondary"]};
    }}
    """
