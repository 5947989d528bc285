"""PyQt6 call screen for Paystream."""
