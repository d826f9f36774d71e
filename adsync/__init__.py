"""Spreadsheet ↔ ad platform synchronisation engine."""

__version__ = "0.4.0"
