"""Roundtable — subject-scoped memory for multi-agent discussions."""

__version__ = "0.1.0"
