"""Eshara: a branching narrative interpreter with real-time waits."""

__version__ = "0.3.0"
