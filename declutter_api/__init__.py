"""Declutter API: post items you no longer want, comment on them, get notified."""

__version__ = "0.1.0"
