"""Namazio: prayer times, countdown and qibla direction service."""

__version__ = "0.1.0"
