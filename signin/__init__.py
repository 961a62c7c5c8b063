"""Kiosk sign-in service."""

__version__ = "1.0.0"
