"""Pocket Weather - live and forecast weather for your location and favourite cities."""

__version__ = "0.1.0"
