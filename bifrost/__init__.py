"""Bifrost - plugin installer for bifrost projects."""

__version__ = "1.0.0"
