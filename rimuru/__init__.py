"""Rimuru Dashboard: presentation layer for agent activity, sessions and costs."""

__version__ = "0.3.0"

__all__ = ["__version__"]
