"""CLI commands module."""

from . import fetch, init

__all__ = ["init", "fetch"]
