"""Command line interface for snapper-sync."""

from .dispatcher import main

__all__ = ["main"]
