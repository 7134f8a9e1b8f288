"""Command line tools."""

from .passkitctl import main

__all__ = ['main']
