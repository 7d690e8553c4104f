"""
ingest/__init__.py

Public API for the ingest sub-package.
"""

from .parser import parse_elem
from .source import open_source

__all__ = ["open_source", "parse_elem"]
