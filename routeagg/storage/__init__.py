"""storage/__init__.py"""
from .database import Database
from .postgres import PostgresStore
from .repository import RouteRepository

__all__ = ["Database", "PostgresStore", "RouteRepository"]
