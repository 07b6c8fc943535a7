"""
Persistence integration: keyed repositories and the JSON entity mapping.
"""

from .mapping import EntityMapping
from .repository import Repository, SqliteRepository

__all__ = ["EntityMapping", "Repository", "SqliteRepository"]
