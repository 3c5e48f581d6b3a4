"""
Repository Layer - Data Access Abstraction
Implements the Repository Pattern for database isolation
"""

from .base_repository import BaseRepository, SortOrder
from .unit_of_work import UnitOfWork

__all__ = [
    'BaseRepository',
    'SortOrder',
    'UnitOfWork',
]
