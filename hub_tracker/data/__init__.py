"""
Persistence of repositories, packages and images.
"""

from .sqlite_database import SQLiteDatabaseManager
from .repository import SQLiteRepositoryManager, SQLitePackageManager, SQLiteImageStore

__all__ = [
    'SQLiteDatabaseManager',
    'SQLiteRepositoryManager',
    'SQLitePackageManager',
    'SQLiteImageStore'
]
