"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .media import MediaStoreRepository
from .user_settings import UserSettingsRepository

__all__ = ["MediaStoreRepository", "UserSettingsRepository"]
