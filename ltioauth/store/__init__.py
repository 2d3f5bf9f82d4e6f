"""
Data Store Module.

Provides the consumer/token/nonce store interface used by the verification
server, with in-memory and Redis implementations.

Author: ltioauth Team
Date: 2026-10-19
"""

from .backend import OAuthDataStore
from .memory_backend import InMemoryDataStore
from .redis_backend import RedisDataStore
from .factory import create_data_store
from .exceptions import (
    StoreError,
    TokenIssueError,
    DuplicateConsumerError,
)

__all__ = [
    # Abstract interface
    "OAuthDataStore",
    # Implementations
    "InMemoryDataStore",
    "RedisDataStore",
    "create_data_store",
    # Exceptions
    "StoreError",
    "TokenIssueError",
    "DuplicateConsumerError",
]
