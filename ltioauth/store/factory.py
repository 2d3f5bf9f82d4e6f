"""
Data Store Factory

Creates the configured consumer/token/nonce store.

Author: ltioauth Team
Date: 2026-10-19
"""

from typing import TYPE_CHECKING

from .backend import OAuthDataStore
from .exceptions import StoreError
from .memory_backend import InMemoryDataStore
from .redis_backend import RedisDataStore

if TYPE_CHECKING:
    from ltioauth.core.config_manager import LtiOAuthConfig


def create_data_store(config: "LtiOAuthConfig") -> OAuthDataStore:
    """
    Factory function to create a data store based on configuration.

    Args:
        config: Loaded configuration (store and nonce sections are used)

    Returns:
        Data store instance

    Raises:
        StoreError: If the store type is unknown

    Example:
        ```python
        config = ConfigManager().load("ltioauth.yaml")
        store = create_data_store(config)
        server = OAuthServer.from_config(store, config)
        ```
    """
    store_config = config.store
    nonce_config = config.nonce

    if store_config.type == "memory":
        return InMemoryDataStore(
            nonce_max_age=nonce_config.max_age,
            nonce_max_length=nonce_config.max_length,
        )

    elif store_config.type == "redis":
        return RedisDataStore(
            host=store_config.host,
            port=store_config.port,
            db=store_config.db,
            password=store_config.password,
            key_prefix=store_config.key_prefix,
            nonce_max_age=nonce_config.max_age,
            nonce_max_length=nonce_config.max_length,
        )

    else:
        raise StoreError(
            f"Unknown store type: {store_config.type}. "
            f"Supported types: memory, redis"
        )
