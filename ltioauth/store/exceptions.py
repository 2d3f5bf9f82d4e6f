"""
Data Store Exceptions.

Custom exceptions for consumer, token and nonce store operations.

Author: ltioauth Team
Date: 2026-10-19
"""


class StoreError(Exception):
    """Base exception for all data store errors."""

    pass


class TokenIssueError(StoreError):
    """Raised when a request or access token cannot be issued."""

    pass


class DuplicateConsumerError(StoreError):
    """Raised when registering a consumer key that already exists."""

    pass
