"""
Abstract OAuth Data Store Interface.

Defines the lookups the verification server depends on. Concrete stores are
usually backed by the platform/tool tables of the host application; two
reference implementations (in-memory and Redis) ship with this package.

Author: ltioauth Team
Date: 2026-10-19
"""

from abc import ABC, abstractmethod
from typing import Optional

from ltioauth.oauth.models import Consumer, Token


class OAuthDataStore(ABC):
    """
    Abstract base class for consumer/token/nonce stores.

    Implementations must make ``lookup_nonce`` an atomic check-and-record:
    two concurrent requests carrying the same (consumer, token, nonce,
    timestamp) must not both see the nonce as unused.

    Errors raised by a store propagate unchanged through the server.
    """

    @abstractmethod
    def lookup_consumer(self, consumer_key: str) -> Optional[Consumer]:
        """
        Find a consumer by key.

        Args:
            consumer_key: Value of oauth_consumer_key

        Returns:
            The consumer, or None if unknown

        Raises:
            StoreError: If the lookup itself fails
        """
        pass

    @abstractmethod
    def lookup_token(
        self, consumer: Consumer, token_type: str, token_key: Optional[str]
    ) -> Optional[Token]:
        """
        Find a token of the given type issued to a consumer.

        Args:
            consumer: Resolved consumer
            token_type: "request" or "access"
            token_key: Value of oauth_token (may be None)

        Returns:
            The token, or None if unknown

        Raises:
            StoreError: If the lookup itself fails
        """
        pass

    @abstractmethod
    def lookup_nonce(
        self,
        consumer: Consumer,
        token: Optional[Token],
        nonce: str,
        timestamp: str,
    ) -> bool:
        """
        Check whether a nonce was already used, recording it if not.

        Args:
            consumer: Resolved consumer
            token: Resolved token (None for two-legged requests)
            nonce: Value of oauth_nonce
            timestamp: Value of oauth_timestamp

        Returns:
            True if the nonce was already used

        Raises:
            StoreError: If the lookup itself fails
        """
        pass

    @abstractmethod
    def new_request_token(
        self, consumer: Consumer, callback: Optional[str] = None
    ) -> Optional[Token]:
        """
        Issue a request token to a consumer.

        Args:
            consumer: Requesting consumer
            callback: Value of oauth_callback

        Returns:
            The new request token

        Raises:
            TokenIssueError: If the token cannot be issued
        """
        pass

    @abstractmethod
    def new_access_token(
        self,
        request_token: Token,
        consumer: Consumer,
        verifier: Optional[str] = None,
    ) -> Optional[Token]:
        """
        Exchange an authorized request token for an access token.

        Implementations should invalidate the request token.

        Args:
            request_token: Request token being exchanged
            consumer: Requesting consumer
            verifier: Value of oauth_verifier

        Returns:
            The new access token

        Raises:
            TokenIssueError: If the token cannot be issued
        """
        pass
