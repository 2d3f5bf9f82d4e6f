"""
In-Memory Data Store Implementation.

Keeps consumers, tokens and used nonces in dictionaries guarded by a lock.
Ideal for development, testing, and single-process deployments.

Author: ltioauth Team
Date: 2026-10-19
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from ltioauth.oauth.models import ACCESS_TOKEN, REQUEST_TOKEN, Consumer, Token
from ltioauth.store.backend import OAuthDataStore
from ltioauth.store.exceptions import DuplicateConsumerError, TokenIssueError

logger = logging.getLogger(__name__)

# 30 minutes, as long as the platform nonce table keeps values
DEFAULT_NONCE_MAX_AGE = 30 * 60
DEFAULT_NONCE_MAX_LENGTH = 50


@dataclass
class _TokenRecord:
    """A token with its owner and three-legged flow state."""

    token: Token
    consumer_key: str
    token_type: str
    callback: Optional[str] = None
    verifier: Optional[str] = None


class InMemoryDataStore(OAuthDataStore):
    """
    In-memory consumer/token/nonce store.

    Storage structure:
        consumers: {consumer_key: Consumer}
        tokens: {(token_type, token_key): _TokenRecord}
        nonces: {(consumer_key, token_key, nonce, timestamp): expiry}

    Limitations:
    - Data lost on process restart
    - Nonces are only unique within one process
    """

    def __init__(
        self,
        nonce_max_age: int = DEFAULT_NONCE_MAX_AGE,
        nonce_max_length: int = DEFAULT_NONCE_MAX_LENGTH,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize in-memory storage.

        Args:
            nonce_max_age: Seconds a used nonce is remembered
            nonce_max_length: Nonces are truncated to their last N characters
            clock: Returns the current Unix time
        """
        self.nonce_max_age = nonce_max_age
        self.nonce_max_length = nonce_max_length
        self._clock = clock
        self._consumers: Dict[str, Consumer] = {}
        self._tokens: Dict[Tuple[str, str], _TokenRecord] = {}
        self._nonces: Dict[Tuple[str, str, str, str], float] = {}
        self._lock = threading.Lock()

    # Registration

    def add_consumer(self, consumer: Consumer, replace: bool = False) -> None:
        """
        Register a consumer.

        Raises:
            DuplicateConsumerError: If the key exists and replace is False
        """
        with self._lock:
            if consumer.key in self._consumers and not replace:
                raise DuplicateConsumerError(f"Consumer already registered: {consumer.key}")
            self._consumers[consumer.key] = consumer
        logger.info(f"Registered consumer: {consumer.key}")

    def remove_consumer(self, consumer_key: str) -> bool:
        """Remove a consumer and every token issued to it."""
        with self._lock:
            if self._consumers.pop(consumer_key, None) is None:
                return False
            for ref in [ref for ref, record in self._tokens.items()
                        if record.consumer_key == consumer_key]:
                del self._tokens[ref]
        return True

    def add_token(self, consumer: Consumer, token_type: str, token: Token) -> None:
        """Register an existing token for a consumer."""
        with self._lock:
            self._tokens[(token_type, token.key)] = _TokenRecord(
                token=token, consumer_key=consumer.key, token_type=token_type
            )

    def authorize_request_token(self, token_key: str, verifier: Optional[str] = None) -> str:
        """
        Record the user's authorization of a request token.

        Args:
            token_key: Request token key
            verifier: Verifier to require on exchange (default: generated)

        Returns:
            The verifier the consumer must present

        Raises:
            TokenIssueError: If the request token is unknown
        """
        with self._lock:
            record = self._tokens.get((REQUEST_TOKEN, token_key))
            if record is None:
                raise TokenIssueError(f"Unknown request token: {token_key}")
            record.verifier = verifier or secrets.token_urlsafe(8)
            return record.verifier

    # OAuthDataStore interface

    def lookup_consumer(self, consumer_key: str) -> Optional[Consumer]:
        with self._lock:
            return self._consumers.get(consumer_key)

    def lookup_token(
        self, consumer: Consumer, token_type: str, token_key: Optional[str]
    ) -> Optional[Token]:
        if not token_key:
            return None
        with self._lock:
            record = self._tokens.get((token_type, token_key))
        if record is None or record.consumer_key != consumer.key:
            return None
        return record.token

    def lookup_nonce(
        self,
        consumer: Consumer,
        token: Optional[Token],
        nonce: str,
        timestamp: str,
    ) -> bool:
        """Check-and-record the nonce under the lock."""
        now = self._clock()
        ref = (
            consumer.key,
            token.key if token else "",
            nonce[-self.nonce_max_length:],
            str(timestamp),
        )

        with self._lock:
            self._purge_expired_nonces(now)
            if ref in self._nonces:
                logger.warning(f"Nonce reused for consumer {consumer.key}: {nonce}")
                return True
            self._nonces[ref] = now + self.nonce_max_age
            return False

    def new_request_token(
        self, consumer: Consumer, callback: Optional[str] = None
    ) -> Optional[Token]:
        token = Token(secrets.token_urlsafe(16), secrets.token_urlsafe(24))
        with self._lock:
            self._tokens[(REQUEST_TOKEN, token.key)] = _TokenRecord(
                token=token,
                consumer_key=consumer.key,
                token_type=REQUEST_TOKEN,
                callback=callback,
            )
        logger.debug(f"New request token for consumer {consumer.key}")
        return token

    def new_access_token(
        self,
        request_token: Token,
        consumer: Consumer,
        verifier: Optional[str] = None,
    ) -> Optional[Token]:
        with self._lock:
            record = self._tokens.get((REQUEST_TOKEN, request_token.key))
            if record is None or record.consumer_key != consumer.key:
                raise TokenIssueError(f"Unknown request token: {request_token.key}")
            if record.verifier is not None and record.verifier != verifier:
                raise TokenIssueError("Request token verifier mismatch")

            # A request token can be exchanged once
            del self._tokens[(REQUEST_TOKEN, request_token.key)]

            token = Token(secrets.token_urlsafe(16), secrets.token_urlsafe(24))
            self._tokens[(ACCESS_TOKEN, token.key)] = _TokenRecord(
                token=token, consumer_key=consumer.key, token_type=ACCESS_TOKEN
            )
        logger.debug(f"New access token for consumer {consumer.key}")
        return token

    def _purge_expired_nonces(self, now: float) -> None:
        """Drop nonces past their expiry. Caller holds the lock."""
        expired = [ref for ref, expiry in self._nonces.items() if expiry <= now]
        for ref in expired:
            del self._nonces[ref]

    def nonce_count(self) -> int:
        """Number of remembered nonces."""
        with self._lock:
            return len(self._nonces)
