"""
Redis Data Store Implementation.

Stores consumers, tokens and used nonces in Redis so that replay protection
holds across processes and hosts. Nonces are recorded with an atomic
``SET key NX EX ttl``.

Key layout:
    {prefix}consumer:{consumer_key}         hash (secret, callback_url)
    {prefix}token:{type}:{token_key}        hash (secret, consumer_key, callback, verifier)
    {prefix}nonce:{consumer}:{token}:{ts}:{nonce}   "1", expires after nonce_max_age

Each part after the prefix is percent-encoded.

Author: ltioauth Team
Date: 2026-10-19
"""

import logging
import secrets
from typing import Any, Dict, Optional

import redis
from redis.exceptions import RedisError

from ltioauth.oauth.models import ACCESS_TOKEN, REQUEST_TOKEN, Consumer, Token
from ltioauth.oauth.util import urlencode_rfc3986
from ltioauth.store.backend import OAuthDataStore
from ltioauth.store.exceptions import StoreError, TokenIssueError
from ltioauth.store.memory_backend import DEFAULT_NONCE_MAX_AGE, DEFAULT_NONCE_MAX_LENGTH

logger = logging.getLogger(__name__)


class RedisDataStore(OAuthDataStore):
    """
    Redis-backed consumer/token/nonce store.

    Configuration:
        host: Redis server hostname (default: localhost)
        port: Redis server port (default: 6379)
        db: Redis database number (default: 0)
        password: Redis password (default: None)
        key_prefix: Global key prefix (default: "ltioauth:")
        nonce_max_age: Seconds a used nonce is remembered (default: 1800)
        nonce_max_length: Nonces are truncated to their last N characters
        client: Pre-built redis.Redis client (overrides connection settings)
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        key_prefix: str = "ltioauth:",
        nonce_max_age: int = DEFAULT_NONCE_MAX_AGE,
        nonce_max_length: int = DEFAULT_NONCE_MAX_LENGTH,
        socket_timeout: float = 5.0,
        client: Optional[Any] = None,
    ):
        self.key_prefix = key_prefix
        self.nonce_max_age = nonce_max_age
        self.nonce_max_length = nonce_max_length

        if client is None:
            client = redis.Redis(
                host=host,
                port=port,
                db=db,
                password=password,
                socket_timeout=socket_timeout,
                decode_responses=True,
            )
        self._client = client

        logger.info(f"RedisDataStore initialized: {host}:{port}/{db}, prefix={key_prefix}")

    def _make_key(self, *parts: str) -> str:
        """
        Create fully-qualified Redis key.

        Parts are percent-encoded so a ":" inside a consumer or token key
        cannot shift the other parts.

        Example: ltioauth:token:access:abc123
        """
        return self.key_prefix + ":".join(urlencode_rfc3986(list(parts)))

    def _hgetall(self, key: str) -> Dict[str, str]:
        try:
            return self._client.hgetall(key) or {}
        except RedisError as e:
            raise StoreError(f"Redis lookup failed for {key}: {e}") from e

    def _hset(self, key: str, mapping: Dict[str, str]) -> None:
        try:
            self._client.hset(key, mapping=mapping)
        except RedisError as e:
            raise StoreError(f"Redis write failed for {key}: {e}") from e

    # Registration

    def add_consumer(self, consumer: Consumer) -> None:
        """Register or replace a consumer."""
        mapping = {"secret": consumer.secret}
        if consumer.callback_url:
            mapping["callback_url"] = consumer.callback_url
        self._hset(self._make_key("consumer", consumer.key), mapping)
        logger.info(f"Registered consumer: {consumer.key}")

    def add_token(self, consumer: Consumer, token_type: str, token: Token) -> None:
        """Register an existing token for a consumer."""
        self._hset(
            self._make_key("token", token_type, token.key),
            {"secret": token.secret, "consumer_key": consumer.key},
        )

    # OAuthDataStore interface

    def lookup_consumer(self, consumer_key: str) -> Optional[Consumer]:
        data = self._hgetall(self._make_key("consumer", consumer_key))
        if not data:
            return None
        return Consumer(consumer_key, data["secret"], data.get("callback_url") or None)

    def lookup_token(
        self, consumer: Consumer, token_type: str, token_key: Optional[str]
    ) -> Optional[Token]:
        if not token_key:
            return None
        data = self._hgetall(self._make_key("token", token_type, token_key))
        if not data or data.get("consumer_key") != consumer.key:
            return None
        return Token(token_key, data["secret"])

    def lookup_nonce(
        self,
        consumer: Consumer,
        token: Optional[Token],
        nonce: str,
        timestamp: str,
    ) -> bool:
        key = self._make_key(
            "nonce",
            consumer.key,
            token.key if token else "",
            str(timestamp),
            nonce[-self.nonce_max_length:],
        )
        try:
            created = self._client.set(key, "1", nx=True, ex=self.nonce_max_age)
        except RedisError as e:
            raise StoreError(f"Redis nonce check failed: {e}") from e

        if not created:
            logger.warning(f"Nonce reused for consumer {consumer.key}: {nonce}")
            return True
        return False

    def new_request_token(
        self, consumer: Consumer, callback: Optional[str] = None
    ) -> Optional[Token]:
        token = Token(secrets.token_urlsafe(16), secrets.token_urlsafe(24))
        mapping = {"secret": token.secret, "consumer_key": consumer.key}
        if callback:
            mapping["callback"] = callback
        self._hset(self._make_key("token", REQUEST_TOKEN, token.key), mapping)
        return token

    def authorize_request_token(self, token_key: str, verifier: Optional[str] = None) -> str:
        """
        Record the user's authorization of a request token.

        Raises:
            TokenIssueError: If the request token is unknown
        """
        key = self._make_key("token", REQUEST_TOKEN, token_key)
        if not self._hgetall(key):
            raise TokenIssueError(f"Unknown request token: {token_key}")
        verifier = verifier or secrets.token_urlsafe(8)
        self._hset(key, {"verifier": verifier})
        return verifier

    def new_access_token(
        self,
        request_token: Token,
        consumer: Consumer,
        verifier: Optional[str] = None,
    ) -> Optional[Token]:
        request_key = self._make_key("token", REQUEST_TOKEN, request_token.key)
        data = self._hgetall(request_key)
        if not data or data.get("consumer_key") != consumer.key:
            raise TokenIssueError(f"Unknown request token: {request_token.key}")
        if data.get("verifier") and data["verifier"] != verifier:
            raise TokenIssueError("Request token verifier mismatch")

        try:
            # Only the caller that deletes the request token may exchange it
            deleted = self._client.delete(request_key)
        except RedisError as e:
            raise StoreError(f"Redis delete failed for {request_key}: {e}") from e
        if not deleted:
            raise TokenIssueError(f"Request token already exchanged: {request_token.key}")

        token = Token(secrets.token_urlsafe(16), secrets.token_urlsafe(24))
        self._hset(
            self._make_key("token", ACCESS_TOKEN, token.key),
            {"secret": token.secret, "consumer_key": consumer.key},
        )
        return token
