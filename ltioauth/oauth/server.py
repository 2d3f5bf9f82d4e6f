"""
OAuth 1.0a verification server.

Verifies signed messages against a data store:

1. protocol version
2. consumer lookup (or key match for an already known consumer)
3. token lookup (three-legged flows only)
4. timestamp freshness
5. nonce replay
6. signature method lookup
7. signature check

Each step raises a specific OAuthError; the first failure aborts.

Author: ltioauth Team
Date: 2026-10-19
"""

import logging
import time
from typing import Callable, Optional, Tuple, TYPE_CHECKING

from ltioauth.core.logging_config import log_with_context
from ltioauth.oauth.exceptions import (
    ExpiredTimestampError,
    InvalidConsumerError,
    InvalidSignatureError,
    InvalidTokenError,
    MissingNonceError,
    MissingSignatureMethodError,
    MissingTimestampError,
    NonceReusedError,
    OAuthError,
    UnsupportedSignatureMethodError,
    UnsupportedVersionError,
)
from ltioauth.oauth.models import ACCESS_TOKEN, REQUEST_TOKEN, Consumer, Token
from ltioauth.oauth.request import OAUTH_VERSION, OAuthRequest
from ltioauth.oauth.signature import (
    SignatureMethod,
    SignatureMethodRegistry,
    default_registry,
)
from ltioauth.store.backend import OAuthDataStore

if TYPE_CHECKING:
    from ltioauth.core.config_manager import LtiOAuthConfig

logger = logging.getLogger(__name__)


class OAuthServer:
    """
    Verifies OAuth 1.0a signed requests.

    The server owns its signature method registry; nothing is shared between
    server instances. All lookups go to the data store synchronously and
    store errors propagate unchanged.

    Example:
        server = OAuthServer(store, default_registry())
        request = OAuthRequest.from_request("POST", url, headers, body)
        consumer, token = server.verify_request(request)
    """

    # Default timestamp tolerance (5 minutes)
    DEFAULT_TIMESTAMP_THRESHOLD = 300

    def __init__(
        self,
        data_store: OAuthDataStore,
        signature_methods: Optional[SignatureMethodRegistry] = None,
        timestamp_threshold: int = DEFAULT_TIMESTAMP_THRESHOLD,
        version: str = OAUTH_VERSION,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize OAuth server.

        Args:
            data_store: Consumer/token/nonce store
            signature_methods: Registry of accepted methods (default: empty)
            timestamp_threshold: Allowed clock difference in seconds
            version: Accepted oauth_version
            clock: Returns the current Unix time
        """
        self.data_store = data_store
        self.signature_methods = (
            signature_methods if signature_methods is not None else SignatureMethodRegistry()
        )
        self.timestamp_threshold = timestamp_threshold
        self.version = version
        self._clock = clock

    @classmethod
    def from_config(cls, data_store: OAuthDataStore, config: "LtiOAuthConfig") -> "OAuthServer":
        """
        Create a server from configuration.

        Args:
            data_store: Consumer/token/nonce store
            config: Loaded configuration

        Returns:
            Configured OAuthServer
        """
        verification = config.verification
        return cls(
            data_store,
            signature_methods=default_registry(list(verification.signature_methods)),
            timestamp_threshold=verification.timestamp_threshold,
            version=verification.oauth_version,
        )

    def add_signature_method(self, signature_method: SignatureMethod) -> None:
        """Accept a signature method, replacing one of the same name."""
        self.signature_methods.register(signature_method, replace=True)

    # High level entry points

    def fetch_request_token(self, request: OAuthRequest) -> Optional[Token]:
        """
        Process a request-token request.

        No token is needed for this step.

        Args:
            request: Incoming request

        Returns:
            The request token issued by the store

        Raises:
            OAuthError: If verification fails
        """
        consumer, token = self._verify(request, token_type=None)

        callback = request.get_parameter("oauth_callback")
        new_token = self.data_store.new_request_token(consumer, callback)
        logger.info(f"Issued request token for consumer: {consumer.key}")
        return new_token

    def fetch_access_token(self, request: OAuthRequest) -> Optional[Token]:
        """
        Process an access-token request.

        Requires an authorized request token.

        Args:
            request: Incoming request

        Returns:
            The access token issued by the store

        Raises:
            OAuthError: If verification fails
        """
        consumer, token = self._verify(request, token_type=REQUEST_TOKEN)

        verifier = request.get_parameter("oauth_verifier")
        new_token = self.data_store.new_access_token(token, consumer, verifier)
        logger.info(f"Issued access token for consumer: {consumer.key}")
        return new_token

    def verify_request(self, request: OAuthRequest) -> Tuple[Consumer, Token]:
        """
        Verify an API call made with an access token.

        Args:
            request: Incoming request

        Returns:
            Tuple of (consumer, access token)

        Raises:
            OAuthError: If verification fails
        """
        return self._verify(request, token_type=ACCESS_TOKEN)

    def verify_signature(
        self,
        request: OAuthRequest,
        consumer: Consumer,
        token: Optional[Token] = None,
    ) -> None:
        """
        Verify a request for an already resolved consumer.

        Used for two-legged messages such as tool launches, where the
        consumer is known from context and no token lookup happens. The
        request must still name that consumer in oauth_consumer_key.

        Args:
            request: Incoming request
            consumer: Consumer expected to have signed the request
            token: Token, if any

        Raises:
            OAuthError: If verification fails
        """
        try:
            self._get_version(request)
            self._check_consumer_key(request, consumer)
            self._check_signature(request, consumer, token)
        except OAuthError as e:
            log_with_context(
                logger, logging.WARNING, f"OAuth verification failed: {e}",
                consumer_key=consumer.key, error_code=e.error_code,
            )
            raise

        log_with_context(
            logger, logging.DEBUG, "OAuth signature verified",
            consumer_key=consumer.key, nonce=request.get_parameter("oauth_nonce"),
        )

    # Internals

    def _verify(
        self, request: OAuthRequest, token_type: Optional[str]
    ) -> Tuple[Consumer, Optional[Token]]:
        """Run the verification steps, resolving the token when token_type is set."""
        try:
            self._get_version(request)
            consumer = self._get_consumer(request)
            token = None
            if token_type is not None:
                token = self._get_token(request, consumer, token_type)
            self._check_signature(request, consumer, token)
        except OAuthError as e:
            log_with_context(
                logger, logging.WARNING, f"OAuth verification failed: {e}",
                consumer_key=request.get_parameter("oauth_consumer_key"),
                error_code=e.error_code,
            )
            raise

        log_with_context(
            logger, logging.DEBUG, "OAuth verification succeeded",
            consumer_key=consumer.key, nonce=request.get_parameter("oauth_nonce"),
        )
        return consumer, token

    def _get_version(self, request: OAuthRequest) -> str:
        """
        Check oauth_version.

        Raises:
            UnsupportedVersionError: If a version other than 1.0 is requested
        """
        version = request.get_parameter("oauth_version")
        if isinstance(version, list):
            raise UnsupportedVersionError(",".join(version))
        if not version:
            # Absent version means 1.0
            version = OAUTH_VERSION
        if version != self.version:
            raise UnsupportedVersionError(version)
        return version

    def _get_consumer(self, request: OAuthRequest) -> Consumer:
        """
        Resolve the consumer from oauth_consumer_key.

        Raises:
            InvalidConsumerError: If the key is missing or unknown
        """
        consumer_key = request.get_parameter("oauth_consumer_key")
        if not consumer_key or not isinstance(consumer_key, str):
            raise InvalidConsumerError()

        consumer = self.data_store.lookup_consumer(consumer_key)
        if not consumer:
            raise InvalidConsumerError(consumer_key)

        return consumer

    def _check_consumer_key(self, request: OAuthRequest, consumer: Consumer) -> None:
        """
        Check that oauth_consumer_key names the given consumer.

        Raises:
            InvalidConsumerError: If the key is missing, repeated or different
        """
        consumer_key = request.get_parameter("oauth_consumer_key")
        if not consumer_key or not isinstance(consumer_key, str):
            raise InvalidConsumerError()
        if consumer_key != consumer.key:
            raise InvalidConsumerError(consumer_key)

    def _get_token(self, request: OAuthRequest, consumer: Consumer, token_type: str) -> Token:
        """
        Resolve the token of the expected type from oauth_token.

        Raises:
            InvalidTokenError: If no such token exists
        """
        token_field = request.get_parameter("oauth_token")
        if isinstance(token_field, list):
            raise InvalidTokenError(token_type, ",".join(token_field))

        token = self.data_store.lookup_token(consumer, token_type, token_field)
        if not token:
            raise InvalidTokenError(token_type, token_field)

        return token

    def _check_signature(
        self,
        request: OAuthRequest,
        consumer: Consumer,
        token: Optional[Token],
    ) -> None:
        """
        Check timestamp, nonce, signature method and signature.

        Raises:
            OAuthError: On the first failing check
        """
        timestamp = request.get_parameter("oauth_timestamp")
        nonce = request.get_parameter("oauth_nonce")

        self._check_timestamp(timestamp)
        self._check_nonce(consumer, token, nonce, timestamp)

        signature_method = self._get_signature_method(request)

        signature = request.get_parameter("oauth_signature")
        base_string = request.get_signature_base_string()
        request.base_string = base_string
        if not signature_method.check_signature(base_string, consumer, token, signature):
            raise InvalidSignatureError()

    def _check_timestamp(self, timestamp) -> None:
        """
        Check that the timestamp is within the threshold of now.

        Raises:
            MissingTimestampError: If the timestamp is absent
            ExpiredTimestampError: If it is too old, too far ahead, or not a number
        """
        if not timestamp:
            raise MissingTimestampError()

        now = int(self._clock())
        if isinstance(timestamp, list):
            raise ExpiredTimestampError(
                ",".join(timestamp), now, "Multiple timestamp parameters"
            )
        if not (timestamp.isascii() and timestamp.isdigit()):
            raise ExpiredTimestampError(timestamp, now, f"Invalid timestamp: {timestamp}")

        if abs(now - int(timestamp)) > self.timestamp_threshold:
            raise ExpiredTimestampError(timestamp, now)

    def _check_nonce(
        self,
        consumer: Consumer,
        token: Optional[Token],
        nonce,
        timestamp: str,
    ) -> None:
        """
        Check that the nonce has not been used before.

        Raises:
            MissingNonceError: If the nonce is absent
            NonceReusedError: If the store has seen it already
        """
        if not nonce:
            raise MissingNonceError()
        if isinstance(nonce, list):
            raise NonceReusedError(",".join(nonce))

        if self.data_store.lookup_nonce(consumer, token, nonce, timestamp):
            raise NonceReusedError(nonce)

    def _get_signature_method(self, request: OAuthRequest) -> SignatureMethod:
        """
        Resolve oauth_signature_method in the registry.

        Raises:
            MissingSignatureMethodError: If the parameter is absent
            UnsupportedSignatureMethodError: If the method is not registered
        """
        name = request.get_parameter("oauth_signature_method")
        if not name:
            raise MissingSignatureMethodError()

        signature_method = self.signature_methods.get(name)
        if signature_method is None:
            if isinstance(name, list):
                name = ",".join(name)
            raise UnsupportedSignatureMethodError(name, self.signature_methods.names())

        return signature_method
