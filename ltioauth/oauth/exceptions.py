"""
OAuth 1.0a exceptions for ltioauth.

Every verification failure maps to exactly one of these classes so callers can
turn it into a protocol-level rejection (usually HTTP 401).

Author: ltioauth Team
Date: 2026-10-19
"""

from typing import Iterable, Optional


class OAuthError(Exception):
    """Base exception for OAuth signing and verification errors."""

    def __init__(self, message: str, error_code: str = "oauth_problem"):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class UnsupportedVersionError(OAuthError):
    """Raised when oauth_version is present and not 1.0."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(
            f"OAuth version '{version}' not supported", "version_rejected"
        )


class MissingSignatureMethodError(OAuthError):
    """Raised when oauth_signature_method is absent."""

    def __init__(self):
        super().__init__(
            "No signature method parameter. This parameter is required",
            "parameter_absent",
        )


class UnsupportedSignatureMethodError(OAuthError):
    """Raised when oauth_signature_method is not registered."""

    def __init__(self, signature_method: str, supported: Iterable[str]):
        self.signature_method = signature_method
        self.supported = list(supported)
        super().__init__(
            f"Signature method '{signature_method}' not supported, "
            f"try one of the following: {', '.join(self.supported)}",
            "signature_method_rejected",
        )


class InvalidConsumerError(OAuthError):
    """Raised when the consumer key is missing or unknown."""

    def __init__(self, consumer_key: Optional[str] = None):
        self.consumer_key = consumer_key
        if consumer_key:
            message = f"Invalid consumer: {consumer_key}"
        else:
            message = "Invalid consumer key"
        super().__init__(message, "consumer_key_unknown")


class InvalidTokenError(OAuthError):
    """Raised when the token of the expected type cannot be resolved."""

    def __init__(self, token_type: str, token_value: Optional[str]):
        self.token_type = token_type
        self.token_value = token_value
        super().__init__(
            f"Invalid {token_type} token: {token_value if token_value else ''}",
            "token_rejected",
        )


class MissingTimestampError(OAuthError):
    """Raised when oauth_timestamp is absent."""

    def __init__(self):
        super().__init__(
            "Missing timestamp parameter. The parameter is required",
            "parameter_absent",
        )


class ExpiredTimestampError(OAuthError):
    """Raised when oauth_timestamp is outside the allowed window."""

    def __init__(self, timestamp: str, now: int, message: Optional[str] = None):
        self.timestamp = timestamp
        self.now = now
        super().__init__(
            message or f"Expired timestamp, yours {timestamp}, ours {now}",
            "timestamp_refused",
        )


class MissingNonceError(OAuthError):
    """Raised when oauth_nonce is absent."""

    def __init__(self):
        super().__init__(
            "Missing nonce parameter. The parameter is required",
            "parameter_absent",
        )


class NonceReusedError(OAuthError):
    """Raised when the nonce was already seen for this consumer and token."""

    def __init__(self, nonce: str):
        self.nonce = nonce
        super().__init__(f"Nonce already used: {nonce}", "nonce_used")


class InvalidSignatureError(OAuthError):
    """Raised when the supplied signature does not match."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message, "signature_invalid")


class HeaderSerializationError(OAuthError):
    """Raised when a list value would have to go into the Authorization header."""

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(
            f"Arrays not supported in headers: {parameter}",
            "header_serialization",
        )
