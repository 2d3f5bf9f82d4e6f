"""OAuth module for ltioauth.

This module provides parameter canonicalization, the signable request model,
HMAC signature methods, the verification server and the outgoing message
signer.
"""

from ltioauth.oauth.exceptions import (
    OAuthError,
    UnsupportedVersionError,
    MissingSignatureMethodError,
    UnsupportedSignatureMethodError,
    InvalidConsumerError,
    InvalidTokenError,
    MissingTimestampError,
    ExpiredTimestampError,
    MissingNonceError,
    NonceReusedError,
    InvalidSignatureError,
    HeaderSerializationError,
)
from ltioauth.oauth.models import (
    Consumer,
    Token,
    REQUEST_TOKEN,
    ACCESS_TOKEN,
)
from ltioauth.oauth.signature import (
    SignatureMethod,
    HmacSignatureMethod,
    HmacSha1,
    HmacSha224,
    HmacSha256,
    HmacSha384,
    HmacSha512,
    SignatureMethodRegistry,
    default_registry,
    get_signature_method,
)
from ltioauth.oauth.request import OAuthRequest
from ltioauth.oauth.server import OAuthServer
from ltioauth.oauth.signer import (
    MessageSigner,
    compute_body_hash,
    check_body_hash,
)

__all__ = [
    # Exceptions
    "OAuthError",
    "UnsupportedVersionError",
    "MissingSignatureMethodError",
    "UnsupportedSignatureMethodError",
    "InvalidConsumerError",
    "InvalidTokenError",
    "MissingTimestampError",
    "ExpiredTimestampError",
    "MissingNonceError",
    "NonceReusedError",
    "InvalidSignatureError",
    "HeaderSerializationError",
    # Models
    "Consumer",
    "Token",
    "REQUEST_TOKEN",
    "ACCESS_TOKEN",
    # Signature methods
    "SignatureMethod",
    "HmacSignatureMethod",
    "HmacSha1",
    "HmacSha224",
    "HmacSha256",
    "HmacSha384",
    "HmacSha512",
    "SignatureMethodRegistry",
    "default_registry",
    "get_signature_method",
    # Request, server, signer
    "OAuthRequest",
    "OAuthServer",
    "MessageSigner",
    "compute_body_hash",
    "check_body_hash",
]
