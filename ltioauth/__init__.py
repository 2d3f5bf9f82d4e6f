"""
ltioauth: OAuth 1.0a request signing for LTI

Signs and verifies tool-launch and service-call messages exchanged between
an LTI platform and tool sharing a key/secret pair.
"""

__version__ = "0.1.0"

from .oauth import (
    Consumer,
    Token,
    OAuthRequest,
    OAuthServer,
    MessageSigner,
    SignatureMethodRegistry,
    default_registry,
)

__all__ = [
    "Consumer",
    "Token",
    "OAuthRequest",
    "OAuthServer",
    "MessageSigner",
    "SignatureMethodRegistry",
    "default_registry",
    "__version__",
]
