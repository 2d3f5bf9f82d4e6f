"""
OAuth 1.0a signature methods.

Each method has a wire name (the value of oauth_signature_method) and turns a
signature base string plus the consumer and token secrets into a signature.
Methods are looked up through an explicit SignatureMethodRegistry owned by
whoever verifies or signs, never through module-level state.

Supported methods:
- HMAC-SHA1 (RFC 5849 section 3.4.2)
- HMAC-SHA224, HMAC-SHA256, HMAC-SHA384, HMAC-SHA512 (same construction,
  different hash function)

Author: ltioauth Team
Date: 2026-10-19
"""

import base64
import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterator, List, Optional

from ltioauth.oauth.models import Consumer, Token
from ltioauth.oauth.util import urlencode_rfc3986

logger = logging.getLogger(__name__)


class SignatureMethod(ABC):
    """
    Abstract base class for signature methods.

    Implementations provide ``name`` and ``build_signature``; verification
    is shared and compares the rebuilt signature in constant time.
    """

    name: str = ""

    @abstractmethod
    def build_signature(
        self,
        base_string: str,
        consumer: Consumer,
        token: Optional[Token] = None,
    ) -> str:
        """
        Compute the signature for a base string.

        The result must not be percent-encoded; encoding happens when the
        request is serialized.

        Args:
            base_string: Signature base string
            consumer: Consumer whose secret keys the signature
            token: Token whose secret is appended to the key (optional)

        Returns:
            Signature string
        """
        pass

    def check_signature(
        self,
        base_string: str,
        consumer: Consumer,
        token: Optional[Token],
        signature: Optional[str],
    ) -> bool:
        """
        Verify that a supplied signature matches the base string.

        Args:
            base_string: Signature base string rebuilt from the request
            consumer: Resolved consumer
            token: Resolved token (optional)
            signature: Signature supplied with the request

        Returns:
            True if the signature is valid
        """
        if not isinstance(signature, str):
            return False
        built = self.build_signature(base_string, consumer, token)
        return self._constant_time_compare(built, signature)

    @staticmethod
    def _constant_time_compare(a: str, b: str) -> bool:
        """
        Constant-time string comparison to prevent timing attacks.

        Args:
            a: Expected value
            b: Supplied value

        Returns:
            True if both are non-empty and equal
        """
        if len(a) == 0 or len(b) == 0:
            return False

        if len(a) != len(b):
            return False

        result = 0
        for x, y in zip(a, b):
            result |= ord(x) ^ ord(y)

        return result == 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class HmacSignatureMethod(SignatureMethod):
    """
    HMAC signature over the base string.

    Key = encode(consumer secret) & encode(token secret or ""), so the key
    still ends in '&' when there is no token.
    """

    digestmod: Callable = hashlib.sha1

    @staticmethod
    def signing_key(consumer: Consumer, token: Optional[Token] = None) -> str:
        """Build the HMAC key from the consumer and token secrets."""
        key_parts = urlencode_rfc3986([
            consumer.secret,
            token.secret if token else "",
        ])
        return "&".join(key_parts)

    def build_signature(
        self,
        base_string: str,
        consumer: Consumer,
        token: Optional[Token] = None,
    ) -> str:
        """Compute Base64(HMAC(key, UTF8(base_string)))."""
        key = self.signing_key(consumer, token)

        signature_bytes = hmac.new(
            key.encode("utf-8"),
            base_string.encode("utf-8"),
            self.digestmod,
        ).digest()

        return base64.b64encode(signature_bytes).decode("utf-8")


class HmacSha1(HmacSignatureMethod):
    """HMAC-SHA1 signature method."""

    name = "HMAC-SHA1"
    digestmod = hashlib.sha1


class HmacSha224(HmacSignatureMethod):
    """HMAC-SHA224 signature method."""

    name = "HMAC-SHA224"
    digestmod = hashlib.sha224


class HmacSha256(HmacSignatureMethod):
    """HMAC-SHA256 signature method."""

    name = "HMAC-SHA256"
    digestmod = hashlib.sha256


class HmacSha384(HmacSignatureMethod):
    """HMAC-SHA384 signature method."""

    name = "HMAC-SHA384"
    digestmod = hashlib.sha384


class HmacSha512(HmacSignatureMethod):
    """HMAC-SHA512 signature method."""

    name = "HMAC-SHA512"
    digestmod = hashlib.sha512


BUILTIN_SIGNATURE_METHODS: Dict[str, type] = {
    cls.name: cls
    for cls in (HmacSha1, HmacSha224, HmacSha256, HmacSha384, HmacSha512)
}

DEFAULT_SIGNATURE_METHOD = HmacSha1.name


class SignatureMethodRegistry:
    """
    Maps wire names to signature method implementations.

    Example:
        registry = SignatureMethodRegistry()
        registry.register(HmacSha1())
        registry.get("HMAC-SHA1")
    """

    def __init__(self, methods: Optional[List[SignatureMethod]] = None):
        self._methods: Dict[str, SignatureMethod] = {}
        for method in methods or []:
            self.register(method)

    def register(self, method: SignatureMethod, replace: bool = False) -> None:
        """
        Register a signature method under its name.

        Args:
            method: Signature method instance
            replace: Allow replacing a method already registered under that name

        Raises:
            ValueError: If the name is empty or already taken and replace is False
        """
        if not method.name:
            raise ValueError("Signature method must have a non-empty name")
        if method.name in self._methods and not replace:
            raise ValueError(f"Signature method already registered: {method.name}")

        self._methods[method.name] = method
        logger.debug(f"Registered signature method: {method.name}")

    def unregister(self, name: str) -> bool:
        """Remove a method; returns False if it was not registered."""
        return self._methods.pop(name, None) is not None

    def get(self, name: Optional[str]) -> Optional[SignatureMethod]:
        """Return the method registered under name, or None."""
        if not isinstance(name, str):
            return None
        return self._methods.get(name)

    def names(self) -> List[str]:
        """Registered method names in registration order."""
        return list(self._methods)

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __len__(self) -> int:
        return len(self._methods)

    def __iter__(self) -> Iterator[SignatureMethod]:
        return iter(self._methods.values())


def get_signature_method(name: str) -> SignatureMethod:
    """
    Create a built-in signature method by name.

    Args:
        name: Wire name, e.g. "HMAC-SHA256"

    Returns:
        New signature method instance

    Raises:
        ValueError: If the name is not a built-in method
    """
    try:
        return BUILTIN_SIGNATURE_METHODS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown signature method: {name}. "
            f"Supported: {', '.join(BUILTIN_SIGNATURE_METHODS)}"
        ) from None


def default_registry(names: Optional[List[str]] = None) -> SignatureMethodRegistry:
    """
    Build a registry holding built-in methods.

    Args:
        names: Method names to include (default: all built-in methods)

    Returns:
        New SignatureMethodRegistry
    """
    selected = names if names is not None else list(BUILTIN_SIGNATURE_METHODS)
    return SignatureMethodRegistry([get_signature_method(name) for name in selected])
