"""
Signing of outgoing LTI messages.

Two forms are supported:

- form messages (tool launches, outcomes posted as parameters): the OAuth
  parameters and signature are added to the message parameters
- body messages (XML/JSON service calls): the body is covered by
  oauth_body_hash and the signature travels in the Authorization header

Author: ltioauth Team
Date: 2026-10-19
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional, Union, TYPE_CHECKING
from urllib.parse import urlparse

from ltioauth.oauth.exceptions import UnsupportedSignatureMethodError
from ltioauth.oauth.models import Consumer
from ltioauth.oauth.request import OAuthRequest
from ltioauth.oauth.signature import (
    DEFAULT_SIGNATURE_METHOD,
    SignatureMethodRegistry,
    default_registry,
)
from ltioauth.oauth.util import Parameters, merge_parameters, parse_parameters

if TYPE_CHECKING:
    from ltioauth.core.config_manager import LtiOAuthConfig

logger = logging.getLogger(__name__)

# Body hash algorithm per signature method; anything else uses SHA-1
BODY_HASH_ALGORITHMS = {
    "HMAC-SHA224": "sha224",
    "HMAC-SHA256": "sha256",
    "HMAC-SHA384": "sha384",
    "HMAC-SHA512": "sha512",
}


def compute_body_hash(
    body: Union[str, bytes, None],
    signature_method: str = DEFAULT_SIGNATURE_METHOD,
) -> str:
    """
    Compute the oauth_body_hash value for a message body.

    Args:
        body: Raw body (str is UTF-8 encoded)
        signature_method: Name of the signature method the message is signed with

    Returns:
        Base64-encoded digest
    """
    if body is None:
        body = b""
    elif isinstance(body, str):
        body = body.encode("utf-8")

    algorithm = BODY_HASH_ALGORITHMS.get(signature_method, "sha1")
    digest = hashlib.new(algorithm, body).digest()
    return base64.b64encode(digest).decode("utf-8")


def check_body_hash(request: OAuthRequest, body: Union[str, bytes, None]) -> bool:
    """
    Check the oauth_body_hash of a verified request against its body.

    Args:
        request: Request carrying oauth_body_hash and oauth_signature_method
        body: Raw request body

    Returns:
        True if the hash is present and matches
    """
    provided = request.get_parameter("oauth_body_hash")
    if not provided or not isinstance(provided, str):
        return False

    method = request.get_parameter("oauth_signature_method")
    if not isinstance(method, str):
        method = DEFAULT_SIGNATURE_METHOD

    expected = compute_body_hash(body, method)
    return hmac.compare_digest(expected, provided)


class MessageSigner:
    """
    Signs outgoing messages on behalf of a consumer.

    Example:
        signer = MessageSigner(Consumer("key", "secret"), "HMAC-SHA256")
        params = signer.sign_parameters(launch_url, {"lti_message_type": "basic-lti-launch-request"})
    """

    def __init__(
        self,
        consumer: Consumer,
        signature_method: str = DEFAULT_SIGNATURE_METHOD,
        registry: Optional[SignatureMethodRegistry] = None,
    ):
        """
        Initialize signer.

        Args:
            consumer: Consumer whose key and secret sign the messages
            signature_method: Name of the signature method to use
            registry: Registry to resolve the name in (default: built-in methods)

        Raises:
            UnsupportedSignatureMethodError: If the method is not in the registry
        """
        registry = registry if registry is not None else default_registry()
        method = registry.get(signature_method)
        if method is None:
            raise UnsupportedSignatureMethodError(signature_method, registry.names())

        self.consumer = consumer
        self.signature_method = method

    @classmethod
    def from_config(cls, consumer: Consumer, config: "LtiOAuthConfig") -> "MessageSigner":
        return cls(consumer, config.signing.signature_method)

    def sign_parameters(
        self,
        endpoint: str,
        params: Parameters,
        http_method: str = "POST",
        timestamp: Optional[int] = None,
    ) -> Parameters:
        """
        Sign a form message.

        Query parameters of the endpoint are covered by the signature but
        left out of the result, since they are sent in the URL.

        Args:
            endpoint: URL the message is sent to
            params: Message parameters
            http_method: HTTP method
            timestamp: Fixed oauth_timestamp (default: now)

        Returns:
            Message parameters plus the OAuth parameters and signature
        """
        message = merge_parameters({}, params)
        message["oauth_callback"] = "about:blank"

        request = self._build_request(endpoint, message, http_method, timestamp)

        query_params = parse_parameters(urlparse(endpoint).query)
        signed = _remove_values(request.get_parameters(), query_params)

        logger.debug(
            f"Signed {len(signed)} parameters for {request.get_normalized_http_url()} "
            f"with {self.signature_method.name}"
        )
        return signed

    def sign_body(
        self,
        endpoint: str,
        body: Union[str, bytes, None],
        http_method: str = "POST",
        content_type: Optional[str] = None,
        body_hash: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> str:
        """
        Sign a message body and build its headers.

        Args:
            endpoint: URL the message is sent to
            body: Message body
            http_method: HTTP method
            content_type: Media type of the body (or the expected response)
            body_hash: Precomputed oauth_body_hash
            timestamp: Fixed oauth_timestamp (default: now)

        Returns:
            Header block: the Authorization line, then Content-Type and
            Content-Length for a body, or Accept when there is no body
        """
        if body_hash is None:
            body_hash = compute_body_hash(body, self.signature_method.name)

        request = self._build_request(
            endpoint, {"oauth_body_hash": body_hash}, http_method, timestamp
        )
        header = request.to_header()

        if isinstance(body, str):
            body = body.encode("utf-8")
        if not body:
            if content_type:
                header += f"\nAccept: {content_type}"
        elif content_type:
            header += f"\nContent-Type: {content_type}; charset=UTF-8"
            header += f"\nContent-Length: {len(body)}"

        return header

    def _build_request(
        self,
        endpoint: str,
        params: Parameters,
        http_method: str,
        timestamp: Optional[int],
    ) -> OAuthRequest:
        request = OAuthRequest.from_consumer_and_token(
            self.consumer, None, http_method, endpoint, params
        )
        if timestamp is not None:
            request.set_parameter("oauth_timestamp", str(timestamp), False)
        request.sign_request(self.signature_method, self.consumer, None)
        return request


def _remove_values(params: Parameters, remove: Parameters) -> Parameters:
    """Drop one occurrence of each value in ``remove`` from ``params``."""
    result = merge_parameters({}, params)

    for name, value in remove.items():
        if name not in result:
            continue
        current = result[name]
        current_values = current if isinstance(current, list) else [current]
        for unwanted in value if isinstance(value, list) else [value]:
            if unwanted in current_values:
                current_values.remove(unwanted)

        if not current_values:
            del result[name]
        elif len(current_values) == 1 and not isinstance(current, list):
            result[name] = current_values[0]
        else:
            result[name] = current_values

    return result
