"""
OAuth 1.0a request model.

Holds the HTTP method, URL and parameter multimap of a message, produces the
signature base string, signs, and serializes to URL, form body or
Authorization header form.

Author: ltioauth Team
Date: 2026-10-19
"""

import logging
import secrets
import time
from typing import Dict, Optional
from urllib.parse import urlparse

from ltioauth.oauth.exceptions import HeaderSerializationError
from ltioauth.oauth.models import Consumer, Token
from ltioauth.oauth.signature import SignatureMethod
from ltioauth.oauth.util import (
    ParameterValue,
    Parameters,
    build_http_query,
    merge_parameters,
    normalize_http_url,
    parse_parameters,
    split_header,
    urlencode_rfc3986,
)

logger = logging.getLogger(__name__)

OAUTH_VERSION = "1.0"

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class OAuthRequest:
    """
    An OAuth-signable HTTP request.

    Query parameters of ``http_url`` are always part of the parameter set;
    they are merged ahead of the parameters passed in.

    Example:
        consumer = Consumer("ab", "cd")
        request = OAuthRequest.from_consumer_and_token(
            consumer, None, "GET", "http://example.org/r?a=1"
        )
        request.sign_request(HmacSha1(), consumer, None)
        request.to_header()
    """

    def __init__(
        self,
        http_method: str,
        http_url: str,
        parameters: Optional[Parameters] = None,
    ):
        """
        Initialize request.

        Args:
            http_method: HTTP method (case is normalized when signing)
            http_url: Absolute request URL, possibly with a query string
            parameters: Additional parameters (body and header parameters)
        """
        params = merge_parameters({}, parameters or {})
        query = urlparse(http_url).query
        if query:
            params = merge_parameters(parse_parameters(query), params)

        self.parameters: Parameters = params
        self.http_method = http_method
        self.http_url = http_url
        # Last base string computed, kept for diagnostics
        self.base_string: Optional[str] = None

    @classmethod
    def from_request(
        cls,
        http_method: str,
        http_url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
    ) -> "OAuthRequest":
        """
        Build a request from the parts of an incoming HTTP message.

        Form-encoded POST bodies contribute their parameters, then the
        OAuth Authorization header; the URL query goes first.

        Args:
            http_method: HTTP method
            http_url: Full request URL as seen by the client
            headers: Request headers (any case)
            body: Raw request body

        Returns:
            OAuthRequest holding the merged parameters
        """
        headers_lower = {k.lower(): v for k, v in (headers or {}).items()}

        parameters: Parameters = {}
        content_type = headers_lower.get("content-type", "")
        if http_method.upper() == "POST" and FORM_CONTENT_TYPE in content_type.lower():
            parameters = parse_parameters(body)

        auth_header = headers_lower.get("authorization", "")
        if auth_header.startswith("OAuth "):
            header_parameters = split_header(auth_header)
            parameters = merge_parameters(parameters, header_parameters)

        return cls(http_method, http_url, parameters)

    @classmethod
    def from_consumer_and_token(
        cls,
        consumer: Consumer,
        token: Optional[Token],
        http_method: str,
        http_url: str,
        parameters: Optional[Parameters] = None,
    ) -> "OAuthRequest":
        """
        Set up an outgoing request with the standard OAuth parameters.

        Args:
            consumer: Signing consumer
            token: Token the request is made with (optional)
            http_method: HTTP method
            http_url: Target URL
            parameters: Message parameters, merged after the defaults

        Returns:
            Unsigned OAuthRequest
        """
        defaults: Parameters = {
            "oauth_version": OAUTH_VERSION,
            "oauth_nonce": cls.generate_nonce(),
            "oauth_timestamp": str(cls.generate_timestamp()),
            "oauth_consumer_key": consumer.key,
        }
        if token:
            defaults["oauth_token"] = token.key

        merged = merge_parameters(defaults, parameters or {})
        return cls(http_method, http_url, merged)

    def set_parameter(self, name: str, value: str, allow_duplicates: bool = True) -> None:
        """
        Set a parameter value.

        Args:
            name: Parameter name
            value: Parameter value
            allow_duplicates: Append to existing values instead of overwriting
        """
        if allow_duplicates and name in self.parameters:
            existing = self.parameters[name]
            if isinstance(existing, list):
                existing.append(value)
            else:
                self.parameters[name] = [existing, value]
        else:
            self.parameters[name] = value

    def get_parameter(self, name: str) -> Optional[ParameterValue]:
        return self.parameters.get(name)

    def get_parameters(self) -> Parameters:
        return self.parameters

    def unset_parameter(self, name: str) -> None:
        self.parameters.pop(name, None)

    def get_signable_parameters(self) -> str:
        """The parameters without oauth_signature, sorted and concatenated."""
        params = {k: v for k, v in self.parameters.items() if k != "oauth_signature"}
        return build_http_query(params)

    def get_signature_base_string(self) -> str:
        """
        Build the signature base string.

        Format:
            enc(METHOD)&enc(normalized URL)&enc(signable parameters)

        Returns:
            Signature base string
        """
        parts = urlencode_rfc3986([
            self.get_normalized_http_method(),
            self.get_normalized_http_url(),
            self.get_signable_parameters(),
        ])
        return "&".join(parts)

    def get_normalized_http_method(self) -> str:
        return self.http_method.upper()

    def get_normalized_http_url(self) -> str:
        return normalize_http_url(self.http_url)

    def to_url(self) -> str:
        """Build a URL usable for a GET request."""
        post_data = self.to_postdata()
        out = self.get_normalized_http_url()
        if post_data:
            out += "?" + post_data
        return out

    def to_postdata(self) -> str:
        """Build the body of a form-encoded POST request."""
        return build_http_query(self.parameters)

    def to_header(self, realm: Optional[str] = None) -> str:
        """
        Build the Authorization header.

        Only parameters whose name starts with "oauth" are included.

        Args:
            realm: Optional realm, listed first and not signed

        Returns:
            Header line like 'Authorization: OAuth oauth_nonce="...",...'

        Raises:
            HeaderSerializationError: If an oauth parameter has multiple values
        """
        parts = []
        if realm:
            parts.append(f'realm="{urlencode_rfc3986(realm)}"')

        for name, value in self.parameters.items():
            if not name.startswith("oauth"):
                continue
            if isinstance(value, list):
                raise HeaderSerializationError(name)
            parts.append(f'{urlencode_rfc3986(name)}="{urlencode_rfc3986(value)}"')

        out = "Authorization: OAuth"
        if parts:
            out += " " + ",".join(parts)
        return out

    def sign_request(
        self,
        signature_method: SignatureMethod,
        consumer: Consumer,
        token: Optional[Token] = None,
    ) -> None:
        """
        Sign the request in place.

        Sets oauth_signature_method and oauth_signature, replacing any
        previous values, so signing twice gives the same result.

        Args:
            signature_method: Signature method to use
            consumer: Signing consumer
            token: Token (optional)
        """
        self.set_parameter("oauth_signature_method", signature_method.name, False)
        signature = self.build_signature(signature_method, consumer, token)
        self.set_parameter("oauth_signature", signature, False)

    def build_signature(
        self,
        signature_method: SignatureMethod,
        consumer: Consumer,
        token: Optional[Token] = None,
    ) -> str:
        """Compute the signature for this request without storing it."""
        self.base_string = self.get_signature_base_string()
        return signature_method.build_signature(self.base_string, consumer, token)

    @staticmethod
    def generate_timestamp() -> int:
        return int(time.time())

    @staticmethod
    def generate_nonce() -> str:
        return secrets.token_hex(16)

    def __str__(self) -> str:
        return self.to_url()

    def __repr__(self) -> str:
        return f"OAuthRequest(http_method={self.http_method!r}, http_url={self.http_url!r})"
