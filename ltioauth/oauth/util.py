"""Parameter canonicalization for OAuth 1.0a request signing.

Implements the encoding, parsing, merging and normalization rules used to
build the signature base string:

- RFC 3986 percent-encoding (spaces as %20, '~' left as is)
- query-string parsing that keeps repeated parameter names
- duplicate-aware merging of parameter sets
- sorted, encoded parameter strings
- normalized request URLs (scheme://host[:port]/path)

Reference: https://oauth.net/core/1.0a/#anchor13
"""

import re
from typing import Dict, List, Optional, Union
from urllib.parse import quote, unquote_plus, urlparse

ParameterValue = Union[str, List[str]]
Parameters = Dict[str, ParameterValue]

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}

_OAUTH_HEADER_PATTERN = re.compile(r'(oauth_[a-z_-]*)=(?:"([^"]*)"|([^,]*))')
_ANY_HEADER_PATTERN = re.compile(r'([a-z_-]*)=(?:"([^"]*)"|([^,]*))')


def urlencode_rfc3986(value):
    """Percent-encode a value per RFC 3986.

    Only unreserved characters (ALPHA, DIGIT, '-', '.', '_', '~') are left
    as is, so a space becomes %20 and never '+'. Lists and tuples are
    encoded element-wise and keep their shape.

    Args:
        value: String, scalar, list/tuple of those, or None

    Returns:
        Encoded string, or list of encoded strings for list input

    Example:
        >>> urlencode_rfc3986("a b~c+d")
        'a%20b~c%2Bd'
    """
    if isinstance(value, (list, tuple)):
        return [urlencode_rfc3986(item) for item in value]
    if value is None:
        return ""
    return quote(str(value), safe="~")


def urldecode_rfc3986(value: str) -> str:
    """Decode a form-encoded value ('+' is read as a space)."""
    return unquote_plus(value)


def parse_parameters(query: Optional[str]) -> Parameters:
    """Parse a query-string shaped input into a parameter multimap.

    Repeated names are not overwritten: the first duplicate turns the
    value into a list and later ones are appended in order.

    Args:
        query: String like "a=b&a=c&d=e"

    Returns:
        Dict like {"a": ["b", "c"], "d": "e"}
    """
    if not query:
        return {}

    params: Parameters = {}
    for pair in query.split("&"):
        name, sep, value = pair.partition("=")
        name = urldecode_rfc3986(name)
        value = urldecode_rfc3986(value) if sep else ""

        if name in params:
            existing = params[name]
            if isinstance(existing, list):
                existing.append(value)
            else:
                params[name] = [existing, value]
        else:
            params[name] = value

    return params


def merge_parameters(left: Parameters, right: Parameters) -> Parameters:
    """Merge two parameter sets without losing duplicate names.

    Rules for a name present on both sides:
    1. scalar + scalar -> [left, right]
    2. scalar + list   -> [left, *right]
    3. list + scalar   -> [*left, right]
    4. list + list     -> [*left, *right]

    Names present on one side only pass through unchanged. Neither input
    is modified.

    Args:
        left: Earlier parameter set (its order is kept)
        right: Later parameter set

    Returns:
        New merged parameter dict
    """
    merged: Parameters = {}
    for name, value in left.items():
        if name not in right:
            merged[name] = list(value) if isinstance(value, list) else value
            continue
        other = right[name]
        left_values = value if isinstance(value, list) else [value]
        right_values = other if isinstance(other, list) else [other]
        merged[name] = [*left_values, *right_values]

    for name, value in right.items():
        if name not in left:
            merged[name] = list(value) if isinstance(value, list) else value

    return merged


def build_http_query(params: Optional[Parameters]) -> str:
    """Build the sorted, encoded parameter string.

    Names and values are encoded first, then sorted by encoded name using
    byte-value ordering. Values of a repeated name are sorted among
    themselves and emitted as separate name=value pairs.

    Args:
        params: Parameter multimap

    Returns:
        String like "a=1&b=2&b=3", or "" when there are no parameters
    """
    if not params:
        return ""

    encoded = {
        urlencode_rfc3986(name): urlencode_rfc3986(value)
        for name, value in params.items()
    }

    pairs: List[str] = []
    for name in sorted(encoded):
        value = encoded[name]
        if isinstance(value, list):
            for duplicate in sorted(value):
                pairs.append(f"{name}={duplicate}")
        else:
            pairs.append(f"{name}={value}")

    return "&".join(pairs)


def split_header(header: str, only_allow_oauth_parameters: bool = True) -> Dict[str, str]:
    """Parse the parameters out of an OAuth Authorization header.

    Accepts both quoted and bare values. The realm parameter is dropped
    since it is not part of the signature.

    Args:
        header: Header value, e.g. 'OAuth realm="x", oauth_nonce="abc"'
        only_allow_oauth_parameters: Ignore parameters not prefixed "oauth_"

    Returns:
        Dict of decoded parameter values

    Example:
        >>> split_header('OAuth oauth_consumer_key="ab", oauth_nonce="n%201"')
        {'oauth_consumer_key': 'ab', 'oauth_nonce': 'n 1'}
    """
    pattern = _OAUTH_HEADER_PATTERN if only_allow_oauth_parameters else _ANY_HEADER_PATTERN

    params: Dict[str, str] = {}
    for match in pattern.finditer(header):
        name, quoted, bare = match.groups()
        if not name:
            continue
        raw = quoted if quoted else (bare or "")
        params[name] = urldecode_rfc3986(raw.strip())

    params.pop("realm", None)
    return params


def normalize_http_url(url: str) -> str:
    """Rebuild a URL as scheme://host[:port]/path.

    The host is lower-cased, the port is kept only when it differs from the
    scheme's default, and user info, query string and fragment are dropped.

    Args:
        url: Absolute request URL

    Returns:
        Normalized URL used in the signature base string

    Example:
        >>> normalize_http_url("HTTP://Example.COM:80/r?a=1#frag")
        'http://example.com/r'
    """
    parsed = urlparse(url)
    scheme = parsed.scheme.lower() or "http"
    host = parsed.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    path = parsed.path

    port = parsed.port
    default_port = DEFAULT_PORTS.get(scheme)
    if port is not None and default_port is not None and port != default_port:
        host = f"{host}:{port}"

    return f"{scheme}://{host}{path}"
