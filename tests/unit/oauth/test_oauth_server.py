"""Tests for the OAuth verification server."""

import logging
from unittest.mock import MagicMock

import pytest

from ltioauth.core.config_manager import LtiOAuthConfig
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
from ltioauth.oauth.request import OAuthRequest
from ltioauth.oauth.server import OAuthServer
from ltioauth.oauth.signature import (
    HmacSha1,
    HmacSha256,
    SignatureMethodRegistry,
    default_registry,
)
from ltioauth.store.backend import OAuthDataStore
from ltioauth.store.exceptions import StoreError
from ltioauth.store.memory_backend import InMemoryDataStore

NOW = 1_700_000_000
URL = "http://tool.example.com/api/resource?a=1"


def clock():
    return float(NOW)


@pytest.fixture
def consumer():
    """Create a test consumer."""
    return Consumer("ab", "cd")


@pytest.fixture
def access_token():
    """Create a test access token."""
    return Token("access-key", "access-secret")


@pytest.fixture
def store(consumer, access_token):
    """Create an in-memory store holding the consumer and an access token."""
    data_store = InMemoryDataStore(clock=clock)
    data_store.add_consumer(consumer)
    data_store.add_token(consumer, ACCESS_TOKEN, access_token)
    return data_store


@pytest.fixture
def server(store):
    """Create a server accepting all built-in methods."""
    return OAuthServer(store, default_registry(), clock=clock)


def make_request(
    consumer,
    token=None,
    timestamp=NOW,
    nonce=None,
    signature_method=None,
    params=None,
    unset=(),
):
    """Build and sign a request.

    Args:
        consumer: Signing consumer
        token: Token (optional)
        timestamp: oauth_timestamp value
        nonce: oauth_nonce value (default: random)
        signature_method: Method to sign with (default: HMAC-SHA1)
        params: Extra parameters
        unset: Parameter names removed before signing

    Returns:
        Signed OAuthRequest
    """
    request = OAuthRequest.from_consumer_and_token(consumer, token, "GET", URL, params)
    request.set_parameter("oauth_timestamp", str(timestamp), False)
    if nonce is not None:
        request.set_parameter("oauth_nonce", nonce, False)
    for name in unset:
        request.unset_parameter(name)
    request.sign_request(signature_method or HmacSha1(), consumer, token)
    return request


class TestVerifyRequest:
    """Test three-legged API request verification."""

    def test_valid_request(self, server, consumer, access_token):
        """Test a correctly signed request verifies."""
        request = make_request(consumer, access_token)

        verified_consumer, verified_token = server.verify_request(request)

        assert verified_consumer == consumer
        assert verified_token == access_token
        assert request.base_string == request.get_signature_base_string()

    def test_version_absent_means_1_0(self, server, consumer, access_token):
        """Test requests without oauth_version are accepted."""
        request = make_request(consumer, access_token, unset=("oauth_version",))

        server.verify_request(request)

    def test_unsupported_version(self, server, consumer, access_token):
        """Test other versions are rejected."""
        request = make_request(consumer, access_token)
        request.set_parameter("oauth_version", "2.0", False)

        with pytest.raises(UnsupportedVersionError) as exc_info:
            server.verify_request(request)

        assert exc_info.value.version == "2.0"
        assert exc_info.value.error_code == "version_rejected"

    def test_missing_consumer_key(self, server, consumer, access_token):
        """Test a request without a consumer key."""
        request = make_request(consumer, access_token, unset=("oauth_consumer_key",))

        with pytest.raises(InvalidConsumerError) as exc_info:
            server.verify_request(request)

        assert str(exc_info.value) == "Invalid consumer key"

    def test_unknown_consumer(self, server, access_token):
        """Test a consumer the store does not know."""
        request = make_request(Consumer("unknown", "cd"), access_token)

        with pytest.raises(InvalidConsumerError) as exc_info:
            server.verify_request(request)

        assert exc_info.value.consumer_key == "unknown"

    def test_missing_token(self, server, consumer):
        """Test API calls need an access token."""
        request = make_request(consumer)

        with pytest.raises(InvalidTokenError) as exc_info:
            server.verify_request(request)

        assert exc_info.value.token_type == ACCESS_TOKEN

    def test_unknown_token(self, server, consumer):
        """Test a token the store does not know."""
        request = make_request(consumer, Token("nope", "x"))

        with pytest.raises(InvalidTokenError) as exc_info:
            server.verify_request(request)

        assert exc_info.value.token_value == "nope"

    def test_missing_timestamp(self, server, consumer, access_token):
        """Test a request without a timestamp."""
        request = make_request(consumer, access_token, unset=("oauth_timestamp",))

        with pytest.raises(MissingTimestampError):
            server.verify_request(request)

    @pytest.mark.parametrize("offset", [-300, 0, 300])
    def test_timestamp_within_threshold(self, server, consumer, access_token, offset):
        """Test timestamps up to the threshold away are accepted."""
        request = make_request(consumer, access_token, timestamp=NOW + offset)

        server.verify_request(request)

    @pytest.mark.parametrize("offset", [-301, 301])
    def test_timestamp_outside_threshold(self, server, consumer, access_token, offset):
        """Test timestamps one second past the threshold are rejected."""
        request = make_request(consumer, access_token, timestamp=NOW + offset)

        with pytest.raises(ExpiredTimestampError) as exc_info:
            server.verify_request(request)

        assert exc_info.value.now == NOW

    @pytest.mark.parametrize("timestamp", [
        "yesterday",
        "1_700_000_000",
        "١٧٠٠٠٠٠٠٠٠",
        "+1700000000",
        " 1700000000",
    ])
    def test_non_integer_timestamp(self, server, consumer, access_token, timestamp):
        """Test timestamps that are not plain ASCII decimal digits."""
        request = make_request(consumer, access_token, timestamp=timestamp)

        with pytest.raises(ExpiredTimestampError, match="Invalid timestamp"):
            server.verify_request(request)

    def test_custom_threshold(self, store, consumer, access_token):
        """Test a server with a tighter window."""
        server = OAuthServer(store, default_registry(), timestamp_threshold=10, clock=clock)

        server.verify_request(make_request(consumer, access_token, timestamp=NOW - 10))
        with pytest.raises(ExpiredTimestampError):
            server.verify_request(make_request(consumer, access_token, timestamp=NOW - 11))

    def test_missing_nonce(self, server, consumer, access_token):
        """Test a request without a nonce."""
        request = make_request(consumer, access_token, unset=("oauth_nonce",))

        with pytest.raises(MissingNonceError):
            server.verify_request(request)

    def test_nonce_replay(self, server, consumer, access_token):
        """Test the same request is accepted once."""
        request = make_request(consumer, access_token, nonce="n-1")

        server.verify_request(request)
        with pytest.raises(NonceReusedError) as exc_info:
            server.verify_request(request)

        assert exc_info.value.nonce == "n-1"

    def test_different_nonce_accepted(self, server, consumer, access_token):
        """Test a fresh nonce with the same timestamp passes."""
        server.verify_request(make_request(consumer, access_token, nonce="n-1"))
        server.verify_request(make_request(consumer, access_token, nonce="n-2"))

    def test_missing_signature_method(self, server, consumer, access_token):
        """Test a request without oauth_signature_method."""
        request = make_request(consumer, access_token)
        request.unset_parameter("oauth_signature_method")

        with pytest.raises(MissingSignatureMethodError):
            server.verify_request(request)

    def test_unsupported_signature_method(self, store, consumer, access_token):
        """Test methods outside the registry are rejected with the supported list."""
        server = OAuthServer(store, SignatureMethodRegistry([HmacSha1()]), clock=clock)
        request = make_request(consumer, access_token, signature_method=HmacSha256())

        with pytest.raises(UnsupportedSignatureMethodError) as exc_info:
            server.verify_request(request)

        assert exc_info.value.signature_method == "HMAC-SHA256"
        assert exc_info.value.supported == ["HMAC-SHA1"]
        assert "HMAC-SHA1" in str(exc_info.value)

    def test_empty_registry_by_default(self, store, consumer, access_token):
        """Test a server without methods accepts nothing."""
        server = OAuthServer(store, clock=clock)

        with pytest.raises(UnsupportedSignatureMethodError):
            server.verify_request(make_request(consumer, access_token))

    def test_add_signature_method(self, store, consumer, access_token):
        """Test enabling a method on a server."""
        server = OAuthServer(store, clock=clock)
        server.add_signature_method(HmacSha256())

        server.verify_request(make_request(consumer, access_token, signature_method=HmacSha256()))

    def test_tampered_parameter(self, server, consumer, access_token):
        """Test changing a parameter after signing breaks the signature."""
        request = make_request(consumer, access_token, params={"b": "2"})
        request.set_parameter("b", "3", False)

        with pytest.raises(InvalidSignatureError):
            server.verify_request(request)

    def test_wrong_secret(self, server, access_token):
        """Test a signature made with another secret."""
        request = make_request(Consumer("ab", "wrong"), access_token)

        with pytest.raises(InvalidSignatureError):
            server.verify_request(request)

    def test_failure_logged(self, server, consumer, access_token, caplog):
        """Test failures are logged at WARNING before being raised."""
        request = make_request(consumer, access_token, unset=("oauth_nonce",))

        with caplog.at_level(logging.WARNING, logger="ltioauth.oauth.server"):
            with pytest.raises(OAuthError):
                server.verify_request(request)

        assert "OAuth verification failed" in caplog.text
        assert caplog.records[-1].context == {
            "consumer_key": "ab",
            "error_code": "parameter_absent",
        }


class TestStoreErrors:
    """Test store failures propagate unchanged."""

    def test_lookup_consumer_error(self, consumer):
        """Test an error from lookup_consumer reaches the caller."""
        data_store = MagicMock(spec=OAuthDataStore)
        data_store.lookup_consumer.side_effect = StoreError("database down")
        server = OAuthServer(data_store, default_registry(), clock=clock)

        with pytest.raises(StoreError, match="database down"):
            server.verify_request(make_request(consumer))

    def test_lookup_nonce_error(self, consumer):
        """Test an error from lookup_nonce reaches the caller."""
        data_store = MagicMock(spec=OAuthDataStore)
        data_store.lookup_consumer.return_value = consumer
        data_store.lookup_nonce.side_effect = StoreError("nonce table locked")
        server = OAuthServer(data_store, default_registry(), clock=clock)

        with pytest.raises(StoreError):
            server.verify_signature(make_request(consumer), consumer)


class TestTokenFlows:
    """Test the request and access token endpoints."""

    def test_fetch_request_token(self, server, store, consumer):
        """Test a request token is issued without a token in the request."""
        request = make_request(consumer, params={"oauth_callback": "http://c.example.com/cb"})

        token = server.fetch_request_token(request)

        assert token is not None
        assert store.lookup_token(consumer, REQUEST_TOKEN, token.key) == token

    def test_fetch_access_token(self, server, store, consumer):
        """Test exchanging an authorized request token."""
        request_token = store.new_request_token(consumer)
        verifier = store.authorize_request_token(request_token.key)
        request = make_request(consumer, request_token, params={"oauth_verifier": verifier})

        access = server.fetch_access_token(request)

        assert store.lookup_token(consumer, ACCESS_TOKEN, access.key) == access
        assert store.lookup_token(consumer, REQUEST_TOKEN, request_token.key) is None

    def test_fetch_access_token_needs_request_token(self, server, consumer, access_token):
        """Test an access token cannot be used as a request token."""
        request = make_request(consumer, access_token)

        with pytest.raises(InvalidTokenError) as exc_info:
            server.fetch_access_token(request)

        assert exc_info.value.token_type == REQUEST_TOKEN

    def test_store_calls(self, consumer):
        """Test the server passes callback and verifier to the store."""
        request_token = Token("rk", "rs")
        data_store = MagicMock(spec=OAuthDataStore)
        data_store.lookup_consumer.return_value = consumer
        data_store.lookup_token.return_value = request_token
        data_store.lookup_nonce.return_value = False
        server = OAuthServer(data_store, default_registry(), clock=clock)

        server.fetch_request_token(make_request(consumer, params={"oauth_callback": "oob"}))
        server.fetch_access_token(
            make_request(consumer, request_token, params={"oauth_verifier": "v1"})
        )

        data_store.new_request_token.assert_called_once_with(consumer, "oob")
        data_store.new_access_token.assert_called_once_with(request_token, consumer, "v1")
        data_store.lookup_token.assert_called_once_with(consumer, REQUEST_TOKEN, "rk")


class TestVerifySignature:
    """Test two-legged verification."""

    def test_valid(self, server, consumer):
        """Test a launch signed with only the consumer secret."""
        server.verify_signature(make_request(consumer), consumer)

    def test_consumer_not_looked_up(self, consumer):
        """Test the given consumer is used as is."""
        data_store = MagicMock(spec=OAuthDataStore)
        data_store.lookup_nonce.return_value = False
        server = OAuthServer(data_store, default_registry(), clock=clock)

        server.verify_signature(make_request(consumer), consumer)

        data_store.lookup_consumer.assert_not_called()
        data_store.lookup_nonce.assert_called_once()

    def test_invalid(self, server, consumer):
        """Test a signature made with another secret."""
        request = make_request(Consumer("ab", "other"))

        with pytest.raises(InvalidSignatureError):
            server.verify_signature(request, consumer)

    def test_other_consumer_key(self, server, consumer):
        """Test a request naming another consumer is rejected."""
        request = make_request(Consumer("some-other-key", "cd"))

        with pytest.raises(InvalidConsumerError) as exc_info:
            server.verify_signature(request, consumer)

        assert exc_info.value.consumer_key == "some-other-key"

    def test_missing_consumer_key(self, server, consumer):
        """Test a request without oauth_consumer_key is rejected."""
        request = make_request(consumer, unset=("oauth_consumer_key",))

        with pytest.raises(InvalidConsumerError) as exc_info:
            server.verify_signature(request, consumer)

        assert exc_info.value.consumer_key is None

    def test_repeated_consumer_key(self, server, consumer):
        """Test a request with two consumer keys is rejected."""
        request = make_request(consumer, params={"oauth_consumer_key": "ab"})

        with pytest.raises(InvalidConsumerError):
            server.verify_signature(request, consumer)

    def test_consumer_key_checked_before_nonce(self, server, consumer):
        """Test a mismatched request does not use up its nonce."""
        request = make_request(Consumer("other", "cd"), nonce="n-7")
        with pytest.raises(InvalidConsumerError):
            server.verify_signature(request, consumer)

        server.verify_signature(make_request(consumer, nonce="n-7"), consumer)


class TestFromConfig:
    """Test building a server from configuration."""

    def test_from_config(self, store):
        """Test registry, threshold and version come from the config."""
        config = LtiOAuthConfig(verification={
            "timestamp_threshold": 60,
            "signature_methods": ["HMAC-SHA256", "HMAC-SHA1"],
        })

        server = OAuthServer.from_config(store, config)

        assert server.signature_methods.names() == ["HMAC-SHA256", "HMAC-SHA1"]
        assert server.timestamp_threshold == 60
        assert server.version == "1.0"
