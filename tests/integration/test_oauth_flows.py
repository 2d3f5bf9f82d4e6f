"""
End-to-end tests for signing and verifying OAuth 1.0a messages.
"""

import pytest

from ltioauth import Consumer, MessageSigner, OAuthRequest, OAuthServer, default_registry
from ltioauth.core.config_manager import ConfigManager
from ltioauth.oauth.exceptions import InvalidSignatureError, NonceReusedError
from ltioauth.oauth.signature import HmacSha1
from ltioauth.store.factory import create_data_store
from ltioauth.store.memory_backend import InMemoryDataStore

NOW = 1_700_000_000


def clock():
    return float(NOW)


@pytest.fixture
def consumer():
    """Create the shared platform/tool consumer."""
    return Consumer("ab", "cd")


@pytest.fixture
def store(consumer):
    """Create a store that knows the consumer."""
    data_store = InMemoryDataStore(clock=clock)
    data_store.add_consumer(consumer)
    return data_store


@pytest.fixture
def server(store):
    """Create a server accepting all built-in methods."""
    return OAuthServer(store, default_registry(), clock=clock)


class TestIndependentRequests:
    """Test a signature made by one party verifies on the other."""

    def test_ab_cd_get(self, consumer, server):
        """Test the ab/cd GET request with parameters built in another order."""
        sent = OAuthRequest("GET", "http://example.org/r?a=1", {
            "oauth_consumer_key": "ab",
            "oauth_nonce": "n-42",
            "oauth_timestamp": str(NOW),
            "oauth_version": "1.0",
            "b": ["2", "1"],
        })
        sent.sign_request(HmacSha1(), consumer)

        # Rebuilt from the wire: header params, then query, different insertion order
        received = OAuthRequest.from_request(
            "get",
            "http://EXAMPLE.org:80/r?b=1&a=1&b=2",
            {"Authorization": sent.to_header(realm="example").split(": ", 1)[1]},
        )

        assert received.get_signature_base_string() == sent.get_signature_base_string()
        server.verify_signature(received, consumer)

    def test_mutated_request_rejected(self, consumer, server):
        """Test a received request with another parameter value fails."""
        sent = OAuthRequest.from_consumer_and_token(
            consumer, None, "GET", "http://example.org/r?a=1"
        )
        sent.set_parameter("oauth_timestamp", str(NOW), False)
        sent.sign_request(HmacSha1(), consumer)

        received = OAuthRequest.from_request(
            "GET",
            "http://example.org/r?a=2",
            {"Authorization": sent.to_header().split(": ", 1)[1]},
        )

        with pytest.raises(InvalidSignatureError):
            server.verify_signature(received, consumer)


class TestLaunch:
    """Test a signed form launch."""

    def test_launch_once(self, consumer, server):
        """Test a launch verifies and cannot be replayed."""
        url = "https://tool.example.com/lti/launch?ctx=7"
        params = MessageSigner(consumer, "HMAC-SHA256").sign_parameters(
            url,
            {"lti_message_type": "basic-lti-launch-request", "roles": "Instructor"},
            timestamp=NOW,
        )
        body = OAuthRequest("POST", "https://tool.example.com/lti/launch", params).to_postdata()
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        server.verify_signature(OAuthRequest.from_request("POST", url, headers, body), consumer)

        with pytest.raises(NonceReusedError):
            server.verify_signature(OAuthRequest.from_request("POST", url, headers, body), consumer)


class TestThreeLeggedFlow:
    """Test request token, authorization, access token and API call."""

    def test_full_flow(self, consumer, store, server):
        """Test every step with the in-memory store."""
        # Request token
        request = OAuthRequest.from_consumer_and_token(
            consumer, None, "POST", "https://sp.example.com/request_token",
            {"oauth_callback": "https://consumer.example.com/cb"},
        )
        request.set_parameter("oauth_timestamp", str(NOW), False)
        request.sign_request(HmacSha1(), consumer)
        request_token = server.fetch_request_token(request)

        # User authorizes
        verifier = store.authorize_request_token(request_token.key)

        # Access token
        request = OAuthRequest.from_consumer_and_token(
            consumer, request_token, "POST", "https://sp.example.com/access_token",
            {"oauth_verifier": verifier},
        )
        request.set_parameter("oauth_timestamp", str(NOW), False)
        request.sign_request(HmacSha1(), consumer, request_token)
        access_token = server.fetch_access_token(request)

        # API call
        request = OAuthRequest.from_consumer_and_token(
            consumer, access_token, "GET", "https://sp.example.com/api/me?fields=name"
        )
        request.set_parameter("oauth_timestamp", str(NOW), False)
        request.sign_request(HmacSha1(), consumer, access_token)
        received = OAuthRequest.from_request(
            "GET",
            "https://sp.example.com/api/me?fields=name",
            {"Authorization": request.to_header().split(": ", 1)[1]},
        )

        verified_consumer, verified_token = server.verify_request(received)

        assert verified_consumer == consumer
        assert verified_token == access_token
        assert access_token.to_string().startswith("oauth_token=")


class TestFromConfiguration:
    """Test wiring everything from configuration."""

    def test_configured_stack(self, consumer, monkeypatch):
        """Test a config-built server verifies a config-built signer's message."""
        for name in ("LTIOAUTH_STORE", "LTIOAUTH_SIGNATURE_METHODS", "LTIOAUTH_SIGNING_METHOD"):
            monkeypatch.delenv(name, raising=False)
        config = ConfigManager().load(overrides={
            "verification": {"signature_methods": ["HMAC-SHA512"]},
            "signing": {"signature_method": "HMAC-SHA512"},
        })
        data_store = create_data_store(config)
        data_store.add_consumer(consumer)
        server = OAuthServer.from_config(data_store, config)

        url = "https://tool.example.com/outcomes"
        body = "<replaceResultRequest/>"
        block = MessageSigner.from_config(consumer, config).sign_body(
            url, body, content_type="application/xml"
        )
        authorization = block.split("\n")[0].split(": ", 1)[1]
        received = OAuthRequest.from_request("POST", url, {"Authorization": authorization}, body)

        server.verify_signature(received, consumer)
