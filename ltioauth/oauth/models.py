"""
OAuth consumer and token models.

Author: ltioauth Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field
from typing import Optional

from ltioauth.oauth.util import urlencode_rfc3986

REQUEST_TOKEN = "request"
ACCESS_TOKEN = "access"


@dataclass(frozen=True)
class Consumer:
    """A registered party identified by a key/secret pair."""

    key: str
    secret: str = field(repr=False)
    callback_url: Optional[str] = None


@dataclass(frozen=True)
class Token:
    """A request or access token scoped to a consumer."""

    key: str
    secret: str = field(repr=False)

    def to_string(self) -> str:
        """
        Serialize the token the way the token endpoints respond with it.

        Returns:
            String like "oauth_token=abc&oauth_token_secret=xyz"
        """
        return (
            f"oauth_token={urlencode_rfc3986(self.key)}"
            f"&oauth_token_secret={urlencode_rfc3986(self.secret)}"
        )

    def __str__(self) -> str:
        return self.to_string()
