"""
Shared fixtures: settings built in-process and a fake Kite provider.
"""

import base64
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from kitesso.config import Settings
from kitesso.kite.client import KiteError
from kitesso.main import create_app
from kitesso.sso.schemas import IdentityClaims
from kitesso.sso.signing import compute_hmac

SSO_SECRET = "d836444a9e4084d5b224a60c208dce14"
LOGIN_URL = "https://kite.example.com/connect/login?api_key=test-key&v=3"


class FakeKite:
    """
    Stand-in identity provider that records exchanges instead of calling Kite.
    """

    def __init__(self, claims=None, error=None):
        self.claims = claims
        self.error = error
        self.exchanges = []

    def build_login_url(self):
        return LOGIN_URL

    async def exchange_code_for_identity(self, request_token, api_secret):
        self.exchanges.append((request_token, api_secret))
        if self.error:
            raise self.error
        return self.claims


def sign_request(params, secret=SSO_SECRET):
    """
    Build a forum-style (sso, sig) pair for the given params.
    """
    sso = base64.b64encode(urlencode(params).encode()).decode()
    return sso, compute_hmac(sso.encode(), secret.encode())


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        sso_root_url="https://forum.example.com",
        sso_secret=SSO_SECRET,
        kite_key="test-key",
        kite_secret="test-secret",
    )


@pytest.fixture
def claims():
    return IdentityClaims(
        external_id="U1",
        email="a@b.com",
        display_name="A",
        avatar_url="http://x",
    )


@pytest.fixture
def kite(claims):
    return FakeKite(claims=claims)


@pytest.fixture
def failing_kite():
    return FakeKite(error=KiteError("Token is invalid or has expired.", error_type="TokenException"))


@pytest.fixture
def client(settings, kite):
    return TestClient(create_app(settings, provider=kite))
