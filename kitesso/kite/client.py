"""
Kite Connect identity provider client.
"""

import asyncio
import hashlib
from typing import Optional, Protocol
from urllib.parse import urlencode

import aiohttp
from loguru import logger

from kitesso.constants import (
    KITE_API_ROOT,
    KITE_API_VERSION,
    KITE_LOGIN_URL,
    KITE_REQUEST_TIMEOUT,
    KITE_SESSION_PATH,
)
from kitesso.metrics.sso import track_kite_exchange
from kitesso.sso.schemas import IdentityClaims


class KiteError(Exception):
    """
    Failure reported by (or while talking to) Kite Connect.
    """

    def __init__(self, message: str, error_type: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status = status


class IdentityProvider(Protocol):
    """
    What the handshake needs from an identity provider.
    """

    def build_login_url(self) -> str: ...

    async def exchange_code_for_identity(
        self, request_token: str, api_secret: str
    ) -> IdentityClaims: ...


def session_checksum(api_key: str, request_token: str, api_secret: str) -> str:
    """
    Kite's session checksum: SHA-256 of api_key + request_token + api_secret.
    """
    return hashlib.sha256(f"{api_key}{request_token}{api_secret}".encode()).hexdigest()


def parse_session_response(http_status: int, data) -> IdentityClaims:
    """
    Turn a /session/token response body into identity claims, or raise KiteError.
    """
    if not isinstance(data, dict):
        raise KiteError("Unexpected response from Kite", status=http_status)
    if http_status >= 400 or data.get("status") != "success":
        raise KiteError(
            data.get("message") or f"Kite returned HTTP {http_status}",
            error_type=data.get("error_type"),
            status=http_status,
        )
    user = data.get("data") or {}
    if not user.get("user_id"):
        raise KiteError("Kite session is missing user_id", status=http_status)
    return IdentityClaims(
        external_id=user["user_id"],
        email=user.get("email") or "",
        display_name=user.get("user_shortname") or "",
        avatar_url=user.get("avatar_url") or "",
    )


class KiteConnectClient:
    """
    Stateless Kite Connect client; a fresh HTTP session is opened per exchange.
    """

    def __init__(
        self,
        api_key: str,
        *,
        login_url: str = KITE_LOGIN_URL,
        api_root: str = KITE_API_ROOT,
        timeout: float = KITE_REQUEST_TIMEOUT,
    ):
        self.api_key = api_key
        self.login_url = login_url
        self.api_root = api_root.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def build_login_url(self) -> str:
        """
        URL of the Kite login page for this app.
        """
        return f"{self.login_url}?{urlencode({'api_key': self.api_key, 'v': KITE_API_VERSION})}"

    async def exchange_code_for_identity(
        self, request_token: str, api_secret: str
    ) -> IdentityClaims:
        """
        Exchange the one-time request token for a session and return the
        user's identity. Exactly one attempt; the token is spent either way.
        """
        form = {
            "api_key": self.api_key,
            "request_token": request_token,
            "checksum": session_checksum(self.api_key, request_token, api_secret),
        }
        headers = {"X-Kite-Version": KITE_API_VERSION}
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    f"{self.api_root}{KITE_SESSION_PATH}", data=form, headers=headers
                ) as response:
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        raise KiteError(
                            f"Unparseable response from Kite (HTTP {response.status})",
                            status=response.status,
                        )
                    claims = parse_session_response(response.status, data)
        except KiteError as exc:
            logger.warning(f"Kite session exchange rejected: {exc.error_type or 'error'}: {exc}")
            track_kite_exchange("error")
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error(f"Error talking to Kite: {exc!r}")
            track_kite_exchange("error")
            raise KiteError(f"Error talking to Kite: {exc!r}") from exc
        track_kite_exchange("success")
        return claims
