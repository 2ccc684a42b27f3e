"""
Service layer for the DiscourseConnect <-> Kite Connect handshake.
"""

import base64
import binascii
import re
from typing import Dict
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from loguru import logger

from kitesso.config import Settings
from kitesso.constants import SSO_LOGIN_PATH
from kitesso.kite.client import IdentityProvider, KiteError
from kitesso.sso.errors import (
    AuthRejected,
    InvalidSignature,
    MalformedPayload,
    MissingParameter,
    ProviderExchangeError,
    SSOConfigurationError,
)
from kitesso.sso.schemas import IdentityClaims
from kitesso.sso.signing import compute_hmac, validate_hmac

# A "%" not followed by two hex digits.
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def parse_query(raw: str) -> Dict[str, str]:
    """
    Strictly parse a URL-encoded form, keeping the first value of each key.
    Bad percent escapes and ";" separators are rejected rather than guessed at.
    """
    if ";" in raw:
        raise ValueError("invalid semicolon separator in query")
    if match := _BAD_ESCAPE.search(raw):
        raise ValueError(f"invalid URL escape {raw[match.start():match.start() + 3]!r}")
    params = {}
    for key, value in parse_qsl(raw, keep_blank_values=True, errors="strict"):
        params.setdefault(key, value)
    return params


def verify_sso_request(payload: str, hex_sig: str, secret: bytes) -> Dict[str, str]:
    """
    Verify the forum's signed request and return its decoded parameters.

    The HMAC is checked against the payload exactly as received, before any
    decoding happens.
    """
    if not payload or not hex_sig:
        raise MissingParameter("Invalid params.")

    if not validate_hmac(payload.encode(), secret, hex_sig):
        raise InvalidSignature("Invalid or expired request.")

    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPayload(f"Error decoding payload: {exc}")

    try:
        return parse_query(decoded.decode("utf-8"))
    except ValueError as exc:
        raise MalformedPayload(f"Error parsing payload query params: {exc}")


def extract_nonce(params: Dict[str, str]) -> str:
    """
    Pull the nonce out of the verified params; an absent nonce is passed on as "".
    """
    nonce = params.get("nonce", "")
    if not nonce:
        logger.warning("SSO request carries no nonce")
    return nonce


def _with_query(url: str, params: Dict[str, str], sort: bool = False) -> str:
    """
    Merge params into the query string of url, replacing existing keys.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise SSOConfigurationError(f"Not an absolute URL: {url!r}")
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend(params.items())
    if sort:
        query.sort(key=lambda item: item[0])
    return urlunsplit(parts._replace(query=urlencode(query)))


def build_login_redirect(login_url: str, nonce: str) -> str:
    """
    Add the nonce to the Kite login URL as redirect_params, which Kite echoes
    back verbatim on the finish callback.
    """
    redirect_params = urlencode({"nonce": nonce})
    return _with_query(login_url, {"redirect_params": redirect_params}, sort=True)


def build_sso_payload(nonce: str, claims: IdentityClaims) -> str:
    """
    URL-encoded outbound payload, in the order the forum documents it.
    """
    return urlencode(
        [
            ("nonce", nonce),
            ("email", claims.email),
            ("external_id", claims.external_id),
            ("name", claims.display_name),
            ("avatar_url", claims.avatar_url),
        ]
    )


def encode_sso_payload(payload: str, secret: bytes) -> tuple[str, str]:
    """
    Base64 the payload and sign the base64 text; returns (sso, sig).
    """
    sso = base64.b64encode(payload.encode()).decode()
    return sso, compute_hmac(sso.encode(), secret)


def build_return_url(root_url: str, sso: str, sig: str) -> str:
    return _with_query(root_url.rstrip("/") + SSO_LOGIN_PATH, {"sso": sso, "sig": sig})


def start_sso(payload: str, hex_sig: str, *, provider: IdentityProvider, settings: Settings) -> str:
    """
    First leg: verify the forum's request and return the Kite login redirect.
    """
    params = verify_sso_request(payload, hex_sig, settings.secret_bytes)
    nonce = extract_nonce(params)
    logger.info("Verified SSO request, redirecting to Kite login")
    return build_login_redirect(provider.build_login_url(), nonce)


async def finish_sso(
    status: str,
    request_token: str,
    nonce: str,
    *,
    provider: IdentityProvider,
    settings: Settings,
) -> str:
    """
    Second leg: exchange Kite's request token for the user's identity and
    return the signed redirect back to the forum.
    """
    if status != "success":
        raise AuthRejected("Auth failed or was cancelled.")
    if not request_token or not nonce:
        raise MissingParameter("Invalid auth params.")

    try:
        claims = await provider.exchange_code_for_identity(
            request_token, settings.kite_secret.get_secret_value()
        )
    except KiteError as exc:
        raise ProviderExchangeError(f"Error getting Kite session: {exc}. Retry.") from exc

    sso, sig = encode_sso_payload(build_sso_payload(nonce, claims), settings.secret_bytes)
    logger.success(f"Kite login complete for {claims.external_id}, returning to forum")
    return build_return_url(settings.sso_root_url, sso, sig)
