"""
DiscourseConnect endpoints: /kite/auth starts the Kite login, /kite/auth/finish
receives Kite's callback and returns the user to the forum.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from loguru import logger

from kitesso.config import Settings
from kitesso.kite.client import IdentityProvider
from kitesso.metrics.sso import track_handshake
from kitesso.sso.errors import SSOError
from kitesso.sso.service import finish_sso, start_sso

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider(request: Request) -> IdentityProvider:
    return request.app.state.provider


def _stage(request: Request) -> str:
    return "finish" if request.url.path.endswith("/finish") else "auth"


async def sso_error_handler(request: Request, exc: SSOError) -> PlainTextResponse:
    """
    Render a handshake failure as plain text. Every failure is terminal; the
    user has to start over from the forum.
    """
    stage = _stage(request)
    logger.warning(f"SSO {stage} rejected ({type(exc).__name__}): {exc.message}")
    track_handshake(stage, type(exc).__name__)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def _first(request: Request, key: str) -> str:
    """
    First value of a query parameter, or "" when absent; repeated keys never
    override the first occurrence.
    """
    values = request.query_params.getlist(key)
    return values[0] if values else ""


@router.get("/kite/auth")
async def auth_init(
    request: Request,
    settings: Settings = Depends(get_settings),
    provider: IdentityProvider = Depends(get_provider),
):
    """
    Verify the forum's signed request and send the user to the Kite login page.
    """
    url = start_sso(
        _first(request, "sso"),
        _first(request, "sig"),
        provider=provider,
        settings=settings,
    )
    track_handshake("auth", "redirect")
    return RedirectResponse(url=url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/kite/auth/finish")
async def auth_finish(
    request: Request,
    settings: Settings = Depends(get_settings),
    provider: IdentityProvider = Depends(get_provider),
):
    """
    Take the request_token from Kite's redirect, exchange it, and hand the
    session over to the forum.
    """
    url = await finish_sso(
        _first(request, "status"),
        _first(request, "request_token"),
        _first(request, "nonce"),
        provider=provider,
        settings=settings,
    )
    track_handshake("finish", "redirect")
    return RedirectResponse(url=url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
