"""
Application factory and process entrypoint.
"""

import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI
from loguru import logger
from prometheus_client import make_asgi_app
from pydantic import ValidationError

from kitesso.config import Settings
from kitesso.kite.client import IdentityProvider, KiteConnectClient
from kitesso.sso.errors import SSOError
from kitesso.sso.router import router as sso_router
from kitesso.sso.router import sso_error_handler


def configure_logging(level: str = "INFO"):
    """
    Replace loguru's default sink with a stderr sink at the given level.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def create_app(settings: Settings, provider: Optional[IdentityProvider] = None) -> FastAPI:
    """
    Build the app around an explicit settings object. A KiteConnectClient is
    created from the settings unless a provider is injected.
    """
    if provider is None:
        provider = KiteConnectClient(
            settings.kite_key,
            login_url=settings.kite_login_url,
            api_root=settings.kite_api_root,
            timeout=settings.kite_timeout,
        )
    app = FastAPI(title="kitesso", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.provider = provider
    app.include_router(sso_router)
    app.add_exception_handler(SSOError, sso_error_handler)
    app.mount("/metrics", make_asgi_app())
    return app


def main():
    try:
        settings = Settings()
        host, port = settings.listen_host_port()
    except ValidationError as exc:
        configure_logging()
        missing = ", ".join(str(err["loc"][0]) for err in exc.errors())
        logger.critical(f"Invalid or missing configuration ({missing}): set SSO_ROOT_URL / SSO_SECRET / KITE_KEY / KITE_SECRET")
        sys.exit(1)
    except ValueError as exc:
        configure_logging()
        logger.critical(f"Invalid configuration (KITE_ADDRESS): {exc}")
        sys.exit(1)

    configure_logging(settings.log_level)
    app = create_app(settings)
    logger.info(f"listening on (KITE_ADDRESS): {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
