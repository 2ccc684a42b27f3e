"""
Application settings, loaded once from the environment at startup.
"""

from urllib.parse import urlsplit

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from kitesso.constants import (
    DEFAULT_LISTEN_ADDRESS,
    KITE_API_ROOT,
    KITE_LOGIN_URL,
    KITE_REQUEST_TIMEOUT,
)


class Settings(BaseSettings):
    """
    Process-wide configuration. Instances are frozen and handed to the app
    factory explicitly; nothing reads the environment after startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    # DiscourseConnect (relying party).
    sso_root_url: str = Field(..., validation_alias="SSO_ROOT_URL")
    sso_secret: SecretStr = Field(..., validation_alias="SSO_SECRET")

    # Kite Connect (identity provider).
    kite_key: str = Field(..., validation_alias="KITE_KEY")
    kite_secret: SecretStr = Field(..., validation_alias="KITE_SECRET")
    kite_login_url: str = Field(KITE_LOGIN_URL, validation_alias="KITE_LOGIN_URL")
    kite_api_root: str = Field(KITE_API_ROOT, validation_alias="KITE_API_ROOT")
    kite_timeout: float = Field(KITE_REQUEST_TIMEOUT, gt=0, validation_alias="KITE_TIMEOUT")

    kite_address: str = Field(DEFAULT_LISTEN_ADDRESS, validation_alias="KITE_ADDRESS")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    @field_validator("sso_root_url", "sso_secret", "kite_key", "kite_secret")
    @classmethod
    def _not_empty(cls, value):
        raw = value.get_secret_value() if isinstance(value, SecretStr) else value
        if not raw:
            raise ValueError("must not be empty")
        return value

    @field_validator("sso_root_url")
    @classmethod
    def _absolute_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("must be an absolute http(s) URL")
        return value

    @property
    def secret_bytes(self) -> bytes:
        """Shared HMAC key for the forum, as raw bytes."""
        return self.sso_secret.get_secret_value().encode()

    def listen_host_port(self) -> tuple[str, int]:
        """
        Split the listen address into host and port, e.g. ":9000" -> ("0.0.0.0", 9000).
        """
        host, _, port = self.kite_address.rpartition(":")
        if not port.isdigit():
            raise ValueError(f"Invalid listen address: {self.kite_address!r}")
        return host or "0.0.0.0", int(port)
