"""
Errors raised while processing an SSO handshake.

Each error carries the HTTP status it maps to and a message that is safe to
echo back to the user in a plain-text response.
"""


class SSOError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingParameter(SSOError):
    """A required query parameter was absent or empty."""


class MalformedPayload(SSOError):
    """The payload was not valid base64 or not a valid URL-encoded form."""


class InvalidSignature(SSOError):
    """The payload HMAC did not verify."""

    status_code = 403


class AuthRejected(SSOError):
    """The user cancelled the Kite login or Kite reported a failure."""


class ProviderExchangeError(SSOError):
    """Exchanging the request token for a Kite session failed."""


class SSOConfigurationError(Exception):
    """
    The service itself is misconfigured (e.g. an unusable login URL).
    Not a per-request error; surfaces as a 500.
    """
