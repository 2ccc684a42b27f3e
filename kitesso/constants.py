"""
Protocol constants shared across the SSO bridge.
"""

# Path on the forum that accepts the signed identity payload.
SSO_LOGIN_PATH = "/session/sso_login"

# Kite Connect endpoints.
KITE_LOGIN_URL = "https://kite.zerodha.com/connect/login"
KITE_API_ROOT = "https://api.kite.trade"
KITE_API_VERSION = "3"
KITE_SESSION_PATH = "/session/token"
KITE_REQUEST_TIMEOUT = 30

DEFAULT_LISTEN_ADDRESS = ":9000"
