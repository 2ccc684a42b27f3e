"""
Minimal Kite Connect client: login URL and request-token exchange.
"""
