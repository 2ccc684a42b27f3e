"""
Track SSO handshake outcomes in Prometheus.
"""

from prometheus_client import Counter


sso_handshakes = Counter(
    "sso_handshakes_total",
    "SSO handshake requests by stage and outcome",
    ["stage", "outcome"],
)
kite_exchanges = Counter(
    "kite_session_exchanges_total",
    "Kite Connect request token exchanges",
    ["outcome"],
)


def track_handshake(stage: str, outcome: str):
    """
    Count one handshake request; outcome is "redirect" or the error class name.
    """
    sso_handshakes.labels(stage=stage, outcome=outcome).inc()


def track_kite_exchange(outcome: str):
    kite_exchanges.labels(outcome=outcome).inc()
