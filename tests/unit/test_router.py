"""End-to-end tests for the /kite/auth endpoints through the FastAPI app."""

import base64
from urllib.parse import parse_qs, urlsplit

from fastapi.testclient import TestClient
from kitesso.main import create_app
from kitesso.sso.signing import validate_hmac
from conftest import SSO_SECRET, sign_request


def _auth(client, **params):
    return client.get("/kite/auth", params=params, follow_redirects=False)


def _finish(client, **params):
    return client.get("/kite/auth/finish", params=params, follow_redirects=False)


class TestAuthInit:
    def test_valid_request_redirects_to_kite(self, client):
        sso, sig = sign_request({"nonce": "abc123"})
        response = _auth(client, sso=sso, sig=sig)
        assert response.status_code == 307
        assert "redirect_params=nonce%3Dabc123" in response.headers["location"]
        assert response.headers["location"].startswith("https://kite.example.com/connect/login?")

    def test_mismatched_signature_is_forbidden(self, client):
        sso, _ = sign_request({"nonce": "abc123"})
        _, sig = sign_request({"nonce": "evil"})
        response = _auth(client, sso=sso, sig=sig)
        assert response.status_code == 403
        assert response.text == "Invalid or expired request."
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert "location" not in response.headers

    def test_missing_sig(self, client):
        sso, _ = sign_request({"nonce": "abc123"})
        response = _auth(client, sso=sso)
        assert response.status_code == 400
        assert response.text == "Invalid params."

    def test_missing_everything(self, client):
        assert _auth(client).status_code == 400

    def test_garbage_payload_with_bad_signature(self, client):
        response = _auth(client, sso="%%%", sig="00")
        assert response.status_code == 403


class TestAuthFinish:
    def test_success_redirects_to_forum(self, client, kite):
        response = _finish(client, status="success", request_token="tok", nonce="abc123")
        assert response.status_code == 307
        parts = urlsplit(response.headers["location"])
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://forum.example.com/session/sso_login"
        query = parse_qs(parts.query)
        sso, sig = query["sso"][0], query["sig"][0]
        assert validate_hmac(sso.encode(), SSO_SECRET.encode(), sig)
        assert base64.b64decode(sso).decode() == (
            "nonce=abc123&email=a%40b.com&external_id=U1&name=A&avatar_url=http%3A%2F%2Fx"
        )
        assert kite.exchanges == [("tok", "test-secret")]

    def test_failure_status_skips_exchange(self, client, kite):
        response = _finish(client, status="failure", request_token="tok", nonce="abc123")
        assert response.status_code == 400
        assert response.text == "Auth failed or was cancelled."
        assert kite.exchanges == []

    def test_missing_status(self, client, kite):
        response = _finish(client, request_token="tok", nonce="abc123")
        assert response.status_code == 400
        assert kite.exchanges == []

    def test_missing_nonce(self, client):
        response = _finish(client, status="success", request_token="tok")
        assert response.status_code == 400
        assert response.text == "Invalid auth params."

    def test_repeated_keys_use_first_value(self, client, kite):
        response = client.get(
            "/kite/auth/finish",
            params=[
                ("status", "success"),
                ("status", "failure"),
                ("request_token", "tok"),
                ("request_token", "other"),
                ("nonce", "abc123"),
                ("nonce", "evil"),
            ],
            follow_redirects=False,
        )
        assert response.status_code == 307
        assert kite.exchanges == [("tok", "test-secret")]
        out = parse_qs(urlsplit(response.headers["location"]).query)["sso"][0]
        assert parse_qs(base64.b64decode(out).decode())["nonce"] == ["abc123"]

    def test_exchange_failure(self, settings, failing_kite):
        client = TestClient(create_app(settings, provider=failing_kite))
        response = _finish(client, status="success", request_token="tok", nonce="abc123")
        assert response.status_code == 400
        assert "Error getting Kite session" in response.text
        assert "location" not in response.headers
        assert len(failing_kite.exchanges) == 1


class TestHandshake:
    def test_nonce_is_returned_unchanged(self, client):
        nonce = "cb68251eefb5211e58c00ff1395f0c0b"
        sso, sig = sign_request({"nonce": nonce, "return_sso_url": "https://forum.example.com/session/sso_login"})
        login = _auth(client, sso=sso, sig=sig).headers["location"]

        # Kite echoes redirect_params back as plain query params on the callback.
        echoed = parse_qs(parse_qs(urlsplit(login).query)["redirect_params"][0])
        back = _finish(client, status="success", request_token="tok", **{k: v[0] for k, v in echoed.items()})

        out = parse_qs(urlsplit(back.headers["location"]).query)["sso"][0]
        assert parse_qs(base64.b64decode(out).decode())["nonce"] == [nonce]


def test_metrics_exposed(client):
    sso, sig = sign_request({"nonce": "abc123"})
    _auth(client, sso=sso, sig=sig)
    response = client.get("/metrics/")
    assert response.status_code == 200
    assert "sso_handshakes_total" in response.text
