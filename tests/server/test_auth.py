"""Tests for access token verification."""

from __future__ import annotations

import json
import time

import pytest
from starlette.requests import Request

from dynamic_supabase.server.auth import (
    ANONYMOUS_CLIENT,
    AuthenticatedClient,
    authenticate_request,
    unauthorized_response,
    verify_access_token,
)
from dynamic_supabase.server.errors import RPC_UNAUTHORIZED

RESOURCE_URL = "http://127.0.0.1:8787/sse"


def _request(headers: dict[str, str] | None = None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/sse", "headers": raw_headers})


class TestVerifyAccessToken:
    def test_valid_token(self, server_env, make_token):
        payload = verify_access_token(make_token(), RESOURCE_URL)

        assert payload is not None
        assert payload["sub"] == "user-1"

    def test_expired(self, server_env, make_token):
        assert verify_access_token(make_token(exp=int(time.time()) - 60), RESOURCE_URL) is None

    def test_wrong_audience(self, server_env, make_token):
        assert verify_access_token(make_token(aud="http://elsewhere/sse"), RESOURCE_URL) is None

    def test_wrong_issuer(self, server_env, make_token):
        assert verify_access_token(make_token(iss="https://evil.example.com"), RESOURCE_URL) is None

    def test_wrong_secret(self, server_env, make_token):
        assert verify_access_token(make_token(secret="another-secret-that-is-long-enough-000"), RESOURCE_URL) is None

    def test_garbage(self, server_env):
        assert verify_access_token("not-a-jwt", RESOURCE_URL) is None


class TestAuthenticateRequest:
    def test_valid_bearer(self, server_env, make_token):
        client = authenticate_request(_request({"Authorization": f"Bearer {make_token()}"}))

        assert client == AuthenticatedClient(client_id="client-1", user_id="user-1", scope="mcp")
        assert client.principal == "user-1"

    def test_client_credentials_token(self, server_env, make_token):
        token = make_token(sub=None, client_id=None, azp="svc-client")

        client = authenticate_request(_request({"Authorization": f"Bearer {token}"}))

        assert client is not None
        assert client.client_id == "svc-client"
        assert client.user_id is None
        assert client.principal == "svc-client"

    def test_token_without_identity(self, server_env, make_token):
        token = make_token(sub=None, client_id=None)
        assert authenticate_request(_request({"Authorization": f"Bearer {token}"})) is None

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer"])
    def test_missing_or_malformed_header(self, server_env, header):
        headers = {"Authorization": header} if header is not None else {}
        assert authenticate_request(_request(headers)) is None

    def test_auth_disabled(self, server_env, monkeypatch):
        monkeypatch.setenv("DSMCP_AUTH_ENABLED", "false")

        assert authenticate_request(_request()) is ANONYMOUS_CLIENT
        assert ANONYMOUS_CLIENT.principal == "anonymous"


class TestUnauthorizedResponse:
    def test_shape(self, server_env):
        response = unauthorized_response()

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == (
            'Bearer realm="mcp", resource_metadata="http://127.0.0.1:8787/.well-known/oauth-protected-resource"'
        )
        assert json.loads(response.body)["error"]["code"] == RPC_UNAUTHORIZED
