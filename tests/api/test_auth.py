"""Tests for CRM session JWT authentication."""

import time
from unittest.mock import MagicMock

import jwt as pyjwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from pipeline_ledger.core.auth import decode_session_jwt, require_auth
from pipeline_ledger.core.config import Settings

pytestmark = pytest.mark.unit

_SECRET = "test-secret-with-enough-bytes-for-hs256"


def _sign(payload: dict, secret: str = _SECRET) -> str:
    return pyjwt.encode(payload, secret, algorithm="HS256")


def _claims(**overrides) -> dict:
    claims = {"userId": "user-42", "name": "Tazi", "exp": int(time.time()) + 3600}
    claims.update(overrides)
    return claims


@pytest.fixture(autouse=True)
def auth_settings(monkeypatch):
    settings = Settings(jwt_secret=_SECRET)
    monkeypatch.setattr("pipeline_ledger.core.auth.get_settings", lambda: settings)
    return settings


def _request(cookies: dict | None = None):
    request = MagicMock()
    request.cookies = cookies or {}
    return request


def test_valid_token_decodes_user():
    user = decode_session_jwt(_sign(_claims()))

    assert user.user_id == "user-42"
    assert user.name == "Tazi"
    assert user.claims["userId"] == "user-42"


def test_sub_and_email_fallbacks():
    user = decode_session_jwt(_sign({"sub": "user-7", "email": "k@atelier.ma", "exp": int(time.time()) + 60}))

    assert user.user_id == "user-7"
    assert user.name == "k@atelier.ma"


def test_expired_token_rejected():
    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt(_sign(_claims(exp=int(time.time()) - 10)))
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Token expired"


def test_token_without_exp_rejected():
    claims = _claims()
    del claims["exp"]
    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt(_sign(claims))
    assert exc_info.value.status_code == 401


def test_wrong_secret_rejected():
    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt(_sign(_claims(), secret="another-secret-of-sufficient-length"))
    assert exc_info.value.status_code == 401


def test_token_without_user_id_rejected():
    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt(_sign({"name": "anon", "exp": int(time.time()) + 60}))
    assert exc_info.value.detail == "Token missing user id"


def test_missing_secret_is_server_error(monkeypatch):
    monkeypatch.setattr("pipeline_ledger.core.auth.get_settings", lambda: Settings(jwt_secret=""))
    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt(_sign(_claims()))
    assert exc_info.value.status_code == 500


async def test_require_auth_reads_bearer_header():
    request = _request()
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=_sign(_claims()))

    user = await require_auth(request, credentials)

    assert user.user_id == "user-42"
    assert request.state.user_id == "user-42"


async def test_require_auth_falls_back_to_cookie():
    user = await require_auth(_request({"token": _sign(_claims())}), None)
    assert user.name == "Tazi"


async def test_require_auth_without_token_is_401():
    with pytest.raises(HTTPException) as exc_info:
        await require_auth(_request(), None)
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Not authenticated"
