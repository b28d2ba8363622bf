"""
Tests for bearer token validation.

These tests verify that:
1. Tokens issued by create_access_token resolve to their subject
2. Expired, tampered and subject-less tokens are rejected with 401
3. The failure reason is only exposed in dev mode
"""

import jwt
import pytest

pytest.importorskip("fastapi")
from fastapi import HTTPException

from fitmatch import config
from fitmatch.auth.deps import get_current_user_id
from fitmatch.auth.security import ALGORITHM, create_access_token, decode_access_token


@pytest.fixture(autouse=True)
def secret(monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET", "unit-test-secret")
    monkeypatch.setattr(config, "DEV_MODE", True)


def test_round_trip_subject():
    token = create_access_token("user-1")
    assert decode_access_token(token)["sub"] == "user-1"
    assert get_current_user_id(f"Bearer {token}") == "user-1"


def test_missing_and_malformed_header():
    for header in (None, "", "Token abc", "Bearer "):
        with pytest.raises(HTTPException) as exc:
            get_current_user_id(header)
        assert exc.value.status_code == 401


def test_expired_token_reports_reason_in_dev_mode():
    token = create_access_token("user-1", ttl_minutes=-5)
    with pytest.raises(HTTPException) as exc:
        get_current_user_id(f"Bearer {token}")
    assert exc.value.status_code == 401
    assert exc.value.detail["reason"] == "token_expired"
    assert "trace_id" in exc.value.detail


def test_tampered_token_is_rejected_and_reason_hidden_outside_dev(monkeypatch):
    monkeypatch.setattr(config, "DEV_MODE", False)
    token = jwt.encode({"sub": "user-1"}, "other-secret", algorithm=ALGORITHM)
    with pytest.raises(HTTPException) as exc:
        get_current_user_id(f"Bearer {token}")
    assert exc.value.status_code == 401
    assert "reason" not in exc.value.detail


def test_token_without_subject_is_rejected():
    token = jwt.encode({"exp": 4102444800}, "unit-test-secret", algorithm=ALGORITHM)
    with pytest.raises(HTTPException) as exc:
        get_current_user_id(f"Bearer {token}")
    assert exc.value.detail["reason"] == "token_missing_subject"


def test_missing_secret_is_a_server_error(monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET", "")
    with pytest.raises(HTTPException) as exc:
        create_access_token("user-1")
    assert exc.value.status_code == 500
