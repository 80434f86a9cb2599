import time

import jwt
import pytest
from fastapi import HTTPException

from realite.auth import verify

SECRET = "realite-test-secret-0123456789abcdef"


def _token(**claims):
    payload = {"sub": "user-1", "aud": "authenticated", "exp": int(time.time()) + 60}
    payload.update(claims)
    return jwt.encode(payload, SECRET, algorithm="HS256")


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(verify.settings, "JWT_SECRET", SECRET)


def test_valid_token_yields_user_id():
    claims = verify.verify_jwt(_token())

    assert verify.current_user_id(claims) == "user-1"


@pytest.mark.parametrize(
    "claims",
    [
        {"exp": int(time.time()) - 60},
        {"aud": "someone-else"},
    ],
)
def test_rejected_tokens(claims):
    with pytest.raises(HTTPException) as exc:
        verify.verify_jwt(_token(**claims))

    assert exc.value.status_code == 401


def test_wrong_signature_is_rejected():
    token = jwt.encode(
        {"sub": "user-1", "aud": "authenticated"}, "another-secret-0123456789abcdef-xyz", algorithm="HS256"
    )

    with pytest.raises(HTTPException) as exc:
        verify.verify_jwt(token)

    assert exc.value.status_code == 401


def test_missing_subject_is_rejected():
    with pytest.raises(HTTPException) as exc:
        verify.current_user_id({"aud": "authenticated"})

    assert exc.value.status_code == 401


def test_unconfigured_secret(monkeypatch):
    monkeypatch.setattr(verify.settings, "JWT_SECRET", None)

    with pytest.raises(HTTPException) as exc:
        verify.verify_jwt(_token())

    assert exc.value.status_code == 503
