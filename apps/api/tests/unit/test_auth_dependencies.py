import pytest
from fastapi import HTTPException

from orderdesk.auth.dependencies import (
    ADMIN,
    BOT,
    STAFF,
    AuthContext,
    get_auth_context,
    require_backoffice,
    require_order_writer,
    require_roles,
)
from orderdesk.auth.jwt import JwtError, decode_jwt, issue_actor_token, issue_jwt
from orderdesk.config import settings


def _bearer(role: str, sub: str = "actor-1") -> str:
    return f"Bearer {issue_actor_token(sub, role, settings.jwt_secret)}"


def test_bypass_applies_only_without_authorization_header():
    context = get_auth_context(authorization=None)

    assert context == AuthContext(actor_id="test-admin", role=ADMIN, source="test")


def test_valid_token_yields_actor_and_role():
    context = get_auth_context(authorization=_bearer(BOT, "telegram-bot"))

    assert context.actor_id == "telegram-bot"
    assert context.role == BOT


def test_missing_token_is_rejected_when_bypass_disabled(monkeypatch):
    monkeypatch.setattr(settings, "enable_test_auth_bypass", False)

    with pytest.raises(HTTPException) as exc_info:
        get_auth_context(authorization=None)

    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


def test_unknown_role_is_rejected():
    with pytest.raises(HTTPException) as exc_info:
        get_auth_context(authorization=_bearer("CUSTOMER"))

    assert exc_info.value.status_code == 401


def test_tampered_token_is_rejected():
    token = issue_actor_token("actor-1", ADMIN, "another-secret")

    with pytest.raises(HTTPException):
        get_auth_context(authorization=f"Bearer {token}")


def test_expired_token_fails_decoding():
    token = issue_jwt({"sub": "a", "role": ADMIN}, "secret", expires_in_s=10, now=1_000)

    assert decode_jwt(token, "secret", now=1_005)["sub"] == "a"
    with pytest.raises(JwtError, match="Expired"):
        decode_jwt(token, "secret", now=1_011)


def test_role_guards():
    staff = AuthContext(actor_id="s", role=STAFF)
    bot = AuthContext(actor_id="b", role=BOT)

    assert require_backoffice(auth=staff) is staff
    assert require_order_writer(auth=bot) is bot
    with pytest.raises(HTTPException) as exc_info:
        require_backoffice(auth=bot)
    assert exc_info.value.status_code == 403
    with pytest.raises(HTTPException):
        require_roles(ADMIN)(auth=staff)
