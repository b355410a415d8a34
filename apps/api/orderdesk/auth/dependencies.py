from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Header, HTTPException, status

from orderdesk.auth.jwt import JwtError, decode_jwt, jwt_http_exception
from orderdesk.config import allowed_roles_list, settings

ADMIN = "ADMIN"
STAFF = "STAFF"
BOT = "BOT"

TEST_BYPASS_ACTOR = "test-admin"


@dataclass
class AuthContext:
    actor_id: str
    role: str
    source: str | None = None


def get_auth_context(authorization: str | None = Header(default=None)) -> AuthContext:
    if not authorization and settings.enable_test_auth_bypass:
        return AuthContext(actor_id=TEST_BYPASS_ACTOR, role=ADMIN, source="test")

    if not authorization or not authorization.startswith("Bearer "):
        raise jwt_http_exception("Missing bearer token")

    token = authorization.removeprefix("Bearer ").strip()
    try:
        payload = decode_jwt(token, settings.jwt_secret)
    except JwtError as err:
        raise jwt_http_exception("Invalid JWT") from err

    role = payload.get("role")
    actor_id = payload.get("sub")
    if role not in allowed_roles_list() or not isinstance(actor_id, str) or not actor_id:
        raise jwt_http_exception("Invalid JWT claims")

    return AuthContext(actor_id=actor_id, role=role, source=payload.get("source"))


def require_roles(*roles: str) -> Callable[[AuthContext], AuthContext]:
    def dependency(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if auth.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return auth

    return dependency


require_admin = require_roles(ADMIN)
require_backoffice = require_roles(ADMIN, STAFF)
require_order_writer = require_roles(ADMIN, STAFF, BOT)
