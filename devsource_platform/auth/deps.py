from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from devsource_platform.context import get_context
from devsource_platform.errors import Forbidden, Unauthorized

from .security import TokenError, verify_access_token


_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The verified identity attached to a request."""

    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class _BearerUnauthorized(Unauthorized):
    headers = {"WWW-Authenticate": "Bearer"}


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Principal:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header.

    Only the token is checked; the database is not consulted, so a token stays
    valid for its lifetime even if the account is deleted meanwhile.
    """
    ctx = get_context(request)

    token = credentials.credentials if credentials is not None else None
    if not token:
        raise _BearerUnauthorized("Access denied. No token provided.", error="missing_token")

    try:
        claims = verify_access_token(token=token, secret=ctx.cfg.AUTH_JWT_SECRET)
    except TokenError as e:
        raise _BearerUnauthorized("Invalid or expired token.", error=e.code)

    return Principal(user_id=claims.user_id, role=claims.role)


def require_admin(user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_admin:
        raise Forbidden("Admin access required", error="admin_required")
    return user
